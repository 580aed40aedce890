# tests/unit/test_store.py
"""
Testes do MessageStore (SQLite + publicação no EventBus).
"""

import sqlite3
import threading

from smsdesk.models.store import MessageStore, is_unread
from smsdesk.realtime import GLOBAL_CHANNEL, conversation_channel


def _count(db_path, table):
    conn = sqlite3.connect(db_path)
    try:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
    finally:
        conn.close()


def _drain(q):
    out = []
    while not q.empty():
        out.append(q.get_nowait())
    return out


def test_get_or_create_is_idempotent(store):
    first, created = store.get_or_create_conversation("+15551234567")
    second, created_again = store.get_or_create_conversation("+15551234567")

    assert created is True
    assert created_again is False
    assert first["id"] == second["id"]
    assert _count(store.db_path, "conversations") == 1


def test_concurrent_get_or_create_yields_one_row(store):
    n = 8
    barrier = threading.Barrier(n)
    results, errors = [], []

    def worker():
        try:
            barrier.wait()
            conv, _ = store.get_or_create_conversation("+15551234567")
            results.append(conv["id"])
        except Exception as e:  # pragma: no cover - falha aparece no assert
            errors.append(e)

    threads = [threading.Thread(target=worker) for _ in range(n)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(set(results)) == 1
    assert _count(store.db_path, "conversations") == 1


def test_record_message_dedupes_by_provider_id(store):
    conv, _ = store.get_or_create_conversation("+15551234567")
    kwargs = dict(
        conversation_id=conv["id"],
        direction="inbound",
        from_number="+15551234567",
        to_number="+15550000000",
        body="Oi",
        status="received",
        provider_message_id="msg-1",
    )
    first, created = store.record_message(**kwargs)
    again, created_again = store.record_message(**kwargs)

    assert created is True
    assert created_again is False
    assert again["id"] == first["id"]
    assert _count(store.db_path, "messages") == 1


def test_failed_messages_without_provider_id_do_not_collide(store):
    conv, _ = store.get_or_create_conversation("+15551234567")
    for _ in range(2):
        store.record_message(
            conversation_id=conv["id"],
            direction="outbound",
            from_number="+15550000000",
            to_number="+15551234567",
            body="x",
            status="failed",
        )
    assert _count(store.db_path, "messages") == 2


def test_record_message_publishes_and_touches_conversation(store, bus):
    conv, _ = store.get_or_create_conversation("+15551234567")
    with bus.listen(conversation_channel(conv["id"])) as conv_q, bus.listen(GLOBAL_CHANNEL) as global_q:
        msg, _ = store.record_message(
            conversation_id=conv["id"],
            direction="outbound",
            from_number="+15550000000",
            to_number="+15551234567",
            body="Olá",
            status="pending",
            provider_message_id="prov-1",
        )
        conv_events = _drain(conv_q)
        global_events = _drain(global_q)

    assert [e["type"] for e in conv_events] == ["message.created"]
    assert conv_events[0]["message"]["id"] == msg["id"]
    assert [e["type"] for e in global_events] == ["message.created", "conversation.updated"]
    assert global_events[1]["conversation"]["last_message_at"] == msg["created_at"]


def test_transition_is_conditional(store):
    conv, _ = store.get_or_create_conversation("+15551234567")
    store.record_message(
        conversation_id=conv["id"],
        direction="outbound",
        from_number="+15550000000",
        to_number="+15551234567",
        body="Olá",
        status="pending",
        provider_message_id="prov-1",
    )

    assert store.transition("prov-1", "delivered", delivered_at="2024-01-01T00:00:00.000Z")["status"] == "delivered"
    assert store.transition("prov-1", "sent") is None
    row = store.get_message_by_provider_id("prov-1")
    assert row["status"] == "delivered"
    assert row["delivered_at"] == "2024-01-01T00:00:00.000Z"


def test_list_messages_is_ascending_and_paginates(store):
    conv, _ = store.get_or_create_conversation("+15551234567")
    ids = []
    for i in range(3):
        msg, _ = store.record_message(
            conversation_id=conv["id"],
            direction="inbound",
            from_number="+15551234567",
            to_number="+15550000000",
            body=f"m{i}",
            status="received",
            provider_message_id=f"in-{i}",
        )
        ids.append(msg["id"])

    rows = store.list_messages(conv["id"])
    assert [r["body"] for r in rows] == ["m0", "m1", "m2"]
    assert [r["body"] for r in store.list_messages(conv["id"], limit=2)] == ["m1", "m2"]


def test_unread_uses_persisted_read_marker(store):
    conv, _ = store.get_or_create_conversation("+15551234567")
    store.record_message(
        conversation_id=conv["id"],
        direction="inbound",
        from_number="+15551234567",
        to_number="+15550000000",
        body="Oi",
        status="received",
        provider_message_id="in-1",
    )
    [row] = store.list_conversations()
    assert is_unread(row) is True
    assert row["last_body"] == "Oi"

    store.mark_read(conv["id"])
    [row] = store.list_conversations()
    assert is_unread(row) is False

    # responder não "lê" a conversa, mas também não cria não-lida
    store.record_message(
        conversation_id=conv["id"],
        direction="outbound",
        from_number="+15550000000",
        to_number="+15551234567",
        body="Oi!",
        status="pending",
        provider_message_id="out-1",
    )
    [row] = store.list_conversations()
    assert is_unread(row) is False
    assert row["last_direction"] == "outbound"


def test_conversation_without_inbound_is_not_unread(store):
    store.get_or_create_conversation("+15551234567")
    [row] = store.list_conversations()
    assert is_unread(row) is False
    assert row["last_body"] is None
