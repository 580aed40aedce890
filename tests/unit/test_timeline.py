# tests/unit/test_timeline.py
"""
Testes da reconciliação otimista do lado do cliente.
"""

import pytest

from smsdesk.errors import ValidationError
from smsdesk.realtime import conversation_channel
from smsdesk.services.dispatcher import OutboundDispatcher
from smsdesk import ConversationTimeline
from tests.factories import FakeGateway


def _msg(id_, status="pending", pid=None, direction="outbound", conv="c1", updated_at="2024-01-01T00:00:00.000Z"):
    return {
        "id": id_,
        "conversation_id": conv,
        "provider_message_id": pid,
        "direction": direction,
        "body": "Olá",
        "status": status,
        "created_at": "2024-01-01T00:00:00.000Z",
        "updated_at": updated_at,
    }


def _event(kind, message):
    return {"type": kind, "conversation_id": message["conversation_id"], "message": message}


def test_confirm_replaces_provisional_in_place():
    tl = ConversationTimeline("c1", [_msg("old", status="delivered", pid="p0")])
    temp = tl.add_provisional("Olá", to_number="+15551234567")
    assert tl.entries[-1]["status"] == "sending"
    assert tl.entries[-1]["is_optimistic"] is True

    tl.confirm(temp, _msg("m1", pid="p1"))

    assert [e["id"] for e in tl.entries] == ["old", "m1"]
    assert tl.entries[1]["is_optimistic"] is False
    assert tl.pending == []


def test_fail_removes_provisional_and_returns_draft():
    tl = ConversationTimeline("c1")
    temp = tl.add_provisional("rascunho", to_number="+15551234567")
    assert tl.fail(temp) == "rascunho"
    assert tl.entries == []


def test_event_before_response_is_claimed_by_provider_id():
    tl = ConversationTimeline("c1")
    temp = tl.add_provisional("Olá", to_number="+15551234567")

    # fan-out chega antes da resposta HTTP (e o webhook "sent" também)
    tl.apply_event(_event("message.created", _msg("m1", pid="p1")))
    tl.apply_event(_event("message.updated", _msg("m1", status="sent", pid="p1", updated_at="2024-01-01T00:00:01.000Z")))
    assert [e["id"] for e in tl.entries] == [temp]

    tl.confirm(temp, _msg("m1", pid="p1"))

    entries = tl.entries
    assert [e["id"] for e in entries] == ["m1"]
    # a resposta HTTP (pending) não regride o "sent" já visto
    assert entries[0]["status"] == "sent"


def test_late_event_after_confirm_updates_instead_of_duplicating():
    tl = ConversationTimeline("c1")
    temp = tl.add_provisional("Olá", to_number="+15551234567")
    tl.confirm(temp, _msg("m1", pid="p1"))
    tl.apply_event(_event("message.created", _msg("m1", pid="p1")))
    tl.apply_event(_event("message.updated", _msg("m1", status="delivered", pid="p1", updated_at="2024-01-01T00:00:02.000Z")))

    assert [e["id"] for e in tl.entries] == ["m1"]
    assert tl.entries[0]["status"] == "delivered"


def test_stale_update_does_not_regress():
    tl = ConversationTimeline("c1", [_msg("m1", status="delivered", pid="p1")])
    tl.apply_event(_event("message.updated", _msg("m1", status="sent", pid="p1", updated_at="2030-01-01T00:00:00.000Z")))
    assert tl.entries[0]["status"] == "delivered"


def test_unclaimed_held_messages_show_up_when_idle():
    tl = ConversationTimeline("c1")
    temp = tl.add_provisional("Olá", to_number="+15551234567")
    tl.apply_event(_event("message.created", _msg("other-tab", pid="p9")))
    tl.confirm(temp, _msg("m1", pid="p1"))
    assert [e["id"] for e in tl.entries] == ["m1", "other-tab"]


def test_inbound_events_are_never_held():
    tl = ConversationTimeline("c1")
    tl.add_provisional("Olá", to_number="+15551234567")
    tl.apply_event(_event("message.created", _msg("in1", status="received", pid="i1", direction="inbound")))
    assert [e["id"] for e in tl.entries][-1] == "in1"


def test_events_for_other_conversations_are_ignored():
    tl = ConversationTimeline("c1")
    tl.apply_event(_event("message.created", _msg("x", conv="c2")))
    tl.apply_event({"type": "conversation.updated", "conversation": {"id": "c1"}})
    assert tl.entries == []


def test_refresh_keeps_outstanding_provisional():
    tl = ConversationTimeline("c1")
    temp = tl.add_provisional("Olá", to_number="+15551234567")
    tl.refresh([_msg("m0", status="received", direction="inbound")])
    assert [e["id"] for e in tl.entries] == ["m0", temp]


# ---------- fluxo completo com store + fan-out ----------

@pytest.fixture
def wired(store, bus):
    conv, _ = store.get_or_create_conversation("+15551234567")
    return conv, ConversationTimeline(conv["id"])


def _pump(q, timeline):
    while not q.empty():
        timeline.apply_event(q.get_nowait())


def test_successful_send_leaves_single_confirmed_entry(wired, store, bus):
    conv, tl = wired
    dispatcher = OutboundDispatcher(FakeGateway(), store)

    with bus.listen(conversation_channel(conv["id"])) as q:
        temp = tl.add_provisional("Olá", to_number=conv["phone_number"])
        result = dispatcher.send(conv["id"], conv["phone_number"], "Olá")
        _pump(q, tl)  # evento do store chega antes da resposta
        tl.confirm(temp, result.message)
        _pump(q, tl)

    entries = tl.entries
    assert len(entries) == 1
    assert entries[0]["id"] == result.message["id"]
    assert entries[0]["provider_message_id"] == "prov-1"
    assert [m["id"] for m in store.list_messages(conv["id"])] == [result.message["id"]]


def test_rejected_send_removes_provisional_and_creates_no_row(wired, store, bus):
    conv, tl = wired
    dispatcher = OutboundDispatcher(FakeGateway(), store)
    temp = tl.add_provisional("Olá", to_number="+15559999999")

    with pytest.raises(ValidationError):
        dispatcher.send(conv["id"], "+15559999999", "Olá")  # telefone não bate com a conversa
    draft = tl.fail(temp)

    assert draft == "Olá"
    assert tl.entries == []
    assert store.list_messages(conv["id"]) == []


def test_gateway_failure_removes_provisional_and_shows_failed_record(wired, store, bus):
    conv, tl = wired
    dispatcher = OutboundDispatcher(FakeGateway(fail_on={1}), store)

    with bus.listen(conversation_channel(conv["id"])) as q:
        temp = tl.add_provisional("Olá", to_number=conv["phone_number"])
        result = dispatcher.send(conv["id"], conv["phone_number"], "Olá")
        _pump(q, tl)
        assert not result.ok
        assert tl.fail(temp) == "Olá"

    entries = tl.entries
    assert len(entries) == 1
    assert entries[0]["status"] == "failed"
    assert entries[0]["id"] == result.message["id"]
