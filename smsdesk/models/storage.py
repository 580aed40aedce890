# smsdesk/models/storage.py
"""
Acesso ao SQLite: conversas e mensagens.

Funções puras sobre um `db_path`; quem publica eventos é o MessageStore
(ver store.py). A concorrência se apoia em três coisas do banco:
- UNIQUE(phone_number) em conversations (get-or-create sem corrida)
- UNIQUE(provider_message_id) em messages (dedupe de inbound)
- UPDATE condicional por status de origem (transições sem regressão)

Qualquer sqlite3.Error sai daqui como PersistenceError.
"""

from __future__ import annotations

import os
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from smsdesk.errors import PersistenceError

# ---------- helpers ----------

def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def new_id() -> str:
    return str(uuid.uuid4())

def _dict_factory(cursor, row):
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d

@contextmanager
def get_conn(db_path: str):
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    try:
        conn = sqlite3.connect(db_path, isolation_level=None, timeout=10)  # autocommit
    except sqlite3.Error as e:
        raise PersistenceError(f"falha ao abrir o banco: {e}") from e
    conn.row_factory = _dict_factory
    try:
        yield conn
    except sqlite3.IntegrityError:
        # chamadores tratam violação de UNIQUE como parte do fluxo normal
        raise
    except sqlite3.Error as e:
        raise PersistenceError(f"falha no banco: {e}") from e
    finally:
        conn.close()

# ---------- schema / init ----------

DDL_CONVERSATIONS = """
CREATE TABLE IF NOT EXISTS conversations (
  id               TEXT PRIMARY KEY,
  phone_number     TEXT NOT NULL UNIQUE,        -- E.164
  name             TEXT,
  last_message_at  TEXT,
  last_read_at     TEXT,
  created_at       TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_conversations_last ON conversations(last_message_at);
"""

DDL_MESSAGES = """
CREATE TABLE IF NOT EXISTS messages (
  id                   TEXT PRIMARY KEY,
  conversation_id      TEXT NOT NULL REFERENCES conversations(id),
  provider_message_id  TEXT UNIQUE,             -- id do gateway (NULL quando o envio falhou)
  direction            TEXT NOT NULL,           -- inbound | outbound
  from_number          TEXT NOT NULL,
  to_number            TEXT NOT NULL,
  body                 TEXT NOT NULL,
  status               TEXT NOT NULL,           -- pending | sent | delivered | failed | received
  created_at           TEXT NOT NULL,
  updated_at           TEXT NOT NULL,
  delivered_at         TEXT
);
CREATE INDEX IF NOT EXISTS idx_messages_conv_created ON messages(conversation_id, created_at);
"""

def ensure_db(db_path: str) -> None:
    with get_conn(db_path) as conn:
        cur = conn.cursor()
        for ddl in (DDL_CONVERSATIONS, DDL_MESSAGES):
            cur.executescript(ddl)

# ---------- conversations ----------

def get_conversation(db_path: str, conversation_id: str) -> Optional[Dict[str, Any]]:
    with get_conn(db_path) as conn:
        return conn.execute("SELECT * FROM conversations WHERE id=?", (conversation_id,)).fetchone()

def get_conversation_by_phone(db_path: str, phone_number: str) -> Optional[Dict[str, Any]]:
    with get_conn(db_path) as conn:
        return conn.execute(
            "SELECT * FROM conversations WHERE phone_number=?", (phone_number,)
        ).fetchone()

def insert_conversation(db_path: str, *, phone_number: str, name: Optional[str] = None) -> Optional[Dict[str, Any]]:
    """
    Tenta criar a conversa. Devolve a linha criada, ou None se outro
    escritor ganhou a corrida (UNIQUE em phone_number).
    """
    row = {
        "id": new_id(),
        "phone_number": phone_number,
        "name": name,
        "last_message_at": None,
        "last_read_at": None,
        "created_at": iso_now(),
    }
    try:
        with get_conn(db_path) as conn:
            conn.execute(
                """INSERT INTO conversations (id, phone_number, name, last_message_at, last_read_at, created_at)
                   VALUES (:id, :phone_number, :name, :last_message_at, :last_read_at, :created_at)""",
                row,
            )
    except sqlite3.IntegrityError:
        return None
    return row

def touch_conversation(db_path: str, conversation_id: str, last_message_at: str) -> Optional[Dict[str, Any]]:
    """Avança last_message_at (nunca volta no tempo)."""
    with get_conn(db_path) as conn:
        conn.execute(
            """UPDATE conversations SET last_message_at=?
               WHERE id=? AND (last_message_at IS NULL OR last_message_at < ?)""",
            (last_message_at, conversation_id, last_message_at),
        )
        return conn.execute("SELECT * FROM conversations WHERE id=?", (conversation_id,)).fetchone()

def mark_conversation_read(db_path: str, conversation_id: str, when: Optional[str] = None) -> Optional[Dict[str, Any]]:
    when = when or iso_now()
    with get_conn(db_path) as conn:
        cur = conn.execute("UPDATE conversations SET last_read_at=? WHERE id=?", (when, conversation_id))
        if cur.rowcount == 0:
            return None
        return conn.execute("SELECT * FROM conversations WHERE id=?", (conversation_id,)).fetchone()

def list_conversations(db_path: str, *, limit: int = 50) -> List[Dict[str, Any]]:
    """
    Conversas por última atividade, cada uma com a última mensagem
    (last_body/last_direction/last_created_at) e o horário do último inbound.
    """
    q = """
    SELECT c.*,
           m.body        AS last_body,
           m.direction   AS last_direction,
           m.status      AS last_status,
           m.created_at  AS last_created_at,
           (SELECT MAX(i.created_at) FROM messages i
             WHERE i.conversation_id = c.id AND i.direction = 'inbound') AS last_inbound_at
    FROM conversations c
    LEFT JOIN messages m ON m.id = (
        SELECT m2.id FROM messages m2
        WHERE m2.conversation_id = c.id
        ORDER BY m2.created_at DESC, m2.rowid DESC
        LIMIT 1
    )
    ORDER BY COALESCE(c.last_message_at, c.created_at) DESC
    LIMIT ?
    """
    with get_conn(db_path) as conn:
        return conn.execute(q, (int(limit),)).fetchall()

# ---------- messages ----------

def insert_message(
    db_path: str,
    *,
    conversation_id: str,
    direction: str,
    from_number: str,
    to_number: str,
    body: str,
    status: str,
    provider_message_id: Optional[str] = None,
    created_at: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    Insere a mensagem. Devolve a linha, ou None quando já existe uma
    mensagem com o mesmo provider_message_id (redelivery do gateway).
    """
    now = created_at or iso_now()
    row = {
        "id": new_id(),
        "conversation_id": conversation_id,
        "provider_message_id": provider_message_id,
        "direction": direction,
        "from_number": from_number,
        "to_number": to_number,
        "body": body,
        "status": status,
        "created_at": now,
        "updated_at": now,
        "delivered_at": None,
    }
    try:
        with get_conn(db_path) as conn:
            conn.execute(
                """INSERT INTO messages
                   (id, conversation_id, provider_message_id, direction, from_number, to_number,
                    body, status, created_at, updated_at, delivered_at)
                   VALUES (:id, :conversation_id, :provider_message_id, :direction, :from_number, :to_number,
                           :body, :status, :created_at, :updated_at, :delivered_at)""",
                row,
            )
    except sqlite3.IntegrityError:
        if provider_message_id is None:
            raise PersistenceError("violação de integridade ao inserir mensagem")
        return None
    return row

def get_message(db_path: str, message_id: str) -> Optional[Dict[str, Any]]:
    with get_conn(db_path) as conn:
        return conn.execute("SELECT * FROM messages WHERE id=?", (message_id,)).fetchone()

def get_message_by_provider_id(db_path: str, provider_message_id: str) -> Optional[Dict[str, Any]]:
    with get_conn(db_path) as conn:
        return conn.execute(
            "SELECT * FROM messages WHERE provider_message_id=?", (provider_message_id,)
        ).fetchone()

def update_status_if_in(
    db_path: str,
    provider_message_id: str,
    status: str,
    *,
    from_statuses: Iterable[str],
    delivered_at: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    UPDATE condicional: só aplica se o status atual estiver em `from_statuses`.
    Devolve a linha atualizada, ou None se nada mudou (não existe, ou o
    status atual não permite a transição).
    """
    sources = sorted(set(from_statuses))
    if not sources:
        return None
    placeholders = ",".join("?" for _ in sources)
    now = iso_now()
    with get_conn(db_path) as conn:
        cur = conn.execute(
            f"""UPDATE messages
                SET status=?, updated_at=?, delivered_at=COALESCE(?, delivered_at)
                WHERE provider_message_id=? AND status IN ({placeholders})""",
            (status, now, delivered_at, provider_message_id, *sources),
        )
        if cur.rowcount == 0:
            return None
        return conn.execute(
            "SELECT * FROM messages WHERE provider_message_id=?", (provider_message_id,)
        ).fetchone()

def list_messages(
    db_path: str, conversation_id: str, *, limit: int = 50, before: Optional[str] = None
) -> List[Dict[str, Any]]:
    """Últimas `limit` mensagens da conversa (antes de `before`), em ordem ASC."""
    q = "SELECT * FROM messages WHERE conversation_id=?"
    args: List[Any] = [conversation_id]
    if before:
        q += " AND created_at < ?"
        args.append(before)
    q += " ORDER BY created_at DESC, rowid DESC LIMIT ?"
    args.append(int(limit))
    with get_conn(db_path) as conn:
        rows = conn.execute(q, tuple(args)).fetchall()
    return list(reversed(rows))
