# smsdesk/models/store.py
"""
MessageStore: fachada sobre storage.py que publica no EventBus depois de
cada escrita confirmada. Leituras não publicam nada.

Eventos publicados:
- conversation.created / conversation.updated  -> canal global
- message.created / message.updated            -> canal da conversa + global
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from smsdesk.errors import PersistenceError
from smsdesk.logging import get_logger
from smsdesk.models import lifecycle, storage
from smsdesk.realtime import GLOBAL_CHANNEL, EventBus, conversation_channel

logger = get_logger(__name__)

Row = Dict[str, Any]


class MessageStore:
    def __init__(self, db_path: str, bus: EventBus):
        self.db_path = db_path
        self.bus = bus

    def init(self) -> None:
        storage.ensure_db(self.db_path)

    # ---------- publicação ----------

    def _publish_conversation(self, kind: str, conversation: Row) -> None:
        self.bus.publish(GLOBAL_CHANNEL, {"type": kind, "conversation": conversation})

    def _publish_message(self, kind: str, message: Row) -> None:
        payload = {"type": kind, "conversation_id": message["conversation_id"], "message": message}
        self.bus.publish(conversation_channel(message["conversation_id"]), payload)
        self.bus.publish(GLOBAL_CHANNEL, payload)

    # ---------- conversas ----------

    def get_or_create_conversation(self, phone_number: str, name: Optional[str] = None) -> Tuple[Row, bool]:
        """
        Devolve (conversa, criada?). Seguro sob concorrência: quem perde a
        corrida do INSERT lê a linha do vencedor em vez de falhar.
        """
        existing = storage.get_conversation_by_phone(self.db_path, phone_number)
        if existing:
            return existing, False

        created = storage.insert_conversation(self.db_path, phone_number=phone_number, name=name)
        if created:
            self._publish_conversation("conversation.created", created)
            return created, True

        winner = storage.get_conversation_by_phone(self.db_path, phone_number)
        if winner is None:
            # UNIQUE violado mas a linha sumiu: não deveria acontecer (nada é apagado)
            raise PersistenceError(f"conversa para {phone_number} não encontrada após conflito")
        logger.debug("conversation.create_race_lost", extra={"conversation_id": winner["id"]})
        return winner, False

    def get_conversation(self, conversation_id: str) -> Optional[Row]:
        return storage.get_conversation(self.db_path, conversation_id)

    def get_conversation_by_phone(self, phone_number: str) -> Optional[Row]:
        return storage.get_conversation_by_phone(self.db_path, phone_number)

    def list_conversations(self, *, limit: int = 50) -> List[Row]:
        return storage.list_conversations(self.db_path, limit=limit)

    def mark_read(self, conversation_id: str) -> Optional[Row]:
        row = storage.mark_conversation_read(self.db_path, conversation_id)
        if row:
            self._publish_conversation("conversation.updated", row)
        return row

    # ---------- mensagens ----------

    def record_message(
        self,
        *,
        conversation_id: str,
        direction: str,
        from_number: str,
        to_number: str,
        body: str,
        status: str,
        provider_message_id: Optional[str] = None,
    ) -> Tuple[Optional[Row], bool]:
        """
        Insere a mensagem e avança last_message_at da conversa.
        Devolve (linha, criada?). Com provider_message_id repetido devolve
        a linha já existente e criada=False (nada é publicado).
        """
        if direction not in lifecycle.DIRECTIONS:
            raise ValueError(f"direction inválida: {direction!r}")
        if status not in lifecycle.STATUSES:
            raise ValueError(f"status inválido: {status!r}")

        row = storage.insert_message(
            self.db_path,
            conversation_id=conversation_id,
            direction=direction,
            from_number=from_number,
            to_number=to_number,
            body=body,
            status=status,
            provider_message_id=provider_message_id,
        )
        if row is None:
            return storage.get_message_by_provider_id(self.db_path, provider_message_id), False

        self._publish_message("message.created", row)
        conversation = storage.touch_conversation(self.db_path, conversation_id, row["created_at"])
        if conversation:
            self._publish_conversation("conversation.updated", conversation)
        return row, True

    def transition(
        self, provider_message_id: str, status: str, *, delivered_at: Optional[str] = None
    ) -> Optional[Row]:
        """
        Aplica a transição só se o status atual permitir (UPDATE condicional).
        Devolve a linha atualizada ou None quando nada mudou.
        """
        row = storage.update_status_if_in(
            self.db_path,
            provider_message_id,
            status,
            from_statuses=lifecycle.allowed_sources(status),
            delivered_at=delivered_at,
        )
        if row:
            self._publish_message("message.updated", row)
        return row

    def get_message(self, message_id: str) -> Optional[Row]:
        return storage.get_message(self.db_path, message_id)

    def get_message_by_provider_id(self, provider_message_id: str) -> Optional[Row]:
        return storage.get_message_by_provider_id(self.db_path, provider_message_id)

    def list_messages(self, conversation_id: str, *, limit: int = 50, before: Optional[str] = None) -> List[Row]:
        return storage.list_messages(self.db_path, conversation_id, limit=limit, before=before)


def is_unread(conversation: Row) -> bool:
    """
    Não lida = existe inbound mais novo que o marcador de leitura
    persistido (last_read_at). Espera a linha de list_conversations.
    """
    last_inbound = conversation.get("last_inbound_at")
    if not last_inbound:
        return False
    last_read = conversation.get("last_read_at")
    return last_read is None or last_inbound > last_read
