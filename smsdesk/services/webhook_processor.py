# smsdesk/services/webhook_processor.py
"""
Pipeline de um callback do gateway:

1. autenticidade (SignatureVerifier)  -> SignatureError
2. parse para evento fechado          -> ParseError
3. roteamento:
   - received         -> get-or-create da conversa + insert idempotente
   - sent             -> reconciler(sent)
   - delivered        -> reconciler(delivered, delivered_at=occurred_at)
   - delivery_failed  -> reconciler(failed)

Status sem mensagem correspondente e transições regressivas são no-ops
logados: o callback continua sendo confirmado ao gateway para não
provocar reentregas. Erros de banco sobem (o gateway reentrega e o
processamento é idempotente).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Optional

from smsdesk.gateway.events import (
    DeliveredEvent,
    DeliveryFailedEvent,
    GatewayEvent,
    ReceivedEvent,
    SentEvent,
    parse_event,
)
from smsdesk.gateway.signature import SIGNATURE_HEADER, TIMESTAMP_HEADER, SignatureVerifier
from smsdesk.logging import get_logger
from smsdesk.models import lifecycle
from smsdesk.models.store import MessageStore
from smsdesk.phone import mask_phone, to_e164
from smsdesk.services.reconciler import APPLIED, DUPLICATE, StatusReconciler

logger = get_logger(__name__)


@dataclass
class WebhookOutcome:
    event_type: str
    provider_message_id: str
    outcome: str
    verified: bool
    message_id: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "provider_message_id": self.provider_message_id,
            "outcome": self.outcome,
            "verified": self.verified,
            "message_id": self.message_id,
        }


class WebhookProcessor:
    def __init__(
        self,
        store: MessageStore,
        verifier: SignatureVerifier,
        reconciler: Optional[StatusReconciler] = None,
        *,
        default_country_code: str = "1",
    ):
        self.store = store
        self.verifier = verifier
        self.reconciler = reconciler or StatusReconciler(store)
        self.default_country_code = default_country_code

    def handle(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookOutcome:
        verified = self.verifier.verify(raw_body, headers.get(SIGNATURE_HEADER), headers.get(TIMESTAMP_HEADER))
        event = parse_event(raw_body)
        logger.info(
            "webhook.event",
            extra={
                "event_type": event.event_type,
                "event_id": event.event_id,
                "provider_message_id": event.provider_message_id,
                "verified": verified,
            },
        )
        outcome, message_id = self.apply(event)
        return WebhookOutcome(event.event_type, event.provider_message_id, outcome, verified, message_id)

    def apply(self, event: GatewayEvent) -> tuple[str, Optional[str]]:
        if isinstance(event, ReceivedEvent):
            return self._on_received(event)

        if isinstance(event, SentEvent):
            result = self.reconciler.apply(event.provider_message_id, lifecycle.SENT)
        elif isinstance(event, DeliveredEvent):
            result = self.reconciler.apply(
                event.provider_message_id, lifecycle.DELIVERED, delivered_at=event.occurred_at
            )
        elif isinstance(event, DeliveryFailedEvent):
            if event.errors:
                logger.warning(
                    "webhook.delivery_failed_detail",
                    extra={"provider_message_id": event.provider_message_id, "errors": list(event.errors)},
                )
            result = self.reconciler.apply(event.provider_message_id, lifecycle.FAILED)
        else:
            raise TypeError(f"evento desconhecido: {type(event).__name__}")

        return result.outcome, (result.message or {}).get("id")

    def _on_received(self, event: ReceivedEvent) -> tuple[str, Optional[str]]:
        sender = to_e164(event.from_number, self.default_country_code)
        recipient = to_e164(event.to_number, self.default_country_code)

        # atalho para redelivery: evita até o get-or-create
        existing = self.store.get_message_by_provider_id(event.provider_message_id)
        if existing:
            logger.info("webhook.inbound_duplicate", extra={"provider_message_id": event.provider_message_id})
            return DUPLICATE, existing["id"]

        conversation, created = self.store.get_or_create_conversation(sender)
        message, inserted = self.store.record_message(
            conversation_id=conversation["id"],
            direction="inbound",
            from_number=sender,
            to_number=recipient,
            body=event.text,
            status=lifecycle.RECEIVED,
            provider_message_id=event.provider_message_id,
        )
        if not inserted:
            logger.info("webhook.inbound_duplicate", extra={"provider_message_id": event.provider_message_id})
            return DUPLICATE, (message or {}).get("id")

        logger.info(
            "webhook.inbound_saved",
            extra={
                "from": mask_phone(sender),
                "conversation_id": conversation["id"],
                "new_conversation": created,
                "message_id": message["id"],
            },
        )
        return APPLIED, message["id"]
