# smsdesk/services/dispatcher.py
"""
Envio de mensagens (outbound).

Fluxo de um envio:
1. valida e canonicaliza o destino (E.164)
2. resolve a conversa (pelo id informado, ou get-or-create pelo telefone)
3. chama o gateway
4. grava a mensagem: pending + provider_message_id quando aceita,
   failed sem provider_message_id quando recusada/timeout

Recusa do gateway não vira exceção para o chamador: volta em
DispatchResult.error, junto com a mensagem failed já gravada.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from smsdesk.errors import GatewayError, NotFoundError, SmsDeskError, ValidationError
from smsdesk.logging import get_logger
from smsdesk.models import lifecycle
from smsdesk.models.store import MessageStore
from smsdesk.phone import mask_phone, to_e164

logger = get_logger(__name__)

Row = Dict[str, Any]


@dataclass
class DispatchResult:
    message: Row
    conversation: Row
    error: Optional[GatewayError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def provider_message_id(self) -> Optional[str]:
        return self.message.get("provider_message_id")


@dataclass
class BulkResult:
    results: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        successful = sum(1 for r in self.results if r["success"])
        return {"successful": successful, "failed": len(self.results) - successful, "total": len(self.results)}


class OutboundDispatcher:
    def __init__(
        self,
        gateway,
        store: MessageStore,
        *,
        default_country_code: str = "1",
        max_bulk_recipients: int = 100,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.gateway = gateway
        self.store = store
        self.default_country_code = default_country_code
        self.max_bulk_recipients = max_bulk_recipients
        self._sleep = sleep

    def _resolve_conversation(self, conversation_id: Optional[str], to: str) -> Row:
        if not conversation_id:
            conversation, _ = self.store.get_or_create_conversation(to)
            return conversation

        conversation = self.store.get_conversation(conversation_id)
        if conversation is None:
            raise NotFoundError("Conversa não encontrada")
        if conversation["phone_number"] != to:
            raise ValidationError('"to" não corresponde ao telefone da conversa')
        return conversation

    def send(self, conversation_id: Optional[str], to_number: str, body: str) -> DispatchResult:
        if not to_number or not str(to_number).strip():
            raise ValidationError('Informe "to"')
        if not isinstance(body, str) or not body.strip():
            raise ValidationError('Informe "message"')

        to = to_e164(to_number, self.default_country_code)
        conversation = self._resolve_conversation(conversation_id, to)

        logger.info("send.request", extra={"to": mask_phone(to), "conversation_id": conversation["id"]})
        try:
            accepted = self.gateway.send_message(to, body)
        except GatewayError as e:
            logger.error(
                "send.gateway_failed",
                extra={"to": mask_phone(to), "timeout": e.timeout, "error_message": e.message},
            )
            message, _ = self.store.record_message(
                conversation_id=conversation["id"],
                direction="outbound",
                from_number=self.gateway.from_number,
                to_number=to,
                body=body,
                status=lifecycle.FAILED,
            )
            return DispatchResult(message=message, conversation=conversation, error=e)

        message, created = self.store.record_message(
            conversation_id=conversation["id"],
            direction="outbound",
            from_number=self.gateway.from_number,
            to_number=to,
            body=body,
            status=lifecycle.PENDING,
            provider_message_id=accepted["id"],
        )
        if not created:
            # o gateway nunca deveria repetir um id; registramos e seguimos com a linha existente
            logger.error("send.provider_id_conflict", extra={"provider_message_id": accepted["id"]})
        logger.info("send.success", extra={"to": mask_phone(to), "provider_message_id": accepted["id"]})
        return DispatchResult(message=message, conversation=conversation)

    def send_bulk(self, recipients: Sequence[Any], body: str, *, delay_ms: int = 1000) -> BulkResult:
        """
        Envia a mesma mensagem para vários destinos, em sequência, esperando
        `delay_ms` entre um envio e o próximo. Falha em um destino não
        interrompe os demais.
        """
        if not isinstance(recipients, (list, tuple)) or not recipients:
            raise ValidationError("recipients deve ser uma lista não vazia")
        if len(recipients) > self.max_bulk_recipients:
            raise ValidationError(f"Máximo de {self.max_bulk_recipients} destinatários por envio em massa")
        if not isinstance(body, str) or not body.strip():
            raise ValidationError('Informe "message"')
        try:
            delay_s = max(0, int(delay_ms)) / 1000.0
        except (TypeError, ValueError):
            raise ValidationError('"delay" deve ser inteiro (ms)')

        out = BulkResult()
        for idx, recipient in enumerate(recipients):
            if idx > 0 and delay_s:
                self._sleep(delay_s)
            try:
                result = self.send(None, str(recipient or ""), body)
            except SmsDeskError as e:
                logger.warning("bulk.recipient_error", extra={"index": idx, "error_message": e.message})
                out.results.append(
                    {"recipient": recipient, "success": False, "messageId": None, "message": None, "error": e.message}
                )
                continue

            entry = {
                "recipient": recipient,
                "success": result.ok,
                "messageId": result.provider_message_id,
                "message": result.message,
            }
            if result.error:
                entry["error"] = result.error.message
                entry["details"] = result.error.details
            out.results.append(entry)
            logger.info(
                "bulk.progress",
                extra={"index": idx + 1, "total": len(recipients), "to": mask_phone(str(recipient)), "success": result.ok},
            )

        logger.info("bulk.done", extra=out.summary)
        return out
