# smsdesk/blueprints/outbound.py
"""
Blueprint de envio (SMS outbound).

POST /api/sms/send   {"to": "...", "message": "...", "conversationId": "..."?}
PUT  /api/sms/send   {"recipients": [...], "message": "...", "delay": 1000?}   (em massa)
POST /api/sms/bulk   (alias do envio em massa)
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from smsdesk import get_services
from smsdesk.blueprints.auth import require_internal_token
from smsdesk.errors import ValidationError
from smsdesk.logging import get_logger

outbound = Blueprint("outbound", __name__, url_prefix="/api/sms")
logger = get_logger(__name__)


@outbound.before_request
def _auth():
    require_internal_token()


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Corpo JSON inválido")
    return data


@outbound.post("/send")
def send():
    """
    - Valida "to"/"message"
    - Resolve a conversa (conversationId ou get-or-create pelo telefone)
    - Envia e grava (pending ou failed)
    Falha do gateway responde 502 com o detalhe do provedor e a mensagem
    failed gravada, para a UI renderizar o erro.
    """
    data = _json_body()
    to = data.get("to")
    text = data.get("message")
    if not to or not text:
        # não loga o corpo para não vazar PII/conteúdo
        logger.warning("send.missing_fields", extra={"has_to": bool(to), "has_message": bool(text)})
        raise ValidationError("Campos obrigatórios ausentes: to, message")

    result = get_services().dispatcher.send(data.get("conversationId"), str(to), str(text))

    if not result.ok:
        return (
            jsonify(
                {
                    "error": "Falha ao enviar mensagem",
                    "details": result.error.details or result.error.message,
                    "message": result.message,
                    "conversation": result.conversation,
                }
            ),
            result.error.status_code,
        )

    return jsonify(
        {
            "success": True,
            "messageId": result.provider_message_id,
            "message": result.message,
            "conversation": result.conversation,
        }
    )


@outbound.put("/send")
@outbound.post("/bulk")
def send_bulk():
    data = _json_body()
    recipients = data.get("recipients")
    text = data.get("message")
    if not isinstance(recipients, list) or not text:
        raise ValidationError("Campos obrigatórios ausentes: recipients (lista), message")

    delay = data.get("delay", current_app.config.get("BULK_DEFAULT_DELAY_MS", 1000))
    logger.info("bulk.request", extra={"count": len(recipients), "delay_ms": delay})

    result = get_services().dispatcher.send_bulk(recipients, str(text), delay_ms=delay)
    return jsonify({"success": True, "summary": result.summary, "results": result.results})
