# smsdesk/blueprints/webhook.py
"""
Callback da Telnyx.

Com assinatura e parse OK, responde 200 mesmo quando a atualização
roteada foi um no-op (status de mensagem desconhecida, duplicata,
regressão ignorada): reentregas não mudariam nada.
Assinatura inválida -> 401, envelope inválido -> 400 (sem retry do nosso
lado; a política de reentrega do gateway decide).
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from smsdesk import get_services
from smsdesk.errors import ParseError, SignatureError
from smsdesk.logging import get_logger

logger = get_logger(__name__)
webhook = Blueprint("webhook", __name__, url_prefix="/webhooks")


@webhook.get("/telnyx")
def ping():
    return jsonify({"status": "webhook endpoint active"})


@webhook.post("/telnyx")
def receive():
    raw = request.get_data(cache=False)
    logger.info("webhook.incoming", extra={"raw_size": len(raw)})

    try:
        outcome = get_services().webhooks.handle(raw, request.headers)
    except SignatureError as e:
        logger.warning("webhook.rejected_signature", extra={"error_message": e.message})
        raise
    except ParseError as e:
        logger.warning("webhook.rejected_parse", extra={"error_message": e.message})
        raise

    logger.info("webhook.processed", extra=outcome.to_dict())
    return jsonify({"success": True, **outcome.to_dict()})
