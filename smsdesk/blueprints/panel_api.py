# smsdesk/blueprints/panel_api.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from smsdesk import get_services
from smsdesk.blueprints.auth import require_internal_token
from smsdesk.errors import GatewayError, NotFoundError, ValidationError
from smsdesk.logging import get_logger
from smsdesk.models.store import is_unread
from smsdesk.phone import to_e164

panel_api = Blueprint("panel_api", __name__, url_prefix="/api")
logger = get_logger(__name__)


@panel_api.before_request
def _auth():
    require_internal_token()


def _limit(default: int = 50, maximum: int = 500) -> int:
    raw = request.args.get("limit", str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValidationError("param 'limit' deve ser inteiro")
    return max(1, min(value, maximum))


def _conversation_or_404(conversation_id: str) -> dict:
    row = get_services().store.get_conversation(conversation_id)
    if row is None:
        raise NotFoundError("Conversa não encontrada")
    return row


def _inbox_item(row: dict) -> dict:
    last = None
    if row.get("last_created_at"):
        last = {
            "body": row["last_body"],
            "direction": row["last_direction"],
            "status": row["last_status"],
            "created_at": row["last_created_at"],
        }
    return {
        "id": row["id"],
        "phone_number": row["phone_number"],
        "name": row["name"],
        "last_message_at": row["last_message_at"],
        "last_read_at": row["last_read_at"],
        "created_at": row["created_at"],
        "last_message": last,
        "unread": is_unread(row),
    }


@panel_api.get("/conversations")
def api_conversations():
    rows = get_services().store.list_conversations(limit=_limit())
    return jsonify({"ok": True, "items": [_inbox_item(r) for r in rows]})


@panel_api.get("/conversations/<conversation_id>")
def api_conversation(conversation_id: str):
    return jsonify({"ok": True, "conversation": _conversation_or_404(conversation_id)})


@panel_api.get("/conversations/by-phone/<phone>")
def api_conversation_by_phone(phone: str):
    e164 = to_e164(phone, current_app.config.get("DEFAULT_COUNTRY_CODE", "1"))
    row = get_services().store.get_conversation_by_phone(e164)
    if row is None:
        raise NotFoundError("Conversa não encontrada")
    return jsonify({"ok": True, "conversation": row})


@panel_api.get("/conversations/<conversation_id>/messages")
def api_messages(conversation_id: str):
    _conversation_or_404(conversation_id)
    rows = get_services().store.list_messages(
        conversation_id, limit=_limit(), before=request.args.get("before")
    )
    return jsonify({"ok": True, "items": rows})


@panel_api.post("/conversations/<conversation_id>/read")
def api_mark_read(conversation_id: str):
    row = get_services().store.mark_read(conversation_id)
    if row is None:
        raise NotFoundError("Conversa não encontrada")
    return jsonify({"ok": True, "conversation": row})


@panel_api.get("/messages/<message_id>/status")
def api_message_status(message_id: str):
    """
    Status gravado da mensagem. Com ?refresh=1 inclui a visão atual do
    gateway, só para conferência: nada é escrito a partir dela (quem muda
    status é o webhook).
    """
    services = get_services()
    row = services.store.get_message(message_id)
    if row is None:
        raise NotFoundError("Mensagem não encontrada")

    body = {"ok": True, "id": row["id"], "status": row["status"], "delivered_at": row["delivered_at"]}
    if request.args.get("refresh") == "1" and row.get("provider_message_id"):
        try:
            body["gateway"] = services.gateway.get_message_status(row["provider_message_id"])
        except GatewayError as e:
            logger.warning("status.refresh_failed", extra={"message_id": message_id, "error_message": e.message})
            body["gateway_error"] = e.message
    return jsonify(body)
