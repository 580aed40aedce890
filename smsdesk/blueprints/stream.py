# smsdesk/blueprints/stream.py
"""
Transporte SSE do fan-out. Cada conexão assina um canal do EventBus e
recebe os eventos publicados a partir daí (sem histórico: ao reconectar,
o cliente recarrega via /api).
"""

from __future__ import annotations

from flask import Blueprint, Response, stream_with_context

from smsdesk import get_services
from smsdesk.blueprints.auth import require_internal_token
from smsdesk.errors import NotFoundError
from smsdesk.realtime import GLOBAL_CHANNEL, conversation_channel

stream = Blueprint("stream", __name__, url_prefix="/stream")


@stream.before_request
def _auth():
    require_internal_token()


def _sse(channel: str) -> Response:
    gen = get_services().bus.stream(channel)
    resp = Response(stream_with_context(gen), mimetype="text/event-stream")
    resp.headers["Cache-Control"] = "no-cache"
    resp.headers["X-Accel-Buffering"] = "no"
    return resp


@stream.get("/conversations")
def stream_conversations():
    return _sse(GLOBAL_CHANNEL)


@stream.get("/conversations/<conversation_id>")
def stream_conversation(conversation_id: str):
    if get_services().store.get_conversation(conversation_id) is None:
        raise NotFoundError("Conversa não encontrada")
    return _sse(conversation_channel(conversation_id))
