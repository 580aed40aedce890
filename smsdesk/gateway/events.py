# smsdesk/gateway/events.py
"""
Parse do envelope de webhook da Telnyx para um evento de domínio fechado.

Módulo puro (sem Flask). Entrada esperada:
{
  "data": {
    "event_type": "message.received" | "message.sent" | "message.delivered"
                  | "message.delivery_failed" | "message.finalized",
    "id": "<id do evento>",
    "occurred_at": "2024-01-01T12:00:00.000+00:00",
    "payload": {"id": "<id da mensagem>", "from": {...}, "to": [{...}], "text": "..."}
  }
}

Saída: uma das dataclasses abaixo (GatewayEvent). Qualquer outro formato
ou tipo de evento levanta ParseError.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Literal, Optional, Union

from smsdesk.errors import ParseError

EventType = Literal["received", "sent", "delivered", "delivery_failed"]


@dataclass(frozen=True)
class _BaseEvent:
    provider_message_id: str
    occurred_at: str
    payload: Dict[str, Any] = field(repr=False)
    event_id: Optional[str] = None


@dataclass(frozen=True)
class ReceivedEvent(_BaseEvent):
    event_type: Literal["received"] = "received"
    from_number: str = ""
    to_number: str = ""
    text: str = ""


@dataclass(frozen=True)
class SentEvent(_BaseEvent):
    event_type: Literal["sent"] = "sent"


@dataclass(frozen=True)
class DeliveredEvent(_BaseEvent):
    event_type: Literal["delivered"] = "delivered"


@dataclass(frozen=True)
class DeliveryFailedEvent(_BaseEvent):
    event_type: Literal["delivery_failed"] = "delivery_failed"
    errors: tuple = ()


GatewayEvent = Union[ReceivedEvent, SentEvent, DeliveredEvent, DeliveryFailedEvent]

_DIRECT_TYPES: Dict[str, EventType] = {
    "message.received": "received",
    "message.sent": "sent",
    "message.delivered": "delivered",
    "message.delivery_failed": "delivery_failed",
}

# message.finalized carrega o resultado final em payload.to[0].status
_FINALIZED_STATUS: Dict[str, EventType] = {
    "delivered": "delivered",
    "delivery_failed": "delivery_failed",
    "sending_failed": "delivery_failed",
    "delivery_unconfirmed": "delivery_failed",
}


# -----------------------------
# Helpers internos
# -----------------------------
def _safe_list(x: Any) -> list:
    return x if isinstance(x, list) else []


def _safe_dict(x: Any) -> dict:
    return x if isinstance(x, dict) else {}


def _normalize_ts(raw: Any) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ParseError("occurred_at ausente")
    try:
        dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
    except ValueError:
        raise ParseError(f"occurred_at inválido: {raw!r}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _first_to(payload: dict) -> dict:
    to = payload.get("to")
    if isinstance(to, list):
        return _safe_dict(to[0]) if to else {}
    return _safe_dict(to)


def _resolve_type(event_type: Any, payload: dict) -> EventType:
    if event_type in _DIRECT_TYPES:
        return _DIRECT_TYPES[event_type]
    if event_type == "message.finalized":
        final = str(_first_to(payload).get("status") or "")
        if final in _FINALIZED_STATUS:
            return _FINALIZED_STATUS[final]
        raise ParseError(f"message.finalized com status não reconhecido: {final!r}")
    raise ParseError(f"tipo de evento não suportado: {event_type!r}")


# -----------------------------
# Função principal
# -----------------------------
def parse_event(raw: Union[bytes, str, Dict[str, Any]]) -> GatewayEvent:
    if isinstance(raw, (bytes, str)):
        try:
            body = json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            raise ParseError("corpo não é JSON válido")
    else:
        body = raw

    data = _safe_dict(_safe_dict(body).get("data"))
    if not data.get("event_type"):
        raise ParseError("envelope sem data.event_type")

    payload = data.get("payload")
    if not isinstance(payload, dict):
        raise ParseError("envelope sem data.payload")

    event_type = _resolve_type(data.get("event_type"), payload)

    provider_message_id = payload.get("id")
    if not isinstance(provider_message_id, str) or not provider_message_id:
        raise ParseError("payload sem id da mensagem")

    base = {
        "provider_message_id": provider_message_id,
        "occurred_at": _normalize_ts(data.get("occurred_at")),
        "payload": payload,
        "event_id": data.get("id") if isinstance(data.get("id"), str) else None,
    }

    if event_type == "received":
        from_number = _safe_dict(payload.get("from")).get("phone_number")
        to_number = _first_to(payload).get("phone_number")
        if not from_number or not to_number:
            raise ParseError("message.received sem from/to")
        text = payload.get("text")
        return ReceivedEvent(
            **base,
            from_number=str(from_number),
            to_number=str(to_number),
            text=str(text) if text is not None else "",
        )
    if event_type == "sent":
        return SentEvent(**base)
    if event_type == "delivered":
        return DeliveredEvent(**base)
    return DeliveryFailedEvent(
        **base,
        errors=tuple(_safe_dict(e) for e in _safe_list(payload.get("errors"))),
    )
