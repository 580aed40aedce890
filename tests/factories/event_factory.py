# tests/factories/event_factory.py
"""
Factories/helpers para montar envelopes de webhook da Telnyx (e assinar)
para uso nos testes unitários e de integração.
"""

from __future__ import annotations

import base64
import json
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from smsdesk.gateway.signature import SIGNATURE_HEADER, TIMESTAMP_HEADER

__all__ = [
    "now_iso",
    "make_envelope",
    "make_received_body",
    "make_status_body",
    "make_finalized_body",
    "encode",
    "signed_headers",
]

OUR_NUMBER = "+15550000000"


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


def _gen_id(prefix: str = "msg") -> str:
    return f"{prefix}-{uuid.uuid4()}"


def make_envelope(event_type: str, payload: Dict[str, Any], occurred_at: Optional[str] = None) -> Dict[str, Any]:
    return {
        "data": {
            "event_type": event_type,
            "id": _gen_id("evt"),
            "occurred_at": occurred_at or now_iso(),
            "payload": payload,
            "record_type": "event",
        },
        "meta": {"attempt": 1, "delivered_to": "https://example.test/webhooks/telnyx"},
    }


def make_received_body(
    from_number: str,
    text: str,
    msg_id: Optional[str] = None,
    to_number: str = OUR_NUMBER,
) -> Dict[str, Any]:
    payload = {
        "id": msg_id or _gen_id(),
        "direction": "inbound",
        "from": {"phone_number": from_number},
        "to": [{"phone_number": to_number, "status": "webhook_delivered"}],
        "text": text,
        "type": "SMS",
    }
    return make_envelope("message.received", payload)


def make_status_body(
    status: str,
    msg_id: str,
    occurred_at: Optional[str] = None,
    errors: Optional[list] = None,
) -> Dict[str, Any]:
    """status: sent | delivered | delivery_failed"""
    payload: Dict[str, Any] = {
        "id": msg_id,
        "direction": "outbound",
        "from": {"phone_number": OUR_NUMBER},
        "to": [{"phone_number": "+15551234567", "status": status}],
    }
    if errors:
        payload["errors"] = errors
    return make_envelope(f"message.{status}", payload, occurred_at)


def make_finalized_body(final_status: str, msg_id: str) -> Dict[str, Any]:
    payload = {
        "id": msg_id,
        "direction": "outbound",
        "to": [{"phone_number": "+15551234567", "status": final_status}],
    }
    return make_envelope("message.finalized", payload)


def encode(body: Dict[str, Any]) -> bytes:
    return json.dumps(body).encode("utf-8")


def signed_headers(raw: bytes, signing_key, timestamp: Optional[int] = None) -> Dict[str, str]:
    ts = str(timestamp if timestamp is not None else int(time.time()))
    sig = signing_key.sign(ts.encode("utf-8") + b"|" + raw)
    return {
        SIGNATURE_HEADER: base64.b64encode(sig).decode(),
        TIMESTAMP_HEADER: ts,
        "Content-Type": "application/json",
    }
