# tests/factories/gateway_factory.py
"""Gateway falso para testar o Dispatcher sem rede."""

from __future__ import annotations

from typing import Any, Dict, List, Set

from smsdesk.errors import GatewayError


class FakeGateway:
    def __init__(self, from_number: str = "+15550000000", fail_on: Set[int] | None = None, timeout_on: Set[int] | None = None):
        self.from_number = from_number
        self.fail_on = fail_on or set()        # índices (1-based) das chamadas que falham
        self.timeout_on = timeout_on or set()
        self.calls: List[Dict[str, Any]] = []

    def send_message(self, to: str, text: str) -> Dict[str, Any]:
        self.calls.append({"to": to, "text": text})
        n = len(self.calls)
        if n in self.timeout_on:
            raise GatewayError("timeout após 10s enviando para o gateway", timeout=True)
        if n in self.fail_on:
            raise GatewayError(
                "gateway recusou o envio (HTTP 422)",
                details={"errors": [{"code": "40310", "title": "Invalid 'to' address"}]},
            )
        pid = f"prov-{n}"
        return {"id": pid, "data": {"id": pid, "to": [{"phone_number": to}]}}
