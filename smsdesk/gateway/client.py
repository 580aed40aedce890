# smsdesk/gateway/client.py
"""
Cliente da API de mensagens da Telnyx.

Construído uma vez no boot (create_app) e injetado no Dispatcher; nada de
instância global. Falhas de envio (recusa, resposta inválida, rede,
timeout) saem como GatewayError com o detalhe devolvido pelo provedor.
"""

from __future__ import annotations

import uuid
from typing import Any, Dict, Optional

import requests

from smsdesk.errors import ConfigurationError, GatewayError
from smsdesk.http import HttpClient
from smsdesk.logging import get_logger
from smsdesk.phone import mask_phone

logger = get_logger(__name__)

DEFAULT_API_BASE = "https://api.telnyx.com/v2"


def _json(resp: requests.Response) -> Dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _error_detail(resp: requests.Response) -> Any:
    try:
        return resp.json()
    except ValueError:
        return {"raw": resp.text[:500]}


class TelnyxClient:
    def __init__(
        self,
        api_key: Optional[str],
        profile_id: Optional[str],
        from_number: Optional[str],
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 10,
        dry_run: bool = False,
    ):
        if not dry_run and not (api_key and profile_id and from_number):
            logger.error(
                "gateway.misconfig",
                extra={"have_key": bool(api_key), "have_profile": bool(profile_id), "have_from": bool(from_number)},
            )
            raise ConfigurationError(
                "Telnyx mal configurado: defina TELNYX_API_KEY, TELNYX_PROFILE_ID e TELNYX_FROM."
            )
        self.profile_id = profile_id
        self.from_number = from_number or "+10000000000"
        self.dry_run = dry_run
        self.timeout = timeout

        headers = {"Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        # envio sem retry automático; leitura de status com retry
        self._send_http = HttpClient(api_base, timeout=timeout, max_retries=0, headers=headers)
        self._read_http = HttpClient(api_base, timeout=timeout, max_retries=3, headers=headers)

    def send_message(self, to: str, text: str) -> Dict[str, Any]:
        """
        Envia um SMS. `to` já deve estar em E.164.
        Devolve {"id": <provider_message_id>, "data": <objeto do provedor>}.
        """
        payload = {
            "from": self.from_number,
            "to": to,
            "text": text,
            "messaging_profile_id": self.profile_id,
        }

        if self.dry_run:
            fake_id = f"dryrun-{uuid.uuid4()}"
            logger.info("gateway.dry_run", extra={"to": mask_phone(to), "provider_message_id": fake_id})
            return {"id": fake_id, "data": {"id": fake_id, "dry_run": True, **payload}}

        try:
            resp = self._send_http.post_json("/messages", payload)
        except requests.Timeout as e:
            raise GatewayError(
                f"timeout após {self.timeout}s enviando para o gateway", details={"error": str(e)}, timeout=True
            ) from e
        except requests.RequestException as e:
            raise GatewayError("falha de rede ao falar com o gateway", details={"error": str(e)}) from e

        if not resp.ok:
            detail = _error_detail(resp)
            logger.error("gateway.rejected", extra={"status": resp.status_code, "to": mask_phone(to), "detail": detail})
            raise GatewayError(f"gateway recusou o envio (HTTP {resp.status_code})", details=detail)

        data = _json(resp).get("data")
        if not isinstance(data, dict) or not data.get("id"):
            logger.error("gateway.bad_response", extra={"status": resp.status_code, "snippet": resp.text[:200]})
            raise GatewayError("resposta inválida do gateway", details={"raw": resp.text[:500]})

        logger.info("gateway.accepted", extra={"to": mask_phone(to), "provider_message_id": data["id"]})
        return {"id": data["id"], "data": data}

    def get_message_status(self, provider_message_id: str) -> Dict[str, Any]:
        """Consulta a visão do gateway sobre uma mensagem (somente leitura)."""
        if self.dry_run:
            return {"id": provider_message_id, "dry_run": True}
        try:
            resp = self._read_http.get(f"/messages/{provider_message_id}")
        except requests.RequestException as e:
            raise GatewayError("falha ao consultar status no gateway", details={"error": str(e)}) from e
        if not resp.ok:
            raise GatewayError(f"gateway respondeu HTTP {resp.status_code}", details=_error_detail(resp))
        return _json(resp).get("data") or {}


def build_gateway_client(cfg: Dict[str, Any]) -> TelnyxClient:
    return TelnyxClient(
        cfg.get("TELNYX_API_KEY"),
        cfg.get("TELNYX_PROFILE_ID"),
        cfg.get("TELNYX_FROM"),
        api_base=cfg.get("TELNYX_API_BASE") or DEFAULT_API_BASE,
        timeout=float(cfg.get("GATEWAY_TIMEOUT_SECONDS") or 10),
        dry_run=bool(cfg.get("DRY_RUN", False)),
    )
