# smsdesk/http.py
"""
Cliente HTTP base (requests.Session) usado pelo cliente do gateway.

- retry/backoff opcional para erros temporários (429, 5xx); desligado
  quando max_retries=0 (envios de SMS não são idempotentes no gateway)
- timeout padrão (com override por chamada)
- log de requisição/resposta com request id
"""

from __future__ import annotations

import time
import uuid
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from smsdesk.logging import get_logger

logger = get_logger(__name__)


class HttpClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: float = 10,
        max_retries: int = 0,
        backoff_factor: float = 0.5,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.base_url = base_url or ""
        self.timeout = timeout

        self.session = requests.Session()
        if headers:
            self.session.headers.update(headers)
        retries = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods={"GET"},
            respect_retry_after_header=True,
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retries)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def url_for(self, path: str) -> str:
        return path if path.startswith("http") else f"{self.base_url.rstrip('/')}/{path.lstrip('/')}"

    def request(self, method: str, path: str, **kwargs) -> requests.Response:
        """
        Executa a requisição com log e tempo de execução.
        Erros de rede/timeout são logados e propagados (requests.RequestException).
        """
        url = self.url_for(path)
        rid = str(uuid.uuid4())
        started = time.perf_counter()

        try:
            logger.debug("http.request", extra={"rid": rid, "method": method, "url": url})
            timeout = kwargs.pop("timeout", self.timeout)
            resp = self.session.request(method, url, timeout=timeout, **kwargs)
            elapsed_ms = int((time.perf_counter() - started) * 1000)
            logger.info(
                "http.response",
                extra={
                    "rid": rid,
                    "method": method,
                    "status": resp.status_code,
                    "elapsed_ms": elapsed_ms,
                    "snippet": resp.text[:200],
                },
            )
            return resp
        except requests.RequestException as e:
            logger.error("http.error", extra={"rid": rid, "url": url, "error_type": type(e).__name__, "error": str(e)})
            raise

    def get(self, path: str, **kwargs) -> requests.Response:
        return self.request("GET", path, **kwargs)

    def post_json(self, path: str, payload: Dict[str, Any], **kwargs) -> requests.Response:
        headers = kwargs.pop("headers", {})
        headers.setdefault("Accept", "application/json")
        return self.request("POST", path, headers=headers, json=payload, **kwargs)
