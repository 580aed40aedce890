# smsdesk/gateway/signature.py
"""
Verificação de autenticidade dos callbacks da Telnyx.

A Telnyx assina "<timestamp>|<corpo bruto>" com Ed25519 e envia:
- telnyx-signature-ed25519: assinatura em base64
- telnyx-timestamp: epoch em segundos

Verificamos com a chave pública do portal (TELNYX_PUBLIC_KEY, base64) e
rejeitamos timestamps fora da janela de tolerância (replay).

Com enabled=False (somente dev, WEBHOOK_SIGNATURE_CHECK=0) nada é
verificado e cada callback gera um aviso no log.
"""

from __future__ import annotations

import base64
import binascii
import time
from typing import Any, Callable, Dict, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from smsdesk.errors import ConfigurationError, SignatureError
from smsdesk.logging import get_logger

logger = get_logger(__name__)

SIGNATURE_HEADER = "telnyx-signature-ed25519"
TIMESTAMP_HEADER = "telnyx-timestamp"


def load_public_key(public_key_b64: str) -> Ed25519PublicKey:
    try:
        raw = base64.b64decode(public_key_b64, validate=True)
        return Ed25519PublicKey.from_public_bytes(raw)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError(f"TELNYX_PUBLIC_KEY inválida: {e}") from e


class SignatureVerifier:
    def __init__(
        self,
        public_key_b64: Optional[str],
        *,
        tolerance_seconds: int = 300,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ):
        self.enabled = enabled
        self.tolerance_seconds = tolerance_seconds
        self._clock = clock
        self._key: Optional[Ed25519PublicKey] = None
        if enabled:
            if not public_key_b64:
                raise ConfigurationError("TELNYX_PUBLIC_KEY é obrigatória com a verificação de assinatura ligada")
            self._key = load_public_key(public_key_b64)

    def verify(self, raw_body: bytes, signature: Optional[str], timestamp: Optional[str]) -> bool:
        """
        Devolve True quando a assinatura foi verificada, False quando a
        verificação está desligada. Levanta SignatureError caso contrário.
        """
        if not self.enabled:
            logger.warning("webhook.signature_unverified", extra={"reason": "WEBHOOK_SIGNATURE_CHECK=0"})
            return False

        if not signature or not timestamp:
            raise SignatureError("cabeçalhos de assinatura ausentes")

        try:
            ts = int(timestamp)
        except (TypeError, ValueError):
            raise SignatureError("timestamp inválido")

        skew = abs(self._clock() - ts)
        if skew > self.tolerance_seconds:
            raise SignatureError("timestamp fora da janela de tolerância", details={"skew_seconds": int(skew)})

        try:
            sig = base64.b64decode(signature, validate=True)
        except (binascii.Error, ValueError):
            raise SignatureError("assinatura não é base64 válido")

        signed = timestamp.encode("utf-8") + b"|" + raw_body
        try:
            self._key.verify(sig, signed)
        except InvalidSignature:
            raise SignatureError("assinatura inválida")
        return True


def build_verifier(cfg: Dict[str, Any]) -> SignatureVerifier:
    enabled = bool(cfg.get("WEBHOOK_SIGNATURE_CHECK", True))
    if not enabled:
        logger.warning(
            "webhook.signature_check_disabled",
            extra={"env": cfg.get("CONFIG_NAME"), "hint": "callbacks serão aceitos sem verificação (somente dev)"},
        )
    return SignatureVerifier(
        cfg.get("TELNYX_PUBLIC_KEY"),
        tolerance_seconds=int(cfg.get("WEBHOOK_TOLERANCE_SECONDS") or 300),
        enabled=enabled,
    )
