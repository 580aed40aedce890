# smsdesk/phone.py
"""
Helpers de telefone: canonicalização E.164 e máscara para logs.

Módulo puro (sem Flask) para facilitar testes.
"""

from __future__ import annotations

import re

_NON_DIGITS = re.compile(r"\D")


def to_e164(raw: str, default_country_code: str = "1") -> str:
    """
    Converte um número para E.164 (+<cc><número>).

    Regras:
    - já começa com "+"            -> "+" + dígitos (descarta espaços e pontuação)
    - 10 dígitos (doméstico)       -> +<cc> + dígitos
    - 11 dígitos começando com <cc> -> "+" + dígitos
    - qualquer outra coisa         -> +<cc> + dígitos (melhor esforço)
    """
    s = str(raw or "").strip()
    cc = str(default_country_code or "1").lstrip("+")
    digits = _NON_DIGITS.sub("", s)

    if s.startswith("+"):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+{cc}{digits}"
    if len(digits) == 11 and digits.startswith(cc):
        return f"+{digits}"
    return f"+{cc}{digits}"


def mask_phone(p: str | None) -> str | None:
    """Mantém o código do país e os 2 últimos dígitos; mascara o resto."""
    if not p:
        return p
    d = _NON_DIGITS.sub("", str(p))
    n = len(d)
    if n < 7:
        return ("*" * max(0, n - 2)) + d[-2:]
    prefix = "+" if str(p).strip().startswith("+") else ""
    return prefix + d[:2] + ("*" * (n - 4)) + d[-2:]
