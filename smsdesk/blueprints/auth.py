# smsdesk/blueprints/auth.py
"""
Fronteira de autenticação das rotas internas (/api, /stream).

Sessão/login ficam fora deste serviço; aqui só conferimos o token
interno (X-Internal-Token) quando INTERNAL_API_TOKEN está configurado.
"""

from __future__ import annotations

import hmac

from flask import current_app, request

from smsdesk.errors import AuthenticationError

TOKEN_HEADER = "X-Internal-Token"


def require_internal_token() -> None:
    secret = current_app.config.get("INTERNAL_API_TOKEN")
    if not secret:
        return
    # EventSource não envia cabeçalhos customizados: aceita ?token= também
    given = request.headers.get(TOKEN_HEADER) or request.args.get("token") or ""
    if not hmac.compare_digest(given, secret):
        raise AuthenticationError("unauthorized")
