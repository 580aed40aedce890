# smsdesk/errors.py
"""
Taxonomia de erros do serviço.

Cada classe carrega o status HTTP com que é exposta pelos blueprints
(ver register_error_handlers). `details` é opcional e vai para o corpo
da resposta quando presente (ex.: detalhe devolvido pelo gateway).
"""

from __future__ import annotations

from typing import Any

from flask import Flask, jsonify

from smsdesk.logging import get_logger

logger = get_logger(__name__)


class SmsDeskError(Exception):
    status_code = 500

    def __init__(self, message: str, *, details: Any = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        body: dict = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ConfigurationError(SmsDeskError):
    """Config inválida detectada no boot."""


class ValidationError(SmsDeskError):
    status_code = 400


class AuthenticationError(SmsDeskError):
    status_code = 401


class NotFoundError(SmsDeskError):
    status_code = 404


class GatewayError(SmsDeskError):
    """O gateway recusou o envio, respondeu algo inválido ou estourou o timeout."""

    status_code = 502

    def __init__(self, message: str, *, details: Any = None, timeout: bool = False):
        super().__init__(message, details=details)
        self.timeout = timeout


class PersistenceError(SmsDeskError):
    status_code = 500


class ParseError(SmsDeskError):
    status_code = 400


class SignatureError(SmsDeskError):
    status_code = 401


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(SmsDeskError)
    def _handle_domain_error(e: SmsDeskError):
        level = logger.error if e.status_code >= 500 else logger.warning
        level("request.error", extra={"error_type": type(e).__name__, "error_message": e.message})
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(Exception)
    def _handle_unexpected(e: Exception):
        # HTTPException do werkzeug (404 de rota, 405...) segue o fluxo normal
        from werkzeug.exceptions import HTTPException

        if isinstance(e, HTTPException):
            return e
        logger.exception("request.unhandled", extra={"error_message": str(e)})
        return jsonify({"error": "Erro interno"}), 500
