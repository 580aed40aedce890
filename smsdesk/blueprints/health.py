# smsdesk/blueprints/health.py
"""
Blueprint simples de healthcheck e status do ambiente.
"""

from flask import Blueprint, jsonify, current_app

from smsdesk import get_services

health = Blueprint("health", __name__)


@health.get("/health")
def get_health():
    """
    - ok: True -> app está rodando
    - env: nome do ambiente (dev/hom/prod)
    - dry_run: modo simulação (nenhuma chamada real ao gateway)
    - signature_check: verificação de assinatura do webhook ligada?
    """
    cfg = current_app.config
    services = get_services()
    return jsonify(
        {
            "ok": True,
            "env": cfg.get("CONFIG_NAME", "dev"),
            "dry_run": bool(cfg.get("DRY_RUN", False)),
            "signature_check": services.verifier.enabled,
            "subscribers": services.bus.subscriber_count("conversations"),
        }
    )
