# smsdesk/__init__.py
"""
Fábrica principal do Flask App.

- Carrega configurações do ambiente (via smsdesk.settings) + overrides.
- Inicializa logging.
- Garante SQLite pronto.
- Monta, uma única vez, os colaboradores de longa duração (cliente do
  gateway, verificador de assinatura, EventBus, MessageStore, serviços) e
  os guarda em app.extensions["smsdesk"] para injeção nos blueprints.
- Registra blueprints (webhook/outbound/panel_api/stream/health).
- Exporta ConversationTimeline, usada pelo painel para o envio otimista.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import Flask, current_app

from smsdesk.settings import check_settings, load_settings
from smsdesk.logging import configure_logging, get_logger
from smsdesk.errors import register_error_handlers
from smsdesk.gateway import SignatureVerifier, TelnyxClient, build_gateway_client, build_verifier
from smsdesk.models import MessageStore
from smsdesk.realtime import EventBus
from smsdesk.services import OutboundDispatcher, StatusReconciler, WebhookProcessor
from smsdesk.timeline import ConversationTimeline  # superfície do lado do cliente (painel)


@dataclass
class Services:
    gateway: TelnyxClient
    verifier: SignatureVerifier
    bus: EventBus
    store: MessageStore
    dispatcher: OutboundDispatcher
    reconciler: StatusReconciler
    webhooks: WebhookProcessor


def get_services() -> Services:
    return current_app.extensions["smsdesk"]


def create_app(config_name: str | None = None, overrides: dict | None = None) -> Flask:
    app = Flask(__name__)

    # 1) Config
    settings = load_settings(config_name)
    if overrides:
        settings.update(overrides)
    check_settings(settings)
    app.config.update(settings)

    # 2) Logging
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))
    log = get_logger(__name__)
    log.info("app.init", extra={"env": app.config.get("CONFIG_NAME", "dev")})

    # 3) SQLite + EventBus (garante arquivo e tabelas)
    bus = EventBus()
    store = MessageStore(app.config["SQLITE_PATH"], bus)
    store.init()
    log.info("db.ready", extra={"path": app.config["SQLITE_PATH"]})

    # 4) Colaboradores construídos uma vez e injetados
    cfg = app.config
    gateway = build_gateway_client(cfg)
    verifier = build_verifier(cfg)
    reconciler = StatusReconciler(store)
    app.extensions["smsdesk"] = Services(
        gateway=gateway,
        verifier=verifier,
        bus=bus,
        store=store,
        dispatcher=OutboundDispatcher(
            gateway,
            store,
            default_country_code=cfg["DEFAULT_COUNTRY_CODE"],
            max_bulk_recipients=int(cfg["BULK_MAX_RECIPIENTS"]),
        ),
        reconciler=reconciler,
        webhooks=WebhookProcessor(
            store, verifier, reconciler, default_country_code=cfg["DEFAULT_COUNTRY_CODE"]
        ),
    )

    # 5) Erros + Blueprints
    register_error_handlers(app)

    from smsdesk.blueprints.webhook import webhook
    from smsdesk.blueprints.outbound import outbound
    from smsdesk.blueprints.panel_api import panel_api
    from smsdesk.blueprints.stream import stream
    from smsdesk.blueprints.health import health

    app.register_blueprint(webhook)
    app.register_blueprint(outbound)
    app.register_blueprint(panel_api)
    app.register_blueprint(stream)
    app.register_blueprint(health)

    return app
