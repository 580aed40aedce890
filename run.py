# run.py
"""
Ponto de entrada simples para desenvolvimento.

- Carrega o .env específico do ambiente (ex.: .env.dev, .env.hom, .env.prod)
- Cria o app via factory (create_app)
- Lê configurações SOMENTE de app.config
- Faz um log de inicialização em JSON com informações úteis
- Sobe o servidor embutido do Flask (para produção, use gunicorn com gunicorn_config.py)
"""

from __future__ import annotations

import json
import os
import sys
from datetime import datetime, timezone

from smsdesk import create_app
from smsdesk.phone import mask_phone


def _now_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def _json_log(level: str, msg: str, extra: dict | None = None) -> None:
    payload = {"ts": _now_iso(), "level": level.upper(), "msg": msg}
    if extra:
        payload.update(extra)
    print(json.dumps(payload, ensure_ascii=False), flush=True)


CONFIG_NAME = os.environ.get("CONFIG_NAME", "dev")

# create_app carrega o .env.<env> (ver smsdesk.settings)
app = create_app(CONFIG_NAME)

if __name__ == "__main__":
    cfg = app.config

    port = int(cfg.get("PORT", 3000))
    _json_log(
        "INFO",
        "server.start",
        {
            "env": CONFIG_NAME,
            "port": port,
            "python": sys.version.split()[0],
            "from": mask_phone(cfg.get("TELNYX_FROM")),
            "apiKey_set": bool(cfg.get("TELNYX_API_KEY")),
            "profileId_set": bool(cfg.get("TELNYX_PROFILE_ID")),
            "publicKey_set": bool(cfg.get("TELNYX_PUBLIC_KEY")),
            "signature_check": bool(cfg.get("WEBHOOK_SIGNATURE_CHECK")),
            "dry_run": bool(cfg.get("DRY_RUN", False)),
            "log_level": (cfg.get("LOG_LEVEL") or "INFO").upper(),
        },
    )

    if not cfg.get("WEBHOOK_SIGNATURE_CHECK"):
        _json_log(
            "WARN",
            "config.signature_check_off",
            {"hint": "Callbacks do webhook são aceitos sem verificação. Use apenas em dev."},
        )

    # Servidor de desenvolvimento (threaded por causa dos streams SSE)
    app.run(host="0.0.0.0", port=port, threaded=True)
