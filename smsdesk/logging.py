# smsdesk/logging.py
"""
Logger estruturado do serviço.

- Uma linha JSON por registro: ts, level, msg, logger + extras (extra={...}).
- Com exceção anexada, inclui só o frame relevante em "exc_short"
  (arquivo, linha, função, código e mensagem), sem o traceback completo.
- Valores não serializáveis (datetime, dataclasses...) viram str.
"""

from __future__ import annotations

import json
import linecache
import logging
import os
import traceback
from datetime import datetime, timezone
from typing import Any, Dict

# -------------------------
# Helpers
# -------------------------
def _now_iso() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )

# atributos padrão do LogRecord que não vão para o JSON
_RESERVED_KEYS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "taskName"}


def _is_project_frame(filename: str) -> bool:
    return "site-packages" not in filename and "/lib/python" not in filename


# -------------------------
# Formatter
# -------------------------
class JsonFormatter(logging.Formatter):
    """
    Formatter JSON enxuto. O frame de exceção escolhido é o último que
    pertence ao projeto (dentro do cwd e fora de site-packages).
    """

    def _short_exc(self, exc_info) -> str | None:
        exc_type, exc_value, tb = exc_info
        frames = traceback.extract_tb(tb)
        if not frames:
            return f"{getattr(exc_type, '__name__', exc_type)}: {exc_value}"

        cwd = os.getcwd()
        chosen = frames[-1]
        for fr in reversed(frames):
            if fr.filename.startswith(cwd) and _is_project_frame(fr.filename):
                chosen = fr
                break
        else:
            for fr in reversed(frames):
                if _is_project_frame(fr.filename):
                    chosen = fr
                    break

        code = linecache.getline(chosen.filename, chosen.lineno).strip() or "<source not available>"
        return (
            f'File "{chosen.filename}", line {chosen.lineno}, in {chosen.name}\n'
            f"    {code}\n"
            f"{getattr(exc_type, '__name__', exc_type)}: {exc_value}"
        )

    def format(self, record: logging.LogRecord) -> str:
        base: Dict[str, Any] = {
            "ts": _now_iso(),
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }

        for k, v in record.__dict__.items():
            if k in _RESERVED_KEYS or k.startswith("_"):
                continue
            base[k] = v

        if record.exc_info:
            try:
                base["exc_short"] = self._short_exc(record.exc_info)
            except Exception:
                # o formatter nunca pode derrubar o log
                base["exc_in_formatter_error"] = True

        return json.dumps(base, ensure_ascii=False, default=str)


# -------------------------
# Config global
# -------------------------
def configure_logging(level: str = "INFO") -> None:
    """
    Configura o logger raiz para usar JsonFormatter.
    Deve ser chamado uma única vez na inicialização do app.
    """
    root = logging.getLogger()
    root.setLevel(level.upper())

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())

    root.handlers.clear()
    root.addHandler(handler)

    logging.getLogger(__name__).info("logging configured: JsonFormatter active")


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or "smsdesk")
