# smsdesk/settings.py
"""
Carrega e organiza todas as configurações do app.

- Lê variáveis de ambiente (.env.<env>) usando dotenv
- Monta um dicionário simples com todas as chaves relevantes
- Define valores padrão quando necessário
- Evita múltiplos load_dotenv (feito apenas aqui)

Uso:
    from smsdesk.settings import load_settings
    settings = load_settings("dev")
"""

from __future__ import annotations

import os
from pathlib import Path
from dotenv import load_dotenv

from smsdesk.errors import ConfigurationError


def _flag(name: str, default: str = "0") -> bool:
    return (os.getenv(name, default) or "").strip().lower() in ("1", "true", "yes", "on")


def _int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} deve ser inteiro (recebido: {raw!r})")


# -----------------------------------------------------------
# Função principal
# -----------------------------------------------------------
def load_settings(env_name: str | None = None) -> dict:
    """
    Carrega as variáveis de ambiente para o app Flask.
    Retorna um dicionário pronto para app.config.update().
    """
    config_name = env_name or os.getenv("CONFIG_NAME", "dev")
    env_file = Path(f".env.{config_name}")

    # Carrega o arquivo de ambiente (se existir)
    if env_file.exists():
        load_dotenv(env_file.as_posix(), override=True)
    else:
        # Fallback: tenta .env genérico se existir
        generic_env = Path(".env")
        if generic_env.exists():
            load_dotenv(generic_env.as_posix(), override=False)

    dry_run_flag = _flag("DRY_RUN")

    settings = {
        # Identificação
        "CONFIG_NAME": config_name,

        # Servidor
        "PORT": _int("PORT", 3000),
        "LOG_LEVEL": (os.getenv("LOG_LEVEL", "DEBUG" if dry_run_flag else "INFO")).upper(),
        "SQLITE_PATH": os.getenv("SQLITE_PATH", "data/smsdesk.db"),

        # Telnyx (gateway)
        "TELNYX_API_KEY": os.getenv("TELNYX_API_KEY"),
        "TELNYX_PROFILE_ID": os.getenv("TELNYX_PROFILE_ID"),
        "TELNYX_FROM": os.getenv("TELNYX_FROM"),
        "TELNYX_PUBLIC_KEY": os.getenv("TELNYX_PUBLIC_KEY"),
        "TELNYX_API_BASE": os.getenv("TELNYX_API_BASE", "https://api.telnyx.com/v2"),
        "GATEWAY_TIMEOUT_SECONDS": _int("GATEWAY_TIMEOUT_SECONDS", 10),

        # Webhook: verificação de assinatura ligada por padrão (fail closed).
        # Desligar exige WEBHOOK_SIGNATURE_CHECK=0 explícito e nunca vale em prod.
        "WEBHOOK_SIGNATURE_CHECK": _flag("WEBHOOK_SIGNATURE_CHECK", "1"),
        "WEBHOOK_TOLERANCE_SECONDS": _int("WEBHOOK_TOLERANCE_SECONDS", 300),

        # Telefones / envio em massa
        "DEFAULT_COUNTRY_CODE": os.getenv("DEFAULT_COUNTRY_CODE", "1").strip().lstrip("+"),
        "BULK_MAX_RECIPIENTS": _int("BULK_MAX_RECIPIENTS", 100),
        "BULK_DEFAULT_DELAY_MS": _int("BULK_DEFAULT_DELAY_MS", 1000),

        # Modo de execução
        "DRY_RUN": dry_run_flag,

        # Segurança de /api (token interno opcional)
        "INTERNAL_API_TOKEN": os.getenv("INTERNAL_API_TOKEN"),
    }

    return settings


def check_settings(settings: dict) -> None:
    """
    Validações que precisam do config final (após overrides).
    Levanta ConfigurationError para combinações proibidas.
    """
    if not settings.get("WEBHOOK_SIGNATURE_CHECK") and settings.get("CONFIG_NAME") == "prod":
        raise ConfigurationError(
            "WEBHOOK_SIGNATURE_CHECK=0 não é permitido em prod: callbacks sem assinatura válida devem ser rejeitados."
        )
    if settings.get("WEBHOOK_SIGNATURE_CHECK") and not settings.get("TELNYX_PUBLIC_KEY"):
        raise ConfigurationError(
            "TELNYX_PUBLIC_KEY ausente com verificação de assinatura ligada. "
            "Configure a chave ou desligue explicitamente com WEBHOOK_SIGNATURE_CHECK=0 (apenas dev)."
        )
    if int(settings.get("BULK_MAX_RECIPIENTS") or 0) <= 0:
        raise ConfigurationError("BULK_MAX_RECIPIENTS deve ser positivo")
