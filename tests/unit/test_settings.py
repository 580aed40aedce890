# tests/unit/test_settings.py
import pytest

from smsdesk import create_app
from smsdesk.errors import ConfigurationError
from smsdesk.settings import check_settings, load_settings


def test_defaults(monkeypatch):
    for key in ("WEBHOOK_SIGNATURE_CHECK", "GATEWAY_TIMEOUT_SECONDS", "BULK_MAX_RECIPIENTS", "DEFAULT_COUNTRY_CODE"):
        monkeypatch.delenv(key, raising=False)
    s = load_settings("test-defaults")
    assert s["WEBHOOK_SIGNATURE_CHECK"] is True
    assert s["GATEWAY_TIMEOUT_SECONDS"] == 10
    assert s["BULK_MAX_RECIPIENTS"] == 100
    assert s["DEFAULT_COUNTRY_CODE"] == "1"


def test_signature_check_can_be_disabled_explicitly(monkeypatch):
    monkeypatch.setenv("WEBHOOK_SIGNATURE_CHECK", "0")
    assert load_settings("test-off")["WEBHOOK_SIGNATURE_CHECK"] is False


def test_invalid_integer_is_configuration_error(monkeypatch):
    monkeypatch.setenv("GATEWAY_TIMEOUT_SECONDS", "ten")
    with pytest.raises(ConfigurationError):
        load_settings("test-bad")


def test_prod_refuses_disabled_signature_check():
    with pytest.raises(ConfigurationError):
        check_settings({"CONFIG_NAME": "prod", "WEBHOOK_SIGNATURE_CHECK": False, "BULK_MAX_RECIPIENTS": 100})


def test_signature_check_requires_public_key():
    with pytest.raises(ConfigurationError):
        check_settings({"CONFIG_NAME": "dev", "WEBHOOK_SIGNATURE_CHECK": True, "TELNYX_PUBLIC_KEY": None})


def test_dev_may_run_unverified(tmp_path):
    app = create_app(
        "dev",
        overrides={
            "DRY_RUN": True,
            "SQLITE_PATH": str(tmp_path / "dev.db"),
            "WEBHOOK_SIGNATURE_CHECK": False,
            "TELNYX_PUBLIC_KEY": None,
        },
    )
    assert app.extensions["smsdesk"].verifier.enabled is False


def test_real_gateway_requires_credentials(tmp_path, public_key_b64):
    with pytest.raises(ConfigurationError):
        create_app(
            "dev",
            overrides={
                "DRY_RUN": False,
                "SQLITE_PATH": str(tmp_path / "x.db"),
                "TELNYX_API_KEY": None,
                "TELNYX_PUBLIC_KEY": public_key_b64,
            },
        )
