# tests/conftest.py
import base64

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat

from smsdesk import create_app
from smsdesk.models import MessageStore
from smsdesk.realtime import EventBus
from tests.factories.gateway_factory import FakeGateway

FROM_NUMBER = "+15550000000"


@pytest.fixture
def signing_key():
    return Ed25519PrivateKey.generate()


@pytest.fixture
def public_key_b64(signing_key):
    raw = signing_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
    return base64.b64encode(raw).decode()


@pytest.fixture
def app(tmp_path, public_key_b64):
    app = create_app(
        "dev",
        overrides={
            "TESTING": True,
            "DRY_RUN": True,
            "PORT": 5001,
            "SQLITE_PATH": str(tmp_path / "app.db"),
            "TELNYX_FROM": FROM_NUMBER,
            "TELNYX_PUBLIC_KEY": public_key_b64,
            "WEBHOOK_SIGNATURE_CHECK": True,
            "INTERNAL_API_TOKEN": None,
            "DEFAULT_COUNTRY_CODE": "1",
            "BULK_DEFAULT_DELAY_MS": 0,
        },
    )
    yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return app.extensions["smsdesk"]


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def store(tmp_path, bus):
    s = MessageStore(str(tmp_path / "store.db"), bus)
    s.init()
    return s


@pytest.fixture
def gateway():
    return FakeGateway(from_number=FROM_NUMBER)
