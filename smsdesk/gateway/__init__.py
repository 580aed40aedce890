# smsdesk/gateway/__init__.py
from .client import TelnyxClient, build_gateway_client
from .events import (
    DeliveredEvent,
    DeliveryFailedEvent,
    GatewayEvent,
    ReceivedEvent,
    SentEvent,
    parse_event,
)
from .signature import SignatureVerifier, build_verifier
