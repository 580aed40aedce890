# tests/factories/__init__.py
"""
Atalhos para importar factories nos testes.

Exemplo de uso:
    from tests.factories import event_factory as f
    body = f.make_received_body("+15551234567", "Oi")
"""

from .event_factory import *  # noqa: F401,F403
from .gateway_factory import FakeGateway  # noqa: F401
