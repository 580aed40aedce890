# tests/unit/test_lifecycle.py
import pytest

from smsdesk.models import lifecycle as lc


@pytest.mark.parametrize(
    "current,target",
    [
        ("pending", "sent"),
        ("pending", "delivered"),   # "sent" pode chegar depois ou nunca
        ("sent", "delivered"),
        ("pending", "failed"),
        ("sent", "failed"),
    ],
)
def test_forward_transitions_allowed(current, target):
    assert lc.can_transition(current, target)


@pytest.mark.parametrize(
    "current,target",
    [
        ("delivered", "sent"),
        ("delivered", "failed"),
        ("failed", "delivered"),
        ("failed", "sent"),
        ("sent", "pending"),
        ("received", "sent"),
        ("received", "delivered"),
        ("sent", "sent"),
        (None, "sent"),
    ],
)
def test_backward_or_terminal_transitions_rejected(current, target):
    assert not lc.can_transition(current, target)


def test_terminal_states():
    assert lc.is_terminal("delivered")
    assert lc.is_terminal("failed")
    assert lc.is_terminal("received")
    assert not lc.is_terminal("pending")
    assert not lc.is_terminal("sent")


def test_rank_orders_happy_path():
    assert lc.rank("sending") < lc.rank("pending") < lc.rank("sent") < lc.rank("delivered")
    assert lc.rank("failed") == lc.rank("delivered")
