# smsdesk/models/__init__.py
from .storage import (
    ensure_db,
    iso_now,
)
from .store import MessageStore
from . import lifecycle
