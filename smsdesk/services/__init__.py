# smsdesk/services/__init__.py
from .dispatcher import BulkResult, DispatchResult, OutboundDispatcher
from .reconciler import ReconcileResult, StatusReconciler
from .webhook_processor import WebhookProcessor
