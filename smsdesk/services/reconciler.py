# smsdesk/services/reconciler.py
"""
Aplica transições de status vindas do gateway, de forma idempotente e
tolerante a ordem. A decisão fica no banco (UPDATE condicional sobre os
estados de origem permitidos), então chamadas concorrentes ou repetidas
para o mesmo provider_message_id não precisam de sequenciamento.

Resultados:
- applied     -> transição aplicada (um evento publicado pelo store)
- duplicate   -> a mensagem já está no status pedido
- ignored     -> transição regrediria/sairia de um terminal; logada e descartada
- not_found   -> nenhuma mensagem com esse provider_message_id
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from smsdesk.logging import get_logger
from smsdesk.models import lifecycle
from smsdesk.models.store import MessageStore

logger = get_logger(__name__)

APPLIED = "applied"
DUPLICATE = "duplicate"
IGNORED = "ignored"
NOT_FOUND = "not_found"


@dataclass
class ReconcileResult:
    outcome: str
    message: Optional[Dict[str, Any]] = None

    @property
    def applied(self) -> bool:
        return self.outcome == APPLIED


class StatusReconciler:
    def __init__(self, store: MessageStore):
        self.store = store

    def apply(
        self, provider_message_id: str, target: str, *, delivered_at: Optional[str] = None
    ) -> ReconcileResult:
        if target not in lifecycle.STATUSES:
            raise ValueError(f"status alvo inválido: {target!r}")

        row = self.store.transition(
            provider_message_id,
            target,
            delivered_at=delivered_at if target == lifecycle.DELIVERED else None,
        )
        extra = {"provider_message_id": provider_message_id, "target": target}
        if row:
            logger.info("reconcile.applied", extra={**extra, "message_id": row["id"]})
            return ReconcileResult(APPLIED, row)

        current = self.store.get_message_by_provider_id(provider_message_id)
        if current is None:
            logger.warning("reconcile.not_found", extra=extra)
            return ReconcileResult(NOT_FOUND)

        if current["status"] == target:
            logger.info("reconcile.duplicate", extra={**extra, "message_id": current["id"]})
            return ReconcileResult(DUPLICATE, current)

        logger.warning(
            "reconcile.regression_ignored",
            extra={**extra, "message_id": current["id"], "current": current["status"]},
        )
        return ReconcileResult(IGNORED, current)
