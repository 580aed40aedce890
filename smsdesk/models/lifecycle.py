# smsdesk/models/lifecycle.py
"""
Máquina de estados do status de uma mensagem.

    pending -> sent -> delivered        (delivered é terminal)
    pending | sent -> failed            (failed é terminal)
    received                            (inbound; nasce e morre aqui)

Eventos podem chegar fora de ordem: pular um estado intermediário
(pending -> delivered) é permitido; voltar de um terminal nunca é.
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Literal

Status = Literal["pending", "sent", "delivered", "failed", "received"]
Direction = Literal["inbound", "outbound"]

PENDING = "pending"
SENT = "sent"
DELIVERED = "delivered"
FAILED = "failed"
RECEIVED = "received"

STATUSES: FrozenSet[str] = frozenset({PENDING, SENT, DELIVERED, FAILED, RECEIVED})
TERMINAL: FrozenSet[str] = frozenset({DELIVERED, FAILED, RECEIVED})
DIRECTIONS: FrozenSet[str] = frozenset({"inbound", "outbound"})

# posição no caminho feliz do outbound; failed fica fora da ordem
_RANK: Dict[str, int] = {PENDING: 0, SENT: 1, DELIVERED: 2}

# estados de origem a partir dos quais cada alvo pode ser aplicado
_SOURCES: Dict[str, FrozenSet[str]] = {
    SENT: frozenset({PENDING}),
    DELIVERED: frozenset({PENDING, SENT}),
    FAILED: frozenset({PENDING, SENT}),
}


def is_terminal(status: str | None) -> bool:
    return status in TERMINAL


def allowed_sources(target: str) -> FrozenSet[str]:
    """Estados a partir dos quais `target` é uma transição válida."""
    return _SOURCES.get(target, frozenset())


def can_transition(current: str | None, target: str) -> bool:
    """
    True se `current -> target` avança a máquina. Repetir o mesmo estado
    não conta como transição (é duplicata, não mudança).
    """
    if target not in STATUSES:
        return False
    return current in allowed_sources(target)


def rank(status: str | None) -> int:
    """
    Ordem de "avanço" usada para escolher a versão mais nova de um registro.
    Terminais ficam acima de tudo; desconhecidos (ex.: "sending") abaixo.
    """
    if status in TERMINAL:
        return 3
    return _RANK.get(status or "", -1)
