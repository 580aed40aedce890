# smsdesk/timeline.py
"""
Linha do tempo de uma conversa do lado do cliente, com envio otimista.

Um envio cria uma entrada provisória (id temporário, status "sending")
mostrada na hora. Ela se resolve de três formas:

- confirm(temp_id, message): o Dispatcher respondeu com a mensagem gravada;
  a provisória é trocada por ela na mesma posição.
- fail(temp_id): o envio falhou; a provisória some e o texto volta para o
  campo de digitação (valor de retorno).
- apply_event(event): o fan-out pode entregar o message.created do próprio
  envio ANTES da resposta HTTP. Enquanto houver envio em aberto, mensagens
  outbound desconhecidas ficam retidas; a resposta reivindica a retida pelo
  provider_message_id. Assim nunca aparecem duas entradas para o mesmo envio.

Superfície de biblioteca para o painel (exportada em smsdesk.ConversationTimeline):
o servidor não usa este módulo, só o consome quem renderiza a conversa.

Mensagens retidas que ninguém reivindicou (envio de outra aba, por exemplo)
entram na lista quando não há mais envios em aberto.
"""

from __future__ import annotations

import threading
import uuid
from typing import Any, Dict, Iterable, List, Optional

from smsdesk.models import lifecycle

Entry = Dict[str, Any]

SENDING = "sending"
OPTIMISTIC_PREFIX = "optimistic-"


def _newer(current: Optional[Entry], incoming: Entry) -> Entry:
    """Escolhe a versão mais avançada de um mesmo registro."""
    if current is None:
        return incoming
    rc, ri = lifecycle.rank(current.get("status")), lifecycle.rank(incoming.get("status"))
    if ri != rc:
        return incoming if ri > rc else current
    return incoming if (incoming.get("updated_at") or "") >= (current.get("updated_at") or "") else current


class ConversationTimeline:
    def __init__(self, conversation_id: str, messages: Iterable[Entry] = ()):
        self.conversation_id = conversation_id
        self._entries: List[Entry] = [dict(m) for m in messages]
        self._drafts: Dict[str, str] = {}       # temp_id -> texto digitado
        self._held: Dict[str, Entry] = {}       # message id -> mensagem retida
        self._lock = threading.Lock()

    # ---------- leitura ----------

    @property
    def entries(self) -> List[Entry]:
        with self._lock:
            return [dict(e) for e in self._entries]

    @property
    def pending(self) -> List[str]:
        with self._lock:
            return list(self._drafts)

    def _index_of(self, message_id: str) -> Optional[int]:
        for idx, e in enumerate(self._entries):
            if e.get("id") == message_id:
                return idx
        return None

    # ---------- envio otimista ----------

    def add_provisional(self, body: str, *, to_number: str, from_number: Optional[str] = None) -> str:
        temp_id = f"{OPTIMISTIC_PREFIX}{uuid.uuid4().hex}"
        entry = {
            "id": temp_id,
            "conversation_id": self.conversation_id,
            "provider_message_id": None,
            "direction": "outbound",
            "from_number": from_number,
            "to_number": to_number,
            "body": body,
            "status": SENDING,
            "is_optimistic": True,
        }
        with self._lock:
            self._entries.append(entry)
            self._drafts[temp_id] = body
        return temp_id

    def confirm(self, temp_id: str, message: Entry) -> Entry:
        """Troca a provisória pela mensagem confirmada (uma única vez)."""
        with self._lock:
            confirmed = dict(message)
            pid = confirmed.get("provider_message_id")

            # reivindica a versão retida (pode estar mais avançada, ex.: "sent")
            for held_id, held in list(self._held.items()):
                if held_id == confirmed.get("id") or (pid and held.get("provider_message_id") == pid):
                    confirmed = _newer(self._held.pop(held_id), confirmed)
            confirmed["is_optimistic"] = False

            temp_idx = self._index_of(temp_id)
            real_idx = self._index_of(confirmed["id"])
            if real_idx is not None:
                self._entries[real_idx] = _newer(self._entries[real_idx], confirmed)
                if temp_idx is not None:
                    self._entries.pop(temp_idx)
            elif temp_idx is not None:
                self._entries[temp_idx] = confirmed
            else:
                self._entries.append(confirmed)

            self._drafts.pop(temp_id, None)
            self._flush_held_if_idle()
            return dict(confirmed)

    def fail(self, temp_id: str) -> Optional[str]:
        """Remove a provisória e devolve o texto para restaurar no input."""
        with self._lock:
            idx = self._index_of(temp_id)
            if idx is not None:
                self._entries.pop(idx)
            draft = self._drafts.pop(temp_id, None)
            self._flush_held_if_idle()
            return draft

    # ---------- fan-out ----------

    def apply_event(self, event: Dict[str, Any]) -> None:
        """Aplica um evento message.created / message.updated do EventBus."""
        if not str(event.get("type") or "").startswith("message."):
            return
        message = event.get("message") or {}
        if message.get("conversation_id") != self.conversation_id or not message.get("id"):
            return

        with self._lock:
            incoming = {**message, "is_optimistic": False}
            idx = self._index_of(incoming["id"])
            if idx is not None:
                self._entries[idx] = _newer(self._entries[idx], incoming)
                return

            if incoming["id"] in self._held:
                self._held[incoming["id"]] = _newer(self._held[incoming["id"]], incoming)
                return

            if incoming.get("direction") == "outbound" and self._drafts:
                self._held[incoming["id"]] = incoming
                return

            self._entries.append(incoming)

    def refresh(self, messages: Iterable[Entry]) -> None:
        """
        Recarrega o estado do servidor (reconexão sem replay). Provisórias
        ainda em aberto continuam no fim da lista.
        """
        with self._lock:
            fresh = [{**m, "is_optimistic": False} for m in messages]
            known = {m["id"] for m in fresh}
            provisional = [e for e in self._entries if e.get("id") in self._drafts]
            self._held = {k: v for k, v in self._held.items() if k not in known}
            self._entries = fresh + provisional

    def _flush_held_if_idle(self) -> None:
        if self._drafts or not self._held:
            return
        for held in sorted(self._held.values(), key=lambda m: m.get("created_at") or ""):
            if self._index_of(held["id"]) is None:
                self._entries.append(held)
        self._held.clear()
