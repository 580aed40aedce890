# smsdesk/realtime.py
"""
Barramento pub/sub em memória para o fan-out em tempo real.

O MessageStore publica um evento depois de cada escrita confirmada;
transportes (SSE em blueprints/stream.py) assinam e repassam aos seus
observadores. Sem buffer de replay: quem estava desconectado perde o
evento e precisa recarregar o estado ao reconectar.

Canais:
- "conversations"          -> feed global (lista de conversas)
- "conversation:<id>"      -> feed de uma conversa
"""

from __future__ import annotations

import json
import queue
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List

from smsdesk.logging import get_logger

logger = get_logger(__name__)

GLOBAL_CHANNEL = "conversations"


def conversation_channel(conversation_id: str) -> str:
    return f"conversation:{conversation_id}"


class EventBus:
    def __init__(self, max_queue: int = 1000) -> None:
        self._subs: Dict[str, List[queue.Queue]] = {}
        self._seq: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._max_queue = max_queue

    def publish(self, channel: str, payload: Dict[str, Any]) -> int:
        """
        Entrega `payload` a todos os assinantes do canal. A numeração (seq) e
        o enfileiramento acontecem sob o mesmo lock, então todos os
        assinantes de um canal veem os eventos na mesma ordem.
        Devolve quantos assinantes receberam.

        Canal sem assinantes não é numerado: o contador só existe enquanto
        houver alguém ouvindo (some junto com o último assinante).
        """
        delivered = 0
        with self._lock:
            subs = self._subs.get(channel)
            if not subs:
                return 0
            seq = self._seq.get(channel, 0) + 1
            self._seq[channel] = seq
            event = {**payload, "channel": channel, "seq": seq}
            for q in subs:
                try:
                    q.put_nowait(event)
                    delivered += 1
                except queue.Full:
                    # assinante lento demais: perde o evento e recarrega ao reconectar
                    logger.warning("realtime.queue_full", extra={"channel": channel, "seq": seq})
        return delivered

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subs.get(channel, []))

    @contextmanager
    def listen(self, channel: str) -> Iterator[queue.Queue]:
        """Registra uma fila no canal enquanto o bloco estiver aberto."""
        q: queue.Queue = queue.Queue(maxsize=self._max_queue)
        with self._lock:
            self._subs.setdefault(channel, []).append(q)
        logger.debug("realtime.subscribe", extra={"channel": channel})
        try:
            yield q
        finally:
            with self._lock:
                lst = self._subs.get(channel)
                if lst and q in lst:
                    lst.remove(q)
                if lst == []:
                    self._subs.pop(channel, None)
                    self._seq.pop(channel, None)
            logger.debug("realtime.unsubscribe", extra={"channel": channel})

    def stream(self, channel: str, *, heartbeat: float = 25.0, poll: float = 2.0) -> Iterator[str]:
        """
        Gerador no formato Server-Sent Events. Encerrar o gerador
        (cliente desconectou) remove a assinatura.
        """
        with self.listen(channel) as q:
            # primeiro "retry" para reconectar rápido se cair
            yield "retry: 1000\n\n"
            yield "event: ready\ndata: {}\n\n"

            last_hb = time.time()
            while True:
                try:
                    item = q.get(timeout=poll)
                    yield f"event: {item['type']}\ndata: {json.dumps(item, ensure_ascii=False, default=str)}\n\n"
                except queue.Empty:
                    if time.time() - last_hb > heartbeat:
                        last_hb = time.time()
                        yield "event: ping\ndata: {}\n\n"
