"""Limitador de concurrencia con cola FIFO para las conversiones.

Sólo `capacity` conversiones pueden ejecutarse a la vez; el resto espera
en una cola en orden de llegada. Cuando un slot se libera y hay alguien
esperando, el slot se entrega directamente al más antiguo, de modo que un
recién llegado nunca adelanta a la cola.

Todo el estado se modifica dentro de `acquire`/`release` sin ningún
`await` entre la comprobación y el cambio, así que bajo el event loop de
asyncio ambas operaciones son atómicas entre sí.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Deque, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlotLease:
    """Handle devuelto por `acquire()`; se libera exactamente una vez."""

    def __init__(self, limiter: JobLimiter) -> None:
        self._limiter = limiter
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            raise RuntimeError("Slot lease already released")
        self._released = True
        self._limiter.release()


class JobLimiter:
    """
    Limita las ejecuciones simultáneas a `capacity` (mínimo 1).
    Nunca rechaza peticiones: sólo las retrasa, sin límite de cola.
    """

    def __init__(self, capacity: int = 1) -> None:
        self._capacity = max(1, int(capacity))
        self._active = 0
        self._waiters: Deque[asyncio.Future[None]] = deque()

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def active(self) -> int:
        return self._active

    @property
    def waiting(self) -> int:
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> SlotLease:
        """Espera (sin bloquear el loop) hasta obtener un slot."""
        if self._active < self._capacity and not self._waiters:
            self._active += 1
            return SlotLease(self)

        waiter: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug("Slot busy, queued at position %d", len(self._waiters))
        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.cancelled():
                # Cancelado mientras esperaba: sale de la cola
                try:
                    self._waiters.remove(waiter)
                except ValueError:
                    pass
            else:
                # El slot ya se le había entregado; se lo pasa al siguiente
                self.release()
            raise
        return SlotLease(self)

    def release(self) -> None:
        """Libera un slot y despierta exactamente al waiter más antiguo."""
        if self._active <= 0:
            raise RuntimeError("release() called without an active slot")

        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                # Entrega directa: el contador de activos no cambia
                waiter.set_result(None)
                return
        self._active -= 1

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[SlotLease]:
        """Adquisición con ámbito: el slot se libera en cualquier salida."""
        lease = await self.acquire()
        try:
            yield lease
        finally:
            if not lease.released:
                lease.release()

    async def run(self, fn: Callable[..., Awaitable[T]], *args, **kwargs) -> T:
        """Ejecuta `fn` mientras se mantiene un slot."""
        async with self.slot():
            return await fn(*args, **kwargs)
