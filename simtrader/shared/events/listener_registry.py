"""
SimTrader - Listener Registry (fan-out síncrono)
=================================================
Lista explícita de callbacks registrados. Cada notificación entrega el
snapshot MÁS RECIENTE a todos los suscriptores, en el mismo turno del
event loop. No hay colas: un suscriptor lento nunca recibe ticks viejos.

  ┌──────────┐          ┌──────────────────┐
  │ Producer │──notify─▸│ ListenerRegistry │──▸ callback 1
  └──────────┘          │   (token → cb)   │──▸ callback 2
                        └──────────────────┘──▸ callback N

REGISTROS INDEPENDIENTES:
  Cada subscribe() genera un token propio. El mismo callable puede
  registrarse dos veces; desuscribir elimina exactamente UNA registración.

DESUSCRIPCIÓN DURANTE NOTIFY:
  Se itera sobre una copia, pero antes de invocar se verifica que el token
  siga vivo. Un callback desuscrito a mitad de notificación no se vuelve
  a invocar.

ERRORES:
  Un callback que lanza excepción se loguea y NO afecta a los demás.
"""

from __future__ import annotations

import itertools
from typing import Any, Callable

from simtrader.shared.logging.logger import get_logger

logger = get_logger("listeners")


class ListenerRegistry:
    """Registro de callbacks con desuscripción por token."""

    def __init__(self, name: str) -> None:
        self._name = name
        self._listeners: dict[int, Callable[..., Any]] = {}
        self._tokens = itertools.count(1)

    def subscribe(self, callback: Callable[..., Any]) -> Callable[[], None]:
        """
        Registra un callback.

        Returns:
            Función sin argumentos que elimina ESTA registración.
            Llamarla más de una vez no tiene efecto.
        """
        token = next(self._tokens)
        self._listeners[token] = callback
        logger.debug("Suscriptor #%d registrado en '%s'", token, self._name)

        def unsubscribe() -> None:
            if self._listeners.pop(token, None) is not None:
                logger.debug("Suscriptor #%d eliminado de '%s'", token, self._name)

        return unsubscribe

    def notify(self, *args: Any) -> None:
        """Invoca todos los callbacks vivos con los argumentos dados."""
        for token, callback in list(self._listeners.items()):
            if token not in self._listeners:
                continue
            try:
                callback(*args)
            except Exception:
                logger.exception(
                    "Suscriptor #%d de '%s' falló – se continúa con el resto",
                    token, self._name,
                )

    def clear(self) -> None:
        self._listeners.clear()

    def __len__(self) -> int:
        return len(self._listeners)
