"""
notifier.py — Sistema de notificaciones genérico de Docship.

Patrón Strategy: define una interfaz que cualquier canal de
notificación puede implementar. Hoy es Telegram; otro canal solo
necesita implementar send() e is_configured().

Las notificaciones nunca cambian el resultado de la corrida: si un
canal falla se loggea y el exit code sigue siendo el del pipeline.

Uso:
    from docship.notifications.notifier import Notifier, Event
    from docship.notifications.telegram import TelegramChannel

    notifier = Notifier(channels=[TelegramChannel(token, chat_id)])
    notifier.notify(Event.SITE_PUBLISHED, {"branch": "gh-pages", ...})
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

from docship.utils.logger import get_logger

logger = get_logger("docship.notifications")


class Event(Enum):
    """
    Tipos de eventos que Docship puede notificar.

    - SITE_PUBLISHED: Se pusheó un commit nuevo al branch de publicación
    - SITE_UNCHANGED: La corrida terminó sin cambios (cero commits)
    - PUBLISH_FAILED: Alguna etapa falló; el dato "stage" dice cuál
    """
    SITE_PUBLISHED = "site_published"
    SITE_UNCHANGED = "site_unchanged"
    PUBLISH_FAILED = "publish_failed"


class NotificationChannel(ABC):
    """Interfaz abstracta para un canal de notificación."""

    @abstractmethod
    def send(self, event: Event, data: dict[str, Any]) -> bool:
        """
        Envía una notificación por este canal.

        Args:
            event: Tipo de evento a notificar.
            data: Datos asociados al evento (branch, commit, error, etc.)

        Returns:
            True si el envío fue exitoso, False si falló.
        """
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """True si el canal tiene todo lo necesario para enviar."""
        ...


class Notifier:
    """
    Gestor central de notificaciones.

    Mantiene una lista de canales y envía eventos a todos los
    que estén configurados. Si un canal falla, los demás siguen.

    Args:
        channels: Lista de canales de notificación configurados.
        enabled_events: Lista de tipos de evento habilitados.
    """

    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        enabled_events: list[str] | None = None,
    ):
        self._channels = channels or []
        self._enabled_events = set(enabled_events or [e.value for e in Event])

    def notify(self, event: Event, data: dict[str, Any]) -> int:
        """
        Envía una notificación a todos los canales configurados.

        Args:
            event: Tipo de evento.
            data: Datos del evento.

        Returns:
            Cantidad de canales que aceptaron el mensaje.
        """
        if event.value not in self._enabled_events:
            logger.info(f"Evento {event.value} no está habilitado, omitiendo notificación")
            return 0

        enviados = 0
        for channel in self._channels:
            if not channel.is_configured():
                continue

            try:
                if channel.send(event, data):
                    enviados += 1
                    logger.info(f"Notificación enviada: {event.value}")
                else:
                    logger.warning(f"Notificación falló en {channel.__class__.__name__}")
            except Exception as e:
                # Un canal roto no puede cambiar el resultado de la publicación
                logger.error(f"Error en notificación ({channel.__class__.__name__}): {e}")

        return enviados

    def add_channel(self, channel: NotificationChannel) -> None:
        """Agrega un canal de notificación."""
        self._channels.append(channel)
