"""
telegram.py — Canal de Telegram para notificaciones de Docship.

Implementa NotificationChannel para avisar por Telegram Bot API
cuando la documentación se publica o cuando una corrida falla.

Setup:
    1. Hablar con @BotFather en Telegram y crear un bot
    2. Copiar el token a TELEGRAM_BOT_TOKEN (.env o secreto del CI)
    3. Obtener el chat_id con /getUpdates y copiarlo a TELEGRAM_CHAT_ID
    4. Activar `telegram.enabled: true` en docship.yaml

Uso:
    from docship.notifications.telegram import TelegramChannel
    telegram = TelegramChannel(bot_token, chat_id, templates)
    telegram.send(Event.SITE_PUBLISHED, {"branch": "gh-pages", ...})
"""

from __future__ import annotations

import html
from typing import Any

import requests

from docship.notifications.notifier import Event, NotificationChannel
from docship.utils.logger import get_logger

logger = get_logger("docship.telegram")


class TelegramChannel(NotificationChannel):
    """
    Canal de notificación via Telegram Bot API.

    Args:
        bot_token: Token del bot de Telegram (de @BotFather)
        chat_id: ID del chat donde enviar mensajes
        templates: Templates de mensajes para cada tipo de evento
        timeout: Segundos máximos por request
    """

    API_BASE = "https://api.telegram.org/bot{token}"

    DEFAULT_TEMPLATES = {
        Event.SITE_PUBLISHED.value: "📄 Documentación publicada\n🌿 {branch} @ {commit}\n🔖 source {revision}",
        Event.SITE_UNCHANGED.value: "💤 Sin cambios en la documentación ({revision})",
        Event.PUBLISH_FAILED.value: "⚠️ Falló la publicación ({stage})\n❌ {error_message}",
    }

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        templates: dict[str, str] | None = None,
        timeout: int = 10,
    ):
        self._bot_token = bot_token
        self._chat_id = chat_id
        self._api_url = self.API_BASE.format(token=bot_token)
        self._templates = templates or dict(self.DEFAULT_TEMPLATES)
        self._timeout = timeout

    def render(self, event: Event, data: dict[str, Any]) -> str | None:
        """
        Llena el template del evento con los datos.

        Los valores se escapan para HTML porque el mensaje se envía
        con parse_mode=HTML (un stderr de git puede traer "<" o "&").

        Returns:
            Texto del mensaje, o None si no hay template.
        """
        template = self._templates.get(event.value)
        if not template:
            logger.warning(f"No hay template para evento: {event.value}")
            return None

        seguros = {k: html.escape(str(v)) for k, v in data.items()}
        try:
            return template.format(**seguros)
        except KeyError as e:
            logger.error(f"Falta dato en notificación: {e}")
            return f"Docship: {event.value}\n{html.escape(str(data))}"

    def send(self, event: Event, data: dict[str, Any]) -> bool:
        """Envía la notificación del evento al chat configurado."""
        mensaje = self.render(event, data)
        if mensaje is None:
            return False
        return self._send_message(mensaje)

    def _send_message(self, text: str, parse_mode: str = "HTML") -> bool:
        """
        Envía un mensaje de texto al chat configurado.

        Returns:
            True si la API respondió ok.
        """
        url = f"{self._api_url}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": text,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }

        try:
            response = requests.post(url, json=payload, timeout=self._timeout)
            response.raise_for_status()

            if response.json().get("ok"):
                logger.success("Mensaje de Telegram enviado")
                return True
            logger.error(f"Telegram API error: {response.json()}")
            return False

        except requests.Timeout:
            logger.error("Timeout al enviar mensaje de Telegram")
            return False
        except requests.RequestException as e:
            logger.error(f"Error de conexión con Telegram: {e}")
            return False

    def is_configured(self) -> bool:
        """True si tenemos token y chat_id."""
        return bool(self._bot_token and self._chat_id)
