"""
notifications/ — Avisos del resultado de cada corrida.

Módulos:
- notifier.py → Interfaz de canales + Notifier que reparte eventos
- telegram.py → Canal de Telegram (Bot API)
"""
