"""
Docship — Publica la documentación renderizada en un branch de hosting.

Este paquete contiene todo el pipeline de publicación:
- publishing/    → Etapas del pipeline (source, build, git, publisher)
- notifications/ → Notificaciones del resultado de cada corrida (Telegram)
- utils/         → Utilidades compartidas (logger, validadores)

Uso:
    python -m docship run
    python -m docship run --dry-run
    python -m docship config --show
    python -m docship health
"""

__version__ = "1.0.0"
__author__ = "Docship maintainers"
