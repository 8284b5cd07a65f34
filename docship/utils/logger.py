"""
logger.py — Logging para Docship usando Rich + archivo.

Dual output:
- Rich console: colores para uso interactivo y logs legibles en CI
- Archivo rotativo: logs/docship.log para revisar corridas anteriores

Todo mensaje pasa por redact_secrets() antes de imprimirse, para que
el token de push nunca aparezca en la consola ni en el archivo.

Uso:
    from docship.utils.logger import get_logger, console
    logger = get_logger("docship.publisher")
    logger.step(2, 6, "Construyendo artefacto...")
    logger.success("Artefacto listo")
    logger.error("El build falló")
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme

from docship.utils.validators import redact_secrets

# No crear archivos de log durante pytest
_in_pytest = "pytest" in sys.modules or "PYTEST_CURRENT_TEST" in os.environ

docship_theme = Theme({
    "info": "cyan",
    "success": "bold green",
    "warning": "bold yellow",
    "error": "bold red",
    "step": "bold magenta",
})

# Consola global, compartida por todo el proyecto
console = Console(theme=docship_theme)

# ================================================================
# File logging setup
# ================================================================

_file_logger: logging.Logger | None = None


def _setup_file_logger() -> logging.Logger:
    """Configura el logger de archivo con rotación."""
    global _file_logger
    if _file_logger is not None:
        return _file_logger

    if _in_pytest:
        _file_logger = logging.getLogger("docship.null")
        _file_logger.addHandler(logging.NullHandler())
        return _file_logger

    log_dir = Path(os.environ.get("DOCSHIP_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)

    _file_logger = logging.getLogger("docship.file")
    _file_logger.setLevel(logging.DEBUG)

    # Evitar handlers duplicados
    if not _file_logger.handlers:
        handler = RotatingFileHandler(
            log_dir / "docship.log",
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=5,
            encoding="utf-8",
        )
        handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        ))
        _file_logger.addHandler(handler)

    return _file_logger


class DocshipLogger:
    """
    Logger que usa Rich para la consola + archivo para el historial.

    Cada módulo crea su propio logger con un nombre para
    identificar de dónde viene cada mensaje.

    Args:
        name: Nombre del módulo (ej: "docship.builder")
    """

    def __init__(self, name: str):
        self._name = name
        self._file = _setup_file_logger()

    def _emit(self, style: str, prefix: str, message: str) -> str:
        limpio = redact_secrets(message)
        console.print(f"[{style}]{prefix}{escape(limpio)}[/{style}]")
        return limpio

    def debug(self, message: str) -> None:
        """Detalle solo para el archivo de log."""
        self._file.debug(f"[{self._name}] {redact_secrets(message)}")

    def info(self, message: str) -> None:
        """Mensaje informativo (cyan)."""
        limpio = self._emit("info", "i  ", message)
        self._file.info(f"[{self._name}] {limpio}")

    def success(self, message: str) -> None:
        """Mensaje de éxito (verde)."""
        limpio = self._emit("success", "[OK] ", message)
        self._file.info(f"[{self._name}] OK: {limpio}")

    def warning(self, message: str) -> None:
        """Mensaje de advertencia (amarillo)."""
        limpio = self._emit("warning", "[!] ", message)
        self._file.warning(f"[{self._name}] {limpio}")

    def error(self, message: str) -> None:
        """Mensaje de error (rojo)."""
        limpio = self._emit("error", "[X] ", message)
        self._file.error(f"[{self._name}] {limpio}")

    def step(self, number: int, total: int, message: str) -> None:
        """Mensaje de paso en el pipeline."""
        limpio = self._emit("step", f"  [{number}/{total}] ", message)
        self._file.info(f"[{self._name}] [{number}/{total}] {limpio}")


def get_logger(name: str = "docship") -> DocshipLogger:
    """
    Obtiene un logger para el módulo especificado.

    Args:
        name: Nombre del módulo.

    Returns:
        DocshipLogger configurado.
    """
    return DocshipLogger(name)
