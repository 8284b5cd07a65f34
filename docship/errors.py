"""
errors.py — Taxonomía de errores del pipeline de publicación.

Cada etapa del pipeline lanza su propia excepción. El CLI las
convierte en códigos de salida distintos para que quien revise
el job de CI sepa de un vistazo dónde falló la corrida:

    0 → OK (incluye "no había nada nuevo que publicar")
    1 → Error inesperado
    2 → Configuración inválida
    3 → No se pudo obtener el código fuente
    4 → El build falló
    5 → No se pudo preparar el branch de publicación
    6 → El push falló (el build sí funcionó)

Uso:
    from docship.errors import BuildError
    raise BuildError("gradlew terminó con código 1")
"""

from __future__ import annotations

from enum import IntEnum


class ExitCode(IntEnum):
    """Códigos de salida del comando `docship run`."""
    OK = 0
    UNEXPECTED = 1
    CONFIG_INVALID = 2
    SOURCE_FAILED = 3
    BUILD_FAILED = 4
    BRANCH_FAILED = 5
    PUSH_FAILED = 6


class DocshipError(Exception):
    """Error base del pipeline. Cada subclase define su exit_code."""
    exit_code: ExitCode = ExitCode.UNEXPECTED
    stage: str = "desconocida"


class ConfigError(DocshipError):
    """La configuración es inválida; no se ejecutó ninguna etapa."""
    exit_code = ExitCode.CONFIG_INVALID
    stage = "config"


class SourceError(DocshipError):
    """No se pudo clonar/abrir el código fuente en la revisión pedida."""
    exit_code = ExitCode.SOURCE_FAILED
    stage = "source"


class BuildError(DocshipError):
    """El renderer externo falló o no dejó el artefacto esperado."""
    exit_code = ExitCode.BUILD_FAILED
    stage = "build"


class BranchStateError(DocshipError):
    """No se pudo resolver, crear o commitear en el branch de publicación."""
    exit_code = ExitCode.BRANCH_FAILED
    stage = "publish-branch"


class PushError(DocshipError):
    """El remoto rechazó el push; el commit local no es visible afuera."""
    exit_code = ExitCode.PUSH_FAILED
    stage = "push"
