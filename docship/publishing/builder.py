"""
builder.py — Etapa 2: invocar el renderer externo.

El renderer (Asciidoctor vía Gradle, por defecto) es una caja negra:
el contrato es "exit code 0 y deja un directorio de salida conocido".
Cualquier otra cosa es un BuildError y el pipeline se detiene antes
de tocar el branch de publicación.

Flujo:
    1. Partir build.command en argumentos (shlex) si viene como string
    2. Ejecutarlo con cwd = snapshot, env extendido con build.env
    3. Verificar exit code y que build.output_dir exista y tenga archivos
    4. Calcular la lista de archivos y un digest para trazabilidad

Uso:
    from docship.publishing.builder import run_build
    artifact = run_build(config.build, snapshot.path)
    print(artifact.digest[:12], len(artifact.files))
"""

from __future__ import annotations

import hashlib
import os
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from docship.config import BuildConfig
from docship.errors import BuildError
from docship.utils.logger import get_logger

logger = get_logger("docship.builder")

# Líneas de salida del renderer que se incluyen en el error
OUTPUT_TAIL_LINES = 20


@dataclass
class Artifact:
    """
    Directorio producido por el build.

    Campos:
        path: Ruta absoluta del directorio de salida
        files: Rutas relativas (POSIX, ordenadas) de todos los archivos
        digest: sha256 sobre rutas y bytes, igual para builds idénticos
    """
    path: Path
    files: list[str] = field(default_factory=list)
    digest: str = ""

    @property
    def file_count(self) -> int:
        return len(self.files)


def _split_command(command: str | list[str]) -> list[str]:
    """Convierte build.command en la lista de argumentos a ejecutar."""
    if isinstance(command, str):
        argumentos = shlex.split(command)
    else:
        argumentos = [str(parte) for parte in command]
    if not argumentos:
        raise BuildError("build.command está vacío")
    return argumentos


def _tail(text: str | bytes | None, lines: int = OUTPUT_TAIL_LINES) -> str:
    """Últimas líneas de la salida del renderer."""
    if not text:
        return ""
    if isinstance(text, bytes):
        text = text.decode("utf-8", errors="replace")
    return "\n".join(text.strip().splitlines()[-lines:])


def collect_files(root: Path) -> list[str]:
    """Lista ordenada de archivos bajo root, como rutas POSIX relativas."""
    return sorted(
        p.relative_to(root).as_posix()
        for p in root.rglob("*")
        if p.is_file()
    )


def compute_digest(root: Path, files: list[str]) -> str:
    """
    Digest sha256 del árbol: ruta relativa + contenido de cada archivo.

    Dos builds que producen exactamente los mismos bytes en las mismas
    rutas tienen el mismo digest.
    """
    sha = hashlib.sha256()
    for relativo in files:
        sha.update(relativo.encode("utf-8"))
        sha.update(b"\0")
        with open(root / relativo, "rb") as f:
            for bloque in iter(lambda: f.read(65536), b""):
                sha.update(bloque)
        sha.update(b"\0")
    return sha.hexdigest()


def run_build(build: BuildConfig, source_path: Path) -> Artifact:
    """
    Ejecuta el renderer externo y devuelve el artefacto producido.

    Args:
        build: Sección build de la configuración.
        source_path: Working tree donde correr el comando.

    Returns:
        Artifact con la ruta, archivos y digest.

    Raises:
        BuildError: Exit code distinto de 0, timeout, ejecutable no
            encontrado, o directorio de salida ausente/vacío.
    """
    argumentos = _split_command(build.command)
    env = os.environ.copy()
    env.update({str(k): str(v) for k, v in (build.env or {}).items()})

    logger.info(f"Ejecutando: {' '.join(argumentos)}")
    try:
        resultado = subprocess.run(
            argumentos,
            cwd=source_path,
            env=env,
            capture_output=True,
            text=True,
            timeout=build.timeout,
        )
    except FileNotFoundError as e:
        raise BuildError(f"No se encontró el comando de build: {argumentos[0]}") from e
    except PermissionError as e:
        raise BuildError(f"El comando de build no es ejecutable: {argumentos[0]}") from e
    except subprocess.TimeoutExpired as e:
        raise BuildError(
            f"El build excedió el timeout de {build.timeout}s\n{_tail(e.stderr or e.stdout)}"
        ) from e

    if resultado.stdout:
        logger.debug(resultado.stdout)

    if resultado.returncode != 0:
        salida = _tail(resultado.stderr) or _tail(resultado.stdout)
        raise BuildError(
            f"El build terminó con código {resultado.returncode}\n{salida}".rstrip()
        )

    output_dir = (source_path / build.output_dir).resolve()
    if not output_dir.exists():
        raise BuildError(f"El build no produjo {build.output_dir}")
    if not output_dir.is_dir():
        raise BuildError(f"{build.output_dir} no es un directorio")
    if (output_dir / ".git").exists():
        raise BuildError(f"{build.output_dir} contiene un repositorio Git (.git)")

    files = collect_files(output_dir)
    if not files:
        raise BuildError(f"{build.output_dir} está vacío")

    artifact = Artifact(
        path=output_dir,
        files=files,
        digest=compute_digest(output_dir, files),
    )
    logger.success(
        f"Artefacto listo: {artifact.file_count} archivo(s), digest {artifact.digest[:12]}"
    )
    return artifact
