"""
source.py — Etapa 1: obtener el código fuente en la revisión del trigger.

Hay dos formas de obtener el snapshot:
    1. Clonar source.repo_url en <workspace>/source y hacer checkout
       de la revisión pedida (modo por defecto, sirve en cualquier lado)
    2. Usar un checkout que ya existe (source.path), típico en CI
       donde un paso anterior ya clonó el repo

En ambos casos el resultado es un SourceSnapshot con la ruta y el
sha exacto que se va a construir. Si algo falla, se lanza SourceError
y no queda ningún efecto fuera del workspace temporal.

Uso:
    from docship.publishing.source import acquire_source
    snapshot = acquire_source(config, workspace / "source", revision="abc123")
    print(snapshot.path, snapshot.revision)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import git as gitpython

from docship.config import AppConfig
from docship.errors import SourceError
from docship.publishing.git_ops import credential_env
from docship.utils.logger import get_logger
from docship.utils.validators import redact_secrets

logger = get_logger("docship.source")


@dataclass
class SourceSnapshot:
    """
    Snapshot del código fuente listo para construir.

    Campos:
        path: Directorio del working tree
        branch: Branch de origen configurado
        revision: Sha completo del commit que se construye
        remote_url: URL del remoto (sin credenciales inyectadas)
        cloned: True si el snapshot se clonó en esta corrida
    """
    path: Path
    branch: str
    revision: str
    remote_url: str = ""
    cloned: bool = True

    @property
    def short_revision(self) -> str:
        return self.revision[:7]


def acquire_source(
    config: AppConfig,
    destination: Path,
    revision: str | None = None,
) -> SourceSnapshot:
    """
    Obtiene el snapshot del código fuente.

    Args:
        config: Configuración de la app.
        destination: Dónde clonar (ignorado si source.path está configurado).
        revision: Sha a construir. None = tip del branch de origen.

    Returns:
        SourceSnapshot con la ruta y el sha exacto.

    Raises:
        SourceError: Si el repo no se puede clonar/abrir o la revisión
            no existe.
    """
    if config.source.path:
        return _open_existing(config, revision)
    return _clone(config, destination, revision)


def _clone(config: AppConfig, destination: Path, revision: str | None) -> SourceSnapshot:
    """Clona el branch de origen y hace checkout de la revisión."""
    url = config.source.repo_url
    branch = config.source.branch
    logger.info(f"Clonando {url} ({branch})")

    try:
        repo = gitpython.Repo.clone_from(
            url,
            destination,
            env=credential_env(url, config.push_token),
            branch=branch,
            single_branch=True,
        )
    except gitpython.GitCommandError as e:
        raise SourceError(
            f"No se pudo clonar {url} ({branch}): {redact_secrets(str(e))}"
        ) from e

    try:
        if revision:
            repo.git.checkout("--detach", revision)
        sha = repo.head.commit.hexsha
    except (gitpython.GitCommandError, ValueError) as e:
        raise SourceError(
            f"La revisión {revision or 'HEAD'} no existe en {branch}: {redact_secrets(str(e))}"
        ) from e
    finally:
        repo.close()

    logger.success(f"Código fuente en {sha[:7]}")
    return SourceSnapshot(
        path=Path(destination),
        branch=branch,
        revision=sha,
        remote_url=url,
        cloned=True,
    )


def _open_existing(config: AppConfig, revision: str | None) -> SourceSnapshot:
    """Usa un checkout existente (por ejemplo el que dejó actions/checkout)."""
    ruta = Path(config.source.path).expanduser().resolve()

    try:
        repo = gitpython.Repo(ruta)
    except (gitpython.InvalidGitRepositoryError, gitpython.NoSuchPathError) as e:
        raise SourceError(f"{ruta} no es un repositorio Git") from e

    try:
        try:
            sha = repo.head.commit.hexsha
        except ValueError as e:
            raise SourceError(f"{ruta} no tiene commits") from e

        if revision and not sha.startswith(revision):
            raise SourceError(
                f"El checkout en {ruta} está en {sha[:7]}, no en la revisión {revision}"
            )

        if repo.is_dirty(untracked_files=False):
            logger.warning(f"El checkout en {ruta} tiene cambios sin commit")

        remote_url = repo.remotes.origin.url if "origin" in repo.remotes else ""
    finally:
        repo.close()

    logger.success(f"Usando checkout existente en {sha[:7]}")
    return SourceSnapshot(
        path=ruta,
        branch=config.source.branch,
        revision=sha,
        remote_url=config.source.repo_url or remote_url,
        cloned=False,
    )
