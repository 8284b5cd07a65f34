"""
publisher.py — El pipeline completo de publicación.

Encadena las seis etapas con handles explícitos. Ninguna etapa
depende del directorio actual ni de estado global:

    acquire_source  → SourceSnapshot   (<workspace>/source)
    run_build       → Artifact         (<snapshot>/<build.output_dir>)
    prepare         → PublishTree      (<workspace>/publish)
    stage           → subpath actualizado en el PublishTree
    commit          → CommitOutcome    (puede ser "nada que commitear")
    push            → PushOutcome      (forzado; con lease opcional)

Garantías:
    - Si falla source o build, el branch de publicación no se toca.
    - Si falla prepare/stage/commit, no se hace push.
    - Si falla el push, el error es PushError (distinto del build).
    - Una corrida sin cambios termina OK con cero commits nuevos.

Uso:
    from docship.config import load_config
    from docship.publishing.publisher import Publisher

    publisher = Publisher(load_config())
    result = publisher.run(revision="abc123")
    print(result.status, result.commit_sha)
"""

from __future__ import annotations

import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Callable, Iterator

from docship.config import AppConfig, validate_config
from docship.errors import BranchStateError, ConfigError
from docship.publishing.builder import Artifact, run_build
from docship.publishing.git_ops import CommitOutcome, PublishRepository, PublishTree
from docship.publishing.source import SourceSnapshot, acquire_source
from docship.utils.logger import get_logger

logger = get_logger("docship.publisher")

TOTAL_STEPS = 6


class PublishStatus(Enum):
    """Estado final de una corrida exitosa."""
    PUBLISHED = "published"
    UNCHANGED = "unchanged"
    DRY_RUN = "dry_run"


@dataclass
class PublishResult:
    """
    Resumen de una corrida del pipeline.

    Campos:
        status: PUBLISHED, UNCHANGED o DRY_RUN
        branch: Branch de publicación
        source_revision: Sha del código fuente construido
        commit_sha: Sha del tip del branch de publicación al terminar
        previous_tip: Sha del tip remoto antes de la corrida
        artifact_digest: Digest del artefacto (ver builder.compute_digest)
        file_count: Archivos publicados
        pushed: True si se hizo push
        bootstrapped: True si el branch se creó en esta corrida
        timestamp: Momento del build (UTC), el mismo del mensaje de commit
    """
    status: PublishStatus
    branch: str
    source_revision: str
    commit_sha: str | None
    previous_tip: str | None
    artifact_digest: str
    file_count: int
    pushed: bool
    bootstrapped: bool
    timestamp: datetime

    @property
    def commit_created(self) -> bool:
        return self.commit_sha is not None and self.commit_sha != self.previous_tip


class Publisher:
    """
    Orquestador del pipeline build → stage → publish.

    Args:
        config: Configuración completa (branches, identidad, rutas).
        clock: Función que devuelve el "ahora" en UTC (inyectable en tests).
    """

    def __init__(
        self,
        config: AppConfig,
        clock: Callable[[], datetime] | None = None,
    ):
        self._config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ============================================================
    # Workspace
    # ============================================================

    @contextmanager
    def _workspace(self, workdir: str | Path | None) -> Iterator[Path]:
        """
        Directorio de trabajo de la corrida.

        Por defecto un directorio temporal que se borra al terminar. Con
        workdir (--keep-workdir o run.workdir) se usa ese directorio y se
        conserva para inspeccionarlo; tiene que estar vacío.
        """
        destino = workdir or self._config.run.workdir
        if destino:
            ruta = Path(destino).expanduser().resolve()
            if ruta.exists() and any(ruta.iterdir()):
                raise ConfigError(f"El workdir {ruta} no está vacío")
            ruta.mkdir(parents=True, exist_ok=True)
            logger.info(f"Workspace conservado en {ruta}")
            yield ruta
            return

        with tempfile.TemporaryDirectory(prefix="docship-") as tmp:
            yield Path(tmp)

    # ============================================================
    # Etapas
    # ============================================================

    def _commit_message(self, timestamp: datetime, snapshot: SourceSnapshot) -> str:
        return self._config.publish.commit_message.format(
            timestamp=timestamp.isoformat(timespec="seconds"),
            revision=snapshot.short_revision,
            branch=self._config.source.branch,
        )

    def _publish_remote(self, snapshot: SourceSnapshot) -> str:
        remote = self._config.publish.remote_url or snapshot.remote_url
        if not remote:
            raise BranchStateError(
                "No hay remoto de publicación: configura publish.remote_url "
                "o un remoto origin en el checkout"
            )
        return remote

    def _should_push(self, commit: CommitOutcome, tree: PublishTree, dry_run: bool) -> bool:
        if dry_run:
            return False
        if commit.created:
            return True
        # Sin commit nuevo el remoto ya tiene exactamente el tip que se descargó
        return self._config.publish.push_unchanged and not tree.bootstrapped

    # ============================================================
    # Pipeline
    # ============================================================

    def run(
        self,
        revision: str | None = None,
        dry_run: bool = False,
        workdir: str | Path | None = None,
    ) -> PublishResult:
        """
        Ejecuta el pipeline completo.

        Args:
            revision: Sha del trigger. None = tip de source.branch.
            dry_run: Si es True, llega hasta el commit local y no pushea.
            workdir: Directorio a conservar en vez de un temporal.

        Returns:
            PublishResult con el estado final.

        Raises:
            ConfigError, SourceError, BuildError, BranchStateError,
            PushError: según la etapa que falló.
        """
        problemas = validate_config(self._config)
        if problemas:
            raise ConfigError("Configuración inválida: " + "; ".join(problemas))

        timestamp = self._clock()

        with self._workspace(workdir) as workspace:
            logger.step(1, TOTAL_STEPS, "Obteniendo código fuente...")
            snapshot = acquire_source(self._config, workspace / "source", revision)

            logger.step(2, TOTAL_STEPS, "Construyendo artefacto...")
            artifact: Artifact = run_build(self._config.build, snapshot.path)

            logger.step(3, TOTAL_STEPS, f"Preparando branch {self._config.publish.branch}...")
            repo = PublishRepository(
                workspace / "publish", self._config, self._publish_remote(snapshot)
            )
            try:
                tree = repo.prepare()

                logger.step(4, TOTAL_STEPS, f"Copiando artefacto a {self._config.publish.subpath}...")
                repo.stage(tree, artifact.path)

                logger.step(5, TOTAL_STEPS, "Creando commit...")
                commit = repo.commit(tree, self._commit_message(timestamp, snapshot))

                pushed = False
                if self._should_push(commit, tree, dry_run):
                    logger.step(6, TOTAL_STEPS, f"Push forzado a origin/{tree.branch}...")
                    repo.push(tree)
                    pushed = True
                elif dry_run:
                    logger.step(6, TOTAL_STEPS, "Dry-run: push omitido")
                else:
                    logger.step(6, TOTAL_STEPS, "Sin cambios: push omitido")
            finally:
                repo.close()

        if dry_run:
            status = PublishStatus.DRY_RUN
        elif commit.created:
            status = PublishStatus.PUBLISHED
        else:
            status = PublishStatus.UNCHANGED

        return PublishResult(
            status=status,
            branch=tree.branch,
            source_revision=snapshot.revision,
            commit_sha=commit.sha,
            previous_tip=tree.previous_tip,
            artifact_digest=artifact.digest,
            file_count=artifact.file_count,
            pushed=pushed,
            bootstrapped=tree.bootstrapped,
            timestamp=timestamp,
        )
