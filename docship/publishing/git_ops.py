"""
git_ops.py — Etapas 3 a 6: branch de publicación, stage, commit y push.

El branch de publicación (gh-pages) vive en su propio working tree,
separado del checkout del código fuente. Así cambiar de branch nunca
toca el artefacto recién construido: el artefacto se queda en el
snapshot y se copia al árbol de publicación cuando ya está listo.

Flujo:
    1. git init <workspace>/publish + remote origin (sin credenciales)
    2. git ls-remote → ¿existe el branch de publicación?
       - Sí: fetch + checkout -B <branch> origin/<branch>
       - No: branch huérfano (bootstrap) o BranchStateError
    3. Reemplazar <subpath> con el artefacto, git add -A --force
    4. Commit solo si hay cambios contra el tip (si no, corrida no-op)
    5. git push --force (o --force-with-lease si publish.lease)

Uso:
    from docship.publishing.git_ops import PublishRepository
    repo = PublishRepository(workspace / "publish", config, remote_url)
    tree = repo.prepare()
    repo.stage(tree, artifact.path)
    outcome = repo.commit(tree, "Site update")
    if outcome.created:
        repo.push(tree)
"""

from __future__ import annotations

import base64
import shutil
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import urlsplit

import git as gitpython

from docship.config import AppConfig
from docship.errors import BranchStateError, PushError
from docship.utils.logger import get_logger
from docship.utils.validators import redact_secrets, register_secret

logger = get_logger("docship.git")


def credential_env(url: str, token: str) -> dict[str, str]:
    """
    Variables de entorno que le pasan el token a git como header HTTP.

    El token viaja solo en el entorno del proceso git (GIT_CONFIG_*,
    git >= 2.31); nunca queda escrito en .git/config, ni siquiera con
    --keep-workdir. URLs ssh, rutas locales y URLs que ya traen
    credenciales no reciben nada.

    Ejemplo:
        https://github.com/org/tutorial.git
        → http.extraHeader = "Authorization: Basic <x-access-token:token en base64>"
    """
    if not token or not url:
        return {}
    partes = urlsplit(url)
    if partes.scheme not in ("http", "https") or "@" in partes.netloc:
        return {}
    basic = base64.b64encode(f"x-access-token:{token}".encode("utf-8")).decode("ascii")
    register_secret(basic)
    return {
        "GIT_CONFIG_COUNT": "1",
        "GIT_CONFIG_KEY_0": "http.extraHeader",
        "GIT_CONFIG_VALUE_0": f"Authorization: Basic {basic}",
    }


def _parse_ls_remote(salida: str, ref: str) -> str | None:
    """Extrae el sha de `ref` de la salida de git ls-remote."""
    for linea in salida.splitlines():
        sha, _, nombre = linea.partition("\t")
        if nombre.strip() == ref:
            return sha.strip()
    return None


def probe_remote(remote_url: str, branch: str, token: str = "") -> str | None:
    """
    Consulta el tip de un branch remoto sin crear ningún repo local.

    Lo usa `docship health` para verificar que el remoto responde
    y que las credenciales sirven.

    Returns:
        Sha del tip, o None si el branch no existe.

    Raises:
        BranchStateError: Si el remoto no responde.
    """
    ref = f"refs/heads/{branch}"
    try:
        salida = gitpython.Git().ls_remote(
            "--heads", remote_url, ref, env=credential_env(remote_url, token)
        )
    except gitpython.GitCommandError as e:
        raise BranchStateError(
            f"No se pudo consultar {remote_url}: {redact_secrets(str(e))}"
        ) from e
    return _parse_ls_remote(salida, ref)


@dataclass
class PublishTree:
    """
    Working tree del branch de publicación.

    Campos:
        path: Directorio del working tree
        branch: Nombre del branch (ej: "gh-pages")
        previous_tip: Sha del tip remoto antes de la corrida (None si no existía)
        bootstrapped: True si el branch se creó huérfano en esta corrida
    """
    path: Path
    branch: str
    previous_tip: str | None = None
    bootstrapped: bool = False


@dataclass
class CommitOutcome:
    """Resultado del intento de commit."""
    created: bool
    sha: str | None
    message: str


@dataclass
class PushOutcome:
    """Resultado del push al remoto."""
    branch: str
    sha: str
    lease: bool = False


class PublishRepository:
    """
    Gestiona el working tree del branch de publicación.

    Todas las operaciones reciben el PublishTree que devolvió
    prepare(); ninguna depende del directorio actual del proceso.

    Args:
        path: Directorio donde crear el working tree (vacío o inexistente).
        config: Configuración de la app.
        remote_url: URL del remoto donde vive el branch de publicación.
    """

    def __init__(self, path: str | Path, config: AppConfig, remote_url: str):
        self._path = Path(path)
        self._config = config
        self._remote_url = remote_url
        self._repo: gitpython.Repo | None = None
        self._auth_env = credential_env(remote_url, config.push_token)

    # ============================================================
    # Helpers
    # ============================================================

    def _get_repo(self) -> gitpython.Repo:
        if self._repo is None:
            raise BranchStateError("El árbol de publicación no está preparado (falta prepare())")
        return self._repo

    def _identity_env(self) -> dict[str, str]:
        """Variables que fijan autor y committer, ignorando las del entorno de CI."""
        committer = self._config.committer
        return {
            "GIT_AUTHOR_NAME": committer.name,
            "GIT_AUTHOR_EMAIL": committer.email,
            "GIT_COMMITTER_NAME": committer.name,
            "GIT_COMMITTER_EMAIL": committer.email,
        }

    def close(self) -> None:
        """Libera los procesos git persistentes de GitPython."""
        if self._repo is not None:
            self._repo.close()

    # ============================================================
    # Consulta del remoto
    # ============================================================

    def remote_tip(self) -> str | None:
        """
        Consulta el tip actual del branch de publicación en el remoto.

        Returns:
            Sha del tip, o None si el branch no existe.

        Raises:
            BranchStateError: Si el remoto no responde.
        """
        repo = self._get_repo()
        branch = self._config.publish.branch
        ref = f"refs/heads/{branch}"
        try:
            salida = repo.git.ls_remote("--heads", "origin", ref, env=self._auth_env)
        except gitpython.GitCommandError as e:
            raise BranchStateError(
                f"No se pudo consultar el remoto: {redact_secrets(str(e))}"
            ) from e

        return _parse_ls_remote(salida, ref)

    # ============================================================
    # Etapa 3: preparar el branch de publicación
    # ============================================================

    def prepare(self) -> PublishTree:
        """
        Crea el working tree del branch de publicación.

        Si el branch existe en el remoto se parte de su tip. Si no
        existe, según publish.bootstrap se crea un branch huérfano
        (primer deploy) o se falla.

        Returns:
            PublishTree listo para recibir el artefacto.

        Raises:
            BranchStateError: Si el directorio no está vacío, el remoto
                no responde, o el branch no existe y bootstrap es "fail".
        """
        branch = self._config.publish.branch

        if self._path.exists() and any(self._path.iterdir()):
            raise BranchStateError(f"{self._path} no está vacío")
        self._path.mkdir(parents=True, exist_ok=True)

        try:
            self._repo = gitpython.Repo.init(self._path)
            with self._repo.config_writer() as cw:
                cw.set_value("user", "name", self._config.committer.name)
                cw.set_value("user", "email", self._config.committer.email)
                cw.set_value("core", "autocrlf", "false")
                cw.set_value("commit", "gpgsign", "false")
            self._repo.create_remote("origin", self._remote_url)
        except (gitpython.GitCommandError, OSError) as e:
            raise BranchStateError(
                f"No se pudo inicializar el árbol de publicación: {redact_secrets(str(e))}"
            ) from e

        tip = self.remote_tip()
        repo = self._get_repo()

        if tip is None:
            if self._config.publish.bootstrap != "orphan":
                raise BranchStateError(
                    f"El branch {branch} no existe en el remoto y publish.bootstrap='fail'"
                )
            try:
                repo.git.symbolic_ref("HEAD", f"refs/heads/{branch}")
            except gitpython.GitCommandError as e:
                raise BranchStateError(
                    f"No se pudo crear el branch huérfano {branch}: {e}"
                ) from e
            logger.warning(f"El branch {branch} no existe: se crea huérfano (primer deploy)")
            return PublishTree(path=self._path, branch=branch, previous_tip=None, bootstrapped=True)

        try:
            repo.git.fetch(
                "origin",
                f"+refs/heads/{branch}:refs/remotes/origin/{branch}",
                env=self._auth_env,
            )
            repo.git.checkout("-B", branch, f"origin/{branch}")
        except gitpython.GitCommandError as e:
            raise BranchStateError(
                f"No se pudo hacer checkout de origin/{branch}: {redact_secrets(str(e))}"
            ) from e

        logger.info(f"Branch {branch} en {tip[:7]}")
        return PublishTree(path=self._path, branch=branch, previous_tip=tip, bootstrapped=False)

    # ============================================================
    # Etapa 4: stage del artefacto
    # ============================================================

    def stage(self, tree: PublishTree, artifact_path: Path) -> None:
        """
        Reemplaza el contenido de publish.subpath con el artefacto.

        Solo se toca el subpath: los archivos hermanos del branch
        (CNAME, index.html, etc.) quedan intactos.

        Args:
            tree: Árbol devuelto por prepare().
            artifact_path: Directorio del artefacto construido.

        Raises:
            BranchStateError: Si no se puede copiar o hacer git add.
        """
        repo = self._get_repo()
        subpath = Path(self._config.publish.subpath.replace("\\", "/")).as_posix().strip("/")
        destino = tree.path / subpath

        try:
            if destino.is_symlink() or destino.is_file():
                destino.unlink()
            elif destino.exists():
                shutil.rmtree(destino)
            destino.parent.mkdir(parents=True, exist_ok=True)
            shutil.copytree(artifact_path, destino)
        except OSError as e:
            raise BranchStateError(f"No se pudo copiar el artefacto a {subpath}: {e}") from e

        try:
            # --force: un .gitignore del branch no puede dejar afuera archivos del artefacto
            repo.git.add("-A", "--force", "--", subpath)
        except gitpython.GitCommandError as e:
            raise BranchStateError(f"git add {subpath} falló: {e}") from e

        logger.info(f"Artefacto copiado a {subpath}")

    # ============================================================
    # Etapa 5: commit
    # ============================================================

    def commit(self, tree: PublishTree, message: str) -> CommitOutcome:
        """
        Crea el commit de publicación si el árbol cambió.

        Si lo staged es idéntico al tip ("nothing to commit"), no es
        un error: se devuelve CommitOutcome(created=False) con el tip
        actual.

        Args:
            tree: Árbol devuelto por prepare().
            message: Mensaje del commit ya formateado.

        Returns:
            CommitOutcome con el sha del commit nuevo o del tip actual.

        Raises:
            BranchStateError: Si git commit falla.
        """
        repo = self._get_repo()
        try:
            cambios = repo.git.diff("--cached", "--name-only")
        except gitpython.GitCommandError as e:
            raise BranchStateError(f"git diff --cached falló: {e}") from e

        if not cambios.strip():
            logger.info("Nada que commitear: el artefacto no cambió")
            return CommitOutcome(created=False, sha=tree.previous_tip, message=message)

        try:
            repo.git.commit("--no-verify", "-m", message, env=self._identity_env())
            sha = repo.git.rev_parse("HEAD")
        except gitpython.GitCommandError as e:
            raise BranchStateError(f"git commit falló: {e}") from e

        logger.success(f"Commit creado: {sha[:7]} — {message}")
        return CommitOutcome(created=True, sha=sha, message=message)

    # ============================================================
    # Etapa 6: push
    # ============================================================

    def push(self, tree: PublishTree) -> PushOutcome:
        """
        Pushea el branch de publicación forzando la actualización.

        Con publish.lease el push solo se acepta si el remoto sigue en
        tree.previous_tip (o si el branch sigue sin existir, en el
        bootstrap). Sin lease, el remoto se sobrescribe siempre.

        Args:
            tree: Árbol devuelto por prepare().

        Returns:
            PushOutcome con el sha pusheado.

        Raises:
            PushError: Si el remoto rechaza el push o no hay autorización.
        """
        repo = self._get_repo()
        ref = f"refs/heads/{tree.branch}"
        lease = self._config.publish.lease

        if lease:
            flag = f"--force-with-lease={ref}:{tree.previous_tip or ''}"
        else:
            flag = "--force"

        try:
            sha = repo.git.rev_parse("HEAD")
        except gitpython.GitCommandError as e:
            raise PushError(f"No hay commit local para pushear en {tree.branch}") from e

        try:
            repo.git.push(flag, "origin", f"{ref}:{ref}", env=self._auth_env)
        except gitpython.GitCommandError as e:
            raise PushError(
                f"El push a origin/{tree.branch} fue rechazado: {redact_secrets(str(e))}"
            ) from e

        logger.success(f"Push exitoso a origin/{tree.branch} ({sha[:7]})")
        return PushOutcome(branch=tree.branch, sha=sha, lease=lease)
