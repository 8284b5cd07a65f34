"""
conftest.py — Fixtures compartidas: repos Git locales y builds stub.

Todos los tests de integración corren contra un repo bare local
(remote.git) que hace de "GitHub". El branch de origen tiene un solo
archivo doc.adoc y el "renderer" es un comando python que lo copia
al directorio de salida.
"""

from __future__ import annotations

import os
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

import pytest

from docship.config import AppConfig

GIT_IDENTITY = {
    "GIT_AUTHOR_NAME": "Test Author",
    "GIT_AUTHOR_EMAIL": "author@example.com",
    "GIT_COMMITTER_NAME": "Test Author",
    "GIT_COMMITTER_EMAIL": "author@example.com",
}

# Copia doc.adoc a build/out/doc.adoc (el "renderer" de los tests)
COPY_BUILD = [
    sys.executable, "-c",
    "import os, shutil; os.makedirs('build/out', exist_ok=True); "
    "shutil.copy('doc.adoc', 'build/out/doc.adoc')",
]

FAILING_BUILD = [
    sys.executable, "-c",
    "import sys; sys.stderr.write('asciidoctor: FAILED\\n'); sys.exit(3)",
]


def git(cwd: Path, *args: str) -> str:
    """Ejecuta git en cwd y devuelve stdout (falla el test si git falla)."""
    env = os.environ.copy()
    env.update(GIT_IDENTITY)
    resultado = subprocess.run(
        ["git", *args],
        cwd=cwd,
        env=env,
        capture_output=True,
        text=True,
        check=True,
    )
    return resultado.stdout.strip()


@dataclass
class Remote:
    """Repo bare que hace de remoto + un clon de trabajo del branch de origen."""
    bare: Path
    work: Path

    def commit_source(self, files: dict[str, str], message: str = "Update docs") -> str:
        """Escribe archivos en el branch de origen, commitea y pushea."""
        for nombre, contenido in files.items():
            ruta = self.work / nombre
            ruta.parent.mkdir(parents=True, exist_ok=True)
            ruta.write_text(contenido, encoding="utf-8")
        git(self.work, "add", "-A")
        git(self.work, "commit", "-m", message)
        git(self.work, "push", "origin", "master")
        return git(self.work, "rev-parse", "HEAD")

    def tip(self, branch: str = "gh-pages") -> str | None:
        """Sha del branch en el remoto, o None si no existe."""
        salida = git(self.bare, "for-each-ref", "--format=%(objectname)", f"refs/heads/{branch}")
        return salida or None

    def commit_count(self, branch: str = "gh-pages") -> int:
        return int(git(self.bare, "rev-list", "--count", f"refs/heads/{branch}"))

    def files(self, branch: str = "gh-pages") -> list[str]:
        salida = git(self.bare, "ls-tree", "-r", "--name-only", f"refs/heads/{branch}")
        return sorted(salida.splitlines())

    def read(self, path: str, branch: str = "gh-pages") -> bytes:
        resultado = subprocess.run(
            ["git", "show", f"refs/heads/{branch}:{path}"],
            cwd=self.bare,
            capture_output=True,
            check=True,
        )
        return resultado.stdout

    def seed_pages(self, files: dict[str, str], tmp_path: Path) -> str:
        """Crea el branch gh-pages huérfano en el remoto con estos archivos."""
        pages = tmp_path / "pages-seed"
        git(tmp_path, "clone", str(self.bare), str(pages))
        git(pages, "checkout", "--orphan", "gh-pages")
        git(pages, "rm", "-rf", "--quiet", ".")
        for nombre, contenido in files.items():
            ruta = pages / nombre
            ruta.parent.mkdir(parents=True, exist_ok=True)
            ruta.write_text(contenido, encoding="utf-8")
        git(pages, "add", "-A")
        git(pages, "commit", "-m", "Seed pages")
        git(pages, "push", "origin", "gh-pages")
        return git(pages, "rev-parse", "HEAD")

    def reject_pushes(self) -> None:
        """Instala un hook pre-receive que rechaza cualquier push."""
        hooks = self.bare / "hooks"
        hooks.mkdir(exist_ok=True)
        hook = hooks / "pre-receive"
        hook.write_text("#!/bin/sh\necho 'push rejected by test hook' >&2\nexit 1\n")
        hook.chmod(0o755)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Quita variables de CI que cambiarían el comportamiento de los tests."""
    for var in (
        "GITHUB_SHA",
        "GITHUB_TOKEN",
        "DOCSHIP_PUSH_TOKEN",
        "DOCSHIP_SOURCE_BRANCH",
        "DOCSHIP_PUBLISH_BRANCH",
        "DOCSHIP_SOURCE_REPO_URL",
        "DOCSHIP_SOURCE_PATH",
        "DOCSHIP_PUBLISH_REMOTE_URL",
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_CHAT_ID",
    ):
        monkeypatch.delenv(var, raising=False)
    for var, valor in GIT_IDENTITY.items():
        monkeypatch.setenv(var, valor)


@pytest.fixture
def remote(tmp_path) -> Remote:
    """Remoto bare con el branch master conteniendo solo doc.adoc."""
    bare = tmp_path / "remote.git"
    git(tmp_path, "init", "--bare", "--quiet", str(bare))
    git(bare, "symbolic-ref", "HEAD", "refs/heads/master")

    work = tmp_path / "work"
    git(tmp_path, "clone", "--quiet", str(bare), str(work))
    git(work, "symbolic-ref", "HEAD", "refs/heads/master")

    r = Remote(bare=bare, work=work)
    r.commit_source({"doc.adoc": "= Tutorial\n\nPrimer capítulo.\n"}, "Initial docs")
    return r


@pytest.fixture
def make_config(remote):
    """Fábrica de AppConfig apuntando al remoto de prueba."""

    def _make(**overrides) -> AppConfig:
        cfg = AppConfig()
        cfg.source.repo_url = str(remote.bare)
        cfg.source.branch = "master"
        cfg.build.command = list(COPY_BUILD)
        cfg.build.output_dir = "build/out"
        cfg.build.timeout = 60
        cfg.publish.branch = "gh-pages"
        cfg.publish.subpath = "docs"
        cfg.committer.name = "docs-bot"
        cfg.committer.email = "docs-bot@example.com"
        for clave, valor in overrides.items():
            seccion, _, campo = clave.partition("__")
            setattr(getattr(cfg, seccion), campo, valor)
        return cfg

    return _make
