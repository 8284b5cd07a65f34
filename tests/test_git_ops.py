"""
test_git_ops.py — Tests para PublishRepository y helpers de git.
"""

from __future__ import annotations

import base64
from unittest.mock import patch

import pytest

from docship.errors import BranchStateError, PushError
from docship.publishing.git_ops import PublishRepository, credential_env, probe_remote
from docship.publishing.source import acquire_source
from docship.utils.validators import redact_secrets

from tests.conftest import git


# ================================================================
# credential_env
# ================================================================

class TestCredentialEnv:
    def test_https_con_token(self):
        env = credential_env("https://github.com/o/r.git", "tok-1234")
        esperado = base64.b64encode(b"x-access-token:tok-1234").decode("ascii")
        assert env == {
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.extraHeader",
            "GIT_CONFIG_VALUE_0": f"Authorization: Basic {esperado}",
        }

    def test_header_se_redacta_en_los_logs(self):
        env = credential_env("https://github.com/o/r.git", "tok-redactado")
        assert "Basic ***" in redact_secrets(env["GIT_CONFIG_VALUE_0"])

    def test_sin_token(self):
        assert credential_env("https://github.com/o/r.git", "") == {}

    def test_ssh_no_recibe_nada(self):
        assert credential_env("git@github.com:o/r.git", "tok-1234") == {}

    def test_ruta_local_no_recibe_nada(self):
        assert credential_env("/srv/git/r.git", "tok-1234") == {}

    def test_credenciales_existentes(self):
        assert credential_env("https://user:pw@github.com/o/r.git", "tok-1234") == {}


# ================================================================
# probe_remote
# ================================================================

class TestProbeRemote:
    def test_branch_inexistente(self, remote):
        assert probe_remote(str(remote.bare), "gh-pages") is None

    def test_branch_existente(self, remote):
        assert probe_remote(str(remote.bare), "master") == remote.tip("master")

    def test_remoto_inaccesible(self, tmp_path):
        with pytest.raises(BranchStateError):
            probe_remote(str(tmp_path / "nada.git"), "gh-pages")


# ================================================================
# PublishRepository
# ================================================================

class TestPublishRepository:
    def test_directorio_no_vacio(self, remote, make_config, tmp_path):
        destino = tmp_path / "publish"
        destino.mkdir()
        (destino / "x").write_text("x")
        repo = PublishRepository(destino, make_config(), str(remote.bare))
        with pytest.raises(BranchStateError, match="no está vacío"):
            repo.prepare()

    def test_operaciones_sin_prepare(self, remote, make_config, tmp_path):
        repo = PublishRepository(tmp_path / "publish", make_config(), str(remote.bare))
        with pytest.raises(BranchStateError, match="prepare"):
            repo.remote_tip()

    def test_bootstrap_huerfano(self, remote, make_config, tmp_path):
        repo = PublishRepository(tmp_path / "publish", make_config(), str(remote.bare))
        tree = repo.prepare()
        try:
            assert tree.bootstrapped is True
            assert tree.previous_tip is None
            assert git(tree.path, "symbolic-ref", "HEAD") == "refs/heads/gh-pages"
        finally:
            repo.close()

    def test_stage_commit_y_noop(self, remote, make_config, tmp_path):
        """Stage de un artefacto, commit, y un segundo commit sin cambios."""
        artefacto = tmp_path / "artefacto"
        artefacto.mkdir()
        (artefacto / "tutorial.pdf").write_bytes(b"%PDF-1.4 contenido")

        repo = PublishRepository(tmp_path / "publish", make_config(), str(remote.bare))
        tree = repo.prepare()
        try:
            repo.stage(tree, artefacto)
            primero = repo.commit(tree, "primer deploy")
            assert primero.created is True
            assert len(primero.sha) == 40

            repo.stage(tree, artefacto)
            segundo = repo.commit(tree, "otra vez")
            assert segundo.created is False

            assert (tree.path / "docs" / "tutorial.pdf").read_bytes() == b"%PDF-1.4 contenido"
        finally:
            repo.close()

    def test_stage_reemplaza_archivos_viejos(self, remote, make_config, tmp_path):
        remote.seed_pages({"docs/viejo.pdf": "viejo", "README.md": "hola"}, tmp_path)
        artefacto = tmp_path / "artefacto"
        artefacto.mkdir()
        (artefacto / "nuevo.pdf").write_text("nuevo")

        repo = PublishRepository(tmp_path / "publish", make_config(), str(remote.bare))
        tree = repo.prepare()
        try:
            assert tree.previous_tip == remote.tip()
            repo.stage(tree, artefacto)
            assert not (tree.path / "docs" / "viejo.pdf").exists()
            assert (tree.path / "docs" / "nuevo.pdf").exists()
            assert (tree.path / "README.md").read_text() == "hola"
        finally:
            repo.close()

    def test_push_sin_commit(self, remote, make_config, tmp_path):
        repo = PublishRepository(tmp_path / "publish", make_config(), str(remote.bare))
        tree = repo.prepare()
        try:
            with pytest.raises(PushError):
                repo.push(tree)
        finally:
            repo.close()
        assert remote.tip() is None


# ================================================================
# El token nunca se escribe en disco
# ================================================================

class TestTokenFueraDeDisco:
    URL = "https://github.com/org/tutorial.git"
    TOKEN = "ghs_tokenquenodebeguardarse"

    def test_remote_origin_sin_token(self, make_config, tmp_path):
        """Con --keep-workdir el .git/config del árbol de publicación queda limpio."""
        cfg = make_config()
        cfg.push_token = self.TOKEN
        repo = PublishRepository(tmp_path / "publish", cfg, self.URL)
        with patch.object(PublishRepository, "remote_tip", return_value=None):
            tree = repo.prepare()
        try:
            config_git = (tree.path / ".git" / "config").read_text(encoding="utf-8")
            assert self.TOKEN not in config_git
            assert git(tree.path, "remote", "get-url", "origin") == self.URL
        finally:
            repo.close()

    def test_clone_recibe_el_token_por_entorno(self, make_config, tmp_path):
        cfg = make_config()
        cfg.source.repo_url = self.URL
        cfg.push_token = self.TOKEN

        with patch("docship.publishing.source.gitpython.Repo.clone_from") as clone_from:
            clone_from.return_value.head.commit.hexsha = "a" * 40
            snapshot = acquire_source(cfg, tmp_path / "source")

        args, kwargs = clone_from.call_args
        assert args[0] == self.URL
        assert kwargs["env"] == credential_env(self.URL, self.TOKEN)
        assert snapshot.remote_url == self.URL
