"""
test_builder.py — Tests de la etapa de build (renderer externo).

Verifica:
- Build exitoso con lista de archivos y digest
- Exit code distinto de 0 → BuildError con la salida del renderer
- Directorio de salida ausente, vacío o que no es directorio
- Timeout y comando inexistente
- build.env llega al proceso
"""

from __future__ import annotations

import sys

import pytest

from docship.config import BuildConfig
from docship.errors import BuildError
from docship.publishing.builder import collect_files, compute_digest, run_build, _split_command


def _py(code: str) -> list[str]:
    return [sys.executable, "-c", code]


@pytest.fixture
def source(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    (src / "doc.adoc").write_text("= Doc\n", encoding="utf-8")
    return src


class TestRunBuild:
    def test_build_exitoso(self, source):
        build = BuildConfig(
            command=_py(
                "import os; os.makedirs('out/img', exist_ok=True); "
                "open('out/doc.pdf', 'wb').write(b'%PDF-1.4'); "
                "open('out/img/a.png', 'wb').write(b'png')"
            ),
            output_dir="out",
            timeout=60,
        )
        artifact = run_build(build, source)

        assert artifact.path == (source / "out").resolve()
        assert artifact.files == ["doc.pdf", "img/a.png"]
        assert artifact.file_count == 2
        assert len(artifact.digest) == 64

    def test_exit_code_distinto_de_cero(self, source):
        build = BuildConfig(
            command=_py("import sys; print('compilando'); sys.stderr.write('boom\\n'); sys.exit(2)"),
            output_dir="out",
            timeout=60,
        )
        with pytest.raises(BuildError) as exc:
            run_build(build, source)
        assert "código 2" in str(exc.value)
        assert "boom" in str(exc.value)

    def test_output_dir_ausente(self, source):
        build = BuildConfig(command=_py("pass"), output_dir="out", timeout=60)
        with pytest.raises(BuildError, match="no produjo out"):
            run_build(build, source)

    def test_output_dir_vacio(self, source):
        build = BuildConfig(command=_py("import os; os.makedirs('out')"), output_dir="out", timeout=60)
        with pytest.raises(BuildError, match="vacío"):
            run_build(build, source)

    def test_output_no_es_directorio(self, source):
        build = BuildConfig(
            command=_py("open('out', 'w').write('x')"), output_dir="out", timeout=60
        )
        with pytest.raises(BuildError, match="no es un directorio"):
            run_build(build, source)

    def test_output_con_repo_git(self, source):
        """Un output_dir que contiene .git (ej: el checkout entero) no se publica."""
        (source / ".git").mkdir()
        build = BuildConfig(command=_py("pass"), output_dir=".", timeout=60)
        with pytest.raises(BuildError, match=r"\.git"):
            run_build(build, source)

    def test_timeout(self, source):
        build = BuildConfig(command=_py("import time; time.sleep(10)"), output_dir="out", timeout=1)
        with pytest.raises(BuildError, match="timeout"):
            run_build(build, source)

    def test_comando_inexistente(self, source):
        build = BuildConfig(command=["docship-no-such-renderer"], output_dir="out", timeout=60)
        with pytest.raises(BuildError, match="No se encontró"):
            run_build(build, source)

    def test_env_extra(self, source):
        build = BuildConfig(
            command=_py(
                "import os; os.makedirs('out'); "
                "open('out/v.txt', 'w').write(os.environ['DOC_VERSION'])"
            ),
            output_dir="out",
            timeout=60,
            env={"DOC_VERSION": "2.1"},
        )
        artifact = run_build(build, source)
        assert (artifact.path / "v.txt").read_text() == "2.1"


class TestSplitCommand:
    def test_string_con_comillas(self):
        assert _split_command('gradle "asciidoctor Pdf" --quiet') == [
            "gradle", "asciidoctor Pdf", "--quiet",
        ]

    def test_lista(self):
        assert _split_command(["./gradlew", "asciidoctorPdf"]) == ["./gradlew", "asciidoctorPdf"]

    def test_vacio(self):
        with pytest.raises(BuildError):
            _split_command("   ")


class TestDigest:
    def _arbol(self, raiz, archivos):
        for nombre, contenido in archivos.items():
            ruta = raiz / nombre
            ruta.parent.mkdir(parents=True, exist_ok=True)
            ruta.write_bytes(contenido)
        return collect_files(raiz)

    def test_arboles_identicos_mismo_digest(self, tmp_path):
        a = self._arbol(tmp_path / "a", {"doc.pdf": b"x", "img/1.png": b"y"})
        b = self._arbol(tmp_path / "b", {"img/1.png": b"y", "doc.pdf": b"x"})
        assert compute_digest(tmp_path / "a", a) == compute_digest(tmp_path / "b", b)

    def test_contenido_distinto_cambia_digest(self, tmp_path):
        a = self._arbol(tmp_path / "a", {"doc.pdf": b"x"})
        b = self._arbol(tmp_path / "b", {"doc.pdf": b"z"})
        assert compute_digest(tmp_path / "a", a) != compute_digest(tmp_path / "b", b)

    def test_renombrar_cambia_digest(self, tmp_path):
        a = self._arbol(tmp_path / "a", {"doc.pdf": b"x"})
        b = self._arbol(tmp_path / "b", {"tutorial.pdf": b"x"})
        assert compute_digest(tmp_path / "a", a) != compute_digest(tmp_path / "b", b)
