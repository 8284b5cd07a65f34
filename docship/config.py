"""
config.py — Carga y gestiona la configuración de Docship.

Este archivo reúne todo lo que antes estaba hard-codeado en el
workflow de CI (branches, identidad del committer, rutas del
artefacto) en una estructura explícita que se le pasa al pipeline:
1. Cargar docship.yaml (configuración general, se versiona)
2. Cargar .env (secretos: token de push, token de Telegram)
3. Resolver ${VARIABLES} de entorno en los valores del YAML
4. Aplicar overrides de CI (DOCSHIP_SOURCE_BRANCH, ...)
5. Validar que todo esté completo antes de tocar ningún repo

Uso:
    from docship.config import load_config, validate_config
    config = load_config()
    print(config.publish.branch)  # "gh-pages"
    problemas = validate_config(config)
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from docship.errors import ConfigError
from docship.utils.validators import (
    register_secret,
    validate_branch_name,
    validate_commit_template,
    validate_output_dir,
    validate_subpath,
)

CONFIG_FILENAME = "docship.yaml"

BOOTSTRAP_MODES = ("orphan", "fail")


# ============================================================
# Dataclasses de configuración
# ============================================================
# Cada sección de docship.yaml tiene su propia dataclass.
# ============================================================

@dataclass
class SourceConfig:
    """De dónde sale el código fuente de la documentación."""
    repo_url: str = ""
    path: str = ""
    branch: str = "master"


@dataclass
class BuildConfig:
    """Cómo se invoca el renderer externo."""
    command: str | list[str] = "./gradlew asciidoctorPdf"
    output_dir: str = "build/docs/asciidocPdf"
    timeout: int = 1800
    env: dict[str, str] = field(default_factory=dict)


@dataclass
class PublishConfig:
    """Branch de hosting y cómo se actualiza."""
    remote_url: str = ""
    branch: str = "gh-pages"
    subpath: str = "docs/asciidocPdf"
    bootstrap: str = "orphan"
    lease: bool = False
    push_unchanged: bool = True
    commit_message: str = "CI completed documentation build @ {timestamp}"


@dataclass
class CommitterConfig:
    """Identidad fija con la que se firman los commits de publicación."""
    name: str = "docship-bot"
    email: str = "docship-bot@users.noreply.github.com"


@dataclass
class RunConfig:
    """Opciones de la corrida (workspace temporal)."""
    workdir: str = ""


@dataclass
class TelegramConfig:
    """Configuración de Telegram."""
    enabled: bool = False
    notify_on: list[str] = field(default_factory=lambda: [
        "site_published", "site_unchanged", "publish_failed"
    ])


@dataclass
class NotificationsConfig:
    """Templates de mensajes de notificación."""
    site_published: str = "📄 Documentación publicada\n🌿 {branch} @ {commit}\n🔖 source {revision}"
    site_unchanged: str = "💤 Sin cambios en la documentación ({revision})"
    publish_failed: str = "⚠️ Falló la publicación ({stage})\n❌ {error_message}"


@dataclass
class AppConfig:
    """Configuración completa de la aplicación."""
    source: SourceConfig = field(default_factory=SourceConfig)
    build: BuildConfig = field(default_factory=BuildConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)
    committer: CommitterConfig = field(default_factory=CommitterConfig)
    run: RunConfig = field(default_factory=RunConfig)
    telegram: TelegramConfig = field(default_factory=TelegramConfig)
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)

    # Valores del .env (no están en docship.yaml)
    push_token: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""


# ============================================================
# Funciones de carga
# ============================================================

def _resolve_env_vars(value: str) -> str:
    """
    Resuelve variables de entorno en un string.

    Ejemplo:
        "${DOCS_REMOTE}"        → "https://github.com/org/tutorial.git"
        "${HOME}/docs-build"    → "/home/runner/docs-build"

    Si la variable no existe, se deja el placeholder tal cual para
    que validate_config() pueda reportarlo.
    """
    patron = re.compile(r"\$\{(\w+)\}")

    def reemplazar(match: re.Match) -> str:
        nombre_var = match.group(1)
        return os.environ.get(nombre_var, match.group(0))

    return patron.sub(reemplazar, value)


def _resolve_env_recursive(data: Any) -> Any:
    """Resuelve variables de entorno recursivamente en un dict/list."""
    if isinstance(data, str):
        return _resolve_env_vars(data)
    elif isinstance(data, dict):
        return {k: _resolve_env_recursive(v) for k, v in data.items()}
    elif isinstance(data, list):
        return [_resolve_env_recursive(item) for item in data]
    return data


def _dict_to_dataclass(data: Any, cls: type) -> Any:
    """
    Convierte un diccionario a una dataclass, ignorando keys desconocidas.

    Una sección vacía en el YAML (`publish:` sin nada) llega como None
    y se trata igual que una sección ausente.
    """
    if not isinstance(data, dict):
        return cls()
    campos_validos = {f.name for f in cls.__dataclass_fields__.values()}
    # Una key vacía (`remote_url:`) llega como None y conserva el default
    datos_filtrados = {
        k: v for k, v in data.items() if k in campos_validos and v is not None
    }
    return cls(**datos_filtrados)


def _find_config_dir() -> Path:
    """
    Encuentra el directorio raíz del proyecto (donde está docship.yaml).

    Busca hacia arriba desde el directorio actual; si no lo encuentra
    usa el directorio actual.
    """
    current = Path.cwd()
    for parent in [current] + list(current.parents):
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def _apply_env_overrides(app_config: AppConfig) -> None:
    """Aplica las variables de entorno que el workflow de CI puede fijar."""
    for variable, seccion, campo in (
        ("DOCSHIP_SOURCE_REPO_URL", app_config.source, "repo_url"),
        ("DOCSHIP_SOURCE_PATH", app_config.source, "path"),
        ("DOCSHIP_PUBLISH_REMOTE_URL", app_config.publish, "remote_url"),
    ):
        valor = os.environ.get(variable)
        if valor:
            setattr(seccion, campo, valor)

    source_branch = os.environ.get("DOCSHIP_SOURCE_BRANCH")
    if source_branch:
        app_config.source.branch = source_branch

    publish_branch = os.environ.get("DOCSHIP_PUBLISH_BRANCH")
    if publish_branch:
        app_config.publish.branch = publish_branch

    app_config.push_token = (
        os.environ.get("DOCSHIP_PUSH_TOKEN")
        or os.environ.get("GITHUB_TOKEN", "")
    )
    app_config.telegram_bot_token = os.environ.get("TELEGRAM_BOT_TOKEN", "")
    app_config.telegram_chat_id = os.environ.get("TELEGRAM_CHAT_ID", "")

    register_secret(app_config.push_token)
    register_secret(app_config.telegram_bot_token)


def load_config(config_path: Path | None = None) -> AppConfig:
    """
    Carga la configuración completa de Docship.

    Pasos:
    1. Carga .env para tener las variables de entorno disponibles
    2. Lee docship.yaml
    3. Resuelve ${VARIABLES} en los valores del YAML
    4. Convierte cada sección a su dataclass correspondiente
    5. Agrega los valores del entorno (tokens y overrides de CI)

    Args:
        config_path: Ruta al docship.yaml. Si es None, busca automáticamente
            y usa valores por defecto si no existe.

    Returns:
        AppConfig con toda la configuración lista para usar.

    Raises:
        ConfigError: Si el archivo pedido explícitamente no existe o el
            YAML no se puede leer.
    """
    proyecto_dir = _find_config_dir()
    env_path = proyecto_dir / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    if config_path is None:
        config_path = proyecto_dir / CONFIG_FILENAME
        if not config_path.exists():
            app_config = AppConfig()
            _apply_env_overrides(app_config)
            return app_config
    elif not config_path.exists():
        raise ConfigError(f"No se encontró el archivo de configuración: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"{config_path} no es YAML válido: {e}") from e

    if not isinstance(raw_config, dict):
        raise ConfigError(f"{config_path} debe contener un mapa de secciones")

    config_resuelto = _resolve_env_recursive(raw_config)

    app_config = AppConfig(
        source=_dict_to_dataclass(config_resuelto.get("source"), SourceConfig),
        build=_dict_to_dataclass(config_resuelto.get("build"), BuildConfig),
        publish=_dict_to_dataclass(config_resuelto.get("publish"), PublishConfig),
        committer=_dict_to_dataclass(config_resuelto.get("committer"), CommitterConfig),
        run=_dict_to_dataclass(config_resuelto.get("run"), RunConfig),
        telegram=_dict_to_dataclass(config_resuelto.get("telegram"), TelegramConfig),
        notifications=_dict_to_dataclass(
            config_resuelto.get("notifications"), NotificationsConfig
        ),
    )

    _apply_env_overrides(app_config)
    return app_config


# ============================================================
# Validación
# ============================================================

def validate_config(cfg: AppConfig) -> list[str]:
    """
    Revisa la configuración y devuelve la lista de problemas.

    Una lista vacía significa que la configuración es válida. No se
    lanza excepción acá para que `docship config --validate` pueda
    mostrar todos los problemas a la vez.

    Args:
        cfg: Configuración a revisar.

    Returns:
        Lista de mensajes de error (vacía si todo está bien).
    """
    problemas: list[str] = []

    if not cfg.source.repo_url and not cfg.source.path:
        problemas.append("Falta source.repo_url o source.path")

    for etiqueta, valor in (
        ("source.repo_url", cfg.source.repo_url),
        ("source.path", cfg.source.path),
        ("publish.remote_url", cfg.publish.remote_url),
    ):
        if "${" in str(valor):
            problemas.append(f"{etiqueta} tiene una variable sin resolver: {valor}")

    for etiqueta, branch in (
        ("source.branch", cfg.source.branch),
        ("publish.branch", cfg.publish.branch),
    ):
        valido, error = validate_branch_name(branch)
        if not valido:
            problemas.append(f"{etiqueta}: {error}")

    if cfg.source.branch == cfg.publish.branch and not cfg.publish.remote_url:
        problemas.append("publish.branch no puede ser el mismo branch que source.branch")

    if not cfg.build.command:
        problemas.append("Falta build.command")
    valido, error = validate_output_dir(cfg.build.output_dir)
    if not valido:
        problemas.append(f"build.output_dir: {error}")
    if not isinstance(cfg.build.timeout, int) or cfg.build.timeout <= 0:
        problemas.append("build.timeout debe ser un entero positivo (segundos)")
    if not isinstance(cfg.build.env, dict):
        problemas.append("build.env debe ser un mapa NOMBRE: valor")

    valido, error = validate_subpath(cfg.publish.subpath)
    if not valido:
        problemas.append(f"publish.subpath: {error}")

    if cfg.publish.bootstrap not in BOOTSTRAP_MODES:
        opciones = ", ".join(BOOTSTRAP_MODES)
        problemas.append(f"publish.bootstrap debe ser uno de: {opciones}")

    valido, error = validate_commit_template(cfg.publish.commit_message)
    if not valido:
        problemas.append(f"publish.commit_message: {error}")

    if not str(cfg.committer.name).strip() or "@" not in str(cfg.committer.email):
        problemas.append("committer.name y committer.email son obligatorios")

    if cfg.telegram.enabled and not (cfg.telegram_bot_token and cfg.telegram_chat_id):
        problemas.append("Telegram está activo pero faltan TELEGRAM_BOT_TOKEN/TELEGRAM_CHAT_ID")

    return problemas
