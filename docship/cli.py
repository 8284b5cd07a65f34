"""
cli.py — Punto de entrada principal de Docship.

Este archivo maneja todos los comandos CLI usando Click.

Comandos disponibles:
    python -m docship run                       → Build + stage + push forzado
    python -m docship run --dry-run             → Hasta el commit local, sin push
    python -m docship run --revision <sha>      → Construye esa revisión exacta
    python -m docship config --show             → Muestra configuración
    python -m docship config --validate         → Valida configuración
    python -m docship health                    → Verifica git y el remoto

Códigos de salida de `run` (ver docship.errors.ExitCode):
    0 OK / sin cambios, 2 config, 3 source, 4 build, 5 branch, 6 push

Uso:
    # Desde el workflow de CI:
    docship run

    # Desde código (testing):
    from click.testing import CliRunner
    from docship.cli import main
    CliRunner().invoke(main, ["run", "--config", "docship.yaml"])
"""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

import click
from rich.panel import Panel
from rich.table import Table

from docship import __version__
from docship.config import AppConfig, load_config, validate_config
from docship.errors import ConfigError, DocshipError, ExitCode
from docship.notifications.notifier import Event, Notifier
from docship.notifications.telegram import TelegramChannel
from docship.publishing.git_ops import probe_remote
from docship.publishing.publisher import PublishResult, PublishStatus, Publisher
from docship.utils.logger import get_logger, console as rich_console
from docship.utils.validators import redact_url

logger = get_logger("docship.cli")

BANNER = """
[bold magenta]
  ╔══════════════════════════════════════╗
  ║  📄 DOCSHIP — build · stage · push   ║
  ╚══════════════════════════════════════╝
[/bold magenta]"""

config_option = click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Ruta a docship.yaml (por defecto se busca desde el directorio actual)",
)


def _load(config_path: Path | None) -> AppConfig:
    """Carga la configuración o termina con el exit code de configuración."""
    try:
        return load_config(config_path)
    except ConfigError as e:
        logger.error(str(e))
        sys.exit(int(e.exit_code))


@click.group()
@click.version_option(version=__version__, prog_name="Docship")
def main():
    """📄 Docship — Publica la documentación renderizada en un branch de hosting."""
    pass


@main.command()
@click.option(
    "--revision", "-r",
    default=None,
    envvar="GITHUB_SHA",
    help="Sha a construir (por defecto GITHUB_SHA o el tip del branch de origen)",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Construye y commitea localmente, NO pushea",
)
@click.option(
    "--keep-workdir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Usa este directorio como workspace y no lo borra al terminar",
)
@config_option
def run(
    revision: str | None,
    dry_run: bool,
    keep_workdir: Path | None,
    config_path: Path | None,
):
    """🚀 Construye el artefacto y lo publica en el branch de hosting."""
    rich_console.print(BANNER)
    cfg = _load(config_path)

    try:
        result = Publisher(cfg).run(
            revision=revision,
            dry_run=dry_run,
            workdir=keep_workdir,
        )
    except DocshipError as e:
        logger.error(f"Etapa {e.stage}: {e}")
        _notify(cfg, Event.PUBLISH_FAILED, {"stage": e.stage, "error_message": str(e)})
        sys.exit(int(e.exit_code))
    except Exception as e:
        logger.error(f"Error inesperado: {e}")
        _notify(cfg, Event.PUBLISH_FAILED, {"stage": "desconocida", "error_message": str(e)})
        sys.exit(int(ExitCode.UNEXPECTED))

    _show_summary(result)
    _notify_result(cfg, result)


@main.command()
@click.option("--show", is_flag=True, help="Muestra la configuración actual")
@click.option("--validate", is_flag=True, help="Valida la configuración")
@config_option
def config(show: bool, validate: bool, config_path: Path | None):
    """⚙️ Gestiona la configuración de Docship."""
    cfg = _load(config_path)

    if show:
        tabla = Table(title="Configuración de Docship")
        tabla.add_column("Parámetro", style="cyan")
        tabla.add_column("Valor", style="green")

        tabla.add_row("Source repo", redact_url(cfg.source.repo_url) or "(no configurado)")
        tabla.add_row("Source path", cfg.source.path or "(clonar)")
        tabla.add_row("Source branch", cfg.source.branch)
        tabla.add_row("Build command", _format_command(cfg.build.command))
        tabla.add_row("Build output", cfg.build.output_dir)
        tabla.add_row("Build timeout", f"{cfg.build.timeout}s")
        tabla.add_row("Publish remote", redact_url(cfg.publish.remote_url) or "(el de source)")
        tabla.add_row("Publish branch", cfg.publish.branch)
        tabla.add_row("Publish subpath", cfg.publish.subpath)
        tabla.add_row("Bootstrap", cfg.publish.bootstrap)
        tabla.add_row("Lease", "✅ Sí" if cfg.publish.lease else "❌ No (force)")
        tabla.add_row("Commit message", cfg.publish.commit_message)
        tabla.add_row("Committer", f"{cfg.committer.name} <{cfg.committer.email}>")
        tabla.add_row("Push token", "✅ Configurado" if cfg.push_token else "❌ Falta")
        tabla.add_row("Telegram", "✅ Activo" if cfg.telegram.enabled else "❌ Inactivo")

        rich_console.print(tabla)

    if validate:
        if not _validate_config(cfg):
            sys.exit(int(ExitCode.CONFIG_INVALID))


@main.command()
@config_option
def health(config_path: Path | None):
    """🏥 Verifica que git, la configuración y el remoto funcionen."""
    rich_console.print(BANNER)
    cfg = _load(config_path)
    errores = []

    # 1. git en el PATH
    git_path = shutil.which("git")
    if git_path:
        logger.success(f"git: {git_path}")
    else:
        errores.append("git no está en el PATH")
        logger.error("git: NO encontrado")

    # 2. Configuración
    problemas = validate_config(cfg)
    if problemas:
        errores.extend(problemas)
        logger.error(f"Configuración: {len(problemas)} problema(s)")
    else:
        logger.success("Configuración válida")

    # 3. Remoto de publicación
    remoto = cfg.publish.remote_url or cfg.source.repo_url
    if git_path and remoto:
        try:
            tip = probe_remote(remoto, cfg.publish.branch, cfg.push_token)
            if tip:
                logger.success(f"Remoto: {cfg.publish.branch} en {tip[:7]}")
            else:
                logger.warning(f"Remoto: {cfg.publish.branch} no existe todavía (bootstrap={cfg.publish.bootstrap})")
        except DocshipError as e:
            errores.append(str(e))
            logger.error(f"Remoto: {e}")
    elif not remoto:
        logger.warning("Remoto: se resuelve desde el checkout en cada corrida")

    # 4. Push token
    if cfg.push_token:
        logger.success("Push token: configurado")
    else:
        logger.warning("Push token: NO configurado (solo sirve para remotos ssh o locales)")

    if errores:
        rich_console.print(
            Panel(
                "\n".join(f"❌ {e}" for e in errores),
                title="Problemas encontrados",
                border_style="red",
            )
        )
        sys.exit(int(ExitCode.UNEXPECTED))

    rich_console.print(
        Panel(
            "✅ Todo funcionando correctamente",
            title="Estado de salud",
            border_style="green",
        )
    )


# ============================================================
# Funciones auxiliares (privadas)
# ============================================================

def _format_command(command: str | list[str]) -> str:
    if isinstance(command, str):
        return command
    return " ".join(str(parte) for parte in command)


def _show_summary(result: PublishResult):
    """Muestra resumen después de la corrida."""
    titulos = {
        PublishStatus.PUBLISHED: ("📄 ¡Documentación publicada!", "green"),
        PublishStatus.UNCHANGED: ("💤 Sin cambios", "cyan"),
        PublishStatus.DRY_RUN: ("🧪 Dry-run completado", "yellow"),
    }
    titulo, color = titulos[result.status]
    commit = result.commit_sha[:7] if result.commit_sha else "(ninguno)"
    anterior = result.previous_tip[:7] if result.previous_tip else "(branch nuevo)"

    rich_console.print(Panel(
        f"[bold]Branch:[/bold] {result.branch}\n"
        f"[bold]Source:[/bold] {result.source_revision[:7]}\n"
        f"[bold]Commit:[/bold] {commit}\n"
        f"[bold]Tip anterior:[/bold] {anterior}\n"
        f"[bold]Archivos:[/bold] {result.file_count}\n"
        f"[bold]Digest:[/bold] {result.artifact_digest[:12]}\n"
        f"[bold]Push:[/bold] {'✅' if result.pushed else '—'}",
        title=titulo,
        border_style=color,
    ))


def _notify_result(cfg: AppConfig, result: PublishResult):
    """Envía la notificación que corresponde al estado final."""
    datos = {
        "branch": result.branch,
        "commit": result.commit_sha[:7] if result.commit_sha else "-",
        "revision": result.source_revision[:7],
        "files": result.file_count,
    }
    if result.status is PublishStatus.PUBLISHED:
        _notify(cfg, Event.SITE_PUBLISHED, datos)
    elif result.status is PublishStatus.UNCHANGED:
        _notify(cfg, Event.SITE_UNCHANGED, datos)


def _notify(cfg: AppConfig, event: Event, data: dict):
    """Envía una notificación si Telegram está activo."""
    if not cfg.telegram.enabled:
        return
    _build_notifier(cfg).notify(event, data)


def _build_notifier(cfg: AppConfig) -> Notifier:
    """Construye un Notifier con los canales configurados."""
    channels = []
    if cfg.telegram_bot_token and cfg.telegram_chat_id:
        channels.append(TelegramChannel(
            bot_token=cfg.telegram_bot_token,
            chat_id=cfg.telegram_chat_id,
            templates={
                Event.SITE_PUBLISHED.value: cfg.notifications.site_published,
                Event.SITE_UNCHANGED.value: cfg.notifications.site_unchanged,
                Event.PUBLISH_FAILED.value: cfg.notifications.publish_failed,
            },
        ))
    return Notifier(
        channels=channels,
        enabled_events=cfg.telegram.notify_on,
    )


def _validate_config(cfg: AppConfig) -> bool:
    """Valida la configuración y muestra resultado."""
    problemas = validate_config(cfg)

    if problemas:
        for p in problemas:
            logger.error(p)
        return False

    logger.success("Configuración válida")
    return True


if __name__ == "__main__":
    main()
