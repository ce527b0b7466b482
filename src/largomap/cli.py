from __future__ import annotations

from pathlib import Path

import typer

from memdump.debug_log import close_load_debug_log, init_load_debug_log, load_debug_log
from memdump.errors import DumpError

from .container import unpack_container, unpack_pbt
from .loader import GraphLoader, LoadError, LoadState
from .objects import Behavior, Macro
from .provider import DirectoryProvider
from .script import decode_script, script_to_text
from .settings import PRESETS, SettingsError, load_settings_file, settings_for
from .tables import load_tables_file

app = typer.Typer(add_completion=False)


@app.command("decompress")
def cmd_decompress(
    container: Path = typer.Argument(..., help="level container (.lvl) or side table (.pbt)"),
    out: Path = typer.Argument(..., help="where to write the decompressed image (.dmp)"),
    big_endian: bool = typer.Option(False, "--big-endian", help="container header is big endian"),
) -> None:
    """Expand a Largo-compressed container into its raw memory image."""
    if not container.is_file():
        typer.echo(f"file not found: {container}", err=True)
        raise typer.Exit(code=1)
    blob = container.read_bytes()
    try:
        if container.suffix.lower() == ".pbt":
            data = unpack_pbt(blob, little_endian=not big_endian)
            vignette = ""
        else:
            unpacked = unpack_container(blob, little_endian=not big_endian)
            data = unpacked.data
            vignette = unpacked.vignette
    except DumpError as exc:
        typer.echo(f"{container}: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(data)
    suffix = f" (vignette {vignette!r})" if vignette else ""
    typer.echo(f"wrote {len(data)} bytes to {out}{suffix}")


def _owner_label(owner: Behavior | Macro | None) -> str:
    if owner is None:
        return "script"
    model = owner.model.name if owner.model is not None else "AIModel"
    return f"{model}.{owner.short_name}"


@app.command("scripts")
def cmd_scripts(
    game_data: Path = typer.Argument(..., help="game data folder holding Fix/ and the level folders"),
    level: str = typer.Argument(..., help="level name, e.g. the folder under game data"),
    tables: Path = typer.Option(..., "--tables", help="script tables JSON for this engine version"),
    preset: str = typer.Option("largo_pc", "--preset", help=f"engine preset ({', '.join(sorted(PRESETS))})"),
    settings_path: Path | None = typer.Option(None, "--settings", help="load settings JSON (overrides --preset)"),
    advanced: bool = typer.Option(False, "--advanced", help="render nodes with types and addresses"),
    log_dir: Path | None = typer.Option(None, "--log-dir", help="write a load trace under <dir>/logs/load"),
) -> None:
    """Load a level and print every decoded script."""
    try:
        settings = load_settings_file(settings_path) if settings_path is not None else settings_for(preset)
    except SettingsError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    if not game_data.is_dir():
        typer.echo(f"game data folder not found: {game_data}", err=True)
        raise typer.Exit(code=1)
    try:
        script_tables = load_tables_file(tables)
    except (OSError, DumpError) as exc:
        typer.echo(f"{tables}: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    try:
        provider = DirectoryProvider(
            game_data,
            level,
            folder_case=settings.level_folder_case,
            file_case=settings.level_file_case,
        )
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="'LEVEL'") from exc

    if log_dir is not None:
        source = f"file:{settings_path.name}" if settings_path is not None else preset
        path = init_load_debug_log(base_dir=log_dir, level=provider.level, preset=source)
        load_debug_log(
            "settings",
            engine=settings.engine_version.name.lower(),
            game=settings.game.value,
            platform=settings.platform.value,
            little_endian=settings.little_endian,
        )
        typer.echo(f"load trace: {path}", err=True)
    loader = GraphLoader(provider, settings, script_tables)
    try:
        for state in loader.steps():
            if state is not LoadState.READY:
                typer.echo(f"{state.value}", err=True)
        scene = loader.scene
        if scene is None:
            raise typer.Exit(code=1)
        for perso in scene.persos():
            model = perso.mind.ai_model if perso.mind is not None else None
            if model is None:
                continue
            typer.echo(f"# {perso.full_name} ({model.name})")
            for script in model.scripts():
                typer.echo(f"## {_owner_label(script.owner)} @ {script.offset}")
                typer.echo(script_to_text(decode_script(loader.ctx, script, perso, advanced=advanced)))
    except LoadError as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=1) from exc
    finally:
        loader.close()
        close_load_debug_log()


def main(argv: list[str] | None = None) -> None:
    app(prog_name="largomap", args=argv)


if __name__ == "__main__":
    main()
