import os
import signal
import typer
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError
from vqueue.config.loader import load_config, apply_environment, apply_overrides
from vqueue.config.models import AppConfig, PipelineSettings
from vqueue.domain.models import DirectoryLayout
from vqueue.infrastructure.logging import setup_logging
from vqueue.infrastructure.event_bus import EventBus
from vqueue.infrastructure.file_scanner import is_eligible, is_hidden_name
from vqueue.infrastructure.topology import TopologyError, ensure_layout, inspect_layout
from vqueue.infrastructure.transcoder import TranscoderNotFound, locate_transcoder
from vqueue.pipeline.service import QueuePipeline
from vqueue.pipeline.stats import PipelineStats

DEFAULT_CONFIG = Path("conf/vqueue.yaml")

app = typer.Typer(help="vqueue - directory-backed transcode queue")


def _fail(message: str) -> None:
    typer.secho(f"Error: {message}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1)


def _resolve_config(config_path: Optional[Path], **overrides) -> AppConfig:
    """defaults < YAML file < environment < CLI options."""
    explicit = config_path is not None
    try:
        config = load_config(config_path if explicit else DEFAULT_CONFIG, must_exist=explicit)
        config = apply_environment(config)
        config = apply_overrides(config, **overrides)
    except FileNotFoundError as e:
        _fail(str(e))
    except (ValidationError, ValueError) as e:
        _fail(f"Invalid configuration: {e}")

    if config.base_dir is None:
        _fail("No base directory given (set BASE_DIR, base_dir in config, or --base-dir)")
    return config


@app.command()
def run(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config (default: conf/vqueue.yaml if present)"),
    base_dir: Optional[Path] = typer.Option(None, "--base-dir", "-b", help="Base directory (overrides BASE_DIR)"),
    input_flags: Optional[str] = typer.Option(None, "--input-flags", help="Flags before -i <input> (overrides FFMPEG_INPUT_FLAGS)"),
    output_flags: Optional[str] = typer.Option(None, "--output-flags", help="Flags after -i <input> (overrides FFMPEG_OUTPUT_FLAGS)"),
    shutdown_mode: Optional[str] = typer.Option(None, "--shutdown-mode", help="On interrupt: finish (let the current job complete) or terminate"),
    log_path: Optional[Path] = typer.Option(None, "--log-path", help="Also write the log to this file"),
    debug: bool = typer.Option(False, "--debug/--no-debug", help="Enable verbose debug logging"),
):
    """Watch BASE_DIR/queue and transcode every file that lands there, one at a time."""
    config = _resolve_config(
        config_path,
        base_dir=base_dir,
        input_flags=input_flags,
        output_flags=output_flags,
        shutdown_mode=shutdown_mode,
        log_path=log_path,
        debug=debug,
    )

    log_path_value = Path(config.general.log_path) if config.general.log_path else None
    logger = setup_logging(debug=config.general.debug, log_path=log_path_value)

    try:
        layout = ensure_layout(config.base_dir, config.staging_dir_name)
        executable = locate_transcoder(config.transcoder.executable)
    except (TopologyError, TranscoderNotFound) as e:
        _fail(str(e))

    settings = PipelineSettings.from_config(config, layout, executable)
    logger.info(
        f"vqueue started: base_dir={layout.base}, transcoder={executable}, "
        f"input_flags={settings.input_flags}, output_flags={settings.output_flags}, "
        f"shutdown_mode={settings.shutdown_mode}"
    )

    bus = EventBus()
    stats = PipelineStats(bus)
    pipeline = QueuePipeline(settings, event_bus=bus)

    def _on_signal(signum, frame):
        typer.echo("Interrupted!")
        pipeline.request_shutdown()

    previous_int = signal.signal(signal.SIGINT, _on_signal)
    previous_term = signal.signal(signal.SIGTERM, _on_signal)
    try:
        try:
            pipeline.start()
        except OSError as e:
            _fail(f"Startup error: {e}")
        try:
            pipeline.wait()
        finally:
            pipeline.shutdown()
    finally:
        signal.signal(signal.SIGINT, previous_int)
        signal.signal(signal.SIGTERM, previous_term)
        logger.info(f"vqueue stopped: {stats.summary()}")

    if pipeline.fatal_error is not None:
        _fail(str(pipeline.fatal_error))


def _list_names(directory: Path, eligible_only: bool = False) -> List[str]:
    if not directory.is_dir():
        return []
    names = []
    for entry in sorted(directory.iterdir(), key=lambda p: p.name):
        if eligible_only and not is_eligible(entry):
            continue
        names.append(entry.name)
    return names


@app.command()
def status(
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    base_dir: Optional[Path] = typer.Option(None, "--base-dir", "-b", help="Base directory (overrides BASE_DIR)"),
):
    """Show which jobs are pending, in working/, finished and still uploading."""
    config = _resolve_config(config_path, base_dir=base_dir)
    try:
        layout = inspect_layout(config.base_dir, config.staging_dir_name)
    except TopologyError as e:
        _fail(str(e))

    sections = [
        ("Pending (queue)", _list_names(layout.queue, eligible_only=True)),
        ("In working", _list_names(layout.working)),
        ("Finished", _list_names(layout.finished)),
        (f"Staging ({layout.staging.name})", _list_names(layout.staging)),
    ]
    for title, names in sections:
        typer.secho(f"{title}: {len(names)}", bold=True)
        for name in names:
            typer.echo(f"  {name}")


def promote_upload(layout: DirectoryLayout, name: str) -> Path:
    """Moves a completed upload from the staging dir into queue/.

    Hard-links the file into queue/ and then unlinks the upload, so an entry
    already in queue/ is never replaced, even one that appears concurrently.
    Raises ValueError for names that would never be picked up or would
    overwrite a pending job, and OSError if the link fails.
    """
    if is_hidden_name(name) or Path(name).name != name:
        raise ValueError(f"{name!r} is not a plain, non-hidden file name")
    source = layout.staging / name
    target = layout.queue / name
    if not source.is_file():
        raise ValueError(f"{source} is not a file")
    try:
        os.link(source, target)
    except FileExistsError:
        raise ValueError(f"{target} already exists") from None
    source.unlink()
    return target


@app.command()
def promote(
    names: List[str] = typer.Argument(..., help="File names in the staging directory"),
    config_path: Optional[Path] = typer.Option(None, "--config", "-c", help="Path to YAML config"),
    base_dir: Optional[Path] = typer.Option(None, "--base-dir", "-b", help="Base directory (overrides BASE_DIR)"),
):
    """Move finished uploads from the staging directory into queue/."""
    config = _resolve_config(config_path, base_dir=base_dir)
    try:
        layout = inspect_layout(config.base_dir, config.staging_dir_name)
    except TopologyError as e:
        _fail(str(e))
    if not layout.queue.is_dir():
        _fail(f"{layout.queue} does not exist; start 'vqueue run' once to create it")

    failed = 0
    for name in names:
        try:
            target = promote_upload(layout, name)
        except (ValueError, OSError) as e:
            typer.secho(f"Skipped {name}: {e}", fg=typer.colors.YELLOW, err=True)
            failed += 1
            continue
        typer.echo(f"Queued {target}")

    if failed:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
