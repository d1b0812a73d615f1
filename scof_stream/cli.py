"""
Replays a recorded model transcript and writes the files it generates.
Diffs are applied against the files already present in the output directory.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import click
from .commands import extract_commands
from .config import ConfigError, StreamConfig, build_config
from .filesystem import (
    collect_file_stat,
    enforce_file_size,
    get_chunk_size,
    get_max_file_size,
    iter_chunks,
    normalize_transcript_path,
    read_previous_contents,
    resolve_output_path,
    safe_read,
    write_file_atomically,
)
from .log import setup_base_logger
from .phase import PhaseContext, PhaseOutputs, implement_phase

__all__ = ["cli"]


def _load_previous(file_path: str, output_dir: Path) -> str | None:
    try:
        return read_previous_contents(file_path, output_dir)
    except (ValueError, IOError):
        # Unsafe or unreadable paths are reported when the file is written.
        return None


async def _replay(
    transcript: str, context: PhaseContext, config: StreamConfig, chunk_size: int
) -> tuple[PhaseOutputs, list]:
    outputs = await implement_phase(iter_chunks(transcript, chunk_size), context, config=config)
    return outputs, await outputs.results()


@click.command()
@click.version_option(package_name="scof-stream")
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False),
    default=".",
    show_default=True,
    help="Directory generated files are written to",
)
@click.option("--chunk-size", type=int, help="Characters fed to the parser per chunk")
@click.option("--heredoc-delimiter", help="Line that closes a file body")
@click.option("--dry-run", is_flag=True, help="Report files without writing them")
@click.option(
    "--fenced-commands",
    is_flag=True,
    help="Also collect commands from fenced shell blocks",
)
@click.option("--verbose", "-v", is_flag=True, help="Log parser activity to stderr")
@click.argument("transcript", type=click.Path(exists=True, dir_okay=False))
def cli(
    transcript: str,
    output_dir: str = ".",
    chunk_size: int | None = None,
    heredoc_delimiter: str | None = None,
    dry_run: bool = False,
    fenced_commands: bool = False,
    verbose: bool = False,
):
    """
    Entry point for replaying a model transcript into a directory.

    Args:
        transcript: Path to the recorded model output.
        output_dir: Directory generated files are written to.
        chunk_size: Override for the replay chunk size.
        heredoc_delimiter: Override for the file close marker.
        dry_run: Report files without writing them.
        fenced_commands: Also collect commands from fenced shell blocks.
        verbose: Log parser activity to stderr.

    Returns:
        None.

    Raises:
        click.BadParameter: If the transcript path or configuration is invalid.
        click.ClickException: If the transcript cannot be read, or one or more
            files could not be applied.

    Examples:
        scof-stream runs/phase-1.txt --output-dir app --chunk-size 64
    """
    base_dir = Path.cwd().resolve()
    try:
        transcript_path = normalize_transcript_path(transcript, base_dir)
    except ValueError as error:
        raise click.BadParameter(str(error)) from error
    try:
        config = build_config(
            transcript_path.parent,
            chunk_size=chunk_size,
            heredoc_delimiter=heredoc_delimiter,
        )
    except ConfigError as error:
        raise click.BadParameter(str(error)) from error

    if verbose:
        setup_base_logger(level=logging.DEBUG)

    try:
        max_file_size = get_max_file_size(default=config.max_file_size)
        effective_chunk_size = chunk_size or get_chunk_size(default=config.chunk_size)
    except ValueError as error:
        raise click.ClickException(str(error)) from error

    try:
        enforce_file_size(collect_file_stat(transcript_path), max_file_size, transcript_path)
        with safe_read(transcript_path) as handle:
            text = handle.read()
    except UnicodeDecodeError as error:
        error_message = f"Invalid UTF-8 sequence in {transcript_path}: {error}"
        raise click.ClickException(error_message) from error
    except IOError as error:
        raise click.ClickException(str(error)) from error

    output_path = Path(output_dir)
    context = PhaseContext(load_previous=lambda path: _load_previous(path, output_path))
    outputs, files = asyncio.run(_replay(text, context, config, effective_chunk_size))

    for message in outputs.state.warnings:
        click.echo(f"Warning: {message}", err=True)
    for path in outputs.unterminated_files:
        click.echo(f"Warning: {path} was never closed; skipped", err=True)

    failures = 0
    for file in files:
        if not file.is_valid:
            click.echo(f"Error: {file.error}", err=True)
            failures += 1
            continue
        try:
            target = resolve_output_path(file.path, output_path)
        except ValueError as error:
            click.echo(f"Error: {error}", err=True)
            failures += 1
            continue
        if dry_run:
            click.echo(f"Would write {file.path}")
            continue
        try:
            write_file_atomically(target, file.contents, warn=lambda m: click.echo(m, err=True))
        except IOError as error:
            raise click.ClickException(str(error)) from error
        click.echo(f"Wrote {file.path}")

    commands = list(outputs.commands)
    if fenced_commands:
        commands.extend(extract_commands(text))
    if commands:
        click.echo("Commands:")
        for command in commands:
            click.echo(f"  {command}")

    if failures:
        raise click.ClickException(f"{failures} file(s) could not be applied")


if __name__ == "__main__":
    cli()
