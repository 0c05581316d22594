"""tfrecordio CLI: inspect and check TFRecord files.

Commands:
    tfrecordio info <file>      Show record count, sizes and feature kinds
    tfrecordio verify <file>    Check every record's framing and checksums
    tfrecordio cat <file>       Print decoded examples
    tfrecordio index <file>     Write a text index of record offsets
"""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from tfrecordio import __version__
from tfrecordio.utils.logging import configure_logging

console = Console()

_PREVIEW_ITEMS = 8


@click.group()
@click.version_option(version=__version__, prog_name="tfrecordio")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log debug events to stderr")
def cli(verbose: bool) -> None:
    """tfrecordio: read, write and check TFRecord files."""
    configure_logging(verbose)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--json", "as_json", is_flag=True, default=False, help="Print the summary as JSON")
def info(file: Path, as_json: bool) -> None:
    """Show record count, sizes and the features of the first example."""
    from tfrecordio.errors import TFRecordError
    from tfrecordio.reader import summarize

    try:
        summary = summarize(file)
    except TFRecordError as e:
        console.print(f"[red]Error reading {escape(str(file))}: {escape(str(e))}[/red]")
        raise SystemExit(1)

    if as_json:
        click.echo(summary.to_json())
        return

    console.print()
    console.print(Panel.fit(f"[bold]{escape(file.name)}[/bold]", subtitle=escape(str(file))))

    meta_table = Table(show_header=False, box=None, padding=(0, 2))
    meta_table.add_column("Key", style="dim")
    meta_table.add_column("Value")
    meta_table.add_row("Records", str(summary.num_records))
    meta_table.add_row("File bytes", str(summary.num_bytes))
    meta_table.add_row("Payload bytes", str(summary.payload_bytes))
    console.print(meta_table)

    if summary.features:
        console.print()
        features_table = Table(title="Features (first record)")
        features_table.add_column("Name")
        features_table.add_column("Kind")
        features_table.add_column("Length", justify="right")
        for feature in summary.features:
            features_table.add_row(escape(feature.name), feature.kind, str(feature.length))
        console.print(features_table)

    console.print()


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify(file: Path) -> None:
    """Check the framing and checksums of every record."""
    from tfrecordio.errors import FramingError
    from tfrecordio.storage.reader import RecordReader

    with RecordReader(file) as reader:
        try:
            for _ in reader:
                pass
        except FramingError as e:
            console.print(Panel(
                f"[red]✗ {type(e).__name__} at byte {e.offset}[/red]\n"
                f"  {escape(str(e))}\n"
                f"  [dim]{reader.records_read} valid record(s) before it[/dim]",
                title="Verify",
                border_style="red",
            ))
            raise SystemExit(1)

    console.print(Panel(
        f"[green]✓ {reader.records_read} record(s), {reader.offset} bytes, all checksums valid.[/green]",
        title="Verify",
        border_style="green",
    ))


def _preview(values: tuple) -> str:
    shown = ", ".join(repr(v) for v in values[:_PREVIEW_ITEMS])
    if len(values) > _PREVIEW_ITEMS:
        shown += f", ... ({len(values) - _PREVIEW_ITEMS} more)"
    return f"[{shown}]"


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--limit", "-n", type=click.IntRange(min=0), default=None, help="Stop after N records")
@click.option("--sequence", "-s", is_flag=True, default=False, help="Decode sequence examples")
def cat(file: Path, limit: int | None, sequence: bool) -> None:
    """Print decoded examples."""
    from tfrecordio.errors import TFRecordError
    from tfrecordio.reader import ExampleReader

    with ExampleReader(file, sequence=sequence) as reader:
        try:
            for index, example in enumerate(reader):
                if limit is not None and index >= limit:
                    break
                console.print(f"[bold]record {index}[/bold]")
                if sequence:
                    for name, feature in example.context.items():
                        console.print(f"  {escape(name)} ({feature.kind}): {escape(_preview(feature.value))}")
                    for name, steps in example.feature_lists.items():
                        console.print(f"  {escape(name)} [dim]{len(steps)} step(s)[/dim]")
                        for t, feature in enumerate(steps):
                            console.print(f"    {escape(f'[{t}]')} ({feature.kind}): {escape(_preview(feature.value))}")
                else:
                    for name, feature in example.items():
                        console.print(f"  {escape(name)} ({feature.kind}): {escape(_preview(feature.value))}")
        except TFRecordError as e:
            console.print(f"[red]{type(e).__name__}: {escape(str(e))}[/red]")
            raise SystemExit(1)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path),
              help="Index path (default: <file>.idx)")
def index(file: Path, output: Path | None) -> None:
    """Write a text index with the offset and size of every record."""
    from tfrecordio.errors import FramingError
    from tfrecordio.storage.format import INDEX_EXTENSION
    from tfrecordio.storage.index import index_records, write_index

    try:
        entries = index_records(file)
    except FramingError as e:
        console.print(f"[red]Cannot index {escape(str(file))}: {escape(str(e))}[/red]")
        raise SystemExit(1)

    out_path = write_index(entries, output or file.with_name(file.name + INDEX_EXTENSION))
    console.print(f"  Created: {escape(str(out_path))}")
    console.print(f"[green]Indexed {len(entries)} record(s)[/green]")


if __name__ == "__main__":
    cli()
