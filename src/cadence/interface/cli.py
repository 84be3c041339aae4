"""Cadence CLI: drill commands, config and server."""

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable
from dataclasses import asdict
from pathlib import Path
from typing import Annotated, Any, TypeVar

import typer

from cadence.application.config import AppConfig, resolve_config
from cadence.application.drill_service import DrillService
from cadence.domain.exceptions import DrillError, NotFoundError, ValidationError
from cadence.domain.review.models import DrillItem, DrillKind

T = TypeVar("T")

# ---------------------------------------------------------------------------
# Root app
# ---------------------------------------------------------------------------

app = typer.Typer(
    help="cadence: spaced-repetition drills for vocabulary, translation, listening and shadowing.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

config_app = typer.Typer(help="Manage cadence configuration.")
app.add_typer(config_app, name="config")

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(levelname)s:%(name)s:%(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)

KindOption = Annotated[
    DrillKind, typer.Option("--kind", "-k", help="Drill kind to operate on.")
]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _config(ctx: typer.Context) -> AppConfig:
    return resolve_config(ctx.obj.get("overrides") if ctx.obj else None)


def _setup_logging(config: AppConfig) -> None:
    """Mirror cadence logs into <log_dir>/cadence.log; verbose >= 2 enables DEBUG."""
    package_logger = logging.getLogger("cadence")
    package_logger.setLevel(logging.DEBUG if config.verbose >= 2 else logging.INFO)

    log_file = config.log_dir / "cadence.log"
    if any(getattr(h, "baseFilename", None) == str(log_file) for h in package_logger.handlers):
        return
    config.log_dir.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(log_file, encoding="utf-8", delay=True)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s:%(name)s:%(message)s"))
    package_logger.addHandler(handler)


def _service(ctx: typer.Context, kind: DrillKind) -> DrillService:
    from cadence.application.factory import get_drill_service

    config = _config(ctx)
    _setup_logging(config)
    return get_drill_service(config, kind)


def _run(coro: Awaitable[T]) -> T:
    """Run a service call, turning domain errors into exit codes."""
    try:
        return asyncio.run(coro)
    except ValidationError as e:
        typer.secho(f"Invalid input: {e}", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=2) from None
    except NotFoundError as e:
        typer.secho(str(e), fg=typer.colors.YELLOW, err=True)
        raise typer.Exit(code=1) from None
    except DrillError as e:
        logger.error(f"Internal error: {e}", exc_info=True)
        raise typer.Exit(code=3) from None


def _describe(item: DrillItem) -> str:
    content = item.content
    label = f"{content.content_id}: {content.text}"
    if content.translation:
        label += f" / {content.translation}"
    if item.record is None:
        return f"{label} [new]"
    record = item.record
    star = " *" if record.is_starred else ""
    return (
        f"{label} [next {record.next_review_date.date().isoformat()}, "
        f"S={record.stability:.2f}, lapses={record.lapses}]{star}"
    )


def _parse_extra(pairs: list[str] | None) -> dict[str, str] | None:
    if not pairs:
        return None
    extra: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected key=value, got {pair!r}", param_hint="--extra")
        extra[key.strip()] = value.strip()
    return extra


# ---------------------------------------------------------------------------
# Global callback
# ---------------------------------------------------------------------------


@app.callback()
def main_callback(
    ctx: typer.Context,
    data_dir: Annotated[Path | None, typer.Option(help="Where review records are stored.")] = None,
    content_file: Annotated[
        Path | None, typer.Option(help="YAML deck file with drill content.")
    ] = None,
    timezone: Annotated[
        str | None, typer.Option(help="IANA timezone defining the civil day boundary.")
    ] = None,
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose", "-v", count=True, help="Increase verbosity. Repeat for more detail."
        ),
    ] = 0,
):
    """Global settings for cadence."""
    ctx.ensure_object(dict)
    ctx.obj["overrides"] = {
        "data_dir": data_dir,
        "content_file": content_file,
        "timezone": timezone,
        "verbose": 1 + verbose if verbose else None,
    }


# ---------------------------------------------------------------------------
# Drill commands
# ---------------------------------------------------------------------------


@app.command("list")
def list_items(ctx: typer.Context, kind: KindOption = DrillKind.VOCABULARY):
    """List every item with its review state."""
    items = _run(_service(ctx, kind).list_all())
    for item in items:
        typer.echo(_describe(item))
    typer.echo(f"{len(items)} items")


@app.command()
def due(ctx: typer.Context, kind: KindOption = DrillKind.VOCABULARY):
    """List items due today."""
    items = _run(_service(ctx, kind).list_due())
    for item in items:
        typer.echo(_describe(item))
    typer.echo(f"{len(items)} due")


@app.command()
def stats(ctx: typer.Context, kind: KindOption = DrillKind.VOCABULARY):
    """Show review counters as JSON."""
    result = _run(_service(ctx, kind).get_stats())
    typer.echo(json.dumps(asdict(result), indent=2))


@app.command()
def learn(ctx: typer.Context, kind: KindOption = DrillKind.VOCABULARY):
    """Suggest one item that has never been reviewed."""
    candidate = _run(_service(ctx, kind).get_learn_candidate())
    typer.echo(_describe(DrillItem(content=candidate)))


@app.command()
def collect(
    ctx: typer.Context,
    content_id: Annotated[str, typer.Argument(help="Content item to start tracking.")],
    tier: Annotated[
        str | None,
        typer.Option(help="Declared difficulty: very_easy, easy, medium or hard."),
    ] = None,
    kind: KindOption = DrillKind.VOCABULARY,
):
    """Start reviewing an item, optionally seeded with a difficulty tier."""
    item = _run(_service(ctx, kind).collect(content_id, tier))
    typer.echo(_describe(item))


@app.command()
def review(
    ctx: typer.Context,
    content_id: Annotated[str, typer.Argument(help="Content item to rate.")],
    rating: Annotated[str, typer.Argument(help="1=Again, 2=Hard, 3=Good, 4=Easy.")],
    extra: Annotated[
        list[str] | None, typer.Option("--extra", help="Metadata to store, as key=value.")
    ] = None,
    kind: KindOption = DrillKind.VOCABULARY,
):
    """Rate an item and schedule its next review."""
    item = _run(_service(ctx, kind).submit_rating(content_id, rating, _parse_extra(extra)))
    typer.echo(_describe(item))


@app.command()
def star(
    ctx: typer.Context,
    content_id: Annotated[str, typer.Argument(help="Content item to star or unstar.")],
    kind: KindOption = DrillKind.VOCABULARY,
):
    """Toggle the star on an item."""
    record = _run(_service(ctx, kind).toggle_star(content_id))
    typer.echo(f"{content_id}: {'starred' if record.is_starred else 'unstarred'}")


@app.command()
def show(
    ctx: typer.Context,
    content_id: Annotated[str, typer.Argument(help="Content item to show.")],
    kind: KindOption = DrillKind.VOCABULARY,
):
    """Show one item with its review state."""
    item = _run(_service(ctx, kind).get_item(content_id))
    typer.echo(_describe(item))
    if item.record is not None:
        typer.echo(json.dumps(dict(item.record.meta), ensure_ascii=False))


@app.command()
def direction(
    ctx: typer.Context,
    content_id: Annotated[str, typer.Argument(help="Content item to update.")],
    value: Annotated[str, typer.Argument(help="kr-vn or vn-kr.")],
    kind: KindOption = DrillKind.VOCABULARY,
):
    """Set which side of the card is shown first."""
    _run(_service(ctx, kind).set_card_direction(content_id, value))
    typer.echo(f"{content_id}: direction {value}")


@app.command()
def preview(
    ctx: typer.Context,
    content_id: Annotated[str, typer.Argument(help="Content item to preview.")],
    kind: KindOption = DrillKind.VOCABULARY,
):
    """Show the interval each rating would schedule."""
    intervals = _run(_service(ctx, kind).preview(content_id))
    for rating, days in intervals.items():
        typer.echo(f"{rating.name.lower():>5}: {days:.2f} days")


# ---------------------------------------------------------------------------
# Config & server
# ---------------------------------------------------------------------------


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Print the resolved configuration as JSON."""
    config = _config(ctx)
    data: dict[str, Any] = config.model_dump(mode="json")
    typer.echo(json.dumps(data, indent=2))


@app.command()
def serve(
    port: Annotated[int, typer.Option(help="Port to bind the server to.")] = 8777,
    host: Annotated[str, typer.Option(help="Host to bind the server to.")] = "127.0.0.1",
    reload: Annotated[bool, typer.Option(help="Enable auto-reload.")] = False,
):
    """Run the HTTP API."""
    import uvicorn

    typer.echo(f"Starting cadence server on http://{host}:{port}")
    uvicorn.run("cadence.server:app", host=host, port=port, reload=reload)
