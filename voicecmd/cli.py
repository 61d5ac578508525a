"""Command-line interface for voicecmd.

Provides ``voicecmd match`` (score one transcript against a vocabulary
file) and ``voicecmd replay`` (run a recognition session over a scripted
engine and print every host event).  The entry point is registered via
``pyproject.toml`` as ``voicecmd = "voicecmd.cli:cli"``.
"""

import asyncio
import json
import logging
from pathlib import Path

import click
from pydantic import ValidationError

from voicecmd.asr.replay_engine import ReplayEngine
from voicecmd.asr.session import RecognitionSession
from voicecmd.errors import InvalidPatternError
from voicecmd.events.event_bus import EventBus
from voicecmd.keywords.matcher import KeywordMatcher

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _setup_logging(verbose: bool) -> None:
    """Send log output to stderr when --verbose is given."""
    if not verbose:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(
        logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    )
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)


def _read_json(path: Path, what: str):
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise click.BadParameter(f"Cannot read {what} {path}: {exc}")


def _load_vocabulary(matcher: KeywordMatcher, path: Path) -> None:
    entries = _read_json(path, "vocabulary")
    if not isinstance(entries, list):
        raise click.BadParameter(f"Vocabulary {path} must be a JSON list.")
    try:
        matcher.set_vocabulary(entries)
    except InvalidPatternError as exc:
        click.echo(click.style(f"Invalid vocabulary: {exc}", fg="red"), err=True)
        raise SystemExit(1)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log to stderr")
def cli(verbose: bool) -> None:
    """voicecmd -- keyword spotting on top of streaming speech recognition."""
    _setup_logging(verbose)


# ---------------------------------------------------------------------------
# match
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("text")
@click.option(
    "--vocab",
    "vocab_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON list of keyword entries",
)
@click.option("--threshold", type=float, default=None, help="Confidence threshold (0-1)")
def match(text: str, vocab_path: Path, threshold: float | None) -> None:
    """Match TEXT against a vocabulary and print the result as JSON."""
    matcher = KeywordMatcher()
    if threshold is not None:
        matcher.set_confidence_threshold(threshold)
    _load_vocabulary(matcher, vocab_path)

    result = matcher.match(text)
    click.echo(json.dumps(result.to_payload(), ensure_ascii=False))


# ---------------------------------------------------------------------------
# replay
# ---------------------------------------------------------------------------


async def _replay(
    session: RecognitionSession,
    event_bus: EventBus,
    continuous: bool,
    idle_timeout: float,
) -> list[dict]:
    queue = await event_bus.subscribe()
    lines: list[dict] = []
    await session.initialize()
    await session.start(continuous=continuous)

    while True:
        try:
            event = await asyncio.wait_for(queue.get(), timeout=idle_timeout)
        except asyncio.TimeoutError:
            break
        lines.append({"event": event.type.value, **event.to_payload()})

    await session.release()
    await event_bus.unsubscribe(queue)
    return lines


@cli.command()
@click.argument(
    "script_path", type=click.Path(exists=True, dir_okay=False, path_type=Path)
)
@click.option(
    "--vocab",
    "vocab_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="JSON list of keyword entries",
)
@click.option("--continuous/--single", default=True, help="Restart after each utterance")
@click.option("--filter", "filter_enabled", is_flag=True, help="Only emit matching transcripts")
@click.option("--threshold", type=float, default=None, help="Confidence threshold (0-1)")
@click.option(
    "--idle-timeout",
    type=float,
    default=1.0,
    show_default=True,
    help="Seconds without events before the replay ends",
)
def replay(
    script_path: Path,
    vocab_path: Path,
    continuous: bool,
    filter_enabled: bool,
    threshold: float | None,
    idle_timeout: float,
) -> None:
    """Replay SCRIPT (a JSON list of utterances) through a recognition session.

    Each utterance is a list of ``{"kind": "partial|final|error", "payload": ...}``
    objects.  Every host event is printed as one JSON line.
    """
    utterances = _read_json(script_path, "script")
    if not isinstance(utterances, list):
        raise click.BadParameter(f"Script {script_path} must be a JSON list.")

    matcher = KeywordMatcher()
    _load_vocabulary(matcher, vocab_path)
    matcher.set_filter_enabled(filter_enabled)
    if threshold is not None:
        matcher.set_confidence_threshold(threshold)

    try:
        engine = ReplayEngine(utterances)
    except (ValidationError, TypeError) as exc:
        raise click.BadParameter(f"Script {script_path} is malformed: {exc}")

    event_bus: EventBus = EventBus()
    session = RecognitionSession(engine, event_bus, matcher)
    lines = asyncio.run(_replay(session, event_bus, continuous, idle_timeout))
    for line in lines:
        click.echo(json.dumps(line, ensure_ascii=False))
