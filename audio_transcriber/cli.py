"""Command-line entry point.

Transcribes INPUT and writes the transcript to OUTPUT. The pipeline
deletes the media it is given, so the CLI hands it a temporary copy and
leaves the user's file untouched.

Exit codes: 0 on success, 1 on a missing API key, a missing input file,
or a failed transcription.
"""

import asyncio
import logging
import os
import shutil
import tempfile

import click
from dotenv import load_dotenv

from audio_transcriber.config import Settings
from audio_transcriber.generation.prompts import PRESETS
from audio_transcriber.media.asset import MediaAsset
from audio_transcriber.observability.logger import setup_logging
from audio_transcriber.pipeline import TranscriptionPipeline, TranscriptionResult
from audio_transcriber.sinks import FileSink
from audio_transcriber.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)


def _working_copy(source: str) -> str:
    suffix = os.path.splitext(source)[1]
    fd, path = tempfile.mkstemp(prefix="transcribe-", suffix=suffix)
    with os.fdopen(fd, "wb") as out, open(source, "rb") as src:
        shutil.copyfileobj(src, out)
    return path


async def _transcribe(
    settings: Settings, input_path: str, output_path: str, preset: str | None, models: tuple[str, ...]
) -> TranscriptionResult:
    config = settings.pipeline_config(
        models=models or None, preset=preset, sink=FileSink(output_path)
    )
    asset = MediaAsset(
        path=_working_copy(input_path),
        media_type="",
        filename=os.path.basename(input_path),
    )
    with asset:
        pipeline = TranscriptionPipeline.from_settings(settings, config=config)
        try:
            return await pipeline.run(asset)
        finally:
            await pipeline.backend.aclose()


@click.command()
@click.argument("input_path", metavar="INPUT")
@click.argument("output_path", metavar="OUTPUT")
@click.option(
    "--preset",
    type=click.Choice(sorted(PRESETS)),
    default=None,
    help="Instruction preset (default: TRANSCRIBER_PRESET or 'standard').",
)
@click.option(
    "--model",
    "models",
    multiple=True,
    help="Model candidate to try, in order. Repeat to build a fallback list.",
)
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
def cli(input_path, output_path, preset, models, log_level):
    """Transcribe the audio file INPUT and save the text to OUTPUT."""
    load_dotenv()
    try:
        settings = Settings.from_env()
    except ConfigurationError as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)
    setup_logging(log_level or settings.log_level, settings.log_format)

    if not settings.api_key:
        click.echo("Error: GEMINI_API_KEY environment variable is not set.", err=True)
        raise SystemExit(1)
    if not os.path.isfile(input_path):
        click.echo(f"Error: input file '{input_path}' was not found.", err=True)
        raise SystemExit(1)

    try:
        result = asyncio.run(
            _transcribe(settings, input_path, output_path, preset, models)
        )
    except (ConfigurationError, OSError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1)

    if result.error is not None:
        click.echo(f"Fatal error: {result.error.message}", err=True)
        raise SystemExit(1)

    click.echo(f"Success using [{result.model}]!")
    click.echo(f"Saved to: {os.path.abspath(output_path)}")


if __name__ == "__main__":
    cli()
