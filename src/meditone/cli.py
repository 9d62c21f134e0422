"""Typer CLI definition for meditone."""

import asyncio
import dataclasses
import logging
import sys
from datetime import timedelta
from pathlib import Path
from typing import NoReturn

import typer

from . import config as config_module
from .audio.ffmpeg import FFmpegEngine
from .audio.mixer import BackgroundMixer
from .cache.janitor import CacheJanitor
from .cache.manager import create_cache
from .config import MeditoneConfig, TTSConfig, generate_config, load_config
from .core import MeditationPipeline, list_available_voices
from .providers import ProviderRegistry
from .tts.errors import MeditoneError, TTSAPIError, TTSAuthError

app = typer.Typer(help="Turn meditation scripts into narrated audio tracks")


def process_text_input(text: str | None) -> str:
    """Process text input and return the script to generate.

    Args:
        text: Optional text input from CLI argument, file or stdin

    Returns:
        The script text

    Raises:
        ValueError: If no text is provided
    """
    if text is None or not text.strip():
        raise ValueError("No text provided")

    return text


def configure_logging(debug: bool) -> None:
    if debug:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )


def fail(message: str, error: Exception, debug: bool) -> NoReturn:
    """Print an error the way every command does and exit with code 1."""
    if debug:
        typer.echo(f"Debug - {message}: {error!r}", err=True)
    else:
        typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1) from None


def with_provider(config: MeditoneConfig, provider: str | None) -> MeditoneConfig:
    """Return config switched to ``provider``, using its default voice and model."""
    if provider is None or provider == config.tts.provider:
        return config
    provider_class = ProviderRegistry.get(provider)
    return dataclasses.replace(
        config,
        tts=TTSConfig(
            provider=provider,
            voice=provider_class.default_voice,
            model=provider_class.default_model,
        ),
    )


def read_script(text: str | None, file: Path | None, debug: bool) -> str:
    """Get text from argument, file, or stdin (in priority order)."""
    if text is None:
        if file:
            try:
                text = file.read_text()
            except FileNotFoundError as e:
                if debug:
                    typer.echo(f"Debug - File not found: {file} ({e!r})", err=True)
                else:
                    typer.echo(f"Error: File not found: {file}", err=True)
                raise typer.Exit(1) from None
            except PermissionError as e:
                if debug:
                    typer.echo(f"Debug - Permission denied: {file} ({e!r})", err=True)
                else:
                    typer.echo(
                        f"Error: Permission denied reading file: {file}", err=True
                    )
                raise typer.Exit(1) from None
            except UnicodeDecodeError as e:
                if debug:
                    typer.echo(f"Debug - Decode error: {file} ({e!r})", err=True)
                else:
                    typer.echo(
                        f"Error: Unable to decode file as text: {file}", err=True
                    )
                raise typer.Exit(1) from None
        elif not sys.stdin.isatty():
            text = sys.stdin.read().strip()

    try:
        return process_text_input(text)
    except ValueError as e:
        fail("Text processing error", e, debug)


def echo_progress(completed: int, total: int) -> None:
    typer.echo(f"Processed {completed}/{total} units", err=True)


async def run_generate(
    pipeline: MeditationPipeline,
    script: str,
    voice: str | None,
    model: str | None,
    music: str | None,
    speech_volume: float,
    music_volume: float,
    show_progress: bool,
) -> None:
    try:
        result = await pipeline.generate_audio(
            script,
            voice=voice,
            model=model,
            on_progress=echo_progress if show_progress else None,
        )
        typer.echo(result.audio_url)
        typer.echo(
            f"{result.chunks_processed} units: {result.synthesized_chunks} synthesized, "
            f"{result.cached_chunks} cached, {result.silence_chunks} silence, "
            f"{result.dropped_chunks} dropped ({result.generation_time_seconds:.1f}s)",
            err=True,
        )

        if music:
            mixed = await pipeline.mix_with_music(
                result.audio_url, music, speech_volume, music_volume
            )
            typer.echo(mixed.mixed_audio_url)
    finally:
        await pipeline.aclose()


@app.command()
def generate(
    text: str | None = typer.Argument(None, help="Script with {{PAUSE_Ns}} markers"),
    file: Path | None = typer.Option(None, "-f", "--file", help="Read script from file"),
    voice: str | None = typer.Option(
        None, "-v", "--voice", help="Voice ID (from config if omitted)"
    ),
    model: str | None = typer.Option(
        None, "-m", "--model", help="Model ID (from config if omitted)"
    ),
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="TTS provider (from config if omitted)"
    ),
    music: str | None = typer.Option(
        None, "--music", help="Mix the track with this /music/ URL"
    ),
    music_volume: float = typer.Option(0.3, "--music-volume", help="Music gain (>= 0)"),
    speech_volume: float = typer.Option(
        1.0, "--speech-volume", help="Speech gain (>= 0)"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Show verbose error messages and pipeline activity"
    ),
) -> None:
    """Generate a narrated track from a meditation script."""
    configure_logging(debug)
    script = read_script(text, file, debug)
    config = load_config()

    try:
        pipeline = MeditationPipeline.from_config(with_provider(config, provider))
        asyncio.run(
            run_generate(
                pipeline,
                script,
                voice,
                model,
                music,
                speech_volume,
                music_volume,
                show_progress=debug,
            )
        )
    except TTSAuthError as e:
        fail("Authentication error", e, debug)
    except TTSAPIError as e:
        fail("TTS API error", e, debug)
    except MeditoneError as e:
        fail(f"{e.stage} failed", e, debug)
    except KeyError as e:
        fail("Lookup error", e, debug)
    except ValueError as e:
        fail("Invalid input", e, debug)
    except OSError as e:
        fail("File system error", e, debug)
    except Exception as e:
        if debug:
            typer.echo(f"Debug - Unexpected error: {e!r}", err=True)
        else:
            typer.echo("Error: An unexpected error occurred", err=True)
        raise typer.Exit(1) from None


@app.command()
def mix(
    speech_url: str = typer.Argument(..., help="/audio/ URL of a speech track"),
    music_url: str = typer.Argument(..., help="/music/ URL of a background track"),
    speech_volume: float = typer.Option(
        1.0, "--speech-volume", help="Speech gain (>= 0)"
    ),
    music_volume: float = typer.Option(0.3, "--music-volume", help="Music gain (>= 0)"),
    debug: bool = typer.Option(False, "--debug", help="Show verbose error messages"),
) -> None:
    """Mix background music under an existing speech track."""
    configure_logging(debug)
    config = load_config()

    ttl = timedelta(hours=config.cache.ttl_hours)

    try:
        paths = config.paths.artifact_paths().ensure()
        mixer = BackgroundMixer(
            FFmpegEngine(config.ffmpeg.ffmpeg, config.ffmpeg.ffprobe),
            paths,
            create_cache("merge", config.cache.backend, ttl, config.paths.cache_dir),
        )
        artifact = asyncio.run(
            mixer.mix(speech_url, music_url, speech_volume, music_volume)
        )
    except MeditoneError as e:
        fail(f"{e.stage} failed", e, debug)
    except (KeyError, ValueError, OSError) as e:
        fail("Mix error", e, debug)

    typer.echo(paths.url_for(artifact.path))
    if artifact.cached:
        typer.echo("(cached)", err=True)


@app.command()
def voices(
    provider: str | None = typer.Option(
        None, "-p", "--provider", help="TTS provider (from config if omitted)"
    ),
    debug: bool = typer.Option(False, "--debug", help="Show verbose error messages"),
) -> None:
    """List available voices and exit."""
    configure_logging(debug)
    provider = provider or load_config().tts.provider

    try:
        available = asyncio.run(list_available_voices(provider))
    except Exception as e:
        if debug:
            typer.echo(f"Debug - Failed to list voices: {e!r}", err=True)
        else:
            typer.echo(f"Error: Failed to list voices: {e}", err=True)
        raise typer.Exit(1) from None

    for voice in available:
        typer.echo(f"{voice['name']}: {voice['id']}")


@app.command()
def sweep(
    debug: bool = typer.Option(False, "--debug", help="Show verbose error messages"),
) -> None:
    """Evict expired cache entries and stale chunk, mix and temp files once."""
    configure_logging(debug)
    config = load_config()
    ttl = timedelta(hours=config.cache.ttl_hours)

    try:
        speech_cache, merge_cache = [
            create_cache(name, config.cache.backend, ttl, config.paths.cache_dir)
            for name in ("speech", "merge")
        ]
        janitor = CacheJanitor.for_artifacts(
            config.paths.artifact_paths(), speech_cache, merge_cache, temp_max_age=ttl
        )
        removed = janitor.run_once()
    except (ValueError, OSError) as e:
        fail("Sweep failed", e, debug)

    typer.echo(f"Removed {removed} expired entries")


@app.command("init-config")
def init_config(
    force: bool = typer.Option(
        False, "--force", help="Overwrite an existing config file"
    ),
) -> None:
    """Write the default config file."""
    if config_module.CONFIG_PATH.exists() and not force:
        typer.echo(
            f"Error: {config_module.CONFIG_PATH} already exists (use --force)", err=True
        )
        raise typer.Exit(1)
    path = generate_config()
    typer.echo(f"Config written to {path}")
