"""Core functionality for meditone - orchestrates segmentation, synthesis and mixing."""

import asyncio
import logging
import time
from datetime import timedelta

from .audio.assembler import AudioAssembler
from .audio.ffmpeg import FFmpegEngine
from .audio.mixer import DEFAULT_MUSIC_VOLUME, DEFAULT_SPEECH_VOLUME, BackgroundMixer
from .audio.silence import SilenceSynthesizer
from .cache.janitor import CacheJanitor
from .cache.manager import ArtifactCache, create_cache
from .config import MeditoneConfig
from .paths import ArtifactPaths
from .providers import ProviderRegistry
from .providers.base import TTSProvider
from .tts.errors import AssemblyError, SegmentationError, TTSAPIError, TTSAuthError
from .tts.executors import BatchExecutor, get_executor
from .tts.models import GenerationResult, MixResult, UnitKind
from .tts.pipeline import ProgressCallback, SynthesisCoordinator
from .tts.segmenter import DEFAULT_MAX_CHUNK_LENGTH, ScriptSegmenter
from .tts.synthesizer import SpeechSynthesizer

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_GENERATIONS = 3


class MeditationPipeline:
    """Script-to-track pipeline with optional background music mixing.

    One instance owns the process-wide caches, so it should be shared by
    every request in the process. At most ``max_concurrent_generations``
    ``generate_audio`` runs are active at once; further calls wait their turn.
    The first request in an event loop starts the cache janitor; call
    ``aclose`` before the loop ends to stop it.

    Example:
        pipeline = MeditationPipeline(OpenAIProvider(), ArtifactPaths.default())
        result = await pipeline.generate_audio("Breathe in. {{PAUSE_5s}} Breathe out.")
        mixed = await pipeline.mix_with_music(result.audio_url, "/music/rain.mp3")
    """

    def __init__(
        self,
        provider: TTSProvider,
        paths: ArtifactPaths,
        engine: FFmpegEngine | None = None,
        speech_cache: ArtifactCache | None = None,
        merge_cache: ArtifactCache | None = None,
        silence_cache: ArtifactCache | None = None,
        executor: BatchExecutor | None = None,
        batch_size: int | None = None,
        max_chunk_length: int = DEFAULT_MAX_CHUNK_LENGTH,
        max_concurrent_generations: int = DEFAULT_MAX_CONCURRENT_GENERATIONS,
        voice: str | None = None,
        model: str | None = None,
    ) -> None:
        if max_concurrent_generations <= 0:
            raise ValueError(
                f"max_concurrent_generations must be positive, got {max_concurrent_generations}"
            )
        self.provider = provider
        self.paths = paths
        self.engine = engine or FFmpegEngine()
        self.voice = voice or provider.default_voice
        self.model = model or provider.default_model

        self.segmenter = ScriptSegmenter(max_chunk_length)
        self.speech = SpeechSynthesizer(provider, paths.chunk_dir, speech_cache)
        self.silence = SilenceSynthesizer(self.engine, paths.chunk_dir, silence_cache)
        self.coordinator = SynthesisCoordinator(
            self.speech, self.silence, executor, batch_size
        )
        self.assembler = AudioAssembler(self.engine, paths)
        self.mixer = BackgroundMixer(self.engine, paths, merge_cache)
        self.janitor = CacheJanitor.for_artifacts(paths, self.speech.cache, self.mixer.cache)
        self._generation_slots = asyncio.Semaphore(max_concurrent_generations)

    @classmethod
    def from_config(
        cls, config: MeditoneConfig, provider: TTSProvider | None = None
    ) -> "MeditationPipeline":
        """Build a pipeline from loaded configuration.

        Raises:
            KeyError: If the configured provider or executor is unknown
        """
        paths = config.paths.artifact_paths().ensure()
        ttl = timedelta(hours=config.cache.ttl_hours)
        cache_dir = config.paths.cache_dir

        if provider is None:
            provider = ProviderRegistry.get_instance(config.tts.provider)

        return cls(
            provider=provider,
            paths=paths,
            engine=FFmpegEngine(config.ffmpeg.ffmpeg, config.ffmpeg.ffprobe),
            speech_cache=create_cache("speech", config.cache.backend, ttl, cache_dir),
            merge_cache=create_cache("merge", config.cache.backend, ttl, cache_dir),
            executor=get_executor(config.pipeline.executor),
            batch_size=config.pipeline.batch_size,
            max_chunk_length=config.pipeline.max_chunk_length,
            max_concurrent_generations=config.pipeline.max_concurrent_generations,
            voice=config.tts.voice,
            model=config.tts.model,
        )

    async def generate_audio(
        self,
        script: str,
        voice: str | None = None,
        model: str | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> GenerationResult:
        """Turn a script with pause markers into one speech track.

        Units that fail to synthesize are dropped and counted; the call only
        fails when nothing at all could be produced.

        Args:
            script: Text with optional {{PAUSE_Ns}} markers
            voice: Voice override, defaults to the pipeline voice
            model: Model override, defaults to the pipeline model
            on_progress: Called with (completed, total) units after each batch

        Returns:
            GenerationResult with the track URL and per-unit counts

        Raises:
            SegmentationError: If the script is malformed or has no content
            ValueError: If voice or model is not supported by the provider
            AssemblyError: If no unit survived or concatenation failed
        """
        self._start_janitor()
        started = time.perf_counter()
        voice = voice or self.voice
        model = model or self.model
        self.provider.validate(voice, model)

        units = self.segmenter.segment(script)
        if not units:
            raise SegmentationError("Script has no content")

        async with self._generation_slots:
            logger.info(
                f"Generating {len(units)} units with {self.provider.name} "
                f"voice={voice} model={model}"
            )
            artifacts = await self.coordinator.process(units, voice, model, on_progress)

            files = [artifact.path for artifact in artifacts if artifact is not None]
            if not files:
                raise AssemblyError(f"No audio produced: all {len(units)} units failed")
            track = await self.assembler.assemble(files)

        cached = synthesized = silence = dropped = 0
        for unit, artifact in zip(units, artifacts):
            if artifact is None:
                dropped += 1
            elif unit.kind is UnitKind.SILENCE:
                silence += 1
            elif artifact.cached:
                cached += 1
            else:
                synthesized += 1

        if dropped:
            logger.warning(f"Track assembled with {dropped}/{len(units)} units dropped")

        return GenerationResult(
            audio_url=self.paths.url_for(track.path),
            audio_path=track.path,
            chunks_processed=len(units),
            generation_time_seconds=time.perf_counter() - started,
            cached_chunks=cached,
            synthesized_chunks=synthesized,
            silence_chunks=silence,
            dropped_chunks=dropped,
        )

    async def mix_with_music(
        self,
        speech_url: str,
        music_url: str,
        speech_volume: float = DEFAULT_SPEECH_VOLUME,
        music_volume: float = DEFAULT_MUSIC_VOLUME,
    ) -> MixResult:
        """Mix background music under a generated speech track.

        Raises:
            ValueError: If a volume is negative or not finite
            NotFoundError: If either URL does not name an existing file
            MixError: If ffmpeg fails
        """
        self._start_janitor()
        started = time.perf_counter()
        artifact = await self.mixer.mix(speech_url, music_url, speech_volume, music_volume)
        return MixResult(
            mixed_audio_url=self.paths.url_for(artifact.path),
            mixed_audio_path=artifact.path,
            merge_time_seconds=time.perf_counter() - started,
            cached=artifact.cached,
        )

    def _start_janitor(self) -> None:
        # First use in an event loop clears what earlier runs left behind
        if self.janitor.running:
            return
        self.janitor.start()
        self.janitor.run_once()

    def sweep(self) -> int:
        """Run one eviction pass over the caches and artifact directories."""
        return self.janitor.run_once()

    async def aclose(self) -> None:
        """Stop the background janitor started by the first request."""
        await self.janitor.stop()


async def list_available_voices(provider: str = "openai") -> list[dict]:
    """List all available voices from specified provider.

    Args:
        provider: Provider name to list voices from

    Returns:
        Voices as {"id": ..., "name": ...} dicts

    Raises:
        TTSAuthError: If API key is not configured
        TTSAPIError: If API call fails
        KeyError: If provider not found
    """
    try:
        provider_instance = ProviderRegistry.get_instance(provider)
        return await provider_instance.list_voices()
    except (TTSAuthError, TTSAPIError, KeyError):
        raise
    except Exception as e:
        raise TTSAPIError(f"Failed to list voices: {e}", None, e) from e
