"""Supertonic synthesis engine: text in, timestamped waveform out"""

import json
import time
from pathlib import Path
from typing import Callable, List, Optional, Tuple

import numpy as np
import structlog

from .config import Settings
from .diffusion import DiffusionSampler
from .exceptions import EmptyInputError, InitializationError, TextTooLongError
from .inference import InferenceSessions
from .models import EngineConfig, SynthesisProgress, TTSRequest, TTSResult
from .stages import encode_text, predict_duration, vocode
from .subtitles import generate_srt
from .text_processor import UnicodeProcessor, prepare_units
from .timeline import Timeline
from .voice_manager import VoiceManager, VoiceStyle

logger = structlog.get_logger(__name__)

ProgressCallback = Callable[[SynthesisProgress], None]


class SupertonicTTS:
    """Four-stage ONNX text-to-speech pipeline.

    The engine holds no per-request state: sessions, config and the voice
    style cache are shared read-only, and every call to ``generate``
    allocates its own tensors. Calls are synchronous; run them on a
    dedicated worker (see ``worker.SynthesisWorker``) to keep an event
    loop responsive.
    """

    def __init__(
        self,
        sessions: InferenceSessions,
        config: EngineConfig,
        text_processor: UnicodeProcessor,
        voice_manager: VoiceManager,
        total_step: int = 8,
        max_chunk_length: int = 300,
        max_text_length: Optional[int] = None,
        rng: Optional[np.random.Generator] = None
    ):
        self.sessions = sessions
        self.config = config
        self.text_processor = text_processor
        self.voice_manager = voice_manager
        self.total_step = total_step
        self.max_chunk_length = max_chunk_length
        self.max_text_length = max_text_length
        self.sampler = DiffusionSampler(
            sessions.vector_estimator, config, total_step=total_step, rng=rng
        )

        # Metrics
        self.total_syntheses = 0
        self.synthesis_times: List[float] = []
        self.total_audio_duration = 0.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "SupertonicTTS":
        """Load config, indexer, sessions and voices from ``settings.model_path``"""
        model_path = Path(settings.model_path)
        onnx_dir = model_path / settings.onnx_subdir
        logger.info("Initializing Supertonic TTS", model_path=str(model_path))

        config = EngineConfig.from_file(onnx_dir / settings.engine_config_file)

        indexer_path = onnx_dir / settings.unicode_indexer_file
        try:
            indexer = json.loads(indexer_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise InitializationError(f"Failed to read unicode indexer {indexer_path}: {e}") from e

        sessions = InferenceSessions.load(
            onnx_dir,
            providers=settings.onnx_providers,
            graph_optimization=settings.onnx_graph_optimization,
            intra_op_threads=settings.onnx_intra_op_threads
        )
        rng = np.random.default_rng(settings.noise_seed)

        engine = cls(
            sessions=sessions,
            config=config,
            text_processor=UnicodeProcessor(indexer),
            voice_manager=VoiceManager(model_path / settings.voice_styles_subdir),
            total_step=settings.total_step,
            max_chunk_length=settings.max_chunk_length,
            max_text_length=settings.max_text_length,
            rng=rng
        )
        logger.info(
            "Supertonic TTS initialized",
            sample_rate=config.sample_rate,
            total_step=settings.total_step
        )
        return engine

    @property
    def sample_rate(self) -> int:
        return self.config.sample_rate

    def infer(
        self,
        text_list: List[str],
        style: VoiceStyle,
        speed: float
    ) -> Tuple[np.ndarray, np.ndarray]:
        """Synthesize a batch of units; returns (wav [B, samples], duration [B])"""
        batch_size = len(text_list)
        text_ids, text_mask = self.text_processor(text_list)

        style_ttl, style_dp = style.ttl, style.dp
        if batch_size > 1:
            style_ttl = np.repeat(style_ttl, batch_size, axis=0)
            style_dp = np.repeat(style_dp, batch_size, axis=0)

        duration = predict_duration(
            self.sessions.duration_predictor, text_ids, text_mask, style_dp, speed
        )
        text_emb = encode_text(self.sessions.text_encoder, text_ids, text_mask, style_ttl)
        latent = self.sampler.sample(duration, text_emb, style_ttl, text_mask)
        wav = vocode(self.sessions.vocoder, latent)
        return wav, duration

    def generate(
        self,
        request: TTSRequest,
        on_progress: Optional[ProgressCallback] = None
    ) -> TTSResult:
        """Run the full pipeline for one request.

        Any stage failure propagates and discards the audio produced so
        far; no partial result is ever returned.
        """
        start_time = time.time()

        if self.max_text_length and len(request.text) > self.max_text_length:
            raise TextTooLongError(f"Text exceeds {self.max_text_length} characters")

        units = prepare_units(request.text, max_len=self.max_chunk_length)
        if not any(units):
            raise EmptyInputError("Text contains nothing to synthesize")

        if request.voice_style is not None:
            style = self.voice_manager.parse_style(request.voice, request.voice_style)
        else:
            style = self.voice_manager.load_style(request.voice)
        timeline = Timeline(self.sample_rate, request.silence_duration)

        logger.info("Processing text chunks", chunks=len(units), voice=request.voice, speed=request.speed)
        for index, unit in enumerate(units):
            wav, duration = self.infer([unit], style, request.speed)
            timeline.add(unit, wav[0], float(duration[0]))

            if on_progress is not None:
                percent = round((index + 1) / len(units) * 100)
                on_progress(SynthesisProgress(
                    message=f"Generating speech {percent}%...",
                    chunk_index=index,
                    total_chunks=len(units)
                ))

        wav, total_duration, timestamps = timeline.finish(request.end_silence_duration)
        result = TTSResult(
            wav=wav,
            sample_rate=self.sample_rate,
            duration=total_duration,
            timestamps=timestamps,
            srt=generate_srt(timestamps)
        )

        synthesis_time = time.time() - start_time
        self.total_syntheses += 1
        self.synthesis_times.append(synthesis_time)
        self.total_audio_duration += total_duration
        logger.info(
            "TTS synthesis complete",
            chunks=len(units),
            duration_s=round(total_duration, 3),
            synthesis_time_s=round(synthesis_time, 2)
        )
        return result

    def get_average_synthesis_time(self) -> float:
        """Get average synthesis time in milliseconds"""
        if not self.synthesis_times:
            return 0.0
        return sum(self.synthesis_times) / len(self.synthesis_times) * 1000
