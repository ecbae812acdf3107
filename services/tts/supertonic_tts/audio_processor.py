"""Audio encoding utilities for TTS service"""

import base64
import io
from typing import Optional

import librosa
import numpy as np
import soundfile as sf
import structlog

from .config import settings

logger = structlog.get_logger(__name__)

PCM_SUBTYPES = {16: "PCM_16", 24: "PCM_24", 32: "PCM_32"}


class AudioProcessor:
    """Converts float waveforms into transport formats"""

    def __init__(self, target_sample_rate: Optional[int] = None, bit_depth: Optional[int] = None):
        self.target_sample_rate = target_sample_rate if target_sample_rate is not None else settings.output_sample_rate
        self.subtype = PCM_SUBTYPES.get(bit_depth or settings.bit_depth, "PCM_16")

    def output_sample_rate(self, sample_rate: int) -> int:
        return self.target_sample_rate or sample_rate

    def resample(self, audio_data: np.ndarray, sample_rate: int) -> np.ndarray:
        """Resample to the configured output rate, if one is set"""
        target = self.output_sample_rate(sample_rate)
        if target == sample_rate or audio_data.size == 0:
            return audio_data
        return librosa.resample(audio_data, orig_sr=sample_rate, target_sr=target)

    def to_wav_bytes(self, audio_data: np.ndarray, sample_rate: int) -> bytes:
        """Encode mono float audio as a PCM WAV file in memory"""
        audio_data = np.asarray(audio_data, dtype=np.float32).reshape(-1)
        audio_data = np.clip(self.resample(audio_data, sample_rate), -1.0, 1.0)

        wav_buffer = io.BytesIO()
        sf.write(
            wav_buffer,
            audio_data,
            self.output_sample_rate(sample_rate),
            format="WAV",
            subtype=self.subtype
        )
        return wav_buffer.getvalue()

    def to_base64_wav(self, audio_data: np.ndarray, sample_rate: int) -> str:
        return base64.b64encode(self.to_wav_bytes(audio_data, sample_rate)).decode("utf-8")

    def write_wav(self, path: str, audio_data: np.ndarray, sample_rate: int):
        with open(path, "wb") as f:
            f.write(self.to_wav_bytes(audio_data, sample_rate))
        logger.debug("Wrote WAV file", path=path, samples=int(np.asarray(audio_data).size))
