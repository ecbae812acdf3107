"""Data models for Supertonic TTS service"""

import json
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .config import settings
from .exceptions import InitializationError


class TTSRequest(BaseModel):
    """TTS generation request"""
    text: str = Field(min_length=1)
    voice: str = Field(default_factory=lambda: settings.default_voice)
    speed: float = Field(default_factory=lambda: settings.default_speed, gt=0)
    silence_duration: float = Field(default_factory=lambda: settings.default_silence_duration, ge=0)
    end_silence_duration: float = Field(default_factory=lambda: settings.default_end_silence_duration, ge=0)
    session_id: Optional[str] = None
    # Inline style bundle; when set it is used instead of the shipped one for `voice`
    voice_style: Optional[Dict[str, Any]] = None


class Timestamp(BaseModel):
    """Time range of one synthesized unit, in seconds"""
    text: str
    start: float
    end: float


class TTSResult(BaseModel):
    """Concatenated waveform with its timeline"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    wav: np.ndarray
    sample_rate: int
    duration: float
    timestamps: List[Timestamp] = []
    srt: str = ""


class TTSResponse(BaseModel):
    """HTTP representation of a TTSResult"""
    audio_data: str  # Base64 encoded WAV
    sample_rate: int
    duration: float
    timestamps: List[Timestamp]
    srt: str
    voice: str
    synthesis_time_ms: float


class VoiceInfo(BaseModel):
    """Voice information"""
    voice_id: str
    name: str
    language: str = "en"
    gender: str
    engine: str = "supertonic"
    neural: bool = True
    sample_rate: Optional[int] = None


class EngineConfig(BaseModel):
    """Model geometry read from tts.json"""
    model_config = ConfigDict(frozen=True)

    sample_rate: int = Field(gt=0)
    base_chunk_size: int = Field(gt=0)
    chunk_compress_factor: int = Field(gt=0)
    latent_dim: int = Field(gt=0)

    @property
    def chunk_size(self) -> int:
        """Waveform samples covered by one latent frame"""
        return self.base_chunk_size * self.chunk_compress_factor

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        try:
            return cls(
                sample_rate=data["ae"]["sample_rate"],
                base_chunk_size=data["ae"]["base_chunk_size"],
                chunk_compress_factor=data["ttl"]["chunk_compress_factor"],
                latent_dim=data["ttl"]["latent_dim"],
            )
        except (KeyError, TypeError, ValidationError) as e:
            raise InitializationError(f"Invalid engine config: {e}") from e

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "EngineConfig":
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise InitializationError(f"Failed to read engine config {path}: {e}") from e
        return cls.from_dict(data)


class SynthesisProgress(BaseModel):
    """Progress event emitted once per completed unit"""
    message: str
    chunk_index: int
    total_chunks: int


# Worker / transport messages

class ProgressMessage(BaseModel):
    type: Literal["progress"] = "progress"
    message: str
    chunk_index: Optional[int] = None
    total_chunks: Optional[int] = None


class ResultMessage(BaseModel):
    type: Literal["result"] = "result"
    audio_data: str
    sample_rate: int
    duration: float
    timestamps: List[Timestamp]
    srt: str


class ErrorMessage(BaseModel):
    type: Literal["error"] = "error"
    error: str
    message: str


WorkerMessage = Union[ProgressMessage, ResultMessage, ErrorMessage]
