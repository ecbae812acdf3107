"""Voice catalogue and style bundle loading"""

import json
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import numpy as np
import structlog

from .exceptions import InitializationError, ShapeMismatchError, VoiceNotFoundError
from .models import VoiceInfo
from .tensors import to_tensor

logger = structlog.get_logger(__name__)

# Voice ids shipped with the model, with display names
VOICE_MAP: Dict[str, str] = {
    "F1": "Ava",
    "F2": "Sophia",
    "F3": "Isabella",
    "F4": "Mia",
    "F5": "Luna",
    "M1": "Liam",
    "M2": "Ethan",
    "M3": "Noah",
    "M4": "Lucas",
    "M5": "Oliver",
}


@dataclass(frozen=True)
class VoiceStyle:
    """Conditioning tensors for one voice, each shaped [1, D1, D2]"""
    voice_id: str
    ttl: np.ndarray
    dp: np.ndarray


def _style_tensor(voice_id: str, role: str, entry: Mapping[str, Any]) -> np.ndarray:
    try:
        dims = [int(d) for d in entry["dims"]]
        data = entry["data"]
    except (KeyError, TypeError, ValueError) as e:
        raise ShapeMismatchError(f"Voice {voice_id}: {role} is missing dims/data") from e

    if len(dims) != 3:
        raise ShapeMismatchError(f"Voice {voice_id}: {role} dims {dims} must have 3 entries")

    logger.debug("Parsing voice style", voice=voice_id, role=role, dims=dims)
    try:
        tensor = to_tensor(data, (1, dims[1], dims[2]))
    except ShapeMismatchError as e:
        raise ShapeMismatchError(f"Voice {voice_id}: {role}: {e}") from e

    tensor.setflags(write=False)
    return tensor


class VoiceManager:
    """Manage available voices and cache their style tensors"""

    def __init__(self, styles_path: Union[str, Path], voice_map: Optional[Dict[str, str]] = None):
        self.styles_path = Path(styles_path)
        self.voice_map = dict(VOICE_MAP if voice_map is None else voice_map)
        self.available_voices: List[VoiceInfo] = []
        self.voice_cache: Dict[str, VoiceStyle] = {}
        self._lock = threading.Lock()

    async def load_voices(self):
        """Build the voice listing from bundles present on disk"""
        voices = []
        for voice_id, name in self.voice_map.items():
            if not (self.styles_path / f"{voice_id}.json").exists():
                logger.warning("Voice style bundle missing", voice=voice_id)
                continue
            voices.append(VoiceInfo(
                voice_id=voice_id,
                name=name,
                gender="female" if voice_id.startswith("F") else "male",
            ))
        self.available_voices = voices
        logger.info("Loaded voices", count=len(voices))

    async def get_available_voices(self) -> List[VoiceInfo]:
        """Get all available voices"""
        return self.available_voices

    async def get_voice_by_id(self, voice_id: str) -> Optional[VoiceInfo]:
        """Get voice by ID"""
        for voice in self.available_voices:
            if voice.voice_id == voice_id:
                return voice
        return None

    def get_voices_by_gender(self, gender: str) -> List[VoiceInfo]:
        return [voice for voice in self.available_voices if voice.gender == gender]

    def parse_style(self, voice_id: str, bundle: Mapping[str, Any]) -> VoiceStyle:
        """Validate an in-memory style bundle without touching the cache"""
        try:
            ttl_entry = bundle["style_ttl"]
            dp_entry = bundle["style_dp"]
        except (KeyError, TypeError) as e:
            raise ShapeMismatchError(f"Voice {voice_id}: bundle lacks style_ttl/style_dp") from e

        style = VoiceStyle(
            voice_id=voice_id,
            ttl=_style_tensor(voice_id, "style_ttl", ttl_entry),
            dp=_style_tensor(voice_id, "style_dp", dp_entry),
        )
        logger.info(
            "Loaded voice style",
            voice=voice_id,
            ttl_shape=list(style.ttl.shape),
            dp_shape=list(style.dp.shape)
        )
        return style

    def load_style(self, voice_id: str) -> VoiceStyle:
        """Load a voice style by id, parsing its bundle at most once"""
        with self._lock:
            cached = self.voice_cache.get(voice_id)
            if cached is not None:
                return cached

            if self.voice_map and voice_id not in self.voice_map:
                raise VoiceNotFoundError(f"Unknown voice: {voice_id}")

            path = self.styles_path / f"{voice_id}.json"
            try:
                bundle = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                logger.error("Failed to read voice style", voice=voice_id, path=str(path), error=str(e))
                raise InitializationError(f"Failed to load voice style {voice_id}: {e}") from e

            style = self.parse_style(voice_id, bundle)
            self.voice_cache[voice_id] = style
            return style

    def clear_cache(self):
        with self._lock:
            self.voice_cache.clear()
        logger.info("Voice style cache cleared")
