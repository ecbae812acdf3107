"""Concatenates per-unit audio with silences and tracks timestamps"""

from typing import List, Tuple

import numpy as np

from .models import Timestamp


class Timeline:
    """Sequential waveform stitcher.

    Units must be added in segment order. Each unit's waveform is fitted
    to ``floor(duration * sample_rate)`` samples so the buffer length and
    the reported duration agree.
    """

    def __init__(self, sample_rate: int, silence_duration: float = 0.0):
        if silence_duration < 0:
            raise ValueError("silence_duration must be >= 0")
        self.sample_rate = sample_rate
        self.silence_duration = silence_duration
        self.current_time = 0.0
        self.total_duration = 0.0
        self.timestamps: List[Timestamp] = []
        self._parts: List[np.ndarray] = []

    def _samples(self, seconds: float) -> int:
        return int(np.floor(seconds * self.sample_rate))

    def _fit(self, wav: np.ndarray, duration: float) -> np.ndarray:
        wav = np.asarray(wav, dtype=np.float32).reshape(-1)
        n = self._samples(duration)
        if wav.size >= n:
            return wav[:n]
        return np.concatenate([wav, np.zeros(n - wav.size, dtype=np.float32)])

    def add(self, text: str, wav: np.ndarray, duration: float) -> Timestamp:
        """Append one unit and return its timestamp"""
        duration = float(duration)
        timestamp = Timestamp(text=text, start=self.current_time, end=self.current_time + duration)
        self.timestamps.append(timestamp)

        if self._parts:
            self._parts.append(np.zeros(self._samples(self.silence_duration), dtype=np.float32))
            self.total_duration += self.silence_duration
        self._parts.append(self._fit(wav, duration))
        self.total_duration += duration

        self.current_time += duration + self.silence_duration
        return timestamp

    def finish(self, end_silence_duration: float = 0.0) -> Tuple[np.ndarray, float, List[Timestamp]]:
        """Return (wav, total_duration, timestamps), adding trailing silence"""
        parts = list(self._parts)
        total = self.total_duration
        if end_silence_duration > 0 and parts:
            parts.append(np.zeros(self._samples(end_silence_duration), dtype=np.float32))
            total += end_silence_duration

        wav = np.concatenate(parts) if parts else np.zeros(0, dtype=np.float32)
        return wav, total, list(self.timestamps)
