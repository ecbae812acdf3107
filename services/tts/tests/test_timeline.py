"""
Unit tests for waveform concatenation and timestamp bookkeeping
"""

import numpy as np
import pytest

from supertonic_tts.timeline import Timeline

SR = 100


def tone(seconds: float, value: float = 0.5) -> np.ndarray:
    return np.full(int(seconds * SR), value, dtype=np.float32)


class TestTimeline:

    def test_single_unit_with_trailing_silence(self):
        timeline = Timeline(SR, silence_duration=0.3)
        timeline.add("Hello there. This is a test.", tone(2.0), 2.0)
        wav, total, timestamps = timeline.finish(end_silence_duration=0.5)

        assert [(t.start, t.end) for t in timestamps] == [(0.0, 2.0)]
        assert total == pytest.approx(2.5)
        assert wav.size == 250
        assert np.all(wav[200:] == 0)

    def test_two_units_separated_by_silence(self):
        timeline = Timeline(SR, silence_duration=0.3)
        timeline.add("First.", tone(1.5), 1.5)
        timeline.add("Second.", tone(2.0), 2.0)
        wav, total, timestamps = timeline.finish(end_silence_duration=0.0)

        assert timestamps[0].start == 0.0
        assert timestamps[0].end == pytest.approx(1.5)
        assert timestamps[1].start == pytest.approx(1.8)
        assert timestamps[1].end == pytest.approx(3.8)
        assert total == pytest.approx(3.8)
        assert wav.size == 380
        assert np.all(wav[150:180] == 0)
        assert np.all(wav[180:] == 0.5)

    def test_no_silence_before_first_unit(self):
        timeline = Timeline(SR, silence_duration=1.0)
        timeline.add("Only.", tone(1.0), 1.0)
        wav, total, _ = timeline.finish()

        assert wav.size == 100
        assert wav[0] == 0.5
        assert total == pytest.approx(1.0)

    def test_timestamps_are_ordered_and_non_overlapping(self):
        timeline = Timeline(SR, silence_duration=0.2)
        for seconds in (0.7, 1.1, 0.4, 2.3):
            timeline.add("x.", tone(seconds), seconds)
        _, total, timestamps = timeline.finish(0.5)

        for prev, cur in zip(timestamps, timestamps[1:]):
            assert prev.start < prev.end <= cur.start
            assert cur.start - prev.end == pytest.approx(0.2)
        assert total == pytest.approx(timestamps[-1].end + 0.5)

    def test_unit_audio_fitted_to_duration(self):
        timeline = Timeline(SR)
        timeline.add("Long.", tone(1.5), 1.0)
        timeline.add("Short.", tone(0.5), 1.0)
        wav, _, _ = timeline.finish()

        assert wav.size == 200
        assert np.all(wav[150:] == 0)

    def test_empty_timeline(self):
        wav, total, timestamps = Timeline(SR, 0.3).finish(0.5)
        assert wav.size == 0
        assert total == 0.0
        assert timestamps == []

    def test_negative_silence_rejected(self):
        with pytest.raises(ValueError):
            Timeline(SR, silence_duration=-0.1)
