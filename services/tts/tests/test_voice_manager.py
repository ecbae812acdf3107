"""
Unit tests for voice style loading and caching
"""

import asyncio
import json

import numpy as np
import pytest

from conftest import style_bundle
from supertonic_tts.exceptions import InitializationError, ShapeMismatchError, VoiceNotFoundError
from supertonic_tts.voice_manager import VOICE_MAP, VoiceManager


class TestParseStyle:

    def test_valid_bundle(self, voice_manager):
        style = voice_manager.parse_style("F1", style_bundle())

        assert style.voice_id == "F1"
        assert style.ttl.shape == (1, 2, 3)
        assert style.dp.shape == (1, 2, 2)
        assert style.ttl.dtype == np.float32

    def test_style_tensors_are_read_only(self, voice_manager):
        style = voice_manager.parse_style("F1", style_bundle())
        with pytest.raises(ValueError):
            style.ttl[0, 0, 0] = 5.0

    def test_element_count_must_match_dims(self, voice_manager):
        bundle = style_bundle()
        bundle["style_ttl"] = {"dims": [1, 2, 3], "data": [[[0.1, 0.2, 0.3], [0.4, 0.5]]]}

        with pytest.raises(ShapeMismatchError, match="5 elements, expected 6"):
            voice_manager.parse_style("F1", bundle)

    def test_dims_must_have_three_entries(self, voice_manager):
        bundle = style_bundle()
        bundle["style_dp"] = {"dims": [2, 2], "data": [[0, 0], [0, 0]]}

        with pytest.raises(ShapeMismatchError, match="must have 3 entries"):
            voice_manager.parse_style("F1", bundle)

    def test_missing_entry(self, voice_manager):
        with pytest.raises(ShapeMismatchError):
            voice_manager.parse_style("F1", {"style_ttl": style_bundle()["style_ttl"]})

    @pytest.mark.parametrize("data", [
        {"values": [0.1, 0.2, 0.3, 0.4]},
        [[["a", "b"], ["c", "d"]]],
    ])
    def test_non_numeric_data(self, voice_manager, data):
        bundle = style_bundle()
        bundle["style_dp"] = {"dims": [1, 2, 2], "data": data}

        with pytest.raises(ShapeMismatchError, match="Voice F1: style_dp"):
            voice_manager.parse_style("F1", bundle)

    def test_non_numeric_bundle_on_disk(self, voice_manager, styles_dir):
        bundle = style_bundle()
        bundle["style_ttl"]["data"] = "not numbers"
        (styles_dir / "M3.json").write_text(json.dumps(bundle), encoding="utf-8")

        with pytest.raises(ShapeMismatchError):
            voice_manager.load_style("M3")


class TestLoadStyle:

    def test_cached_after_first_load(self, voice_manager, styles_dir):
        first = voice_manager.load_style("F1")
        (styles_dir / "F1.json").unlink()

        assert voice_manager.load_style("F1") is first

    def test_clear_cache_forces_reload(self, voice_manager, styles_dir):
        voice_manager.load_style("F1")
        voice_manager.clear_cache()
        (styles_dir / "F1.json").unlink()

        with pytest.raises(InitializationError):
            voice_manager.load_style("F1")

    def test_unknown_voice(self, voice_manager):
        with pytest.raises(VoiceNotFoundError, match="Unknown voice"):
            voice_manager.load_style("Z9")

    def test_known_voice_without_bundle(self, voice_manager):
        with pytest.raises(InitializationError) as exc_info:
            voice_manager.load_style("F2")
        assert not isinstance(exc_info.value, VoiceNotFoundError)

    def test_malformed_json(self, voice_manager, styles_dir):
        (styles_dir / "M2.json").write_text("{not json", encoding="utf-8")
        with pytest.raises(InitializationError, match="M2"):
            voice_manager.load_style("M2")


class TestVoiceListing:

    def test_lists_only_voices_present_on_disk(self, voice_manager):
        asyncio.run(voice_manager.load_voices())
        voices = asyncio.run(voice_manager.get_available_voices())

        assert [v.voice_id for v in voices] == ["F1", "M1"]
        assert voices[0].name == VOICE_MAP["F1"]
        assert voices[0].gender == "female"
        assert voices[1].gender == "male"

    def test_lookup_and_gender_filter(self, voice_manager):
        asyncio.run(voice_manager.load_voices())

        assert asyncio.run(voice_manager.get_voice_by_id("M1")).name == "Liam"
        assert asyncio.run(voice_manager.get_voice_by_id("M5")) is None
        assert [v.voice_id for v in voice_manager.get_voices_by_gender("male")] == ["M1"]

    def test_custom_voice_map(self, styles_dir):
        manager = VoiceManager(styles_dir, voice_map={"F1": "Narrator"})
        asyncio.run(manager.load_voices())

        assert [v.name for v in manager.available_voices] == ["Narrator"]
