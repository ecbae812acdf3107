"""
Supertonic TTS Test Configuration

Fake ONNX sessions, a tiny engine geometry and on-disk voice bundles so the
whole pipeline runs without model files.
"""

import json
from pathlib import Path
from typing import Callable, Dict, List

import numpy as np
import pytest

from supertonic_tts.inference import InferenceSessions
from supertonic_tts.models import EngineConfig
from supertonic_tts.text_processor import UnicodeProcessor
from supertonic_tts.tts_engine import SupertonicTTS
from supertonic_tts.voice_manager import VoiceManager

# 100 Hz keeps sample counts readable: 1.0 s == 100 samples
SAMPLE_RATE = 100
BASE_CHUNK_SIZE = 5
CHUNK_COMPRESS_FACTOR = 2
LATENT_DIM = 2


class FakeSession:
    """Stands in for onnxruntime.InferenceSession, recording every feed"""

    def __init__(self, output_fn: Callable[[Dict[str, np.ndarray]], np.ndarray]):
        self.output_fn = output_fn
        self.calls: List[Dict[str, np.ndarray]] = []
        self.output_names: List[List[str]] = []

    def run(self, output_names, input_feed):
        self.calls.append({k: np.array(v) for k, v in input_feed.items()})
        self.output_names.append(list(output_names))
        return [self.output_fn(input_feed)]


def duration_output(seconds: float = 1.0):
    def fn(feed):
        return np.full((feed["text_ids"].shape[0],), seconds, dtype=np.float32)
    return fn


def text_encoder_output(feed):
    batch_size, text_len = feed["text_ids"].shape
    return np.zeros((batch_size, 8, text_len), dtype=np.float32)


def vector_estimator_output(feed):
    return feed["noisy_latent"] * 0.5


def vocoder_output(feed):
    batch_size, _, latent_len = feed["latent"].shape
    samples = latent_len * BASE_CHUNK_SIZE * CHUNK_COMPRESS_FACTOR
    return np.full((batch_size, samples), 0.1, dtype=np.float32)


def style_bundle(ttl_dims=(1, 2, 3), dp_dims=(1, 2, 2)) -> Dict:
    def entry(dims):
        count = dims[1] * dims[2]
        data = np.linspace(-1.0, 1.0, count).reshape(dims).tolist()
        return {"dims": list(dims), "data": data}
    return {"style_ttl": entry(ttl_dims), "style_dp": entry(dp_dims)}


@pytest.fixture
def engine_config() -> EngineConfig:
    return EngineConfig(
        sample_rate=SAMPLE_RATE,
        base_chunk_size=BASE_CHUNK_SIZE,
        chunk_compress_factor=CHUNK_COMPRESS_FACTOR,
        latent_dim=LATENT_DIM
    )


@pytest.fixture
def fake_sessions() -> InferenceSessions:
    return InferenceSessions(
        duration_predictor=FakeSession(duration_output(1.0)),
        text_encoder=FakeSession(text_encoder_output),
        vector_estimator=FakeSession(vector_estimator_output),
        vocoder=FakeSession(vocoder_output),
    )


@pytest.fixture
def indexer() -> List[int]:
    """ASCII identity map with '~' marked as out of vocabulary"""
    table = list(range(128))
    table[ord("~")] = -1
    return table


@pytest.fixture
def styles_dir(tmp_path: Path) -> Path:
    path = tmp_path / "voice_styles"
    path.mkdir()
    for voice_id in ("F1", "M1"):
        (path / f"{voice_id}.json").write_text(json.dumps(style_bundle()), encoding="utf-8")
    return path


@pytest.fixture
def voice_manager(styles_dir: Path) -> VoiceManager:
    return VoiceManager(styles_dir)


@pytest.fixture
def engine(fake_sessions, engine_config, indexer, voice_manager) -> SupertonicTTS:
    return SupertonicTTS(
        sessions=fake_sessions,
        config=engine_config,
        text_processor=UnicodeProcessor(indexer),
        voice_manager=voice_manager,
        total_step=3,
        max_chunk_length=300,
        max_text_length=1000,
        rng=np.random.default_rng(0)
    )
