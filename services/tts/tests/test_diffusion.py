"""
Unit tests for the flow-matching sampler
"""

import numpy as np
import pytest

from conftest import FakeSession, vector_estimator_output
from supertonic_tts.diffusion import DiffusionSampler, box_muller
from supertonic_tts.exceptions import InferenceError


def sampler_inputs(batch_size=1, text_len=3):
    text_emb = np.zeros((batch_size, 8, text_len), dtype=np.float32)
    style_ttl = np.zeros((batch_size, 2, 3), dtype=np.float32)
    text_mask = np.ones((batch_size, 1, text_len), dtype=np.float32)
    return text_emb, style_ttl, text_mask


class TestBoxMuller:

    def test_standard_normal_statistics(self):
        samples = box_muller(np.random.default_rng(42), (20000,))

        assert samples.dtype == np.float32
        assert np.all(np.isfinite(samples))
        assert samples.mean() == pytest.approx(0.0, abs=0.05)
        assert samples.std() == pytest.approx(1.0, abs=0.05)

    def test_seeded_rng_is_reproducible(self):
        a = box_muller(np.random.default_rng(7), (2, 3))
        b = box_muller(np.random.default_rng(7), (2, 3))
        np.testing.assert_array_equal(a, b)


class TestNoisyLatent:

    def test_shape_and_mask(self, engine_config):
        sampler = DiffusionSampler(FakeSession(vector_estimator_output), engine_config,
                                   rng=np.random.default_rng(0))
        latent, mask = sampler.sample_noisy_latent(np.array([1.0, 0.25]))

        # 1.0 s at 100 Hz over 10-sample frames -> 10 frames; 4 channels
        assert latent.shape == (2, 4, 10)
        assert mask.shape == (2, 1, 10)
        assert mask[1, 0].tolist() == [1, 1, 1] + [0] * 7
        assert np.all(latent[1, :, 3:] == 0)
        assert np.any(latent[0] != 0)

    def test_minimum_one_frame(self, engine_config):
        sampler = DiffusionSampler(FakeSession(vector_estimator_output), engine_config)
        assert sampler.latent_shape(np.array([0.001]))[2] == 1


class TestSample:

    def test_runs_exactly_total_step_iterations(self, engine_config):
        session = FakeSession(vector_estimator_output)
        sampler = DiffusionSampler(session, engine_config, total_step=5, rng=np.random.default_rng(0))
        latent = sampler.sample(np.array([1.0]), *sampler_inputs())

        assert len(session.calls) == 5
        assert [float(c["current_step"][0]) for c in session.calls] == [0, 1, 2, 3, 4]
        assert all(float(c["total_step"][0]) == 5 for c in session.calls)
        assert latent.shape == (1, 4, 10)
        assert latent.dtype == np.float32

    def test_feeds_every_named_input(self, engine_config):
        session = FakeSession(vector_estimator_output)
        DiffusionSampler(session, engine_config, total_step=1).sample(np.array([1.0]), *sampler_inputs())

        assert set(session.calls[0]) == {
            "noisy_latent", "text_emb", "style_ttl", "text_mask",
            "latent_mask", "total_step", "current_step",
        }

    def test_each_step_consumes_previous_output(self, engine_config):
        session = FakeSession(vector_estimator_output)
        sampler = DiffusionSampler(session, engine_config, total_step=2, rng=np.random.default_rng(0))
        final = sampler.sample(np.array([1.0]), *sampler_inputs())

        np.testing.assert_allclose(session.calls[1]["noisy_latent"], session.calls[0]["noisy_latent"] * 0.5)
        np.testing.assert_allclose(final, session.calls[1]["noisy_latent"] * 0.5)

    def test_wrong_output_shape(self, engine_config):
        session = FakeSession(lambda feed: np.zeros((1, 4, 3), dtype=np.float32))
        sampler = DiffusionSampler(session, engine_config, total_step=2)

        with pytest.raises(InferenceError, match="step 0"):
            sampler.sample(np.array([1.0]), *sampler_inputs())

    def test_transposed_output_rejected(self, engine_config):
        """Same element count, wrong layout: [B, T, D] instead of [B, D, T]"""
        session = FakeSession(lambda feed: np.swapaxes(feed["noisy_latent"], 1, 2))
        sampler = DiffusionSampler(session, engine_config, total_step=2)

        with pytest.raises(InferenceError, match=r"returned shape \[1, 10, 4\]"):
            sampler.sample(np.array([1.0]), *sampler_inputs())
        assert len(session.calls) == 1

    def test_total_step_must_be_positive(self, engine_config):
        with pytest.raises(ValueError, match="at least 1"):
            DiffusionSampler(FakeSession(vector_estimator_output), engine_config, total_step=0)
