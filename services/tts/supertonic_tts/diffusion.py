"""Masked flow-matching sampler over the vector estimator"""

import math
from typing import Optional, Tuple

import numpy as np
import structlog

from .exceptions import InferenceError
from .inference import Session, run_stage
from .models import EngineConfig
from .tensors import batch_scalar, get_latent_mask, require_batch, require_same_length

logger = structlog.get_logger(__name__)

UNIFORM_EPS = 1e-10


def box_muller(rng: np.random.Generator, shape: Tuple[int, ...]) -> np.ndarray:
    """Standard normal samples from two independent uniform draws each"""
    u1 = np.maximum(rng.random(shape), UNIFORM_EPS)
    u2 = rng.random(shape)
    return (np.sqrt(-2.0 * np.log(u1)) * np.cos(2.0 * np.pi * u2)).astype(np.float32)


class DiffusionSampler:
    """Denoises Gaussian latents for a fixed number of steps"""

    def __init__(
        self,
        session: Session,
        config: EngineConfig,
        total_step: int = 8,
        rng: Optional[np.random.Generator] = None
    ):
        if total_step < 1:
            raise ValueError("total_step must be at least 1")
        self.session = session
        self.config = config
        self.total_step = total_step
        self.rng = rng if rng is not None else np.random.default_rng()

    def latent_shape(self, duration: np.ndarray) -> Tuple[int, int, int]:
        wav_len_max = float(np.max(duration)) * self.config.sample_rate
        latent_len = max(1, math.ceil(wav_len_max / self.config.chunk_size))
        latent_dim = self.config.latent_dim * self.config.chunk_compress_factor
        return len(duration), latent_dim, latent_len

    def sample_noisy_latent(self, duration: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Masked noise [B, latentDim, latentLen] and its mask [B, 1, latentLen]"""
        duration = np.asarray(duration, dtype=np.float64).reshape(-1)
        shape = self.latent_shape(duration)
        wav_lengths = np.floor(duration * self.config.sample_rate).astype(np.int64)

        noisy_latent = box_muller(self.rng, shape)
        latent_mask = get_latent_mask(
            wav_lengths,
            self.config.base_chunk_size,
            self.config.chunk_compress_factor,
            max_len=shape[2]
        )
        return noisy_latent * latent_mask, latent_mask

    def sample(
        self,
        duration: np.ndarray,
        text_emb: np.ndarray,
        style_ttl: np.ndarray,
        text_mask: np.ndarray
    ) -> np.ndarray:
        """Run the full denoising loop and return the final latent"""
        latent, latent_mask = self.sample_noisy_latent(duration)
        batch_size = latent.shape[0]
        for name, tensor in (("text_emb", text_emb), ("style_ttl", style_ttl), ("text_mask", text_mask)):
            require_batch(tensor, batch_size, name)
        require_same_length(latent, latent_mask, "noisy_latent")

        total_step = batch_scalar(self.total_step, batch_size)
        logger.debug("Running diffusion", steps=self.total_step, latent_shape=list(latent.shape))

        for step in range(self.total_step):
            denoised = run_stage(self.session, "vector_estimator", "denoised_latent", {
                "noisy_latent": latent,
                "text_emb": text_emb,
                "style_ttl": style_ttl,
                "text_mask": text_mask,
                "latent_mask": latent_mask,
                "total_step": total_step,
                "current_step": batch_scalar(step, batch_size),
            })
            if denoised.shape != latent.shape:
                raise InferenceError(
                    f"vector_estimator step {step} returned shape {list(denoised.shape)}, "
                    f"expected {list(latent.shape)}",
                    stage="vector_estimator"
                )
            latent = np.ascontiguousarray(denoised, dtype=np.float32)

        return latent
