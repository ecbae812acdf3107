"""Duration, text-encoding and vocoder stage glue"""

import numpy as np
import structlog

from .exceptions import InferenceError
from .inference import Session, run_stage
from .tensors import require_batch, require_same_length

logger = structlog.get_logger(__name__)


def predict_duration(
    session: Session,
    text_ids: np.ndarray,
    text_mask: np.ndarray,
    style_dp: np.ndarray,
    speed: float
) -> np.ndarray:
    """Predicted seconds per batch row, scaled by 1 / speed"""
    batch_size = text_ids.shape[0]
    require_batch(style_dp, batch_size, "style_dp")
    require_same_length(text_ids, text_mask, "text_ids")

    duration = run_stage(session, "duration_predictor", "duration", {
        "text_ids": text_ids,
        "style_dp": style_dp,
        "text_mask": text_mask,
    })
    duration = duration.astype(np.float32).reshape(-1)

    if duration.size != batch_size:
        raise InferenceError(
            f"duration_predictor returned {duration.size} values for batch of {batch_size}",
            stage="duration_predictor"
        )
    if not np.all(np.isfinite(duration)) or np.any(duration <= 0):
        raise InferenceError(
            f"duration_predictor returned non-positive duration {duration.tolist()}",
            stage="duration_predictor"
        )

    duration = duration / np.float32(speed)
    logger.debug("Duration predicted", duration=[round(float(d), 3) for d in duration], speed=speed)
    return duration


def encode_text(
    session: Session,
    text_ids: np.ndarray,
    text_mask: np.ndarray,
    style_ttl: np.ndarray
) -> np.ndarray:
    """Latent text embedding, passed unchanged to the diffusion sampler"""
    require_batch(style_ttl, text_ids.shape[0], "style_ttl")

    text_emb = run_stage(session, "text_encoder", "text_emb", {
        "text_ids": text_ids,
        "style_ttl": style_ttl,
        "text_mask": text_mask,
    })
    require_batch(text_emb, text_ids.shape[0], "text_emb")
    return text_emb


def vocode(session: Session, latent: np.ndarray) -> np.ndarray:
    """Waveform rows [B, samples] for a denoised latent"""
    wav = run_stage(session, "vocoder", "wav_tts", {"latent": latent})
    batch_size = latent.shape[0]
    if wav.size == 0 or wav.size % batch_size:
        raise InferenceError(
            f"vocoder returned {wav.size} samples for batch of {batch_size}",
            stage="vocoder"
        )
    return wav.astype(np.float32).reshape(batch_size, -1)
