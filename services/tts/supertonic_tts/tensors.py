"""Tensor construction and shape bookkeeping

Every tensor handed to a model stage is a C-contiguous numpy array of
float32 or int64; the helpers here build them once per stage and check
the batch / time dimensions the stages rely on.
"""

from typing import Any, Optional, Sequence

import numpy as np

from .exceptions import ShapeMismatchError


def _walk(data: Any) -> np.ndarray:
    out = []
    stack = [data]
    while stack:
        item = stack.pop()
        if isinstance(item, (list, tuple)):
            stack.extend(reversed(item))
            continue
        try:
            out.append(float(item))
        except (TypeError, ValueError) as e:
            raise ShapeMismatchError(f"Non-numeric tensor element {item!r}") from e
    return np.asarray(out, dtype=np.float64)


def flatten(data: Any) -> np.ndarray:
    """Flatten arbitrarily nested numeric lists into a 1-D float array"""
    try:
        return np.asarray(data, dtype=np.float64).reshape(-1)
    except (TypeError, ValueError):
        # Ragged nesting or non-numeric leaves; walk the structure instead
        return _walk(data)


def to_tensor(data: Any, dims: Sequence[int], dtype=np.float32) -> np.ndarray:
    """Build a contiguous tensor of shape ``dims`` from nested data"""
    flat = flatten(data)
    expected = int(np.prod(dims)) if len(dims) else 1
    if flat.size != expected:
        raise ShapeMismatchError(
            f"Tensor has {flat.size} elements, expected {expected} for dims {list(dims)}"
        )
    return np.ascontiguousarray(flat.reshape(tuple(dims)), dtype=dtype)


def length_to_mask(lengths: Sequence[int], max_len: Optional[int] = None) -> np.ndarray:
    """Convert per-row lengths to a binary float32 mask of shape [B, 1, max_len]"""
    lengths = np.asarray(lengths, dtype=np.int64).reshape(-1)
    if max_len is None:
        max_len = int(lengths.max()) if lengths.size else 0
    ids = np.arange(max_len)
    mask = (ids[None, :] < lengths[:, None]).astype(np.float32)
    return mask.reshape(-1, 1, max_len)


def get_latent_mask(
    wav_lengths: Sequence[int],
    base_chunk_size: int,
    chunk_compress_factor: int,
    max_len: Optional[int] = None
) -> np.ndarray:
    """Latent-time validity mask derived from waveform lengths"""
    latent_size = base_chunk_size * chunk_compress_factor
    wav_lengths = np.asarray(wav_lengths, dtype=np.int64)
    latent_lengths = (wav_lengths + latent_size - 1) // latent_size
    return length_to_mask(latent_lengths, max_len=max_len)


def batch_scalar(value: float, batch_size: int) -> np.ndarray:
    """Per-row scalar input such as total_step / current_step"""
    return np.full((batch_size,), value, dtype=np.float32)


def require_batch(tensor: np.ndarray, batch_size: int, name: str) -> None:
    if tensor.ndim == 0 or tensor.shape[0] != batch_size:
        raise ShapeMismatchError(
            f"{name} has batch dimension {tensor.shape[:1]}, expected {batch_size}"
        )


def require_same_length(data: np.ndarray, mask: np.ndarray, name: str) -> None:
    """Mask and data must agree on the trailing (time) dimension"""
    if data.shape[-1] != mask.shape[-1]:
        raise ShapeMismatchError(
            f"{name} length {data.shape[-1]} does not match mask length {mask.shape[-1]}"
        )
