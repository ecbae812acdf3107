"""ONNX Runtime session handles for the four model stages"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

import numpy as np
import onnxruntime as ort
import structlog

from .exceptions import InferenceError, InitializationError

logger = structlog.get_logger(__name__)

MODEL_FILES = {
    "duration_predictor": "duration_predictor.onnx",
    "text_encoder": "text_encoder.onnx",
    "vector_estimator": "vector_estimator.onnx",
    "vocoder": "vocoder.onnx",
}

GRAPH_OPTIMIZATION_LEVELS = {
    "disable": ort.GraphOptimizationLevel.ORT_DISABLE_ALL,
    "basic": ort.GraphOptimizationLevel.ORT_ENABLE_BASIC,
    "extended": ort.GraphOptimizationLevel.ORT_ENABLE_EXTENDED,
    "all": ort.GraphOptimizationLevel.ORT_ENABLE_ALL,
}


class Session(Protocol):
    """Anything that executes a graph the way onnxruntime.InferenceSession does"""

    def run(self, output_names: Optional[List[str]], input_feed: Dict[str, np.ndarray]) -> List[Any]:
        ...


@dataclass(frozen=True)
class InferenceSessions:
    """Loaded model graphs, owned by the caller and shared read-only"""
    duration_predictor: Session
    text_encoder: Session
    vector_estimator: Session
    vocoder: Session

    @classmethod
    def load(
        cls,
        onnx_dir: Union[str, Path],
        providers: Sequence[str] = ("CPUExecutionProvider",),
        graph_optimization: str = "all",
        intra_op_threads: int = 0
    ) -> "InferenceSessions":
        """Create all four sessions from ``onnx_dir``"""
        onnx_dir = Path(onnx_dir)
        options = ort.SessionOptions()
        options.graph_optimization_level = GRAPH_OPTIMIZATION_LEVELS.get(
            graph_optimization, ort.GraphOptimizationLevel.ORT_ENABLE_ALL
        )
        if intra_op_threads > 0:
            options.intra_op_num_threads = intra_op_threads

        sessions = {}
        for stage, filename in MODEL_FILES.items():
            model_path = onnx_dir / filename
            logger.info("Loading ONNX model", stage=stage, path=str(model_path))
            try:
                sessions[stage] = ort.InferenceSession(
                    str(model_path),
                    sess_options=options,
                    providers=list(providers)
                )
            except Exception as e:
                logger.error("Failed to load ONNX model", stage=stage, error=str(e))
                raise InitializationError(f"Failed to load {stage} from {model_path}: {e}") from e

        logger.info("ONNX sessions created", providers=list(providers))
        return cls(**sessions)


def run_stage(
    session: Session,
    stage: str,
    output_name: str,
    feed: Dict[str, np.ndarray]
) -> np.ndarray:
    """Run one graph and return its single named output"""
    try:
        outputs = session.run([output_name], feed)
    except Exception as e:
        raise InferenceError(f"{stage} failed: {e}", stage=stage) from e

    if not outputs or outputs[0] is None:
        raise InferenceError(f"{stage} returned no '{output_name}' output", stage=stage)
    return np.asarray(outputs[0])
