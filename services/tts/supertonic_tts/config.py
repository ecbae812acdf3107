"""Configuration settings for Supertonic TTS service"""

from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings"""

    # Server
    port: int = 8006
    debug: bool = False

    # Redis transport (tts_input -> tts_output)
    redis_url: str = "redis://redis:6379"
    enable_redis_transport: bool = False
    redis_input_channel: str = "tts_input"
    redis_output_channel: str = "tts_output"

    # Model assets
    model_path: str = "/app/data/models/supertonic"
    onnx_subdir: str = "onnx"
    voice_styles_subdir: str = "voice_styles"
    engine_config_file: str = "tts.json"
    unicode_indexer_file: str = "unicode_indexer.json"

    # ONNX Runtime
    onnx_providers: List[str] = ["CPUExecutionProvider"]
    onnx_intra_op_threads: int = 0  # 0 lets onnxruntime decide
    onnx_graph_optimization: str = "all"  # disable, basic, extended, all

    # Pipeline constants
    total_step: int = 8  # Diffusion steps
    max_chunk_length: int = 300
    noise_seed: Optional[int] = None

    # Generation defaults
    default_voice: str = "F1"
    default_speed: float = 1.05
    default_silence_duration: float = 0.3
    default_end_silence_duration: float = 0.5

    # Audio settings
    output_sample_rate: Optional[int] = None  # None keeps the model rate
    bit_depth: int = 16

    # Limits
    max_text_length: int = 5000

    # Dubbing (ffmpeg)
    ffmpeg_binary: str = "ffmpeg"

    # Pydantic v2 settings configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        # Avoid conflict with fields like `model_path`
        protected_namespaces=("settings_",)
    )


settings = Settings()
