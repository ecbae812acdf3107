"""Error taxonomy for the synthesis pipeline"""


class TTSError(Exception):
    """Base class for all synthesis failures"""

    code = "tts_error"


class InitializationError(TTSError):
    """Engine, model asset or voice resource failed to load"""

    code = "initialization_error"


class ShapeMismatchError(TTSError):
    """A tensor does not have the dimensions a stage expects"""

    code = "shape_mismatch"


class InferenceError(TTSError):
    """An engine invocation failed or returned a malformed output"""

    code = "inference_error"

    def __init__(self, message: str, stage: str = None):
        super().__init__(message)
        self.stage = stage


class EmptyInputError(TTSError):
    """Text normalizes to nothing that can be synthesized"""

    code = "empty_input"


class MediaEncodingError(TTSError):
    """The external media encoder exited with an error"""

    code = "media_encoding_error"


class VoiceNotFoundError(InitializationError):
    """Requested voice id has no style bundle"""

    code = "voice_not_found"


class TextTooLongError(TTSError):
    """Input text exceeds the configured character limit"""

    code = "text_too_long"
