"""Dedicated synthesis worker with message-passing interface"""

import asyncio
from concurrent.futures import ThreadPoolExecutor
from typing import AsyncIterator, Optional

import structlog

from .audio_processor import AudioProcessor
from .exceptions import TTSError
from .models import (
    ErrorMessage, ProgressMessage, ResultMessage, SynthesisProgress,
    TTSRequest, TTSResult, WorkerMessage
)
from .tts_engine import ProgressCallback, SupertonicTTS

logger = structlog.get_logger(__name__)


def error_message(error: Exception) -> ErrorMessage:
    code = error.code if isinstance(error, TTSError) else "internal_error"
    return ErrorMessage(error=code, message=str(error) or error.__class__.__name__)


class SynthesisWorker:
    """Runs the engine on one dedicated thread.

    Requests queue behind each other; stages never run concurrently.
    There is no mid-flight cancellation: a request finishes, fails, or
    the worker is shut down.
    """

    def __init__(self, engine: SupertonicTTS, audio_processor: Optional[AudioProcessor] = None):
        self.engine = engine
        self.audio_processor = audio_processor or AudioProcessor()
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="tts-worker")

    async def generate(
        self,
        request: TTSRequest,
        on_progress: Optional[ProgressCallback] = None
    ) -> TTSResult:
        """Run one request on the worker thread; progress callbacks run on the loop"""
        loop = asyncio.get_running_loop()

        def relay(progress: SynthesisProgress):
            if on_progress is not None:
                loop.call_soon_threadsafe(on_progress, progress)

        return await loop.run_in_executor(self._executor, self.engine.generate, request, relay)

    async def stream(self, request: TTSRequest) -> AsyncIterator[WorkerMessage]:
        """Yield progress messages followed by exactly one result or error"""
        queue: asyncio.Queue = asyncio.Queue()

        def on_progress(progress: SynthesisProgress):
            queue.put_nowait(ProgressMessage(
                message=progress.message,
                chunk_index=progress.chunk_index,
                total_chunks=progress.total_chunks
            ))

        task = asyncio.ensure_future(self.generate(request, on_progress))
        task.add_done_callback(lambda _: queue.put_nowait(None))

        yield ProgressMessage(message="Starting generation...")
        while True:
            message = await queue.get()
            if message is None:
                break
            yield message

        try:
            result = task.result()
        except Exception as e:
            logger.error("Synthesis request failed", error=str(e), error_type=e.__class__.__name__)
            yield error_message(e)
            return

        yield ResultMessage(
            audio_data=self.audio_processor.to_base64_wav(result.wav, result.sample_rate),
            sample_rate=self.audio_processor.output_sample_rate(result.sample_rate),
            duration=result.duration,
            timestamps=result.timestamps,
            srt=result.srt
        )

    def shutdown(self, wait: bool = True):
        self._executor.shutdown(wait=wait)
        logger.info("Synthesis worker stopped")
