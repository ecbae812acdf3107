"""
Supertonic TTS Service
Text-to-speech synthesis with timestamped audio and SRT captions
"""

import asyncio
import json
import time
from typing import Any, Dict, List

from fastapi import FastAPI, HTTPException, Response, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from pydantic import ValidationError
import structlog
import redis.asyncio as redis

from .config import settings
from .tts_engine import SupertonicTTS
from .audio_processor import AudioProcessor
from .exceptions import EmptyInputError, InitializationError, TextTooLongError, TTSError, VoiceNotFoundError
from .metrics import metrics_endpoint, record_tts_request, tts_available_voices
from .models import ErrorMessage, ResultMessage, TTSRequest, TTSResponse, TTSResult, VoiceInfo
from .worker import SynthesisWorker, error_message

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    logger.info("Starting Supertonic TTS Service")

    loop = asyncio.get_running_loop()
    engine = await loop.run_in_executor(None, SupertonicTTS.from_settings, settings)
    await engine.voice_manager.load_voices()

    app.state.audio_processor = AudioProcessor()
    app.state.voice_manager = engine.voice_manager
    app.state.worker = SynthesisWorker(engine, app.state.audio_processor)
    app.state.redis = None

    if settings.enable_redis_transport:
        app.state.redis = redis.from_url(settings.redis_url)
        app.state.tts_subscriber = asyncio.create_task(
            tts_input_subscriber(app.state.redis, app.state.worker)
        )

    logger.info("Supertonic TTS Service initialized")

    yield

    logger.info("Shutting down Supertonic TTS Service")
    if app.state.redis is not None:
        app.state.tts_subscriber.cancel()
        await app.state.redis.close()
    app.state.worker.shutdown(wait=False)


app = FastAPI(
    title="Supertonic TTS Service",
    description="Text-to-speech synthesis with timestamped audio and captions",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_worker() -> SynthesisWorker:
    worker = getattr(app.state, "worker", None)
    if worker is None:
        raise HTTPException(status_code=503, detail="TTS engine not initialized")
    return worker


def http_error(error: Exception) -> HTTPException:
    """Map pipeline failures onto HTTP status codes"""
    if isinstance(error, VoiceNotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, (EmptyInputError, TextTooLongError)):
        return HTTPException(status_code=400, detail=str(error))
    if isinstance(error, InitializationError):
        return HTTPException(status_code=503, detail=str(error))
    return HTTPException(status_code=500, detail="TTS synthesis failed")


async def run_synthesis(request: TTSRequest) -> TTSResult:
    worker = get_worker()
    start_time = time.time()
    try:
        result = await worker.generate(request)
    except TTSError as e:
        logger.error("TTS synthesis failed", error=str(e), error_type=e.__class__.__name__, text=request.text[:50])
        record_tts_request("error")
        raise http_error(e)

    record_tts_request(
        "success",
        synthesis_time=time.time() - start_time,
        audio_duration=result.duration,
        chunks=len(result.timestamps)
    )
    return result


async def tts_input_subscriber(redis_client: redis.Redis, worker: SynthesisWorker):
    """Subscribe to TTS requests published on the input channel"""
    pubsub = redis_client.pubsub()
    await pubsub.subscribe(settings.redis_input_channel)
    logger.info("Subscribed to TTS input channel", channel=settings.redis_input_channel)

    async for message in pubsub.listen():
        if message["type"] == "message":
            try:
                data = json.loads(message["data"])
                await process_tts_request(data, worker, redis_client)
            except Exception as e:
                logger.error("Error processing TTS request", error=str(e))


async def process_tts_request(data: Dict[str, Any], worker: SynthesisWorker, redis_client: redis.Redis):
    """Run one channel request, publishing progress then a single result or error"""
    connection_id = data.get("connection_id")
    if not connection_id:
        logger.warning("Missing connection_id in TTS request")
        return

    async def publish(payload: Dict[str, Any]):
        payload["connection_id"] = connection_id
        await redis_client.publish(settings.redis_output_channel, json.dumps(payload))

    try:
        config = dict(data.get("config") or {})
        if data.get("voice_style") is not None:
            config["voice_style"] = data["voice_style"]
        request = TTSRequest(**config)
    except ValidationError as e:
        await publish(ErrorMessage(error="invalid_request", message=str(e)).model_dump())
        return

    logger.info("Synthesizing TTS", text=request.text[:50], voice=request.voice, connection_id=connection_id)
    async for message in worker.stream(request):
        await publish(message.model_dump())


@app.post("/synthesize", response_model=TTSResponse)
async def synthesize_text(request: TTSRequest):
    """Synthesize text to speech with timestamps and SRT captions"""
    start_time = time.time()
    result = await run_synthesis(request)
    audio_processor = app.state.audio_processor
    return TTSResponse(
        audio_data=audio_processor.to_base64_wav(result.wav, result.sample_rate),
        sample_rate=audio_processor.output_sample_rate(result.sample_rate),
        duration=result.duration,
        timestamps=result.timestamps,
        srt=result.srt,
        voice=request.voice,
        synthesis_time_ms=(time.time() - start_time) * 1000
    )


@app.post("/synthesize/audio")
async def synthesize_audio(request: TTSRequest):
    """Synthesize text and return the WAV file directly"""
    result = await run_synthesis(request)
    wav_data = app.state.audio_processor.to_wav_bytes(result.wav, result.sample_rate)
    return Response(
        content=wav_data,
        media_type="audio/wav",
        headers={"Content-Disposition": "attachment; filename=speech.wav"}
    )


@app.post("/synthesize/srt")
async def synthesize_srt(request: TTSRequest):
    """Synthesize text and return only the SRT captions"""
    result = await run_synthesis(request)
    return Response(content=result.srt, media_type="application/x-subrip")


@app.websocket("/generate")
async def websocket_generate(websocket: WebSocket):
    """Message-passing endpoint: request in, progress out, result or error out"""
    await websocket.accept()
    session_id = f"tts_ws_{id(websocket)}"

    try:
        while True:
            data = await websocket.receive_json()
            try:
                request = TTSRequest(**data)
            except ValidationError as e:
                await websocket.send_json(ErrorMessage(error="invalid_request", message=str(e)).model_dump())
                continue

            worker = getattr(app.state, "worker", None)
            if worker is None:
                await websocket.send_json(error_message(InitializationError("TTS engine not initialized")).model_dump())
                continue

            async for message in worker.stream(request):
                await websocket.send_json(message.model_dump())
                if isinstance(message, ResultMessage):
                    record_tts_request("success", audio_duration=message.duration, chunks=len(message.timestamps))
                elif isinstance(message, ErrorMessage):
                    record_tts_request("error")

    except WebSocketDisconnect:
        logger.info("TTS WebSocket disconnected", session_id=session_id)


@app.get("/voices", response_model=List[VoiceInfo])
async def get_available_voices():
    """Get list of available voices"""
    return await app.state.voice_manager.get_available_voices()


@app.get("/voices/{voice_id}", response_model=VoiceInfo)
async def get_voice(voice_id: str):
    """Get a single voice by id"""
    voice = await app.state.voice_manager.get_voice_by_id(voice_id)
    if voice is None:
        raise HTTPException(status_code=404, detail=f"Unknown voice: {voice_id}")
    return voice


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    worker = getattr(app.state, "worker", None)
    if worker is None:
        return {"status": "initializing", "service": "tts"}

    engine = worker.engine
    voices = await app.state.voice_manager.get_available_voices()
    return {
        "status": "healthy",
        "service": "tts",
        "sample_rate": engine.sample_rate,
        "total_step": engine.total_step,
        "available_voices": len(voices),
        "total_syntheses": engine.total_syntheses,
        "average_synthesis_time_ms": engine.get_average_synthesis_time()
    }


@app.get("/metrics")
async def get_metrics():
    """Get service metrics in Prometheus format"""
    voice_manager = getattr(app.state, "voice_manager", None)
    if voice_manager is not None:
        tts_available_voices.set(len(await voice_manager.get_available_voices()))
    return await metrics_endpoint()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.port, log_level="debug" if settings.debug else "info")
