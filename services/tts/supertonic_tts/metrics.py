from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST
from fastapi import Response

# TTS service metrics
tts_requests_total = Counter('tts_requests_total', 'Total TTS generation requests', ['status'])
tts_synthesis_seconds = Histogram('tts_synthesis_seconds', 'Wall time spent synthesizing a request')
tts_audio_seconds = Histogram('tts_audio_seconds', 'Duration of generated audio')
tts_chunks_per_request = Histogram('tts_chunks_per_request', 'Text units per request', buckets=(1, 2, 4, 8, 16, 32, 64))
tts_available_voices = Gauge('tts_available_voices', 'Number of available voices')


def record_tts_request(status: str, synthesis_time: float = None, audio_duration: float = None, chunks: int = None):
    """Record TTS request metrics"""
    tts_requests_total.labels(status=status).inc()
    if synthesis_time is not None:
        tts_synthesis_seconds.observe(synthesis_time)
    if audio_duration is not None:
        tts_audio_seconds.observe(audio_duration)
    if chunks is not None:
        tts_chunks_per_request.observe(chunks)


async def metrics_endpoint():
    """Prometheus metrics endpoint"""
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
