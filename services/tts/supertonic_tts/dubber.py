"""ffmpeg adapter: dub a video with synthesized speech and burned-in captions"""

import asyncio
import os
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Union

import srt
import structlog
from pydantic import BaseModel, Field

from .audio_processor import AudioProcessor
from .config import settings
from .exceptions import MediaEncodingError
from .models import TTSResult

logger = structlog.get_logger(__name__)


class SubtitleStyle(BaseModel):
    font_size: int = 16
    outline: int = 2
    shadow: int = 1
    margin_v: int = 80

    def force_style(self) -> str:
        return ",".join([
            f"FontSize={self.font_size}",
            f"Outline={self.outline}",
            f"Shadow={self.shadow}",
            "Alignment=2",
            f"MarginV={self.margin_v}",
        ])


class DubOptions(BaseModel):
    bg_volume: float = Field(default=0.0, ge=0.0)
    subtitles: SubtitleStyle = SubtitleStyle()
    video_codec: str = "libx264"
    preset: str = "ultrafast"
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"


def build_ffmpeg_args(
    video_path: str,
    audio_path: str,
    subtitles_path: str,
    output_path: str,
    duration: float,
    options: Optional[DubOptions] = None,
    binary: str = "ffmpeg"
) -> List[str]:
    """Command line that loops the video, burns captions and maps the speech track.

    With ``bg_volume > 0`` the original soundtrack is mixed under the speech
    in the same filter graph; otherwise the speech replaces it.
    """
    options = options or DubOptions()
    style = options.subtitles.force_style()
    video_filter = f"[0:v]subtitles={subtitles_path}:force_style='{style}'[v]"

    args = [binary, "-y", "-stream_loop", "-1", "-i", video_path, "-i", audio_path]
    if options.bg_volume > 0:
        graph = (
            f"{video_filter};"
            f"[0:a]volume={options.bg_volume}[va];"
            "[1:a]volume=1.0[ta];"
            "[va][ta]amix=inputs=2:dropout_transition=0[outa]"
        )
        args += ["-filter_complex", graph, "-map", "[v]", "-map", "[outa]"]
    else:
        args += ["-filter_complex", video_filter, "-map", "[v]", "-map", "1:a:0"]

    args += [
        "-c:v", options.video_codec,
        "-preset", options.preset,
        "-pix_fmt", "yuv420p",
        "-c:a", options.audio_codec,
        "-b:a", options.audio_bitrate,
        "-t", str(duration),
        output_path,
    ]
    return args


def check_captions(content: str) -> List[srt.Subtitle]:
    """Parse captions before handing them to ffmpeg's subtitles filter"""
    try:
        return list(srt.parse(content))
    except (srt.SRTParseError, ValueError) as e:
        raise MediaEncodingError(f"Invalid SRT captions: {e}") from e


async def dub(
    result: TTSResult,
    video_path: Union[str, Path],
    output_path: Union[str, Path],
    options: Optional[DubOptions] = None,
    audio_processor: Optional[AudioProcessor] = None
) -> Path:
    """Write audio and captions to a scratch dir and run ffmpeg over them"""
    audio_processor = audio_processor or AudioProcessor()
    captions = check_captions(result.srt)
    binary = shutil.which(settings.ffmpeg_binary) or settings.ffmpeg_binary
    output_path = Path(output_path)

    with tempfile.TemporaryDirectory(prefix="dub_") as workdir:
        audio_path = os.path.join(workdir, "audio.wav")
        subtitles_path = os.path.join(workdir, "subtitles.srt")
        audio_processor.write_wav(audio_path, result.wav, result.sample_rate)
        Path(subtitles_path).write_text(result.srt, encoding="utf-8")

        # Trim to the speech length; the input video loops forever
        audio_duration = result.wav.size / result.sample_rate
        cmd = build_ffmpeg_args(
            str(video_path), audio_path, subtitles_path, str(output_path),
            audio_duration, options, binary=binary
        )
        logger.info("Running ffmpeg", command=" ".join(cmd), captions=len(captions))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
        except OSError as e:
            raise MediaEncodingError(f"Failed to start ffmpeg: {e}") from e
        _, stderr = await process.communicate()

        if process.returncode != 0:
            logger.error("ffmpeg failed", returncode=process.returncode, stderr=stderr.decode()[-2000:])
            raise MediaEncodingError(f"ffmpeg exited with code {process.returncode}")

    logger.info("Dubbed video written", output=str(output_path))
    return output_path
