"""SRT caption rendering"""

from typing import List, Sequence

from .models import Timestamp


def format_srt_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS,mmm"""
    total_ms = max(0, int(round(seconds * 1000)))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, millis = divmod(rem, 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d},{millis:03d}"


def generate_srt(timestamps: Sequence[Timestamp]) -> str:
    lines: List[str] = []
    for index, ts in enumerate(timestamps, start=1):
        lines.append(str(index))
        lines.append(f"{format_srt_time(ts.start)} --> {format_srt_time(ts.end)}")
        lines.append(ts.text)
        lines.append("")
    return "\n".join(lines)
