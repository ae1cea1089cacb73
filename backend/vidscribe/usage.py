"""
Usage accounting: minutes derived from transcript length, and upload limits.
"""

from __future__ import annotations

from typing import Optional
from urllib.parse import urlparse

WORDS_PER_MINUTE = 150
MIN_BILLABLE_MINUTES = 0.1
MINUTES_PRECISION = 1  # decimal places

DEFAULT_MAX_UPLOAD_SIZE_BYTES = 100 * 1024 * 1024  # 100MB
ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv"}


def count_words(text: Optional[str]) -> int:
    return len((text or "").split())


def calculate_minutes(text: Optional[str]) -> float:
    """Approximate audio minutes from a finished transcript at 150 words/minute."""
    minutes = count_words(text) / WORDS_PER_MINUTE
    return max(MIN_BILLABLE_MINUTES, round(minutes, MINUTES_PRECISION))


def display_name(filename: Optional[str], video_url: Optional[str]) -> str:
    if filename and filename.strip():
        return filename.strip()
    try:
        path = urlparse(video_url or "").path
    except ValueError:
        return "Untitled"
    return path.split("/")[-1] or "Untitled"
