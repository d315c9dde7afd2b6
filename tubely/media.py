"""Video inspection and processing through ffmpeg and ffprobe."""

from __future__ import annotations

import json
import subprocess
from typing import Union

_TOLERANCE = 0.01
_LANDSCAPE = 16.0 / 9.0
_PORTRAIT = 9.0 / 16.0


class MediaError(Exception):
    """Raised when a video cannot be processed or inspected."""


def process_video_for_fast_start(file_path: str) -> str:
    """Re-encode a video with its moov atom first; return the new file's path."""
    output_path = f"{file_path}.processing.mp4"
    command = [
        "ffmpeg",
        "-i", file_path,
        "-c:v", "libx264",
        "-preset", "fast",
        "-c:a", "aac",
        "-b:a", "192k",
        "-movflags", "+faststart",
        "-shortest",
        output_path,
    ]
    try:
        subprocess.run(
            command,
            check=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise MediaError(f"failed to run ffmpeg: {exc}") from exc
    return output_path


def parse_ffprobe_output(data: Union[str, bytes]) -> tuple[int, int]:
    """Return the width and height of the first stream in ffprobe's JSON output."""
    try:
        document = json.loads(data)
    except ValueError as exc:
        raise MediaError(f"failed to parse ffprobe output: {exc}") from exc
    if not isinstance(document, dict):
        raise MediaError("failed to parse ffprobe output: expected an object")
    streams = document.get("streams") or []
    if not isinstance(streams, list):
        raise MediaError("failed to parse ffprobe output: streams is not a list")
    if not streams:
        raise MediaError("no video streams found")
    first = streams[0]
    if not isinstance(first, dict):
        raise MediaError("failed to parse ffprobe output: stream is not an object")
    width = first.get("width", 0)
    height = first.get("height", 0)
    for value in (width, height):
        if isinstance(value, bool) or not isinstance(value, int):
            raise MediaError(
                f"failed to parse ffprobe output: dimension {value!r} is not an integer"
            )
    return width, height


def aspect_ratio_from_dimensions(width: int, height: int) -> str:
    """Classify dimensions as "16:9", "9:16" or "other"."""
    if width == 0 or height == 0:
        raise MediaError(f"invalid video dimensions: width={width}, height={height}")
    ratio = width / height
    if abs(ratio - _LANDSCAPE) < _TOLERANCE:
        return "16:9"
    if abs(ratio - _PORTRAIT) < _TOLERANCE:
        return "9:16"
    return "other"


def get_video_aspect_ratio(file_path: str) -> str:
    """Probe a video file with ffprobe and classify its aspect ratio."""
    command = [
        "ffprobe",
        "-v", "error",
        "-print_format", "json",
        "-show_streams",
        file_path,
    ]
    try:
        completed = subprocess.run(
            command,
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )
    except (OSError, subprocess.CalledProcessError) as exc:
        raise MediaError(f"failed to run ffprobe: {exc}") from exc
    width, height = parse_ffprobe_output(completed.stdout)
    return aspect_ratio_from_dimensions(width, height)


def orientation_prefix(aspect_ratio: str) -> str:
    """Map an aspect ratio to the storage key prefix used for the video."""
    return {"16:9": "landscape", "9:16": "portrait"}.get(aspect_ratio, "other")