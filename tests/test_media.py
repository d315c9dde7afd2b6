import json
import subprocess
from unittest.mock import patch

import pytest

from tubely.media import (
    MediaError,
    aspect_ratio_from_dimensions,
    get_video_aspect_ratio,
    orientation_prefix,
    parse_ffprobe_output,
    process_video_for_fast_start,
)


def _probe_json(*streams):
    return json.dumps({"streams": list(streams)}).encode()


@pytest.mark.parametrize(
    "width,height,expected",
    [
        (1920, 1080, "16:9"),
        (1280, 720, "16:9"),
        (1080, 1920, "9:16"),
        (720, 1280, "9:16"),
        (1000, 1000, "other"),
        (640, 480, "other"),
    ],
)
def test_aspect_ratio_classification(width, height, expected):
    assert aspect_ratio_from_dimensions(width, height) == expected


@pytest.mark.parametrize("width,height", [(0, 1080), (1920, 0), (0, 0)])
def test_zero_dimension_is_rejected(width, height):
    with pytest.raises(MediaError, match="invalid video dimensions"):
        aspect_ratio_from_dimensions(width, height)


def test_parse_ffprobe_uses_first_stream():
    data = _probe_json({"width": 1920, "height": 1080}, {"width": 10, "height": 20})
    assert parse_ffprobe_output(data) == (1920, 1080)


def test_parse_ffprobe_missing_dimensions_default_to_zero():
    data = _probe_json({"codec_type": "audio"})
    assert parse_ffprobe_output(data) == (0, 0)


def test_parse_ffprobe_no_streams():
    with pytest.raises(MediaError, match="no video streams found"):
        parse_ffprobe_output(_probe_json())


def test_parse_ffprobe_invalid_json():
    with pytest.raises(MediaError, match="failed to parse ffprobe output"):
        parse_ffprobe_output(b"not json")


def test_parse_ffprobe_non_integer_dimension():
    with pytest.raises(MediaError, match="failed to parse ffprobe output"):
        parse_ffprobe_output(_probe_json({"width": "wide", "height": 2}))


@pytest.mark.parametrize(
    "ratio,prefix",
    [("16:9", "landscape"), ("9:16", "portrait"), ("other", "other"), ("4:3", "other")],
)
def test_orientation_prefix(ratio, prefix):
    assert orientation_prefix(ratio) == prefix


def test_process_video_runs_ffmpeg_with_faststart(tmp_path):
    source = str(tmp_path / "upload.mp4")
    with patch("tubely.media.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess(args=[], returncode=0)
        output = process_video_for_fast_start(source)
    assert output == source + ".processing.mp4"
    command = run.call_args.args[0]
    assert command[0] == "ffmpeg"
    assert command[command.index("-i") + 1] == source
    assert command[command.index("-movflags") + 1] == "+faststart"
    assert command[-1] == output


def test_process_video_failure_raises():
    with patch("tubely.media.subprocess.run") as run:
        run.side_effect = subprocess.CalledProcessError(1, ["ffmpeg"])
        with pytest.raises(MediaError, match="failed to run ffmpeg"):
            process_video_for_fast_start("video.mp4")


def test_process_video_missing_binary_raises():
    with patch("tubely.media.subprocess.run") as run:
        run.side_effect = FileNotFoundError("ffmpeg")
        with pytest.raises(MediaError, match="failed to run ffmpeg"):
            process_video_for_fast_start("video.mp4")


def test_get_video_aspect_ratio_reads_ffprobe_output():
    with patch("tubely.media.subprocess.run") as run:
        run.return_value = subprocess.CompletedProcess(
            args=[], returncode=0, stdout=_probe_json({"width": 1080, "height": 1920})
        )
        assert get_video_aspect_ratio("clip.mp4") == "9:16"
    command = run.call_args.args[0]
    assert command[0] == "ffprobe"
    assert command[-1] == "clip.mp4"
    assert "-show_streams" in command


def test_get_video_aspect_ratio_failure_raises():
    with patch("tubely.media.subprocess.run") as run:
        run.side_effect = subprocess.CalledProcessError(1, ["ffprobe"])
        with pytest.raises(MediaError, match="failed to run ffprobe"):
            get_video_aspect_ratio("clip.mp4")