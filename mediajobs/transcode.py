import json
import logging
import subprocess
import tempfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath

from django.conf import settings

from . import s3
from .exceptions import MediaRejected
from .jobs import JobOutput
from .models import THUMBNAIL_KINDS

logger = logging.getLogger(__name__)

# Output container per kind: (key prefix, extension, content type)
OUTPUT_FORMATS = {
    "video": ("video", ".mp4", "video/mp4"),
    "audio": ("audio", ".m4a", "audio/mp4"),
}


@dataclass(frozen=True)
class MediaProbe:
    duration: float
    width: int | None = None
    height: int | None = None


def probe(path) -> MediaProbe:
    cmd = [
        settings.FFPROBE_PATH,
        "-v", "error",
        "-show_entries", "stream=codec_type,width,height,duration",
        "-show_entries", "format=duration",
        "-of", "json",
        str(path),
    ]
    proc = subprocess.run(cmd, check=True, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    data = json.loads(proc.stdout or b"{}")
    streams = data.get("streams") or []
    video = next((s for s in streams if s.get("codec_type") == "video"), {})
    duration = video.get("duration") or (data.get("format") or {}).get("duration") or 0
    return MediaProbe(
        duration=float(duration),
        width=video.get("width"),
        height=video.get("height"),
    )


def output_key_for(raw_key: str, media_kind: str) -> str:
    """raw/<user>/<name>.mov -> video/<user>/<name>.mp4"""
    prefix, ext, _ = OUTPUT_FORMATS[media_kind]
    path = PurePosixPath(raw_key)
    parts = list(path.parts)
    if parts and parts[0] == "raw":
        parts = parts[1:]
        if parts and parts[0] == media_kind:
            parts = parts[1:]
    return str(PurePosixPath(prefix, *parts).with_suffix(ext))


def _transcode_cmd(input_abs: Path, output_abs: Path, media_kind: str) -> list[str]:
    if media_kind == "audio":
        return [
            settings.FFMPEG_PATH, "-y",
            "-i", str(input_abs),
            "-vn",
            "-c:a", "aac",
            "-b:a", "128k",
            "-af", "loudnorm",
            str(output_abs),
        ]
    # H.264/AAC MP4, capped at 1080p on the short side
    return [
        settings.FFMPEG_PATH, "-y",
        "-i", str(input_abs),
        "-vf", "scale=-2:'min(1080,ih)'",
        "-c:v", "libx264",
        "-preset", "veryfast",
        "-crf", "23",
        "-c:a", "aac",
        "-b:a", "128k",
        "-movflags", "+faststart",
        "-pix_fmt", "yuv420p",
        str(output_abs),
    ]


def _thumbnail_cmd(input_abs: Path, thumb_abs: Path) -> list[str]:
    # one 640px-wide frame at the 1s mark
    return [
        settings.FFMPEG_PATH, "-y",
        "-i", str(input_abs),
        "-ss", "1",
        "-vframes", "1",
        "-vf", "scale=640:-2",
        str(thumb_abs),
    ]


def thumbnail_key_for(output_key: str) -> str:
    """video/<user>/<name>.mp4 -> video/<user>/<name>_thumb.jpg"""
    path = PurePosixPath(output_key)
    return str(path.with_name(f"{path.stem}_thumb.jpg"))


def duration_limit(tier: str, media_kind: str) -> int | None:
    limits = settings.MEDIA_DURATION_LIMITS.get(tier) or settings.MEDIA_DURATION_LIMITS[settings.MEDIA_DEFAULT_TIER]
    return limits.get(media_kind)


class FfmpegProcessor:
    """Download the raw upload, transcode it with ffmpeg and upload the result."""

    def __call__(self, job, report) -> JobOutput:
        raw_key = s3.key_from_url(job.raw_file_url)
        with tempfile.TemporaryDirectory(prefix="mediajob-") as tmp:
            input_abs = Path(tmp) / f"input{PurePosixPath(raw_key).suffix}"
            s3.download_file(raw_key, input_abs)
            report(20)

            meta = probe(input_abs)
            limit = duration_limit(job.user_tier, job.media_kind)
            if limit is not None and meta.duration > limit:
                raise MediaRejected(f"{job.media_kind} exceeds {limit}s limit for {job.user_tier} tier")
            report(30)

            _, ext, content_type = OUTPUT_FORMATS[job.media_kind]
            output_abs = Path(tmp) / f"output{ext}"
            subprocess.run(
                _transcode_cmd(input_abs, output_abs, job.media_kind),
                check=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
            report(70)

            thumb_abs = None
            if job.media_kind in THUMBNAIL_KINDS:
                thumb_abs = Path(tmp) / "thumb.jpg"
                subprocess.run(
                    _thumbnail_cmd(input_abs, thumb_abs),
                    check=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
                report(80)

            out_key = output_key_for(raw_key, job.media_kind)
            s3.upload_file(str(output_abs), out_key, content_type=content_type)
            thumb_key = None
            if thumb_abs is not None:
                thumb_key = thumbnail_key_for(out_key)
                s3.upload_file(str(thumb_abs), thumb_key, content_type="image/jpeg")
            report(90)

            out_meta = probe(output_abs)

        logger.info("Transcoded %s -> %s (%.1fs)", raw_key, out_key, out_meta.duration)
        if job.media_kind == "audio":
            return JobOutput(output_url=s3.public_url(out_key), duration_seconds=out_meta.duration)
        return JobOutput(
            output_url=s3.public_url(out_key),
            duration_seconds=out_meta.duration,
            width=out_meta.width,
            height=out_meta.height,
            thumbnail_url=s3.public_url(thumb_key) if thumb_key else None,
        )
