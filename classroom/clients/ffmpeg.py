"""Thin wrapper around the ffmpeg binary for time-based audio segmentation."""

from __future__ import annotations

from dataclasses import dataclass
import logging
import shutil
import subprocess

from classroom.domain.errors import SplitError

logger = logging.getLogger("classroom.pipeline")


@dataclass(frozen=True)
class FfmpegRunner:
    binary: str = "ffmpeg"
    sample_rate_hz: int = 16000

    def available(self) -> bool:
        return shutil.which(self.binary) is not None

    def segment(self, *, source_path: str, output_pattern: str, segment_seconds: int) -> None:
        """Cut the source into fixed-length mono FLAC chunks named by ``output_pattern``."""
        command = [
            self.binary,
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-i", source_path,
            "-f", "segment",
            "-segment_time", str(segment_seconds),
            "-reset_timestamps", "1",
            "-ac", "1",
            "-ar", str(self.sample_rate_hz),
            "-c:a", "flac",
            output_pattern,
        ]
        try:
            subprocess.run(
                command,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                check=True,
            )
        except FileNotFoundError as exc:
            raise SplitError(f"ffmpeg binary not found: {self.binary}") from exc
        except subprocess.CalledProcessError as exc:
            error_msg = exc.stderr.decode("utf-8", errors="replace").strip() if exc.stderr else "no stderr"
            logger.error("ffmpeg segmentation failed", extra={"stage": "split"})
            raise SplitError(f"ffmpeg failed to segment audio: {error_msg}") from exc
