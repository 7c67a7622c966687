"""
FFMPEG Service - Video processing utilities
Handles metadata extraction, thumbnail and preview generation, and video validation
"""
import os
import json
import subprocess
import logging
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)


class FFmpegError(Exception):
    """Custom exception for FFMPEG-related errors"""
    pass


class FFprobeError(Exception):
    """Custom exception for FFprobe-related errors"""
    pass


def resolution_label(width: int, height: int) -> str:
    """Map pixel dimensions to the catalog's resolution label (e.g. 1080p, 4K)"""
    short_side = min(width, height)
    if short_side >= 2160:
        return "4K"
    if short_side >= 1440:
        return "1440p"
    if short_side >= 1080:
        return "1080p"
    if short_side >= 720:
        return "720p"
    if short_side >= 480:
        return "480p"
    return f"{short_side}p"


class FFmpegService:
    """
    FFMPEG service for processing local video files.
    Installation is verified on first use, not at import.
    """

    def __init__(self):
        self._verified = False

    def _verify_ffmpeg_installation(self) -> None:
        """
        Verify that ffmpeg and ffprobe are installed and accessible

        Raises:
            FFmpegError: If ffmpeg or ffprobe not found
        """
        if self._verified:
            return

        try:
            for binary in ('ffmpeg', 'ffprobe'):
                subprocess.run(
                    [binary, '-version'],
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    check=True,
                    timeout=5
                )
            self._verified = True
            logger.info("✅ FFMPEG and FFprobe verified successfully")
        except subprocess.CalledProcessError as e:
            error_msg = "FFMPEG or FFprobe not properly installed"
            logger.error(f"❌ {error_msg}: {e}")
            raise FFmpegError(error_msg)
        except FileNotFoundError:
            error_msg = "FFMPEG or FFprobe not found in system PATH"
            logger.error(f"❌ {error_msg}")
            raise FFmpegError(error_msg)
        except subprocess.TimeoutExpired:
            error_msg = "FFMPEG verification timed out"
            logger.error(f"❌ {error_msg}")
            raise FFmpegError(error_msg)

    def _run(self, cmd, timeout: int, error_cls=FFmpegError) -> subprocess.CompletedProcess:
        self._verify_ffmpeg_installation()
        try:
            return subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=timeout,
                check=True
            )
        except subprocess.CalledProcessError as e:
            error_msg = f"{cmd[0]} failed: {e.stderr.decode() if e.stderr else str(e)}"
            logger.error(f"❌ {error_msg}")
            raise error_cls(error_msg)
        except subprocess.TimeoutExpired:
            error_msg = f"{cmd[0]} timed out (>{timeout} seconds)"
            logger.error(f"❌ {error_msg}")
            raise error_cls(error_msg)

    def generate_thumbnail(
        self,
        video_path: str,
        output_path: str,
        timestamp: float = 2.0,
        width: Optional[int] = 640,
        quality: int = 2
    ) -> str:
        """
        Generate thumbnail image from video at specified timestamp

        Args:
            video_path: Path to local video file
            output_path: Path for output JPG file
            timestamp: Time in seconds to extract frame
            width: Output width in pixels (height keeps aspect ratio)
            quality: JPEG quality 2-31 (lower is better)

        Returns:
            Path to generated thumbnail

        Raises:
            FFmpegError: If thumbnail generation fails
        """
        logger.info(f"🖼️ Generating thumbnail from: {video_path} at {timestamp}s")
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        cmd = [
            'ffmpeg',
            '-ss', str(timestamp),
            '-i', video_path,
            '-vframes', '1',
            '-q:v', str(quality),
        ]
        if width:
            cmd.extend(['-vf', f"scale={width}:-1"])
        cmd.extend(['-y', output_path])

        self._run(cmd, timeout=60)

        if not os.path.exists(output_path):
            raise FFmpegError("Thumbnail generation completed but output file not found")

        logger.info(f"✅ Thumbnail generated: {output_path}")
        return output_path

    def generate_preview(
        self,
        video_path: str,
        output_path: str,
        duration: float = 10.0,
        height: int = 480
    ) -> str:
        """
        Cut a short, low-resolution, silent preview clip from the start of the video

        Raises:
            FFmpegError: If preview generation fails
        """
        logger.info(f"🎬 Generating {duration}s preview from: {video_path}")
        os.makedirs(os.path.dirname(output_path) or ".", exist_ok=True)

        cmd = [
            'ffmpeg',
            '-i', video_path,
            '-t', str(duration),
            '-vf', f"scale=-2:{height}",
            '-an',
            '-c:v', 'libx264',
            '-preset', 'veryfast',
            '-crf', '28',
            '-movflags', '+faststart',
            '-y', output_path,
        ]
        self._run(cmd, timeout=300)

        if not os.path.exists(output_path):
            raise FFmpegError("Preview generation completed but output file not found")

        logger.info(f"✅ Preview generated: {output_path}")
        return output_path

    def probe_video(self, video_path: str) -> Dict[str, Any]:
        """
        Get full ffprobe JSON output with all video information

        Raises:
            FFprobeError: If probe fails
        """
        if not os.path.exists(video_path):
            raise FFprobeError(f"Video file not found: {video_path}")

        logger.info(f"🔍 Probing video: {video_path}")

        cmd = [
            'ffprobe',
            '-v', 'quiet',
            '-print_format', 'json',
            '-show_format',
            '-show_streams',
            video_path
        ]
        try:
            result = self._run(cmd, timeout=30, error_cls=FFprobeError)
        except FFmpegError as e:
            raise FFprobeError(str(e))

        try:
            return json.loads(result.stdout.decode())
        except json.JSONDecodeError as e:
            error_msg = f"Failed to parse ffprobe output: {str(e)}"
            logger.error(f"❌ {error_msg}")
            raise FFprobeError(error_msg)

    def get_video_metadata(self, video_path: str) -> Dict[str, Any]:
        """
        Extract essential video metadata

        Returns:
            Dictionary with duration (seconds), width, height, resolution
            (catalog label such as "1080p"), codec, audio_codec, bitrate, fps, size

        Raises:
            FFprobeError: If metadata extraction fails
        """
        probe_data = self.probe_video(video_path)
        return parse_probe_metadata(probe_data)


def parse_probe_metadata(probe_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Reduce raw ffprobe output to the fields the catalog stores

    Raises:
        FFprobeError: If there is no video stream
    """
    format_info = probe_data.get('format', {})

    video_stream = None
    audio_stream = None
    for stream in probe_data.get('streams', []):
        if stream.get('codec_type') == 'video' and not video_stream:
            video_stream = stream
        elif stream.get('codec_type') == 'audio' and not audio_stream:
            audio_stream = stream

    if not video_stream:
        raise FFprobeError("No video stream found in file")

    duration = float(format_info.get('duration', 0) or 0)
    width = int(video_stream.get('width', 0))
    height = int(video_stream.get('height', 0))

    fps_parts = video_stream.get('r_frame_rate', '0/1').split('/')
    fps = 0.0
    if len(fps_parts) == 2 and float(fps_parts[1]) != 0:
        fps = round(float(fps_parts[0]) / float(fps_parts[1]), 2)

    return {
        'duration': duration,
        'width': width,
        'height': height,
        'resolution': resolution_label(width, height),
        'codec': video_stream.get('codec_name', 'unknown'),
        'audio_codec': audio_stream.get('codec_name', 'unknown') if audio_stream else 'none',
        'bitrate': int(format_info.get('bit_rate', 0) or 0),
        'fps': fps,
        'size': int(format_info.get('size', 0) or 0),
    }


# Global ffmpeg service instance
ffmpeg_service = FFmpegService()
