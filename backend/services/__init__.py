"""
Business logic services for TheVideoPool
"""
from .storage import StorageService, StorageError, storage_service
from .ffmpeg_service import FFmpegService, ffmpeg_service

__all__ = ["StorageService", "StorageError", "storage_service", "FFmpegService", "ffmpeg_service"]
