"""
Storage Service - local filesystem, MinIO and S3
Handles file uploads, local access for processing, and presigned URLs
"""
import os
import shutil
import logging
import tempfile
from pathlib import Path
from typing import Optional, BinaryIO, Tuple
from datetime import timedelta
from minio import Minio
from minio.error import S3Error
import boto3
from botocore.exceptions import ClientError

from core.config import settings

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Raised when a storage backend operation fails"""
    pass


class StorageService:
    """
    Storage service supporting a local media root (development, tests),
    MinIO (self-hosted) and AWS S3 (production).
    Switches on the STORAGE_BACKEND setting.
    """

    def __init__(self, backend: Optional[str] = None):
        self.backend = (backend or settings.STORAGE_BACKEND).lower()
        self.s3_client = None
        self.minio_client = None

        if self.backend == "s3":
            self.s3_client = boto3.client(
                's3',
                aws_access_key_id=settings.AWS_ACCESS_KEY_ID,
                aws_secret_access_key=settings.AWS_SECRET_ACCESS_KEY,
                region_name=settings.AWS_REGION
            )
            self.bucket_name = settings.S3_BUCKET_NAME
        elif self.backend == "minio":
            self.minio_client = Minio(
                settings.MINIO_ENDPOINT,
                access_key=settings.MINIO_ROOT_USER,
                secret_key=settings.MINIO_ROOT_PASSWORD,
                secure=settings.MINIO_USE_SSL
            )
        elif self.backend != "local":
            raise StorageError(f"Unknown storage backend: {self.backend}")

    @property
    def is_local(self) -> bool:
        return self.backend == "local"

    def _local_path(self, object_key: str, bucket_name: str) -> Path:
        """Resolve an object inside the media root, refusing path traversal"""
        root = Path(settings.LOCAL_MEDIA_ROOT).resolve()
        path = (root / bucket_name / object_key).resolve()
        if root not in path.parents:
            raise StorageError(f"Object key escapes media root: {object_key}")
        return path

    def _ensure_bucket_exists(self, bucket_name: str):
        """Ensure bucket exists (MinIO only)"""
        if self.backend == "minio":
            try:
                if not self.minio_client.bucket_exists(bucket_name):
                    self.minio_client.make_bucket(bucket_name)
                    logger.info(f"✅ Created bucket: {bucket_name}")
            except S3Error as e:
                logger.warning(f"⚠️ Error ensuring bucket exists: {e}")

    def upload_file(
        self,
        file_data: BinaryIO,
        object_key: str,
        bucket_name: str,
        content_type: str = "application/octet-stream"
    ) -> str:
        """
        Upload file to storage

        Returns:
            URL (or local path) of uploaded file
        """
        try:
            if self.backend == "s3":
                self.s3_client.upload_fileobj(
                    file_data,
                    self.bucket_name,
                    object_key,
                    ExtraArgs={'ContentType': content_type}
                )
                return f"https://{self.bucket_name}.s3.{settings.AWS_REGION}.amazonaws.com/{object_key}"

            if self.backend == "minio":
                self._ensure_bucket_exists(bucket_name)

                file_data.seek(0, 2)
                file_size = file_data.tell()
                file_data.seek(0)

                self.minio_client.put_object(
                    bucket_name,
                    object_key,
                    file_data,
                    length=file_size,
                    content_type=content_type
                )
                return f"http://{settings.MINIO_ENDPOINT}/{bucket_name}/{object_key}"

            path = self._local_path(object_key, bucket_name)
            path.parent.mkdir(parents=True, exist_ok=True)
            with open(path, "wb") as out:
                shutil.copyfileobj(file_data, out)
            return str(path)

        except (S3Error, ClientError, OSError) as e:
            raise StorageError(f"Failed to upload file: {str(e)}")

    def upload_file_from_path(
        self,
        file_path: str,
        object_key: str,
        bucket_name: str,
        content_type: str = "application/octet-stream"
    ) -> str:
        """Upload file from local path"""
        with open(file_path, 'rb') as file_data:
            return self.upload_file(file_data, object_key, bucket_name, content_type)

    def get_presigned_url(
        self,
        object_key: str,
        bucket_name: str,
        expires_in: int = 3600
    ) -> str:
        """
        Generate presigned URL for temporary access (remote backends only)
        """
        try:
            if self.backend == "s3":
                return self.s3_client.generate_presigned_url(
                    'get_object',
                    Params={'Bucket': self.bucket_name, 'Key': object_key},
                    ExpiresIn=expires_in
                )
            if self.backend == "minio":
                return self.minio_client.presigned_get_object(
                    bucket_name,
                    object_key,
                    expires=timedelta(seconds=expires_in)
                )
        except (S3Error, ClientError) as e:
            raise StorageError(f"Failed to generate presigned URL: {str(e)}")

        raise StorageError("Presigned URLs are not available for local storage")

    def get_local_path(self, object_key: str, bucket_name: str) -> Tuple[str, bool]:
        """
        Get a filesystem path for an object, downloading remote objects to a temp file

        Returns:
            Tuple of (local_path, is_temporary)

        Raises:
            StorageError: If the object is missing or cannot be fetched
        """
        if self.is_local:
            path = self._local_path(object_key, bucket_name)
            if not path.is_file():
                raise StorageError(f"File not found: {object_key}")
            return str(path), False

        suffix = Path(object_key).suffix
        temp_file = tempfile.NamedTemporaryFile(delete=False, suffix=suffix)
        temp_path = temp_file.name
        temp_file.close()

        try:
            if self.backend == "s3":
                self.s3_client.download_file(self.bucket_name, object_key, temp_path)
            else:
                self.minio_client.fget_object(bucket_name, object_key, temp_path)
            logger.info(f"📥 Downloaded {object_key} to {temp_path}")
            return temp_path, True
        except (S3Error, ClientError) as e:
            os.unlink(temp_path)
            raise StorageError(f"Failed to fetch {object_key}: {str(e)}")

    def delete_file(self, object_key: str, bucket_name: str):
        """Delete file from storage"""
        try:
            if self.backend == "s3":
                self.s3_client.delete_object(Bucket=self.bucket_name, Key=object_key)
            elif self.backend == "minio":
                self.minio_client.remove_object(bucket_name, object_key)
            else:
                path = self._local_path(object_key, bucket_name)
                if path.exists():
                    path.unlink()
        except (S3Error, ClientError, OSError) as e:
            raise StorageError(f"Failed to delete file: {str(e)}")


# Global storage service instance
storage_service = StorageService()
