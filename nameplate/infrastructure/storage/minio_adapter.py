from io import BytesIO
from minio import Minio
from minio.error import S3Error

from nameplate.domain.models import PhotoLocation
from nameplate.domain.ports import StoragePort


class MinIOStorageAdapter(StoragePort):
    """Adapter for MinIO storage of nameplate photos."""

    def __init__(self, endpoint: str, access_key: str, secret_key: str, bucket_name: str = "nameplates", secure: bool = False):
        self.client = Minio(endpoint, access_key=access_key, secret_key=secret_key, secure=secure)
        self.bucket_name = bucket_name

    def save_file(self, file_name: str, file_data: BytesIO, content_type: str) -> PhotoLocation:
        """Save a photo to MinIO."""
        try:
            if not self.client.bucket_exists(self.bucket_name):
                self.client.make_bucket(self.bucket_name)

            file_data.seek(0)
            self.client.put_object(
                self.bucket_name,
                file_name,
                file_data,
                length=-1,  # Required for streams
                part_size=10 * 1024 * 1024,
                content_type=content_type,
            )
            return PhotoLocation(url=self.get_file_url(file_name), object_id=f"{self.bucket_name}/{file_name}")
        except S3Error as exc:
            raise ConnectionError(f"Error saving file to MinIO: {exc}") from exc

    def get_file_url(self, file_name: str) -> str:
        """Get a presigned URL of a photo in MinIO."""
        try:
            return self.client.presigned_get_object(self.bucket_name, file_name)
        except S3Error as exc:
            raise FileNotFoundError(f"File not found in MinIO: {exc}") from exc
