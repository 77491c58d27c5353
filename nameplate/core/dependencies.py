from functools import lru_cache

from nameplate.core.config import settings
from nameplate.domain.models import PreprocessOptions
from nameplate.domain.ports import InventoryAssignmentPort, RecognitionClientPort, StoragePort
from nameplate.extraction.extractor import NameplateExtractor
from nameplate.infrastructure.inventory import InMemoryInventory
from nameplate.infrastructure.ocr_client import get_ocr_client
from nameplate.infrastructure.storage.minio_adapter import MinIOStorageAdapter
from nameplate.services.image_preprocessor import ImagePreprocessor
from nameplate.services.recognition_orchestrator import RecognitionOrchestrator, get_recognition_orchestrator
from nameplate.services.scan_service import NameplateScanService


@lru_cache()
def get_storage_service() -> StoragePort:
    """Get the photo storage service."""
    return MinIOStorageAdapter(
        endpoint=settings.MINIO_ENDPOINT,
        access_key=settings.MINIO_ACCESS_KEY,
        secret_key=settings.MINIO_SECRET_KEY,
        bucket_name=settings.PHOTO_BUCKET,
        secure=settings.MINIO_SECURE,
    )


@lru_cache()
def get_inventory() -> InventoryAssignmentPort:
    return InMemoryInventory()


@lru_cache()
def get_recognition_client() -> RecognitionClientPort:
    return get_ocr_client()


def get_orchestrator() -> RecognitionOrchestrator:
    return get_recognition_orchestrator(get_recognition_client())


@lru_cache()
def get_image_preprocessor() -> ImagePreprocessor:
    return ImagePreprocessor(
        PreprocessOptions(
            max_bytes=settings.UPLOAD_MAX_BYTES,
            max_side=settings.UPLOAD_MAX_SIDE,
            mime=settings.UPLOAD_MIME,
            initial_quality=settings.UPLOAD_INITIAL_QUALITY,
            min_quality=settings.UPLOAD_MIN_QUALITY,
            shrink_factor=settings.UPLOAD_SHRINK_FACTOR,
            allow_webp=settings.UPLOAD_ALLOW_WEBP,
        )
    )


@lru_cache()
def get_extractor() -> NameplateExtractor:
    """Authoritative extractor; strictness follows EXTRACTION_STRICT."""
    return NameplateExtractor(strict=settings.EXTRACTION_STRICT)


@lru_cache()
def get_quick_extractor() -> NameplateExtractor:
    return NameplateExtractor(strict=False)


def get_scan_service() -> NameplateScanService:
    return NameplateScanService(
        preprocessor=get_image_preprocessor(),
        orchestrator=get_orchestrator(),
        storage_port=get_storage_service(),
        inventory=get_inventory(),
        extractor=get_extractor(),
        quick_extractor=get_quick_extractor(),
    )
