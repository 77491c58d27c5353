import hashlib
import time
import uuid
from io import BytesIO
from typing import Optional

import structlog

from nameplate.core.exceptions import RecognitionFailure
from nameplate.core.logging import LoggerRegistry
from nameplate.domain.models import (
    CapturedImage,
    EquipmentAssignment,
    NameplateRecord,
    PhotoLocation,
    PreparedImage,
    RecognitionOptions,
    ScanOutcome,
)
from nameplate.domain.ports import InventoryAssignmentPort, StoragePort
from nameplate.extraction.extractor import NameplateExtractor
from nameplate.services.image_preprocessor import ImagePreprocessor
from nameplate.services.recognition_orchestrator import RecognitionOrchestrator


class NameplateScanService:
    """
    Runs a nameplate photo through the whole engine.

    prepare -> recognize -> extract -> store photo -> assign. Preprocessing and
    recognition failures propagate as exceptions; an unrecognized brand or a
    partial reading are ordinary outcomes. Photo storage is best effort.
    """

    def __init__(
        self,
        preprocessor: ImagePreprocessor,
        orchestrator: RecognitionOrchestrator,
        storage_port: Optional[StoragePort] = None,
        inventory: Optional[InventoryAssignmentPort] = None,
        extractor: Optional[NameplateExtractor] = None,
        quick_extractor: Optional[NameplateExtractor] = None,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
    ):
        self.preprocessor = preprocessor
        self.orchestrator = orchestrator
        self.storage_port = storage_port
        self.inventory = inventory
        self.extractor = extractor or NameplateExtractor(strict=True)
        self.quick_extractor = quick_extractor or NameplateExtractor(strict=False)
        self.logger = logger or LoggerRegistry.get_service_logger("scan")

    def prepare(self, image: CapturedImage) -> PreparedImage:
        """Raises PreprocessingFailure before any network call is made."""
        return self.preprocessor.prepare(image)

    async def read_nameplate(
        self,
        image: PreparedImage,
        options: Optional[RecognitionOptions] = None,
        strict: bool = True,
    ):
        """Recognizes and extracts a prepared image. Returns (record, recognition result)."""
        recognition = await self.orchestrator.recognize(image, options)
        if not recognition.ok:
            raise RecognitionFailure(recognition)
        extractor = self.extractor if strict else self.quick_extractor
        record = extractor.extract(recognition.text or "")
        return record, recognition

    async def preview(self, image: CapturedImage, options: Optional[RecognitionOptions] = None) -> ScanOutcome:
        """Quick client-side style pre-check. Nothing is stored or assigned."""
        prepared = self.prepare(image)
        record, recognition = await self.read_nameplate(prepared, options, strict=False)
        return ScanOutcome(
            request_id=str(uuid.uuid4()),
            record=record,
            engine=recognition.engine,
            attempts=recognition.attempts,
        )

    async def scan_and_assign(
        self,
        image: CapturedImage,
        installation_id: int,
        request_id: str,
        options: Optional[RecognitionOptions] = None,
        prepared: Optional[PreparedImage] = None,
    ) -> ScanOutcome:
        start_time = time.time()
        log = self.logger.bind(request_id=request_id, installation_id=installation_id)
        log.info("scan.started", image_size=image.size)

        prepared = prepared or self.prepare(image)
        try:
            record, recognition = await self.read_nameplate(prepared, options, strict=True)
        except RecognitionFailure as exc:
            log.error(
                "scan.recognition_failed",
                failure=exc.result.failure.value if exc.result.failure else None,
                attempts=exc.result.attempts,
                error=exc.result.error_message,
            )
            raise

        outcome = ScanOutcome(
            request_id=request_id,
            record=record,
            engine=recognition.engine,
            attempts=recognition.attempts,
        )

        if not record.recognized:
            log.info("scan.unrecognized", engine=recognition.engine)
            return outcome

        photo = self._store_photo(prepared, record, request_id, log)
        assignment = None
        if self.inventory is not None:
            assignment = self.inventory.assign(
                EquipmentAssignment(installation_id=installation_id, record=record, photo=photo)
            )

        log.info(
            "scan.finished",
            brand=record.brand.value if record.brand else None,
            model=record.model,
            serial=record.serial,
            engine=recognition.engine,
            duration_ms=(time.time() - start_time) * 1000,
        )
        return outcome.model_copy(update={"photo": photo, "assignment": assignment})

    def _store_photo(self, image: PreparedImage, record: NameplateRecord, request_id: str, log) -> Optional[PhotoLocation]:
        if self.storage_port is None:
            return None
        digest = hashlib.md5(image.data).hexdigest()
        ext = "jpg" if image.mime_type == "image/jpeg" else (image.mime_type.rsplit("/", 1)[-1] or "bin")
        file_name = f"{record.serial or digest}_{request_id}.{ext}"
        try:
            photo = self.storage_port.save_file(file_name, BytesIO(image.data), image.mime_type)
            log.info("scan.photo_saved", object_id=photo.object_id)
            return photo
        except (ConnectionError, FileNotFoundError):
            log.exception("scan.photo_save_failed", file_name=file_name)
            return None
