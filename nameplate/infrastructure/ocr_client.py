from typing import Any, Dict, Optional

import httpx

from nameplate.core.config import settings
from nameplate.core.logging import LoggerRegistry
from nameplate.domain.models import PreparedImage, RecognitionOptions
from nameplate.domain.ports import RecognitionClientPort

logger = LoggerRegistry.get_infrastructure_logger("ocr_client")


def _flag(value: bool) -> str:
    return "true" if value else "false"


class OcrSpaceClient(RecognitionClientPort):
    """Adapter for the OCR.space ``parse/image`` endpoint. One call is one try."""

    def __init__(
        self,
        endpoint: str,
        api_key: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.endpoint = endpoint
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def parse_image(self, image: PreparedImage, engine: str, options: RecognitionOptions) -> Dict[str, Any]:
        files = {
            "file": (image.file_name or "image.jpg", image.data, image.mime_type),
        }
        data = {
            "language": options.language,
            "OCREngine": str(engine),
            "scale": _flag(options.scale),
            "detectOrientation": _flag(options.detect_orientation),
            "isTable": _flag(options.is_table),
            "isOverlayRequired": "false",
        }
        headers = {"apikey": self.api_key}

        if self._client is not None:
            response = await self._client.post(self.endpoint, data=data, files=files, headers=headers, timeout=self.timeout)
        else:
            async with httpx.AsyncClient() as client:
                response = await client.post(self.endpoint, data=data, files=files, headers=headers, timeout=self.timeout)

        if response.is_error:
            logger.error(
                "OCR service returned an error",
                engine=engine,
                status_code=response.status_code,
                response_text=response.text[:500],
            )
        response.raise_for_status()
        return response.json()


def get_ocr_client() -> RecognitionClientPort:
    return OcrSpaceClient(
        endpoint=settings.OCR_ENDPOINT,
        api_key=settings.OCR_SPACE_API_KEY,
        timeout=settings.OCR_REQUEST_TIMEOUT,
    )
