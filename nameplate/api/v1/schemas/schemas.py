from pydantic import BaseModel, ConfigDict, Field
from typing import Optional

from nameplate.domain.models import NameplateRecord


class ExtractionRequest(BaseModel):
    """Already recognized nameplate text to run through the extraction rules."""
    text: str = Field(..., description="Raw text as returned by the OCR service.")
    strict: bool = Field(True, description="Authoritative rules when true, quick pre-check rules when false.")


class PreviewResponse(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    request_id: str
    record: NameplateRecord
    engine: Optional[str] = None
    attempts: int = 0


class AssignAcceptedResponse(BaseModel):
    """Response for an accepted scan-and-assign request."""
    ok: bool = True
    request_id: str
    status: str = "processing_background"
    message: str = "Nameplate is being processed in the background."
