from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional
from enum import Enum


class Brand(str, Enum):
    """Manufacturers the extraction engine can recognize, in priority order."""

    DEYE = "DEYE"
    SOLIS = "SOLIS"
    SOLAX = "SOLAX"


class Category(str, Enum):
    INVERTER = "inverter"
    BATTERY = "battery"


class CandidateSource(str, Enum):
    LABEL = "label"
    GENERIC = "generic"


class RecognitionFailureKind(str, Enum):
    """Typed reasons a recognition call did not produce text."""

    NETWORK = "network"
    SERVICE_ERROR = "service_error"
    TIMEOUT = "timeout"
    HTTP_ERROR = "http_error"
    PROCESSING_ERROR = "processing_error"
    MALFORMED = "malformed"
    EMPTY = "empty"


class RequestContext(BaseModel):
    correlation_id: str = Field(..., description="The correlation ID for the request.")


class CapturedImage(BaseModel):
    """A photo exactly as it arrived from the capturing device."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str
    size: int = Field(..., ge=0, description="Byte size of `data`.")
    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)
    file_name: Optional[str] = None


class PreparedImage(BaseModel):
    """A captured image brought within the upload size and geometry budget."""
    model_config = ConfigDict(frozen=True)

    data: bytes
    mime_type: str
    size: int
    width: int
    height: int
    reencoded: bool = False
    steps: List[str] = Field(default_factory=list, description="Encode steps applied, in order.")
    file_name: Optional[str] = None


class PreprocessOptions(BaseModel):
    max_bytes: int = Field(950 * 1024, gt=0)
    max_side: int = Field(2200, gt=0)
    mime: str = "image/jpeg"
    initial_quality: int = Field(85, ge=1, le=100)
    min_quality: int = Field(32, ge=1, le=100)
    shrink_factor: float = Field(0.8, gt=0.0, lt=1.0)
    allow_webp: bool = False


class RecognitionOptions(BaseModel):
    language: str = "eng"
    engine: str = "3"
    scale: bool = True
    detect_orientation: bool = True
    is_table: bool = False


class RecognitionResult(BaseModel):
    """
    Outcome of a recognition orchestration.

    Either `ok` with non-empty `text` and the `engine` that produced it, or a
    typed `failure` carrying the last error context seen.
    """
    model_config = ConfigDict(frozen=True)

    ok: bool
    text: Optional[str] = None
    engine: Optional[str] = None
    attempts: int = 0
    failure: Optional[RecognitionFailureKind] = None
    http_status: Optional[int] = None
    error_message: Optional[str] = None


class ExtractionCandidate(BaseModel):
    value: str
    source: CandidateSource
    score: int = 0


class NameplateRecord(BaseModel):
    """Structured reading of one nameplate. `model` and `rating` require a `brand`."""
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    brand: Optional[Brand] = None
    category: Category = Category.INVERTER
    model: Optional[str] = None
    serial: Optional[str] = None
    rating: Optional[float] = None
    source_text: str = ""
    strict: bool = True

    @property
    def recognized(self) -> bool:
        return self.brand is not None


class PhotoLocation(BaseModel):
    url: str
    object_id: str


class EquipmentAssignment(BaseModel):
    """What the engine hands to the inventory-assignment collaborator."""
    installation_id: int
    record: NameplateRecord
    photo: Optional[PhotoLocation] = None


class AssignmentAction(str, Enum):
    INSERTED = "inserted"
    INCREMENTED = "incremented"
    PHOTO_ONLY = "photo_only"


class AssignmentOutcome(BaseModel):
    equipment_name: str
    action: AssignmentAction
    quantity: int
    serials: List[str] = Field(default_factory=list)


class ScanOutcome(BaseModel):
    """Everything produced by one end-to-end scan."""
    model_config = ConfigDict(protected_namespaces=())

    request_id: str
    record: NameplateRecord
    engine: Optional[str] = None
    attempts: int = 0
    photo: Optional[PhotoLocation] = None
    assignment: Optional[AssignmentOutcome] = None
