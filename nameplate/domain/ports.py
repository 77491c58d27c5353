from typing import Any, Dict, IO, Protocol, runtime_checkable

from nameplate.domain.models import (
    AssignmentOutcome,
    EquipmentAssignment,
    PhotoLocation,
    PreparedImage,
    RecognitionOptions,
)


@runtime_checkable
class RecognitionClientPort(Protocol):
    """Port defining a single request to the external text-recognition service."""

    async def parse_image(self, image: PreparedImage, engine: str, options: RecognitionOptions) -> Dict[str, Any]:
        """
        Sends one recognition request and returns the decoded response body.

        Raises:
            httpx.TransportError: when the service could not be reached.
            httpx.HTTPStatusError: when the service answered with a 4xx/5xx status.
        """
        ...


@runtime_checkable
class StoragePort(Protocol):
    """Port for the photo storage service."""

    def save_file(self, file_name: str, file_data: IO[bytes], content_type: str) -> PhotoLocation:
        """Save a file and return where it can be found."""
        ...


@runtime_checkable
class InventoryAssignmentPort(Protocol):
    """Port for the collaborator that turns nameplate readings into inventory rows."""

    def assign(self, assignment: EquipmentAssignment) -> AssignmentOutcome:
        ...
