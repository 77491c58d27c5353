import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from nameplate.core.logging import LoggerRegistry
from nameplate.domain.models import (
    AssignmentAction,
    AssignmentOutcome,
    Category,
    EquipmentAssignment,
)
from nameplate.domain.ports import InventoryAssignmentPort

logger = LoggerRegistry.get_infrastructure_logger("inventory")


@dataclass
class EquipmentType:
    id: int
    name: str
    manufacturer: Optional[str]
    category: Category
    rating: Optional[float]


@dataclass
class InstalledEquipment:
    id: int
    installation_id: int
    equipment_id: int
    quantity: int = 1
    serials: List[str] = field(default_factory=list)
    photos: List[str] = field(default_factory=list)
    photo_ids: List[str] = field(default_factory=list)


def equipment_name(assignment: EquipmentAssignment) -> str:
    record = assignment.record
    brand = record.brand.value if record.brand else "Unknown"
    return f"{brand} {record.model or 'Device'}"


class InMemoryInventory(InventoryAssignmentPort):
    """
    Inventory-assignment collaborator backed by process memory.

    Equipment types are found or created by name. Per installation a reading
    either inserts a row, increments the existing row and appends its serial,
    or, when the serial is already recorded, only attaches the photo. This is
    where duplicate serials are suppressed; the extraction engine never
    deduplicates.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._equipment: Dict[str, EquipmentType] = {}
        self._installed: Dict[Tuple[int, int], InstalledEquipment] = {}

    def assign(self, assignment: EquipmentAssignment) -> AssignmentOutcome:
        record = assignment.record
        if record.brand is None:
            raise ValueError("Only nameplates with a recognized brand can be assigned.")

        name = equipment_name(assignment)
        photo_url = assignment.photo.url if assignment.photo else None
        photo_id = assignment.photo.object_id if assignment.photo else None

        with self._lock:
            equipment = self._equipment.get(name)
            if equipment is None:
                equipment = EquipmentType(
                    id=len(self._equipment) + 1,
                    name=name,
                    manufacturer=record.brand.value,
                    category=record.category,
                    rating=record.rating,
                )
                self._equipment[name] = equipment
                logger.info("inventory.equipment.created", equipment_name=name, equipment_id=equipment.id)

            key = (assignment.installation_id, equipment.id)
            row = self._installed.get(key)

            if row is None:
                row = InstalledEquipment(
                    id=len(self._installed) + 1,
                    installation_id=assignment.installation_id,
                    equipment_id=equipment.id,
                    serials=[record.serial] if record.serial else [],
                )
                self._attach_photo(row, photo_url, photo_id)
                self._installed[key] = row
                action = AssignmentAction.INSERTED
            elif record.serial and record.serial in row.serials:
                self._attach_photo(row, photo_url, photo_id)
                action = AssignmentAction.PHOTO_ONLY
            else:
                row.quantity += 1
                if record.serial:
                    row.serials.append(record.serial)
                self._attach_photo(row, photo_url, photo_id)
                action = AssignmentAction.INCREMENTED

            outcome = AssignmentOutcome(
                equipment_name=name,
                action=action,
                quantity=row.quantity,
                serials=list(row.serials),
            )

        logger.info(
            "inventory.assigned",
            installation_id=assignment.installation_id,
            equipment_name=name,
            action=action.value,
            quantity=outcome.quantity,
        )
        return outcome

    def installed(self, installation_id: int) -> List[InstalledEquipment]:
        with self._lock:
            return [row for (inst, _), row in self._installed.items() if inst == installation_id]

    @staticmethod
    def _attach_photo(row: InstalledEquipment, url: Optional[str], object_id: Optional[str]) -> None:
        if url:
            row.photos.append(url)
        if object_id:
            row.photo_ids.append(object_id)
