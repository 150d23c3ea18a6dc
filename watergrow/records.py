"""Wire types shared by the server and the participant client."""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

PLANT_UPDATE = "plant_update"


def normalize_room_id(raw: Optional[str]) -> str:
    """Room codes are case-insensitive and ignore surrounding whitespace."""
    if not isinstance(raw, str):
        return ""
    return raw.strip().lower()


@dataclass(frozen=True)
class PlantRecord:
    room_id: str
    p1_water: int = 0
    p2_water: int = 0
    last_watered: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "PlantRecord":
        return cls(
            room_id=data["room_id"],
            p1_water=int(data.get("p1_water") or 0),
            p2_water=int(data.get("p2_water") or 0),
            last_watered=data.get("last_watered"),
        )

    def to_dict(self) -> dict:
        return {
            "room_id": self.room_id,
            "p1_water": self.p1_water,
            "p2_water": self.p2_water,
            "last_watered": self.last_watered,
        }


class Role(Enum):
    P1 = "p1"
    P2 = "p2"

    @property
    def field(self) -> str:
        """Name of the counter column this role owns."""
        return f"{self.value}_water"

    @property
    def partner(self) -> "Role":
        return Role.P2 if self is Role.P1 else Role.P1

    def count(self, record) -> int:
        """Read this role's counter from a PlantRecord or a Plant row."""
        if self is Role.P1:
            return record.p1_water or 0
        return record.p2_water or 0

    def with_count(self, record: PlantRecord, count: int, last_watered: Optional[str]) -> PlantRecord:
        """Copy of ``record`` with only this role's counter and the timestamp changed."""
        if self is Role.P1:
            return replace(record, p1_water=count, last_watered=last_watered)
        return replace(record, p2_water=count, last_watered=last_watered)

    def set_count(self, plant, count: int) -> None:
        """Write this role's counter onto a mutable Plant row."""
        if self is Role.P1:
            plant.p1_water = count
        else:
            plant.p2_water = count
