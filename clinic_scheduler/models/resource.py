from enum import Enum

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class ResourceKind(str, Enum):
    CONSULTATION_ROOM = "consultation_room"
    HYPERBARIC_CHAMBER = "hyperbaric_chamber"
    DRIPS_STATION = "drips_station"


class ResourceStatus(str, Enum):
    AVAILABLE = "available"
    MAINTENANCE = "maintenance"


class Resource(SQLModel, table=True):
    """One bookable unit: a room, the chamber, or a single drips station."""

    __tablename__ = "resources"
    __table_args__ = (UniqueConstraint("kind", "number", name="uq_resources_kind_number"),)

    id: int | None = Field(default=None, primary_key=True)
    kind: str = Field(max_length=32, index=True)
    number: int
    name: str
    status: str = Field(default=ResourceStatus.AVAILABLE.value, max_length=20)
    preferred_professional_id: int | None = Field(default=None, foreign_key="professionals.id")


class ResourcePublic(SQLModel):
    id: int
    kind: ResourceKind
    number: int
    name: str
    status: ResourceStatus
    preferred_professional_id: int | None = None
