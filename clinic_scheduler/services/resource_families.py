import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.core.config import Settings, settings as default_settings
from clinic_scheduler.models.resource import Resource, ResourceKind, ResourceStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResourceFamily:
    """A group of interchangeable single-capacity units (rooms, the chamber, drips stations)."""

    kind: ResourceKind
    capacity: int
    label: str
    # Whether the professional is blocked for the whole session
    professional_exclusive: bool = True


_LABELS = {
    ResourceKind.CONSULTATION_ROOM: "Consultation room",
    ResourceKind.HYPERBARIC_CHAMBER: "Hyperbaric chamber",
    ResourceKind.DRIPS_STATION: "Drips station",
}


def all_families(cfg: Settings | None = None) -> list[ResourceFamily]:
    cfg = cfg or default_settings
    return [
        ResourceFamily(
            kind=ResourceKind.CONSULTATION_ROOM,
            capacity=cfg.consultation_room_count,
            label=_LABELS[ResourceKind.CONSULTATION_ROOM],
        ),
        ResourceFamily(
            kind=ResourceKind.HYPERBARIC_CHAMBER,
            capacity=cfg.hyperbaric_chamber_count,
            label=_LABELS[ResourceKind.HYPERBARIC_CHAMBER],
        ),
        # One nurse supervises several stations at once
        ResourceFamily(
            kind=ResourceKind.DRIPS_STATION,
            capacity=cfg.drips_station_count,
            label=_LABELS[ResourceKind.DRIPS_STATION],
            professional_exclusive=False,
        ),
    ]


def get_family(kind: ResourceKind | str, cfg: Settings | None = None) -> ResourceFamily:
    kind = ResourceKind(kind)
    for family in all_families(cfg):
        if family.kind == kind:
            return family
    raise ValueError(f"Unknown resource kind: {kind}")


async def list_family_resources(
    session: AsyncSession, family: ResourceFamily, lock: bool = False
) -> list[Resource]:
    """Units of the family ordered by number. lock=True takes row locks (no-op on SQLite)."""
    q = select(Resource).where(Resource.kind == family.kind.value).order_by(Resource.number)
    if lock:
        q = q.with_for_update()
    result = await session.execute(q)
    return list(result.scalars().all())


async def ensure_resources(session: AsyncSession, cfg: Settings | None = None) -> int:
    """Create missing units so each family has numbers 1..capacity. Returns count created."""
    created = 0
    for family in all_families(cfg):
        existing = {r.number for r in await list_family_resources(session, family)}
        for number in range(1, family.capacity + 1):
            if number in existing:
                continue
            session.add(
                Resource(
                    kind=family.kind.value,
                    number=number,
                    name=f"{family.label} {number}",
                    status=ResourceStatus.AVAILABLE.value,
                )
            )
            created += 1
    if created:
        await session.flush()
        logger.info("Seeded %d resource unit(s)", created)
    return created
