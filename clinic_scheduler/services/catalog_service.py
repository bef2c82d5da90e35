from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.models.patient import Patient, PatientCreate
from clinic_scheduler.models.professional import Professional, ProfessionalCreate
from clinic_scheduler.models.resource import Resource, ResourceKind
from clinic_scheduler.models.service import Service, ServiceCreate, SubService, SubServiceCreate


async def create_patient(session: AsyncSession, data: PatientCreate) -> Patient:
    patient = Patient(**data.model_dump())
    session.add(patient)
    await session.flush()
    await session.refresh(patient)
    return patient


async def list_patients(session: AsyncSession) -> list[Patient]:
    result = await session.execute(select(Patient).order_by(Patient.first_name, Patient.id))
    return list(result.scalars().all())


async def create_professional(session: AsyncSession, data: ProfessionalCreate) -> Professional:
    professional = Professional(**data.model_dump())
    session.add(professional)
    await session.flush()
    await session.refresh(professional)
    return professional


async def list_professionals(
    session: AsyncSession, active_only: bool = True, title: str | None = None
) -> list[Professional]:
    q = select(Professional).order_by(Professional.full_name)
    if active_only:
        q = q.where(Professional.active == True)  # noqa: E712
    if title:
        q = q.where(Professional.title == title)
    result = await session.execute(q)
    return list(result.scalars().all())


async def get_service_by_code(session: AsyncSession, code: str) -> Service | None:
    result = await session.execute(select(Service).where(Service.code == code))
    return result.scalar_one_or_none()


async def create_service(session: AsyncSession, data: ServiceCreate) -> Service | None:
    """Returns None when the code is already taken."""
    if await get_service_by_code(session, data.code):
        return None
    values = data.model_dump(exclude={"resource_kind"})
    service = Service(
        **values,
        resource_kind=data.resource_kind.value if data.resource_kind else None,
    )
    session.add(service)
    await session.flush()
    await session.refresh(service)
    return service


async def list_services(session: AsyncSession, active_only: bool = True) -> list[Service]:
    q = select(Service).order_by(Service.name)
    if active_only:
        q = q.where(Service.active == True)  # noqa: E712
    result = await session.execute(q)
    return list(result.scalars().all())


async def create_sub_service(
    session: AsyncSession, service_id: int, data: SubServiceCreate
) -> SubService | None:
    """Returns None when the parent service does not exist."""
    if not await session.get(Service, service_id):
        return None
    sub_service = SubService(service_id=service_id, **data.model_dump())
    session.add(sub_service)
    await session.flush()
    await session.refresh(sub_service)
    return sub_service


async def list_sub_services(session: AsyncSession, service_id: int) -> list[SubService]:
    result = await session.execute(
        select(SubService)
        .where(SubService.service_id == service_id, SubService.active == True)  # noqa: E712
        .order_by(SubService.name)
    )
    return list(result.scalars().all())


async def list_resources(session: AsyncSession, kind: ResourceKind | None = None) -> list[Resource]:
    q = select(Resource).order_by(Resource.kind, Resource.number)
    if kind:
        q = q.where(Resource.kind == kind.value)
    result = await session.execute(q)
    return list(result.scalars().all())
