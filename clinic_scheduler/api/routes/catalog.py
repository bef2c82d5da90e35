from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduler.api.deps import get_session
from clinic_scheduler.models.patient import Patient, PatientCreate, PatientPublic
from clinic_scheduler.models.professional import ProfessionalCreate, ProfessionalPublic
from clinic_scheduler.models.resource import ResourceKind, ResourcePublic
from clinic_scheduler.models.service import (
    ServiceCreate,
    ServicePublic,
    SubServiceCreate,
    SubServicePublic,
)
from clinic_scheduler.services import catalog_service

router = APIRouter(tags=["catalog"])


@router.post("/patients", response_model=PatientPublic, status_code=status.HTTP_201_CREATED)
async def create_patient(
    body: PatientCreate,
    session: AsyncSession = Depends(get_session),
) -> PatientPublic:
    patient = await catalog_service.create_patient(session, body)
    return PatientPublic.model_validate(patient)


@router.get("/patients", response_model=list[PatientPublic])
async def list_patients(session: AsyncSession = Depends(get_session)) -> list[PatientPublic]:
    return [PatientPublic.model_validate(p) for p in await catalog_service.list_patients(session)]


@router.get("/patients/{patient_id}", response_model=PatientPublic)
async def get_patient(
    patient_id: int,
    session: AsyncSession = Depends(get_session),
) -> PatientPublic:
    patient = await session.get(Patient, patient_id)
    if not patient:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Patient not found")
    return PatientPublic.model_validate(patient)


@router.post("/professionals", response_model=ProfessionalPublic, status_code=status.HTTP_201_CREATED)
async def create_professional(
    body: ProfessionalCreate,
    session: AsyncSession = Depends(get_session),
) -> ProfessionalPublic:
    professional = await catalog_service.create_professional(session, body)
    return ProfessionalPublic.model_validate(professional)


@router.get("/professionals", response_model=list[ProfessionalPublic])
async def list_professionals(
    title: str | None = Query(None),
    include_inactive: bool = Query(False),
    session: AsyncSession = Depends(get_session),
) -> list[ProfessionalPublic]:
    professionals = await catalog_service.list_professionals(
        session, active_only=not include_inactive, title=title
    )
    return [ProfessionalPublic.model_validate(p) for p in professionals]


@router.post("/services", response_model=ServicePublic, status_code=status.HTTP_201_CREATED)
async def create_service(
    body: ServiceCreate,
    session: AsyncSession = Depends(get_session),
) -> ServicePublic:
    service = await catalog_service.create_service(session, body)
    if not service:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A service with code '{body.code}' already exists",
        )
    return ServicePublic.model_validate(service)


@router.get("/services", response_model=list[ServicePublic])
async def list_services(session: AsyncSession = Depends(get_session)) -> list[ServicePublic]:
    return [ServicePublic.model_validate(s) for s in await catalog_service.list_services(session)]


@router.post(
    "/services/{service_id}/sub-services",
    response_model=SubServicePublic,
    status_code=status.HTTP_201_CREATED,
)
async def create_sub_service(
    service_id: int,
    body: SubServiceCreate,
    session: AsyncSession = Depends(get_session),
) -> SubServicePublic:
    sub_service = await catalog_service.create_sub_service(session, service_id, body)
    if not sub_service:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service not found")
    return SubServicePublic.model_validate(sub_service)


@router.get("/services/{service_id}/sub-services", response_model=list[SubServicePublic])
async def list_sub_services(
    service_id: int,
    session: AsyncSession = Depends(get_session),
) -> list[SubServicePublic]:
    sub_services = await catalog_service.list_sub_services(session, service_id)
    return [SubServicePublic.model_validate(s) for s in sub_services]


@router.get("/resources", response_model=list[ResourcePublic])
async def list_resources(
    kind: ResourceKind | None = Query(None),
    session: AsyncSession = Depends(get_session),
) -> list[ResourcePublic]:
    return [ResourcePublic.model_validate(r) for r in await catalog_service.list_resources(session, kind)]
