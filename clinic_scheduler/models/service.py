from decimal import Decimal

from sqlmodel import Field, SQLModel

from clinic_scheduler.models.resource import ResourceKind


class ServiceBase(SQLModel):
    name: str
    code: str = Field(unique=True, index=True)
    duration_minutes: int | None = None
    base_price: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    active: bool = True


class Service(ServiceBase, table=True):
    __tablename__ = "services"
    id: int | None = Field(default=None, primary_key=True)
    # Family of bookable units the service occupies; None for services without one
    resource_kind: str | None = Field(default=None, max_length=32)


class ServiceCreate(ServiceBase):
    duration_minutes: int | None = Field(default=None, gt=0)
    resource_kind: ResourceKind | None = None


class ServicePublic(ServiceBase):
    id: int
    resource_kind: ResourceKind | None = None


class SubServiceBase(SQLModel):
    name: str
    duration_minutes: int
    price: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    active: bool = True


class SubService(SubServiceBase, table=True):
    __tablename__ = "sub_services"
    id: int | None = Field(default=None, primary_key=True)
    service_id: int = Field(foreign_key="services.id", index=True)


class SubServiceCreate(SubServiceBase):
    duration_minutes: int = Field(gt=0)


class SubServicePublic(SubServiceBase):
    id: int
    service_id: int
