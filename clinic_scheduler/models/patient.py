from datetime import UTC, datetime

from pydantic import EmailStr
from sqlalchemy import Column, DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


class PatientBase(SQLModel):
    first_name: str | None = None
    last_name: str | None = None
    full_name: str | None = None
    email: str | None = Field(default=None, index=True)
    phone: str | None = None


class Patient(PatientBase, table=True):
    __tablename__ = "patients"
    id: int | None = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_column=Column(DateTime(), nullable=False))

    @property
    def display_name(self) -> str:
        if self.first_name and self.last_name:
            return f"{self.first_name} {self.last_name}"
        return self.full_name or self.email or "Unnamed"


class PatientCreate(PatientBase):
    email: EmailStr | None = None


class PatientPublic(PatientBase):
    id: int
    display_name: str
