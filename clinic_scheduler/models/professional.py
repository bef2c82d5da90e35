from sqlmodel import Field, SQLModel


class ProfessionalBase(SQLModel):
    full_name: str
    title: str | None = None  # e.g. "Nurse", "Physician"
    active: bool = True


class Professional(ProfessionalBase, table=True):
    __tablename__ = "professionals"
    id: int | None = Field(default=None, primary_key=True)


class ProfessionalCreate(ProfessionalBase):
    pass


class ProfessionalPublic(ProfessionalBase):
    id: int
