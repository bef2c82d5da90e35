from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve .env from the project root so it loads regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_ENV_FILE = _PROJECT_ROOT / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=(str(_ENV_FILE), ".env"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Database
    database_url: str
    database_ssl: bool = False  # hosted Postgres (Neon, Supabase) needs SSL via connect_args
    create_tables_on_startup: bool = False
    seed_resources: bool = True

    # CORS
    cors_origins: str = "http://localhost:3000"

    # Slot grid (calendar cells and time pickers)
    slot_step_minutes: int = 15
    opening_hour: int = 8
    last_slot_hour: int = 18  # inclusive, so the regular grid ends at 18:45
    extra_slots: str = "18:45"
    # Any session ending at or after this time is rejected
    closing_time: str = "19:00"
    default_duration_minutes: int = 60

    # Bookable units per family
    consultation_room_count: int = 3
    hyperbaric_chamber_count: int = 1
    drips_station_count: int = 5

    # Env
    env: str = "development"

    # Email (SMTP). Leave smtp_host empty to disable sending.
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    from_email: str = ""
    from_name: str = "Clinic Scheduling"
    site_name: str = "Clinic Scheduling"
    contact_email: str = ""
    contact_phone: str = ""

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def extra_slots_list(self) -> list[str]:
        return [s.strip() for s in self.extra_slots.split(",") if s.strip()]

    @property
    def email_enabled(self) -> bool:
        return bool(self.smtp_host and self.smtp_user and self.smtp_password and self.from_email)


settings = Settings()
