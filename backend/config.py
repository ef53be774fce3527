import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv(Path(__file__).resolve().parent / ".env")

DEFAULT_DROP_OFF_LOCATIONS = "South C,Nairobi Town,Kikuyu,Roasters,Ruaka,Outer Ring"


def _require_env(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def _get_list(name: str, fallback: str = "") -> List[str]:
    raw_value = os.getenv(name, fallback)
    if not raw_value:
        return []
    return [item.strip() for item in raw_value.split(",") if item.strip()]


def _get_bool(name: str, fallback: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None or raw_value == "":
        return fallback
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    supabase_url: str = _require_env("SUPABASE_URL")
    supabase_service_role_key: str = _require_env("SUPABASE_SERVICE_ROLE_KEY")
    supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY") or _require_env(
        "SUPABASE_SERVICE_ROLE_KEY"
    )
    storage_bucket: str = os.getenv("STORAGE_BUCKET", "stl-files")
    customers_table: str = os.getenv("CUSTOMERS_TABLE", "customers")
    stls_table: str = os.getenv("STLS_TABLE", "stls")
    orders_table: str = os.getenv("ORDERS_TABLE", "orders")
    environment: str = os.getenv("ENVIRONMENT", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
    strict_pricing: bool = _get_bool("STRICT_PRICING")
    session_cookie_name: str = os.getenv("SESSION_COOKIE_NAME", "print_orders_session")
    max_upload_files: int = int(os.getenv("MAX_UPLOAD_FILES", "10"))
    max_upload_size_mb: int = int(os.getenv("MAX_UPLOAD_SIZE_MB", "50"))
    default_drop_off_location: str = os.getenv(
        "DEFAULT_DROP_OFF_LOCATION", "Nairobi Town"
    )
    drop_off_locations: List[str] = field(
        default_factory=lambda: _get_list(
            "DROP_OFF_LOCATIONS", DEFAULT_DROP_OFF_LOCATIONS
        )
    )
    allowed_origins: List[str] = field(
        default_factory=lambda: _get_list("ALLOWED_ORIGINS", "*")
    )

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
