"""Application configuration and settings management."""

from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="FIELDROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Field Route Service"
    api_prefix: str = "/api"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Optimizer
    optimizer_population_size: int = Field(default=50, ge=2)
    optimizer_generations: int = Field(default=100, ge=1)
    optimizer_elite_size: int = Field(default=10, ge=1)
    optimizer_mutation_rate: float = Field(default=0.2, ge=0.0, le=1.0)
    average_visit_minutes: float = Field(
        default=45.0,
        gt=0.0,
        description="Per-stop duration used to approximate arrival times in the fitness function.",
    )
    workday_start_hour: int = Field(default=8, ge=0, le=23)
    time_window_weight: float = Field(default=1.0, ge=0.0)
    priority_weight: float = Field(default=1.0, ge=0.0)
    car_speed_kmh: float = Field(default=20.0, gt=0.0)
    motorcycle_speed_kmh: float = Field(default=30.0, gt=0.0)
    bicycle_speed_kmh: float = Field(default=12.0, gt=0.0)
    invalid_coordinate_policy: Literal["reject", "zero"] = Field(
        default="reject",
        description="'reject' raises InvalidCoordinate, 'zero' counts legs with bad coordinates as 0 km.",
    )

    # Visits
    default_skip_reason: str = "No reason provided"
    default_task_keys: tuple[str, ...] = Field(
        default=(
            "evidence_before",
            "identify_sold",
            "picking",
            "restocking",
            "organization",
            "pricing",
            "evidence_after",
            "damage_check",
            "signature",
        ),
        description="Checklist initialized on a visit when it is first started.",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("frontend_allowed_origins", "default_task_keys", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()


settings = Settings()
