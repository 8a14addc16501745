"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="LUXROUTE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Luxury Route Planner API"
    api_prefix: str = "/api"
    hub_price_book_file: Optional[Path] = Field(
        default=None,
        description="Optional workbook with hub fee/capability overrides (one row per hub).",
    )
    reference_currency: str = Field(default="EUR", description="Currency all costs are reported in.")
    fx_rates_to_reference: dict[str, float] = Field(
        default_factory=lambda: {"EUR": 1.0, "GBP": 1.17, "USD": 0.92, "CHF": 1.04},
        description="Static conversion table: one unit of currency expressed in the reference currency.",
    )
    last_resort_hub_ids: tuple[str, ...] = Field(
        default=("LONDON_HUB1", "PARIS_HUB1"),
        description="Built-in hubs used when no hub in the snapshot survives filtering.",
    )

    # External pricing budget and cache
    api_hard_cap: int = Field(default=8, ge=0, description="Maximum live pricing calls per session.")
    session_ttl_minutes: int = Field(default=60, ge=1, description="Pricing sessions older than this are dropped.")
    cache_ttl_minutes: dict[str, int] = Field(
        default_factory=lambda: {"flights": 60, "trains": 60, "dhl": 30, "ground": 120},
    )
    date_bucket_hours: dict[str, int] = Field(
        default_factory=lambda: {"flights": 4, "trains": 6, "ground": 12},
    )
    weight_bucket_kg: float = Field(default=5.0, gt=0.0)
    provider_timeout_seconds: float = Field(default=8.0, gt=0.0)
    flight_provider_urls: tuple[str, ...] = Field(default=tuple(), description="Ordered flight quote endpoints.")
    train_provider_urls: tuple[str, ...] = Field(default=tuple(), description="Ordered train quote endpoints.")
    dhl_provider_urls: tuple[str, ...] = Field(default=tuple(), description="Ordered parcel quote endpoints.")
    ground_provider_urls: tuple[str, ...] = Field(default=tuple(), description="Ordered ground quote endpoints.")
    osrm_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the OSRM routing service used for ground quotes (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing ground travel times.",
    )

    # Transport resolution
    flight_min_distance_km: float = Field(default=500.0, ge=0.0)
    train_min_distance_km: float = Field(default=150.0, ge=0.0)
    max_ground_distance_km: float = Field(default=1200.0, ge=0.0)
    ground_speed_kmh: float = Field(default=70.0, gt=0.0)
    flight_speed_kmh: float = Field(default=800.0, gt=0.0)

    # White-glove labor
    wg_hourly_rate: float = Field(default=65.0, ge=0.0)
    wg_standard_hours: float = Field(default=8.0, ge=0.0)
    wg_overtime_multiplier: float = Field(default=1.5, ge=1.0)
    wg_per_diem: float = Field(default=150.0, ge=0.0)
    wg_per_diem_after_hours: float = Field(default=12.0, ge=0.0)
    wg_accommodation_after_hours: float = Field(default=16.0, ge=0.0)
    wg_accommodation_nightly: float = Field(default=160.0, ge=0.0)
    wg_meal_allowance: float = Field(default=35.0, ge=0.0)
    wg_return_discount: float = Field(default=0.8, ge=0.0, le=1.0)

    # Scheduling
    default_pickup_lead_hours: float = Field(default=2.0, ge=0.0)
    internal_rollout_cutoff_hour: int = Field(default=14, ge=0, le=23)
    internal_rollout_transit_hours: float = Field(default=24.0, ge=0.0)
    sla_buffer_warning_days: float = Field(default=2.0, ge=0.0)

    # Pricing and margin
    margin_multipliers: dict[int, float] = Field(default_factory=lambda: {2: 1.35, 3: 1.40})
    min_margin_percentage: dict[int, float] = Field(default_factory=lambda: {2: 20.0, 3: 20.0})
    insurance_rate: float = Field(default=0.003, ge=0.0)
    insurance_minimum: float = Field(default=25.0, ge=0.0)
    peak_surcharge_rate: float = Field(default=0.15, ge=0.0)
    weekend_surcharge: float = Field(default=75.0, ge=0.0)
    fragile_surcharge_rate: float = Field(default=0.01, ge=0.0)
    remote_area_surcharge: float = Field(default=50.0, ge=0.0)
    fuel_surcharge_rate: float = Field(default=0.05, ge=0.0)
    internal_rollout_run_cost: float = Field(default=50.0, ge=0.0)
    internal_rollout_base_cost: float = Field(default=25.0, ge=0.0)

    # Hub selection
    hub_weight_distance: float = Field(default=0.40, ge=0.0)
    hub_weight_cost: float = Field(default=0.35, ge=0.0)
    hub_weight_capacity: float = Field(default=0.20, ge=0.0)
    hub_weight_stock: float = Field(default=0.05, ge=0.0)
    hub_penalty_missing_sewing: float = Field(default=50.0, ge=0.0)
    hub_penalty_low_capacity: float = Field(default=30.0, ge=0.0)
    hub_penalty_high_fee: float = Field(default=25.0, ge=0.0)
    hub_high_fee_threshold: float = Field(default=400.0, ge=0.0)

    # Scoring and guardrails
    score_weight_time: float = Field(default=0.35, ge=0.0)
    score_weight_cost: float = Field(default=0.35, ge=0.0)
    score_weight_risk: float = Field(default=0.30, ge=0.0)
    grade_a_threshold: float = Field(default=80.0)
    grade_b_threshold: float = Field(default=60.0)
    high_value_threshold: float = Field(default=50000.0, ge=0.0)
    low_auth_capacity_threshold: int = Field(default=5, ge=0)
    max_overtime_hours: float = Field(default=4.0, ge=0.0)

    parallel_template_evaluation: bool = Field(
        default=False,
        description="Evaluate route templates on a thread pool instead of sequentially.",
    )
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("hub_price_book_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Optional[Path]:
        if value is None or value == "":
            return None
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator(
        "last_resort_hub_ids",
        "flight_provider_urls",
        "train_provider_urls",
        "dhl_provider_urls",
        "ground_provider_urls",
        "frontend_allowed_origins",
        mode="before",
    )
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            # Single value
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("fx_rates_to_reference", mode="after")
    @classmethod
    def _normalize_currency_codes(cls, value: dict[str, float]) -> dict[str, float]:
        return {code.upper(): float(rate) for code, rate in value.items()}


settings = Settings()
