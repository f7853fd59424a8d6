"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="ROUTE_ENGINE_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Transit Route Engine API"
    api_prefix: str = "/api"
    data_root: Path = Field(default=Path("data"), description="Root directory for exported route files.")

    routing_base_url: Optional[str] = Field(
        default=None,
        description="Base URL for the routing service (e.g., http://localhost:5000 or https://api.mapbox.com).",
    )
    routing_profile: str = Field(
        default="driving",
        description="Travel profile used for snapping and trip optimization (e.g., 'driving' or 'mapbox/driving').",
    )
    routing_snap_endpoint: str = Field(
        default="route/v1",
        description="Path segment of the road-following route endpoint ('directions/v5' for Mapbox).",
    )
    routing_optimize_endpoint: str = Field(
        default="trip/v1",
        description="Path segment of the trip optimization endpoint ('optimized-trips/v1' for Mapbox).",
    )
    routing_access_token: Optional[str] = Field(
        default=None,
        description="Access token appended as 'access_token' when the provider requires one.",
    )
    routing_timeout_seconds: float = Field(default=15.0, gt=0.0)
    routing_max_retries: int = Field(default=2, ge=0)
    routing_backoff_seconds: float = Field(default=0.5, ge=0.0)
    optimize_max_waypoints: int = Field(
        default=12,
        ge=2,
        description="Maximum waypoints accepted by the optimization endpoint; longer lists are truncated.",
    )

    simplify_tolerance: float = Field(
        default=0.0001,
        ge=0.0,
        description="Default Douglas-Peucker tolerance in coordinate degrees.",
    )

    region_lat_range: tuple[float, float] = Field(
        default=(4.0, 21.0),
        description="Latitude band of the service region used to disambiguate axis order.",
    )
    region_lng_range: tuple[float, float] = Field(
        default=(116.0, 127.0),
        description="Longitude band of the service region used to disambiguate axis order.",
    )
    default_center: tuple[float, float] = Field(
        default=(14.5995, 120.9842),
        description="(latitude, longitude) used to frame the map when a route has no points.",
    )
    default_span: float = Field(default=0.1, gt=0.0)
    region_padding: float = Field(default=0.05, ge=0.0)
    region_min_span: float = Field(default=0.01, gt=0.0)

    fare_base: int = Field(default=12, ge=0)
    fare_per_km: int = Field(default=2, ge=0)
    fare_free_km: float = Field(default=5.0, ge=0.0)
    fare_band: int = Field(default=3, ge=0)
    travel_speed_kmh: float = Field(default=20.0, gt=0.0)
    travel_time_band_minutes: int = Field(default=15, ge=0)

    graph_node_threshold_m: float = Field(
        default=50.0,
        ge=0.0,
        description="Graph nodes further than this from a route are not linked to it.",
    )
    default_insert_position: Literal["append", "prepend"] = Field(
        default="append",
        description="Where a map click adds a new point when no explicit position is given.",
    )

    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
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

    @field_validator("data_root", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Path:
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
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
        # Return empty tuple if value is None or empty
        return tuple()

    @field_validator("region_lat_range", "region_lng_range", "default_center", mode="before")
    @classmethod
    def _parse_float_pair_from_env(cls, value: Any) -> tuple[float, float]:
        """Parse a float pair from environment variable (comma-separated or JSON array)."""
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
            except (json.JSONDecodeError, TypeError):
                parsed = [item.strip() for item in value.split(",") if item.strip()]
            value = parsed
        if isinstance(value, (list, tuple)) and len(value) == 2:
            first, second = (float(item) for item in value)
            return (first, second)
        raise ValueError("expected two numbers, e.g. '4,21' or '[4, 21]'")


settings = Settings()
