import json
import math
import os
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from .normalize import normalize_line_id

DEFAULT_STOP = "PH1474"
DEFAULT_LINE = "H09"


def _env_float(name: str, default: Optional[float] = None) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        return default


class SecondaryConfig(BaseModel):
    """Directions lookup settings. The secondary source is skipped unless complete."""

    api_key: str = ""
    lat: Optional[float] = None
    lng: Optional[float] = None
    dest_place_id: str = ""
    stop_id: str = DEFAULT_STOP
    line_id: str = DEFAULT_LINE
    language: str = "es"
    region: str = "cl"

    @property
    def is_complete(self) -> bool:
        return bool(
            self.api_key
            and self.dest_place_id
            and self.lat is not None and math.isfinite(self.lat)
            and self.lng is not None and math.isfinite(self.lng)
        )

    def applies_to(self, stop_id: str, line_id: str) -> bool:
        return (
            self.is_complete
            and normalize_line_id(stop_id) == normalize_line_id(self.stop_id)
            and normalize_line_id(line_id) == normalize_line_id(self.line_id)
        )


class Settings(BaseModel):
    default_stop: str = DEFAULT_STOP
    default_line: str = DEFAULT_LINE
    grace_seconds: float = Field(1.2, ge=0)
    timeout_seconds: float = Field(6.5, gt=0)
    primary_timeout: float = Field(6.0, gt=0)
    secondary_timeout: float = Field(6.5, gt=0)
    primary_provider: str = "xor"
    provider_opts: Dict[str, Any] = Field(default_factory=dict)
    frontend_origin: str = "http://localhost:5173"
    log_level: str = "INFO"
    secondary: SecondaryConfig = Field(default_factory=SecondaryConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        load_dotenv()

        opts_raw = os.getenv("PROVIDER_OPTS", "{}")
        try:
            opts = json.loads(opts_raw)
        except json.JSONDecodeError:
            opts = {}
        if not isinstance(opts, dict):
            opts = {}

        secondary = SecondaryConfig(
            api_key=(os.getenv("GMAPS_API_KEY") or "").strip(),
            lat=_env_float("ORIGIN_LAT"),
            lng=_env_float("ORIGIN_LNG"),
            dest_place_id=(os.getenv("DEST_PLACE_ID") or "").strip(),
            stop_id=os.getenv("SECONDARY_STOP", DEFAULT_STOP),
            line_id=os.getenv("SECONDARY_LINE", DEFAULT_LINE),
            language=os.getenv("DIRECTIONS_LANGUAGE", "es"),
            region=os.getenv("DIRECTIONS_REGION", "cl"),
        )
        return cls(
            default_stop=os.getenv("DEFAULT_STOP", DEFAULT_STOP),
            default_line=os.getenv("DEFAULT_LINE", DEFAULT_LINE),
            grace_seconds=_env_float("GRACE_SECONDS", 1.2),
            timeout_seconds=_env_float("TIMEOUT_SECONDS", 6.5),
            primary_timeout=_env_float("PRIMARY_TIMEOUT", 6.0),
            secondary_timeout=_env_float("SECONDARY_TIMEOUT", 6.5),
            primary_provider=os.getenv("PRIMARY_PROVIDER", "xor"),
            provider_opts=opts,
            frontend_origin=os.getenv("FRONTEND_ORIGIN", "http://localhost:5173"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            secondary=secondary,
        )
