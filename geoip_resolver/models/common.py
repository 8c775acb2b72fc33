from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class GeoIpStatus(str, Enum):
    """Outcome of a single geolocation lookup."""

    SUCCESS = "success"
    FAIL = "fail"
    TIMEOUT = "timeout"


class GeoData(BaseModel):
    """Geolocation fields reported by ip-api.com for a successful lookup.

    The upstream payload is untrusted and may omit any of these, so every text
    field defaults to an empty string and every coordinate to 0.0. Field aliases
    follow the ip-api.com wire names (`countryCode`, `regionName`, `as`).
    """

    model_config = ConfigDict(populate_by_name=True)

    country: str = ""
    country_code: str = Field(default="", alias="countryCode")
    region: str = ""
    region_name: str = Field(default="", alias="regionName")
    city: str = ""
    zip: str = ""
    lat: float = 0.0
    lon: float = 0.0
    timezone: str = ""
    isp: str = ""
    org: str = ""
    as_: str = Field(default="", alias="as")

    @field_validator("lat", "lon", mode="before")
    @classmethod
    def _coerce_lat_lon(cls, value: Any) -> float:
        """Allow coordinates to be provided as strings, numbers, or null."""
        if value is None or isinstance(value, bool):
            return 0.0
        try:
            return float(value)
        except (TypeError, ValueError, OverflowError):
            return 0.0

    @field_validator(
        "country",
        "country_code",
        "region",
        "region_name",
        "city",
        "zip",
        "timezone",
        "isp",
        "org",
        "as_",
        mode="before",
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value)


class GeoResult(BaseModel):
    """Result delivered to the completion handler of one lookup.

    `data` is set only when `status` is SUCCESS; `message` only otherwise.
    """

    query: str
    status: GeoIpStatus
    data: GeoData | None = None
    message: str | None = None

    @classmethod
    def failure(cls, query: str, message: str, status: GeoIpStatus = GeoIpStatus.FAIL) -> "GeoResult":
        return cls(query=query, status=status, message=message)
