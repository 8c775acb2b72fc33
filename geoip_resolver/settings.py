import os


def read_optional_float(value: str | None) -> float | None:
    if value is None or not value.strip():
        return None
    return float(value)


GEOIP_BASE_URL = os.getenv("GEOIP_BASE_URL", "http://ip-api.com")
GEOIP_TIMEOUT_SECONDS = float(os.getenv("GEOIP_TIMEOUT_SECONDS", "5.0"))
# Unset disables the per-lookup timer; only the transport timeout applies.
GEOIP_LOOKUP_TIMEOUT_SECONDS = read_optional_float(os.getenv("GEOIP_LOOKUP_TIMEOUT_SECONDS"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")  # DEBUG, WARNING, ERROR
