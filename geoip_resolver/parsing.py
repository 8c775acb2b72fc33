import json
from typing import Any

from geoip_resolver.models.common import GeoData, GeoIpStatus, GeoResult

EMPTY_RESPONSE_MESSAGE = "Empty response from server"
INVALID_FORMAT_MESSAGE = "Invalid response format: missing 'query' or 'status'"

GEO_DATA_FIELDS = (
    "country",
    "countryCode",
    "region",
    "regionName",
    "city",
    "zip",
    "lat",
    "lon",
    "timezone",
    "isp",
    "org",
    "as",
)


def parse_status(payload: dict[str, Any]) -> GeoIpStatus:
    """Map the ip-api.com `status` field; only the literal "success" succeeds."""
    if payload.get("status") == "success":
        return GeoIpStatus.SUCCESS
    return GeoIpStatus.FAIL


def parse_response_body(key: str, body: str) -> GeoResult:
    """Turn a raw ip-api.com response body into a GeoResult.

    Every malformed input is recovered into a FAIL result rather than raised:
    an empty body, text that is not JSON, and JSON that is not an object
    carrying both `query` and `status`.
    """
    if not body.strip():
        return GeoResult.failure(key, EMPTY_RESPONSE_MESSAGE)

    try:
        payload = json.loads(body)
    except ValueError as exc:
        return GeoResult.failure(key, f"JSON parse error: {exc}, request data: {key}")

    if not isinstance(payload, dict) or "query" not in payload or "status" not in payload:
        return GeoResult.failure(key, INVALID_FORMAT_MESSAGE)

    return _normalize_payload(payload)


def _normalize_payload(payload: dict[str, Any]) -> GeoResult:
    query = str(payload.get("query") or "")
    status = parse_status(payload)

    if status is GeoIpStatus.SUCCESS:
        # Only the known fields are picked; unknown keys are ignored.
        data = GeoData.model_validate({name: payload[name] for name in GEO_DATA_FIELDS if name in payload})
        return GeoResult(query=query, status=status, data=data)

    message = payload.get("message")
    return GeoResult(query=query, status=status, message="" if message is None else str(message))


def geo_data_as_dict(query: str, data: GeoData) -> dict[str, Any]:
    """Flatten a lookup key and its GeoData into the ip-api.com field layout."""
    return {"query": query, **data.model_dump(by_alias=True)}


def geo_data_as_json(query: str, data: GeoData) -> str:
    """Serialize a lookup key and its GeoData to a JSON object string.

    Keys appear in the order `query, country, countryCode, region, regionName,
    city, zip, lat, lon, timezone, isp, org, as`, which is what collaborators
    embedding the result into other messages expect.
    """
    return json.dumps(geo_data_as_dict(query, data))
