"""Best-effort IP geolocation via ip-api.com."""

from typing import Optional

import httpx

from shared.logging import get_logger
from .config import GEOIP_TIMEOUT

logger = get_logger(__name__)

GEOIP_URL = "http://ip-api.com/json/{ip}"
UNKNOWN = "Unknown"
LOCALHOST_IPS = ("127.0.0.1", "::1")


def lookup(
    ip: str,
    client: Optional[httpx.Client] = None,
    timeout: float = GEOIP_TIMEOUT,
) -> tuple[str, str]:
    """Return (country, city) for ``ip``.

    Loopback addresses short-circuit to "Localhost". Any network, decoding
    or upstream failure yields ("Unknown", "Unknown").
    """
    if ip in LOCALHOST_IPS:
        return "Localhost", "Localhost"

    url = GEOIP_URL.format(ip=ip)
    try:
        if client is None:
            response = httpx.get(url, timeout=timeout)
        else:
            response = client.get(url, timeout=timeout)
        data = response.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.debug(f"GeoIP lookup failed for {ip}: {e}")
        return UNKNOWN, UNKNOWN

    if not isinstance(data, dict) or data.get("status") == "fail":
        return UNKNOWN, UNKNOWN

    return data.get("country") or UNKNOWN, data.get("city") or UNKNOWN
