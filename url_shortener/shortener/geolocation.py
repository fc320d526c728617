import logging
import time
from typing import Optional, Tuple

import httpx

from shortener.config import settings
from shortener.exceptions import ExternalServiceError
from shortener.json_utils import loads

logger = logging.getLogger(__name__)

LOCAL = ("Local", "Local")
UNKNOWN = (None, None)

Location = Tuple[Optional[str], Optional[str]]


def is_local_or_private_ip(ip_address: str) -> bool:
    """Проверяет, относится ли адрес к локальным/частным диапазонам"""
    return ip_address in ("127.0.0.1", "::1") or ip_address.startswith(("10.", "192.168.", "172.16."))


class GeoLocationResolver:
    """Определяет страну и город по IP через ip-api.com.

    Ошибки (таймаут, не-2xx ответ, битый JSON) не пробрасываются:
    результат тогда (None, None).
    """

    def __init__(
        self,
        url_template: str = settings.GEOLOCATION_URL,
        timeout: float = settings.GEOLOCATION_TIMEOUT,
        client: Optional[httpx.Client] = None,
    ):
        self.url_template = url_template
        self.timeout = timeout
        self._client = client or httpx.Client(timeout=timeout)

    def resolve(self, ip_address: Optional[str]) -> Location:
        if not ip_address or not ip_address.strip():
            return UNKNOWN

        ip_address = ip_address.strip()
        if is_local_or_private_ip(ip_address):
            return LOCAL

        try:
            return self._lookup(ip_address)
        except ExternalServiceError as e:
            logger.warning("Failed to get geolocation for IP %s: %s", ip_address, e)
        return UNKNOWN

    def _lookup(self, ip_address: str) -> Location:
        # Таймаут httpx действует на каждую фазу отдельно; общий срок проверяется по мере чтения тела
        deadline = time.monotonic() + self.timeout
        url = self.url_template.format(ip=ip_address)
        try:
            with self._client.stream("GET", url, timeout=self.timeout) as response:
                response.raise_for_status()
                body = bytearray()
                for chunk in response.iter_bytes():
                    if time.monotonic() > deadline:
                        raise ExternalServiceError(f"no complete response within {self.timeout}s")
                    body.extend(chunk)
            data = loads(bytes(body))
        except httpx.HTTPError as e:
            raise ExternalServiceError(f"{type(e).__name__}: {e}") from e
        except ValueError as e:
            raise ExternalServiceError(f"malformed payload: {e}") from e

        if not isinstance(data, dict):
            raise ExternalServiceError("malformed payload: expected an object")
        if data.get("status") == "fail":
            raise ExternalServiceError(f"lookup failed: {data.get('message', 'unknown reason')}")

        return _text(data.get("country")), _text(data.get("city"))

    def close(self) -> None:
        self._client.close()


def _text(value) -> Optional[str]:
    if isinstance(value, str) and value:
        return value[:100]
    return None
