"""Optional AI enhancement of raw submission attributes before scoring"""

import httpx
from typing import Any, Dict, Mapping, Optional, Protocol
from flashflow_risk.domain.models import AssetClass
from flashflow_risk.domain.exceptions import EnhancementUnavailableError
from flashflow_risk.config import settings


class Enhancer(Protocol):
    """Capability interface: return enriched attributes for a submission"""

    async def enhance(self, asset_class: AssetClass, attributes: Mapping[str, Any]) -> Dict[str, Any]: ...


class NoopEnhancer:
    """Default enhancer - returns the attributes unchanged"""

    async def enhance(self, asset_class: AssetClass, attributes: Mapping[str, Any]) -> Dict[str, Any]:
        return dict(attributes)


class HttpEnhancer:
    """Client for an external enhancement service"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.enhancer_url
        self.timeout = timeout or settings.enhancer_timeout_seconds
        self.transport = transport

    async def enhance(self, asset_class: AssetClass, attributes: Mapping[str, Any]) -> Dict[str, Any]:
        """
        POST the raw attributes and return the enhanced attribute bag.

        Raises:
            EnhancementUnavailableError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/enhance",
                    json={"asset_class": AssetClass(asset_class).value, "attributes": dict(attributes)},
                )
                response.raise_for_status()
                data = response.json()

                enhanced = data["attributes"]
                if not isinstance(enhanced, dict):
                    raise TypeError("attributes must be an object")
                return enhanced

            except httpx.TimeoutException as e:
                raise EnhancementUnavailableError(f"Enhancer timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise EnhancementUnavailableError(f"Enhancer error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise EnhancementUnavailableError(f"Enhancer unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise EnhancementUnavailableError(f"Invalid enhancer response: {e}") from e


def build_enhancer(base_url: str | None = None) -> Enhancer:
    """HTTP enhancer when a URL is configured, otherwise the no-op default"""
    url = settings.enhancer_url if base_url is None else base_url
    if url:
        return HttpEnhancer(base_url=url)
    return NoopEnhancer()
