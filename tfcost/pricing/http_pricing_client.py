"""
HTTP pricing API client.

Queries a JSON pricing endpoint:

    GET {base_url}/pricing?provider=aws&region=us-east-1&resource=t3.micro

answering ``{"currency": "USD", "hourly_price": 0.0104, "tiers": [...]}`` or
404 when the resource is unknown.
"""
from typing import Dict, Optional, Tuple
import logging
import threading
import time

import httpx

from tfcost.core.config import config
from tfcost.domain.cost_models import Pricing
from tfcost.pricing.lookup import PricingError
from tfcost.resilience.circuit_breaker import CircuitBreaker, get_circuit_breaker


logger = logging.getLogger(__name__)


class PricingAPIError(PricingError):
    """Raised when the pricing API call fails."""
    pass


class HTTPPricingClient:
    """Client for a JSON pricing API implementing ``PricingLookup``."""

    # In-memory cache: "base_url|provider:region:resource" -> (pricing or None, expiry time)
    _cache: Dict[str, Tuple[Optional[Pricing], float]] = {}
    _cache_lock = threading.Lock()

    SERVICE_NAME = "pricing_api"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        cache_ttl_seconds: Optional[int] = None,
        transport: Optional[httpx.BaseTransport] = None,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        """
        Initialize pricing client.

        Args:
            base_url: API base URL (defaults to PRICING_API_BASE_URL)
            timeout: Request timeout in seconds
            cache_ttl_seconds: Lifetime of cached answers
            transport: Optional httpx transport (used by tests)
            circuit_breaker: Breaker guarding the API
        """
        self.base_url = (base_url or config.PRICING_API_BASE_URL).rstrip("/")
        if not self.base_url:
            raise ValueError("Pricing API base URL is not configured")
        self.timeout = timeout if timeout is not None else config.PRICING_API_TIMEOUT
        self.cache_ttl = cache_ttl_seconds if cache_ttl_seconds is not None else config.PRICING_CACHE_TTL_SECONDS
        self.circuit_breaker = circuit_breaker or get_circuit_breaker(self.SERVICE_NAME)
        self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=transport)

    def close(self) -> None:
        """Close the underlying HTTP client."""
        self._client.close()

    def _get_cache_key(self, provider: str, region: str, resource_type: str) -> str:
        """Generate cache key."""
        return f"{self.base_url}|{provider}:{region}:{resource_type}"

    def _get_cached(self, cache_key: str) -> Tuple[bool, Optional[Pricing]]:
        """Get cached answer if still valid; returns (hit, pricing)."""
        with self._cache_lock:
            if cache_key in self._cache:
                pricing, expires_at = self._cache[cache_key]
                if time.monotonic() < expires_at:
                    return True, pricing
                del self._cache[cache_key]
        return False, None

    def _cache_pricing(self, cache_key: str, pricing: Optional[Pricing]) -> None:
        """Cache an answer until its TTL runs out, dropping expired entries."""
        now = time.monotonic()
        with self._cache_lock:
            expired = [key for key, (_, expires_at) in self._cache.items() if expires_at <= now]
            for key in expired:
                del self._cache[key]
            self._cache[cache_key] = (pricing, now + self.cache_ttl)

    @classmethod
    def clear_cache(cls) -> None:
        """Drop all cached answers."""
        with cls._cache_lock:
            cls._cache.clear()

    def get_pricing(self, provider: str, region: str, resource_type: str) -> Optional[Pricing]:
        """
        Get pricing for a resource.

        Args:
            provider: Provider prefix (e.g., "aws")
            region: Region or availability zone
            resource_type: Instance type or resource type

        Returns:
            Pricing, or None if the API has no entry

        Raises:
            PricingAPIError: If the circuit is open or the API call fails
        """
        cache_key = self._get_cache_key(provider, region, resource_type)
        hit, cached = self._get_cached(cache_key)
        if hit:
            return cached

        if not self.circuit_breaker.allow_request():
            raise PricingAPIError(f"Pricing API circuit open, skipping {resource_type} in {region or 'default region'}")

        try:
            response = self._client.get(
                "/pricing",
                params={"provider": provider, "region": region, "resource": resource_type},
            )
            if response.status_code == 404:
                self.circuit_breaker.record_success()  # Not found is not a failure
                self._cache_pricing(cache_key, None)
                return None
            response.raise_for_status()
            pricing = Pricing.from_dict(response.json())
        except httpx.HTTPStatusError as error:
            self.circuit_breaker.record_failure()
            logger.error(f"Pricing API HTTP error: {error}")
            raise PricingAPIError(f"Failed to query pricing API: {error.response.status_code}") from error
        except httpx.RequestError as error:
            self.circuit_breaker.record_failure()
            logger.error(f"Pricing API request error: {error}")
            raise PricingAPIError(f"Failed to connect to pricing API: {str(error)}") from error
        except (ValueError, KeyError, TypeError, AttributeError) as error:
            self.circuit_breaker.record_failure()
            logger.error(f"Error parsing pricing API response: {error}")
            raise PricingAPIError(f"Invalid pricing API response: {str(error)}") from error

        self.circuit_breaker.record_success()
        self._cache_pricing(cache_key, pricing)
        return pricing
