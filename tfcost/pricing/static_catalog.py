"""
Static pricing catalog.

Prices kept in memory, keyed by provider, region and resource or instance
type. A ``*`` region entry applies to every region without its own entry.
Catalogs load from JSON documents shaped like::

    {
      "aws": {
        "us-east-1": {"t3.micro": {"currency": "USD", "hourly_price": 0.0104}},
        "*": {"aws_db_instance": {"currency": "USD", "hourly_price": 0.017}}
      }
    }
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from tfcost.domain.cost_models import Pricing
from tfcost.pricing.lookup import PricingError

logger = logging.getLogger(__name__)

ANY_REGION = "*"


class StaticPricingCatalog:
    """In-memory pricing table implementing ``PricingLookup``."""

    def __init__(self, entries: Optional[Dict[str, Dict[str, Dict[str, Pricing]]]] = None):
        """
        Initialize catalog.

        Args:
            entries: provider -> region -> resource key -> Pricing
        """
        self._entries: Dict[str, Dict[str, Dict[str, Pricing]]] = entries or {}

    def add(self, provider: str, region: str, resource_key: str, pricing: Pricing) -> None:
        """Add or replace one catalog entry."""
        self._entries.setdefault(provider, {}).setdefault(region, {})[resource_key] = pricing

    def get_pricing(self, provider: str, region: str, resource_type: str) -> Optional[Pricing]:
        """
        Look up pricing, falling back to the provider's ``*`` region.

        Returns:
            Pricing, or None when the catalog has no entry
        """
        regions = self._entries.get(provider, {})
        for candidate in (region, ANY_REGION):
            pricing = regions.get(candidate, {}).get(resource_type)
            if pricing is not None:
                return pricing
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StaticPricingCatalog":
        """
        Build a catalog from its JSON form.

        Raises:
            PricingError: If an entry is malformed
        """
        catalog = cls()
        for provider, regions in data.items():
            for region, resources in regions.items():
                for resource_key, pricing in resources.items():
                    try:
                        catalog.add(provider, region, resource_key, Pricing.from_dict(pricing))
                    except (KeyError, TypeError, ValueError, AttributeError) as error:
                        raise PricingError(
                            f"Invalid pricing entry {provider}/{region}/{resource_key}: {error}"
                        ) from error
        return catalog

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "StaticPricingCatalog":
        """
        Load a catalog from a JSON file.

        Raises:
            PricingError: If the file cannot be read or is malformed
        """
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, ValueError) as error:
            raise PricingError(f"Failed to load pricing catalog {path}: {error}") from error
        if not isinstance(data, dict):
            raise PricingError(f"Pricing catalog {path} must contain a JSON object")

        catalog = cls.from_dict(data)
        logger.info("Loaded pricing catalog from %s", path)
        return catalog
