"""
Pricing lookup interface used by the cost calculator.
"""
from typing import Optional, Protocol

from tfcost.domain.cost_models import Pricing


class PricingError(Exception):
    """Raised when pricing for a resource cannot be determined."""
    pass


class PricingLookup(Protocol):
    """Source of hourly prices."""

    def get_pricing(self, provider: str, region: str, resource_type: str) -> Optional[Pricing]:
        """
        Look up pricing for one resource.

        Args:
            provider: Provider prefix (e.g., "aws")
            region: Region, or availability zone where the provider prices per zone
            resource_type: Instance type for compute resources, otherwise the
                resource type

        Returns:
            Pricing, or None when the source has no entry

        Raises:
            PricingError: If the lookup fails
        """
        ...
