"""
Domain models for cost estimation.
Defines pricing inputs, per-resource cost lines and the aggregate estimate.
"""
from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field
from datetime import datetime, timezone

DISCLAIMER = "This is an estimate only. Actual costs may vary based on usage, region, and pricing changes."

# Upper bounds that mean "no upper limit"
UNBOUNDED_TIER_LIMITS = (0, -1)


@dataclass(frozen=True)
class PricingTier:
    """A quantity band with its own unit price."""
    min_units: int
    max_units: int  # 0 or -1 means unbounded
    price_per_unit: float

    def contains(self, quantity: int) -> bool:
        """Check whether a quantity falls inside this tier (both bounds inclusive)."""
        if quantity < self.min_units:
            return False
        return self.max_units in UNBOUNDED_TIER_LIMITS or quantity <= self.max_units

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PricingTier":
        """Build a tier from its JSON form."""
        return cls(
            min_units=int(data.get("min_units", 0)),
            max_units=int(data.get("max_units", 0)),
            price_per_unit=float(data["price_per_unit"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "min_units": self.min_units,
            "max_units": self.max_units,
            "price_per_unit": self.price_per_unit,
        }


@dataclass(frozen=True)
class Pricing:
    """Hourly price of one resource type; tiers take precedence when present."""
    currency: str
    hourly_price: float = 0.0
    tiers: List[PricingTier] = field(default_factory=list)

    def unit_hourly_price(self, quantity: int) -> float:
        """
        Hourly price of one unit at the given quantity.

        Tiers are checked in declared order; when none contains the
        quantity the last tier applies.

        Args:
            quantity: Number of instances being priced

        Returns:
            Price per unit per hour
        """
        if not self.tiers:
            return self.hourly_price
        for tier in self.tiers:
            if tier.contains(quantity):
                return tier.price_per_unit
        return self.tiers[-1].price_per_unit

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Pricing":
        """Build pricing from its JSON form."""
        return cls(
            currency=str(data.get("currency") or ""),
            hourly_price=float(data.get("hourly_price", 0.0)),
            tiers=[PricingTier.from_dict(tier) for tier in data.get("tiers") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "currency": self.currency,
            "hourly_price": self.hourly_price,
            "tiers": [tier.to_dict() for tier in self.tiers],
        }


@dataclass
class ResourceCostBreakdown:
    """Cost of one resource declaration."""
    resource_type: str
    resource_name: str
    provider: str
    count: int
    unit_hourly: float = 0.0
    unit_monthly: float = 0.0
    total_hourly: float = 0.0
    total_monthly: float = 0.0
    currency: str = ""
    available: bool = False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "resource_type": self.resource_type,
            "resource_name": self.resource_name,
            "provider": self.provider,
            "count": self.count,
            "unit_hourly": self.unit_hourly,
            "unit_monthly": self.unit_monthly,
            "total_hourly": self.total_hourly,
            "total_monthly": self.total_monthly,
            "currency": self.currency,
            "available": self.available,
        }


@dataclass
class ProviderCostSummary:
    """Totals for the priced resources of one provider."""
    provider: str
    total_hourly_cost: float = 0.0
    total_monthly_cost: float = 0.0
    currency: str = ""
    resource_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "provider": self.provider,
            "total_hourly_cost": self.total_hourly_cost,
            "total_monthly_cost": self.total_monthly_cost,
            "currency": self.currency,
            "resource_count": self.resource_count,
        }


@dataclass
class CostEstimate:
    """Represents a complete cost estimate."""
    total_hourly_cost: float = 0.0
    total_monthly_cost: float = 0.0
    currency: str = ""
    breakdown: List[ResourceCostBreakdown] = field(default_factory=list)
    provider_breakdown: Dict[str, ProviderCostSummary] = field(default_factory=dict)
    unavailable_count: int = 0
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    disclaimer: str = DISCLAIMER
    warnings: List[str] = field(default_factory=list)

    def provider_summary(self, provider: str) -> Optional[ProviderCostSummary]:
        """Return the summary for a provider, if it has priced resources."""
        return self.provider_breakdown.get(provider)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "total_hourly_cost": self.total_hourly_cost,
            "total_monthly_cost": self.total_monthly_cost,
            "currency": self.currency,
            "breakdown": [line.to_dict() for line in self.breakdown],
            "unavailable_count": self.unavailable_count,
            "timestamp": self.timestamp.isoformat(),
            "disclaimer": self.disclaimer,
        }
        if self.provider_breakdown:
            result["provider_breakdown"] = {
                provider: summary.to_dict() for provider, summary in self.provider_breakdown.items()
            }
        if self.warnings:
            result["warnings"] = list(self.warnings)
        return result
