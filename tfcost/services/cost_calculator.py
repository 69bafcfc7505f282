"""
Cost calculation service.

Prices each extracted resource through a ``PricingLookup`` and aggregates
the results into a ``CostEstimate``. A resource that cannot be priced is
reported as unavailable with a warning; it never aborts the estimate.
"""
import logging
from typing import Optional, Tuple

from tfcost.core.config import config
from tfcost.domain.cost_models import (
    CostEstimate,
    Pricing,
    ProviderCostSummary,
    ResourceCostBreakdown,
)
from tfcost.domain.template_models import ResourceSpec, TemplateResources
from tfcost.domain.values import is_unresolved
from tfcost.pricing.lookup import PricingError, PricingLookup


logger = logging.getLogger(__name__)

# Resource types priced by their instance_type attribute
COMPUTE_RESOURCE_TYPES = frozenset({
    "alicloud_instance",
    "aws_instance",
    "tencentcloud_instance",
    "volcengine_ecs_instance",
})

# Resource types that carry no running cost of their own
NON_BILLABLE_RESOURCE_TYPES = frozenset({
    # Alibaba Cloud
    "alicloud_security_group",
    "alicloud_security_group_rule",
    "alicloud_vpc",
    "alicloud_vswitch",
    "alicloud_zones",
    "alicloud_images",
    "alicloud_instance_types",
    # AWS
    "aws_security_group",
    "aws_security_group_rule",
    "aws_vpc",
    "aws_subnet",
    "aws_key_pair",
    "aws_eip",
    "aws_availability_zones",
    "aws_ami",
    # Tencent Cloud
    "tencentcloud_security_group",
    "tencentcloud_security_group_rule",
    "tencentcloud_vpc",
    "tencentcloud_subnet",
    "tencentcloud_availability_zones",
    "tencentcloud_images",
    # Volcengine
    "volcengine_eip_address",
    "volcengine_eip_associate",
    "volcengine_security_group",
    "volcengine_security_group_rule",
    "volcengine_vpc",
    "volcengine_subnet",
    "volcengine_zones",
    "volcengine_images",
    # Local helpers
    "tls_private_key",
    "tls_cert_request",
    "tls_locally_signed_cert",
    "tls_self_signed_cert",
    "local_file",
    "local_sensitive_file",
    "random_id",
    "random_string",
    "random_password",
    "null_resource",
})

# Providers whose prices vary per availability zone rather than per region
ZONE_PRICED_PROVIDERS = frozenset({"tencentcloud"})

UNKNOWN_PROVIDER = "unknown"


class CostCalculator:
    """Calculates cost estimates for extracted template resources."""

    def __init__(self, hours_per_month: int = config.HOURS_PER_MONTH):
        """
        Initialize cost calculator.

        Args:
            hours_per_month: Hours used to turn hourly prices into monthly ones
        """
        self.hours_per_month = hours_per_month

    def calculate(self, resources: TemplateResources, pricing_lookup: PricingLookup) -> CostEstimate:
        """
        Calculate the estimate for a set of resources.

        Args:
            resources: Resources extracted from a template
            pricing_lookup: Source of hourly prices

        Returns:
            Cost estimate with one breakdown line per resource
        """
        estimate = CostEstimate()

        for resource in resources.resources:
            line = self.price_resource(resource, pricing_lookup)
            estimate.breakdown.append(line)

            if not line.available:
                estimate.unavailable_count += 1
                estimate.warnings.append(f"Pricing unavailable for {resource.name} ({resource.type})")
                continue

            estimate.total_hourly_cost += line.total_hourly
            estimate.total_monthly_cost += line.total_monthly
            if not estimate.currency:
                estimate.currency = line.currency

            provider = line.provider or UNKNOWN_PROVIDER
            summary = estimate.provider_breakdown.get(provider)
            if summary is None:
                summary = ProviderCostSummary(provider=provider, currency=line.currency)
                estimate.provider_breakdown[provider] = summary
            summary.total_hourly_cost += line.total_hourly
            summary.total_monthly_cost += line.total_monthly
            summary.resource_count += 1

        if not estimate.currency:
            estimate.currency = config.DEFAULT_CURRENCY

        logger.info(
            "Calculated estimate: %d resource(s), %d unavailable, %.4f %s/month",
            len(estimate.breakdown), estimate.unavailable_count, estimate.total_monthly_cost, estimate.currency,
        )
        return estimate

    def price_resource(self, resource: ResourceSpec, pricing_lookup: PricingLookup) -> ResourceCostBreakdown:
        """
        Price a single resource.

        Args:
            resource: Resource to price
            pricing_lookup: Source of hourly prices

        Returns:
            Breakdown line; ``available`` is False when no price was found
        """
        line = ResourceCostBreakdown(
            resource_type=resource.type,
            resource_name=resource.name,
            provider=resource.provider,
            count=resource.count,
        )

        pricing_key, reason = self.pricing_key(resource)
        if pricing_key is None:
            logger.debug("Not pricing %s.%s: %s", resource.type, resource.name, reason)
            return line

        location = self.pricing_location(resource)
        try:
            pricing = pricing_lookup.get_pricing(resource.provider, location, pricing_key)
        except PricingError as error:
            logger.warning(f"Pricing lookup failed for {resource.type}.{resource.name}: {error}")
            return line
        except Exception as error:
            logger.error(
                f"Unexpected error pricing {resource.type}.{resource.name}: {error}",
                exc_info=True,
            )
            return line

        if pricing is None:
            logger.warning(f"No pricing found for {pricing_key} in {location or 'default region'}")
            return line

        self._apply_pricing(line, pricing)
        return line

    def pricing_key(self, resource: ResourceSpec) -> Tuple[Optional[str], str]:
        """
        Choose the key to look up a resource's price by.

        Args:
            resource: Resource to price

        Returns:
            (key, reason): key is None when the resource cannot be priced,
            with reason saying why
        """
        if resource.type in COMPUTE_RESOURCE_TYPES:
            instance_type = resource.attributes.get("instance_type")
            if not isinstance(instance_type, str) or not instance_type:
                return None, "instance_type is missing"
            if is_unresolved(instance_type):
                return None, f"instance_type is unresolved ({instance_type})"
            return instance_type, ""

        if resource.type in NON_BILLABLE_RESOURCE_TYPES:
            return None, "resource type is not billable"

        return resource.type, ""

    def pricing_location(self, resource: ResourceSpec) -> str:
        """Return the region, or the availability zone for zone-priced providers."""
        if resource.provider in ZONE_PRICED_PROVIDERS:
            zone = resource.attributes.get("availability_zone")
            if isinstance(zone, str) and zone:
                return zone
        return resource.region

    def _apply_pricing(self, line: ResourceCostBreakdown, pricing: Pricing) -> None:
        unit_hourly = pricing.unit_hourly_price(line.count)
        line.unit_hourly = unit_hourly
        line.unit_monthly = unit_hourly * self.hours_per_month
        line.total_hourly = unit_hourly * line.count
        line.total_monthly = line.unit_monthly * line.count
        line.currency = pricing.currency
        line.available = True
