"""
End-to-end cost estimation service.
Parses a template directory, prices its resources and optionally converts
the result to the caller's currency.
"""
import logging
from pathlib import Path
from typing import Mapping, Optional, Union

from tfcost.core.config import config
from tfcost.domain.cost_models import CostEstimate
from tfcost.domain.template_models import TemplateResources
from tfcost.pricing.lookup import PricingLookup
from tfcost.services.cost_calculator import CostCalculator
from tfcost.services.currency import CurrencyConverter, CurrencyLike, get_currency_converter
from tfcost.services.template_parser import TemplateParser


logger = logging.getLogger(__name__)


class CostEstimationService:
    """Runs template parsing, pricing and currency conversion in sequence."""

    def __init__(
        self,
        pricing_lookup: PricingLookup,
        template_parser: Optional[TemplateParser] = None,
        calculator: Optional[CostCalculator] = None,
        converter: Optional[CurrencyConverter] = None,
    ):
        """
        Initialize estimation service.

        Args:
            pricing_lookup: Source of hourly prices
            template_parser: Parser for template directories
            calculator: Cost calculator
            converter: Currency converter (defaults to the shared one)
        """
        self.pricing_lookup = pricing_lookup
        self.template_parser = template_parser or TemplateParser()
        self.calculator = calculator or CostCalculator()
        self.converter = converter or get_currency_converter()

    def parse(
        self,
        template_path: Union[str, Path],
        variables: Optional[Mapping[str, str]] = None,
        default_provider: Optional[str] = None,
        default_region: Optional[str] = None,
    ) -> TemplateResources:
        """
        Parse a template and fill in missing provider and region.

        Args:
            template_path: Template directory
            variables: Caller overrides for declared variables
            default_provider: Provider to use when the template names none
            default_region: Region for resources without one of their own

        Returns:
            Extracted resources

        Raises:
            TemplateParseError: If the template cannot be parsed
        """
        resources = self.template_parser.parse_template(template_path, variables)

        if not resources.provider and default_provider:
            resources.provider = default_provider
        region = default_region or resources.region or config.DEFAULT_REGION
        if not resources.region:
            resources.region = region
        for resource in resources.resources:
            if not resource.region:
                resource.region = region

        return resources

    def estimate(
        self,
        template_path: Union[str, Path],
        variables: Optional[Mapping[str, str]] = None,
        currency: Optional[CurrencyLike] = None,
        default_provider: Optional[str] = None,
        default_region: Optional[str] = None,
    ) -> CostEstimate:
        """
        Estimate the cost of a template.

        Args:
            template_path: Template directory
            variables: Caller overrides for declared variables
            currency: Currency to report in; the pricing currency when omitted
            default_provider: Provider to use when the template names none
            default_region: Region for resources without one of their own

        Returns:
            Cost estimate

        Raises:
            TemplateParseError: If the template cannot be parsed
            CurrencyError: If the requested currency is not supported
        """
        logger.info(f"Starting cost estimation for template: {template_path}")
        if variables:
            logger.info(f"Variables provided: {len(variables)}")

        resources = self.parse(template_path, variables, default_provider, default_region)
        logger.info(
            f"Template parsed successfully: {len(resources.resources)} resources found "
            f"(provider={resources.provider or '-'}, region={resources.region or '-'})"
        )

        estimate = self.calculator.calculate(resources, self.pricing_lookup)
        if currency:
            estimate = self.converter.convert_estimate(estimate, currency)

        logger.info(
            f"Cost estimation completed: {estimate.total_monthly_cost:.2f} {estimate.currency}/month, "
            f"{estimate.unavailable_count} resource(s) without pricing"
        )
        return estimate
