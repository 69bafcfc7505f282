"""
API routes for template parsing, cost estimation and currency conversion.
"""
from typing import Any, Dict, Optional
from functools import lru_cache
import logging

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from tfcost.core.config import config
from tfcost.pricing.http_pricing_client import HTTPPricingClient
from tfcost.pricing.lookup import PricingError, PricingLookup
from tfcost.pricing.static_catalog import StaticPricingCatalog
from tfcost.services.currency import CurrencyError, get_currency_converter
from tfcost.services.estimation_service import CostEstimationService
from tfcost.services.template_parser import TemplateParseError
from tfcost.utils.fs import resolve_template_path


logger = logging.getLogger(__name__)
router = APIRouter()


class TemplateRequest(BaseModel):
    """Request model for parsing a template."""
    template: str = Field(..., description="Template name relative to the templates root")
    variables: Dict[str, str] = Field(default_factory=dict, description="Variable overrides as strings")


class EstimateRequest(TemplateRequest):
    """Request model for cost estimation."""
    currency: Optional[str] = Field(None, description="Currency to report in (CNY, USD, EUR, GBP, JPY)")
    provider: Optional[str] = Field(None, description="Provider to assume when the template names none")
    region: Optional[str] = Field(None, description="Region for resources without one of their own")


class ConvertRequest(BaseModel):
    """Request model for converting an amount."""
    amount: float = Field(..., description="Amount in the source currency")
    from_currency: str = Field(..., description="Source currency")
    to_currency: str = Field(..., description="Target currency")


@lru_cache(maxsize=None)
def _build_pricing_lookup() -> PricingLookup:
    """
    Build the pricing source from configuration.

    The pricing API is used when PRICING_API_BASE_URL is set, otherwise the
    catalog at PRICING_CATALOG_PATH, otherwise an empty catalog under which
    every resource is reported as unpriced.

    Returns:
        Pricing lookup shared by all requests
    """
    if config.PRICING_API_BASE_URL:
        logger.info("Using pricing API at %s", config.PRICING_API_BASE_URL)
        return HTTPPricingClient()
    if config.PRICING_CATALOG_PATH:
        return StaticPricingCatalog.from_file(config.PRICING_CATALOG_PATH)
    logger.warning("No pricing source configured; all resources will be reported without pricing")
    return StaticPricingCatalog()


def get_pricing_lookup() -> PricingLookup:
    """Return the pricing source shared by all requests."""
    return _build_pricing_lookup()


def close_pricing_lookup() -> None:
    """Close the shared pricing source, if one was built, and forget it."""
    if _build_pricing_lookup.cache_info().currsize == 0:
        return
    lookup = _build_pricing_lookup()
    close = getattr(lookup, "close", None)
    if close is not None:
        close()
    _build_pricing_lookup.cache_clear()
    logger.info("Pricing source closed")


def _template_path(template_name: str):
    try:
        return resolve_template_path(config.TEMPLATES_ROOT, template_name)
    except ValueError as error:
        raise HTTPException(status_code=400, detail=str(error)) from error


def _estimation_service() -> CostEstimationService:
    try:
        return CostEstimationService(get_pricing_lookup())
    except (PricingError, ValueError) as error:
        logger.error(f"Pricing source unavailable: {error}")
        raise HTTPException(status_code=503, detail="Pricing source is not available") from error


@router.post("/api/templates/resources")
async def parse_template_resources(request: TemplateRequest) -> Dict[str, Any]:
    """
    Parse a template and list its billable resources.

    Args:
        request: Template name and variable overrides

    Returns:
        Provider, region and resources of the template

    Raises:
        HTTPException: 400 for invalid templates, 500 for unexpected errors
    """
    template_path = _template_path(request.template)
    service = _estimation_service()
    try:
        resources = await run_in_threadpool(service.parse, template_path, request.variables)
    except TemplateParseError as error:
        raise HTTPException(status_code=400, detail=f"Template parsing failed: {error}") from error
    except Exception as error:
        logger.error(f"Unexpected error parsing template {request.template}: {error}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to parse template") from error
    return resources.to_dict()


@router.post("/api/templates/estimate")
async def estimate_template_cost(request: EstimateRequest) -> Dict[str, Any]:
    """
    Estimate the running cost of a template.

    Args:
        request: Template name, variable overrides and reporting options

    Returns:
        Cost estimate

    Raises:
        HTTPException: 400 for invalid templates or currencies, 500 for
            unexpected errors
    """
    template_path = _template_path(request.template)
    service = _estimation_service()
    try:
        estimate = await run_in_threadpool(
            service.estimate,
            template_path,
            request.variables,
            currency=request.currency,
            default_provider=request.provider,
            default_region=request.region,
        )
    except TemplateParseError as error:
        raise HTTPException(status_code=400, detail=f"Template parsing failed: {error}") from error
    except CurrencyError as error:
        raise HTTPException(status_code=400, detail=str(error)) from error
    except Exception as error:
        logger.error(f"Unexpected error estimating template {request.template}: {error}", exc_info=True)
        raise HTTPException(status_code=500, detail="Failed to estimate cost") from error
    return estimate.to_dict()


@router.get("/api/currency")
async def list_currencies() -> Dict[str, Any]:
    """Return the supported currencies."""
    converter = get_currency_converter()
    return {"currencies": [currency.value for currency in converter.get_supported_currencies()]}


@router.post("/api/currency/convert")
async def convert_currency(request: ConvertRequest) -> Dict[str, Any]:
    """
    Convert an amount between currencies.

    Raises:
        HTTPException: 400 for unsupported currencies
    """
    converter = get_currency_converter()
    try:
        amount = converter.convert(request.amount, request.from_currency, request.to_currency)
        rate = converter.get_rate(request.from_currency, request.to_currency)
    except CurrencyError as error:
        raise HTTPException(status_code=400, detail=str(error)) from error
    return {
        "amount": amount,
        "currency": request.to_currency.upper(),
        "rate": rate,
    }
