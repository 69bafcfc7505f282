"""
Shared pytest fixtures for tfcost tests.
"""

import sys
import textwrap
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent.parent
sys.path.insert(0, str(project_root))

import pytest
from fastapi.testclient import TestClient

from tfcost.domain.cost_models import Pricing, PricingTier
from tfcost.pricing.http_pricing_client import HTTPPricingClient
from tfcost.pricing.static_catalog import StaticPricingCatalog
from tfcost.resilience.circuit_breaker import reset_circuit_breakers


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Circuit breakers and the pricing cache are process-wide."""
    reset_circuit_breakers()
    HTTPPricingClient.clear_cache()
    yield
    reset_circuit_breakers()
    HTTPPricingClient.clear_cache()


@pytest.fixture
def write_template(tmp_path):
    """Create a template directory from a mapping of file name to content."""
    def _write(files, name="template"):
        directory = tmp_path / name
        directory.mkdir(parents=True, exist_ok=True)
        for filename, content in files.items():
            path = directory / filename
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(textwrap.dedent(content), encoding="utf-8")
        return directory
    return _write


@pytest.fixture
def pricing_catalog():
    """Small catalog covering the resource types used across tests."""
    catalog = StaticPricingCatalog()
    catalog.add("aws", "us-east-1", "t3.micro", Pricing(currency="USD", hourly_price=0.0104))
    catalog.add("aws", "us-east-1", "t3.large", Pricing(currency="USD", hourly_price=0.0832))
    catalog.add("aws", "*", "aws_db_instance", Pricing(currency="USD", hourly_price=0.017))
    catalog.add("alicloud", "cn-hangzhou", "ecs.t5-lc1m1.small", Pricing(currency="CNY", hourly_price=0.1))
    catalog.add(
        "aws", "*", "aws_nat_gateway",
        Pricing(currency="USD", tiers=[
            PricingTier(min_units=1, max_units=2, price_per_unit=0.045),
            PricingTier(min_units=3, max_units=-1, price_per_unit=0.04),
        ]),
    )
    return catalog


@pytest.fixture
def client():
    """FastAPI test client."""
    from tfcost.main import app
    return TestClient(app)
