"""
Tests for the end-to-end estimation service.
"""

import pytest

from tfcost.services.currency import CurrencyConverter, CurrencyError
from tfcost.services.estimation_service import CostEstimationService
from tfcost.services.template_parser import TemplateParseError


MAIN_TF = '''
variable "instance_type" {
  type    = string
  default = "t3.micro"
}

provider "alicloud" {
  region = "cn-hangzhou"
}

resource "aws_instance" "web" {
  count         = 2
  instance_type = var.instance_type
}

resource "aws_db_instance" "db" {
  instance_class = "db.t3.micro"
}

resource "alicloud_instance" "vm" {
  instance_type = "ecs.t5-lc1m1.small"
}
'''


@pytest.fixture
def service(pricing_catalog):
    return CostEstimationService(pricing_catalog, converter=CurrencyConverter())


@pytest.fixture
def template_dir(write_template):
    return write_template({"main.tf": MAIN_TF})


def test_parse_fills_missing_regions(service, template_dir):
    """Resources without a region of their own get the default region."""
    resources = service.parse(template_dir, default_region="us-east-1")

    regions = {resource.name: resource.region for resource in resources.resources}
    assert regions == {"web": "us-east-1", "db": "us-east-1", "vm": "cn-hangzhou"}
    assert resources.region == "cn-hangzhou"
    assert resources.provider == "aws"


def test_parse_applies_default_provider(service, write_template):
    directory = write_template({"main.tf": 'variable "x" {\n  default = 1\n}\n'})

    resources = service.parse(directory, default_provider="aws", default_region="us-east-1")

    assert resources.provider == "aws"
    assert resources.region == "us-east-1"
    assert resources.resources == []


def test_estimate_end_to_end(service, template_dir):
    estimate = service.estimate(template_dir, default_region="us-east-1")

    assert [line.available for line in estimate.breakdown] == [True, True, True]
    assert estimate.provider_summary("aws").total_hourly_cost == pytest.approx(0.0104 * 2 + 0.017)
    assert estimate.provider_summary("alicloud").total_hourly_cost == pytest.approx(0.1)
    assert estimate.currency == "USD"


def test_estimate_with_variable_override(service, template_dir):
    estimate = service.estimate(template_dir, {"instance_type": "t3.large"}, default_region="us-east-1")

    assert estimate.breakdown[0].unit_hourly == pytest.approx(0.0832)


def test_estimate_converts_currency(service, template_dir):
    base = service.estimate(template_dir, default_region="us-east-1")
    converted = service.estimate(template_dir, currency="EUR", default_region="us-east-1")

    assert converted.currency == "EUR"
    assert converted.total_monthly_cost == pytest.approx(base.total_monthly_cost * 0.92)


def test_estimate_with_unsupported_currency(service, template_dir):
    with pytest.raises(CurrencyError):
        service.estimate(template_dir, currency="BTC")


def test_estimate_missing_template(service, tmp_path):
    with pytest.raises(TemplateParseError):
        service.estimate(tmp_path / "nope")
