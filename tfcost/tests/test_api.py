"""
Tests for the HTTP API routes.
"""

import threading
import time

import pytest
from fastapi.testclient import TestClient

from tfcost.api import templates
from tfcost.core.config import config
from tfcost.pricing.lookup import PricingError


MAIN_TF = '''
variable "instance_count" {
  type    = number
  default = 2
}

resource "aws_instance" "web" {
  count         = var.instance_count
  instance_type = "t3.micro"
}

resource "aws_vpc" "main" {
  cidr_block = "10.0.0.0/16"
}
'''


@pytest.fixture
def templates_root(tmp_path, write_template, monkeypatch, pricing_catalog):
    """Point the API at a temporary templates root and the test catalog."""
    write_template({"main.tf": MAIN_TF}, name="web")
    write_template({"main.tf": 'resource "aws_instance" "bad" {\n  ami =\n}\n'}, name="broken")
    monkeypatch.setattr(config, "TEMPLATES_ROOT", str(tmp_path))
    monkeypatch.setattr("tfcost.api.templates.get_pricing_lookup", lambda: pricing_catalog)
    return tmp_path


def test_health(client):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_parse_resources(client, templates_root):
    response = client.post("/api/templates/resources", json={"template": "web", "variables": {"instance_count": "4"}})

    assert response.status_code == 200
    data = response.json()
    assert data["provider"] == "aws"
    assert [(resource["name"], resource["count"]) for resource in data["resources"]] == [("web", 4), ("main", 1)]


def test_estimate(client, templates_root):
    response = client.post("/api/templates/estimate", json={"template": "web", "region": "us-east-1"})

    assert response.status_code == 200
    data = response.json()
    assert data["currency"] == "USD"
    assert data["total_hourly_cost"] == pytest.approx(0.0208)
    assert data["unavailable_count"] == 1
    assert data["warnings"] == ["Pricing unavailable for main (aws_vpc)"]
    assert data["provider_breakdown"]["aws"]["resource_count"] == 1


def test_estimate_in_other_currency(client, templates_root):
    response = client.post(
        "/api/templates/estimate",
        json={"template": "web", "region": "us-east-1", "currency": "cny"},
    )

    assert response.status_code == 200
    assert response.json()["currency"] == "CNY"
    assert response.json()["total_hourly_cost"] == pytest.approx(0.0208 * 7.2)


def test_estimate_with_unsupported_currency(client, templates_root):
    response = client.post("/api/templates/estimate", json={"template": "web", "currency": "BTC"})

    assert response.status_code == 400


@pytest.mark.parametrize("path", ["/api/templates/resources", "/api/templates/estimate"])
def test_broken_template_is_bad_request(client, templates_root, path):
    response = client.post(path, json={"template": "broken"})

    assert response.status_code == 400
    assert "Template parsing failed" in response.json()["detail"]


@pytest.mark.parametrize("name", ["missing", "../outside", ""])
def test_unknown_or_invalid_template_names(client, templates_root, name):
    response = client.post("/api/templates/resources", json={"template": name})

    assert response.status_code == 400


def test_missing_template_field_is_rejected(client, templates_root):
    response = client.post("/api/templates/estimate", json={"variables": {}})

    assert response.status_code == 422


def test_pricing_source_unavailable(client, templates_root, monkeypatch):
    def broken_lookup():
        raise PricingError("catalog is corrupt")

    monkeypatch.setattr("tfcost.api.templates.get_pricing_lookup", broken_lookup)

    response = client.post("/api/templates/estimate", json={"template": "web"})

    assert response.status_code == 503


def test_list_currencies(client):
    response = client.get("/api/currency")

    assert response.status_code == 200
    assert set(response.json()["currencies"]) == {"CNY", "USD", "EUR", "GBP", "JPY"}


def test_convert_currency(client):
    response = client.post("/api/currency/convert", json={"amount": 100, "from_currency": "USD", "to_currency": "eur"})

    assert response.status_code == 200
    data = response.json()
    assert data["amount"] == pytest.approx(92.0)
    assert data["currency"] == "EUR"
    assert data["rate"] == pytest.approx(0.92)


def test_convert_unsupported_currency(client):
    response = client.post("/api/currency/convert", json={"amount": 1, "from_currency": "USD", "to_currency": "XYZ"})

    assert response.status_code == 400


def test_health_responds_during_slow_estimate(templates_root, monkeypatch):
    """Estimation runs off the event loop, so other requests are served meanwhile."""
    from tfcost.main import app

    started = threading.Event()
    release = threading.Event()

    class SlowLookup:
        def get_pricing(self, provider, region, resource_type):
            started.set()
            release.wait(5)
            return None

    monkeypatch.setattr("tfcost.api.templates.get_pricing_lookup", lambda: SlowLookup())
    responses = []

    with TestClient(app) as client:
        worker = threading.Thread(
            target=lambda: responses.append(client.post("/api/templates/estimate", json={"template": "web"})),
        )
        worker.start()
        try:
            assert started.wait(5)
            began = time.monotonic()
            health = client.get("/health")
            elapsed = time.monotonic() - began
        finally:
            release.set()
            worker.join(10)

    assert health.status_code == 200
    assert elapsed < 1
    assert responses[0].status_code == 200
    assert responses[0].json()["unavailable_count"] == 2


def test_shutdown_closes_pricing_client(monkeypatch):
    from tfcost.main import app

    monkeypatch.setattr(config, "PRICING_API_BASE_URL", "https://pricing.example.com")
    templates.close_pricing_lookup()

    with TestClient(app):
        lookup = templates.get_pricing_lookup()
        assert lookup is templates.get_pricing_lookup()

    assert lookup._client.is_closed
    assert templates.get_pricing_lookup() is not lookup
    templates.close_pricing_lookup()
