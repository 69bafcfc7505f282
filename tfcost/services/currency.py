"""
Currency conversion service.

Holds a table of exchange rates keyed by ordered currency pairs and converts
amounts and whole cost estimates. The table is the only shared mutable state
in the estimation pipeline: readers use an immutable snapshot without
locking, writers serialize on a lock and publish a new snapshot, so a rate
and its inverse always become visible together.
"""
from enum import Enum
import logging
import threading
from dataclasses import replace
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple, Union

from tfcost.domain.cost_models import CostEstimate, ProviderCostSummary, ResourceCostBreakdown

logger = logging.getLogger(__name__)


class Currency(str, Enum):
    """Supported currencies."""
    CNY = "CNY"
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"


# Units of each currency per one US dollar
DEFAULT_BASE_RATES: Dict[Currency, float] = {
    Currency.USD: 1.0,
    Currency.CNY: 7.2,
    Currency.EUR: 0.92,
    Currency.GBP: 0.79,
    Currency.JPY: 149.0,
}

CurrencyLike = Union[Currency, str]
RateKey = Tuple[Currency, Currency]


class CurrencyError(Exception):
    """Raised for unsupported currencies, missing rates or invalid rates."""
    pass


def parse_currency(value: CurrencyLike) -> Currency:
    """
    Validate a currency code.

    Args:
        value: Currency or three-letter code

    Returns:
        Currency member

    Raises:
        CurrencyError: If the currency is not supported
    """
    if isinstance(value, Currency):
        return value
    try:
        return Currency(str(value).upper())
    except ValueError as error:
        raise CurrencyError(f"unsupported currency: {value}") from error


def default_rates() -> Dict[RateKey, float]:
    """Build every pairwise rate, identities included, from the dollar rates."""
    rates: Dict[RateKey, float] = {}
    for source, source_per_base in DEFAULT_BASE_RATES.items():
        for target, target_per_base in DEFAULT_BASE_RATES.items():
            rates[(source, target)] = 1.0 if source == target else target_per_base / source_per_base
    return rates


class CurrencyConverter:
    """Converts amounts and estimates between supported currencies."""

    def __init__(self, rates: Optional[Mapping[RateKey, float]] = None):
        """
        Initialize converter.

        Args:
            rates: Initial rate table; defaults to the built-in rates
        """
        self._write_lock = threading.Lock()
        self._rates: Mapping[RateKey, float] = MappingProxyType(dict(rates if rates is not None else default_rates()))

    def convert(self, amount: float, from_currency: CurrencyLike, to_currency: CurrencyLike) -> float:
        """
        Convert an amount.

        Args:
            amount: Amount in the source currency
            from_currency: Source currency
            to_currency: Target currency

        Returns:
            Amount in the target currency

        Raises:
            CurrencyError: If either currency is unsupported or no rate is known
        """
        source = parse_currency(from_currency)
        target = parse_currency(to_currency)
        if source == target:
            return amount
        return amount * self._rate(self._rates, source, target)

    def get_rate(self, from_currency: CurrencyLike, to_currency: CurrencyLike) -> float:
        """
        Get the exchange rate for a currency pair.

        Raises:
            CurrencyError: If either currency is unsupported or no rate is known
        """
        return self._rate(self._rates, parse_currency(from_currency), parse_currency(to_currency))

    def set_rate(self, from_currency: CurrencyLike, to_currency: CurrencyLike, rate: float) -> None:
        """
        Set the rate for a pair together with its inverse.

        Raises:
            CurrencyError: If either currency is unsupported or the rate is not positive
        """
        self.update_rates({(from_currency, to_currency): rate})

    def update_rates(self, rates: Mapping[Tuple[CurrencyLike, CurrencyLike], float]) -> None:
        """
        Set several rates at once, each together with its inverse.

        All rates are validated before any is applied; the new table becomes
        visible to readers in one step.

        Raises:
            CurrencyError: If a currency is unsupported or a rate is not positive
        """
        updates: Dict[RateKey, float] = {}
        for (from_currency, to_currency), rate in rates.items():
            source = parse_currency(from_currency)
            target = parse_currency(to_currency)
            if not rate > 0:
                raise CurrencyError(f"exchange rate must be positive: {source.value}->{target.value} = {rate}")
            updates[(source, target)] = float(rate)
            updates[(target, source)] = 1.0 / rate

        with self._write_lock:
            table = dict(self._rates)
            table.update(updates)
            self._rates = MappingProxyType(table)

        logger.info("Updated %d exchange rate(s)", len(updates))

    def get_supported_currencies(self) -> List[Currency]:
        """Return the supported currencies."""
        return list(Currency)

    def convert_estimate(self, estimate: CostEstimate, target_currency: CurrencyLike) -> CostEstimate:
        """
        Convert an estimate to another currency.

        Totals, provider summaries and available breakdown lines are
        converted; unavailable lines, warnings, timestamp, disclaimer and
        the unavailable count are carried over unchanged. The input estimate
        is never modified.

        Args:
            estimate: Estimate to convert
            target_currency: Target currency

        Returns:
            The input estimate when it is already in the target currency,
            otherwise a new estimate

        Raises:
            CurrencyError: If the estimate's currency or the target is unsupported
        """
        try:
            source = parse_currency(estimate.currency)
        except CurrencyError as error:
            raise CurrencyError(f"unsupported source currency: {estimate.currency}") from error
        target = parse_currency(target_currency)
        if source == target:
            return estimate

        # One snapshot for the whole estimate keeps every amount on the same rate.
        rate = self._rate(self._rates, source, target)

        breakdown = [self._convert_line(line, rate, target) for line in estimate.breakdown]
        provider_breakdown = {
            provider: ProviderCostSummary(
                provider=summary.provider,
                total_hourly_cost=summary.total_hourly_cost * rate,
                total_monthly_cost=summary.total_monthly_cost * rate,
                currency=target.value,
                resource_count=summary.resource_count,
            )
            for provider, summary in estimate.provider_breakdown.items()
        }

        return CostEstimate(
            total_hourly_cost=estimate.total_hourly_cost * rate,
            total_monthly_cost=estimate.total_monthly_cost * rate,
            currency=target.value,
            breakdown=breakdown,
            provider_breakdown=provider_breakdown,
            unavailable_count=estimate.unavailable_count,
            timestamp=estimate.timestamp,
            disclaimer=estimate.disclaimer,
            warnings=list(estimate.warnings),
        )

    @staticmethod
    def _convert_line(line: ResourceCostBreakdown, rate: float, target: Currency) -> ResourceCostBreakdown:
        if not line.available:
            return replace(line)
        return replace(
            line,
            unit_hourly=line.unit_hourly * rate,
            unit_monthly=line.unit_monthly * rate,
            total_hourly=line.total_hourly * rate,
            total_monthly=line.total_monthly * rate,
            currency=target.value,
        )

    @staticmethod
    def _rate(rates: Mapping[RateKey, float], source: Currency, target: Currency) -> float:
        try:
            return rates[(source, target)]
        except KeyError as error:
            raise CurrencyError(f"no exchange rate for {source.value}->{target.value}") from error


_default_converter: Optional[CurrencyConverter] = None
_default_converter_lock = threading.Lock()


def get_currency_converter() -> CurrencyConverter:
    """Return the process-wide converter, creating it with default rates."""
    global _default_converter
    with _default_converter_lock:
        if _default_converter is None:
            _default_converter = CurrencyConverter()
        return _default_converter
