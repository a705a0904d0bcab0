# File: src/parkpool/domain/strategies.py
"""
Strategy Implementations for the Parking Spot Allocation Engine

Two families of policies live here:
1. Spot-finding strategies - which spot on a floor a vehicle should get
2. Fee calculation strategies - what a finished ticket costs

Spot finders are plain functions selected through the closed
SpotFindingStrategy enum. They only read spot state; claiming the spot
they return is the caller's job, and the returned spot may already have
been taken by the time the caller tries. ParkingFloor closes that gap by
holding its lock over search and claim together.

Fee strategies share the FeeCalculationStrategy interface so a lot can
switch pricing models without touching allocation code.
"""

from abc import ABC, abstractmethod
from typing import Optional, Dict, Callable, Sequence, Union
from datetime import timedelta
from decimal import Decimal
from enum import Enum
import logging
import math

from .models import ParkingSpot, SpotSize, Money, billable_hours


# ============================================================================
# SPOT-FINDING STRATEGIES
# ============================================================================

SpotFinder = Callable[[Sequence[ParkingSpot], SpotSize], Optional[ParkingSpot]]


def best_fit(spots: Sequence[ParkingSpot], required_size: SpotSize) -> Optional[ParkingSpot]:
    """
    Prefer an exact size match, then fall back to the first spot that fits
    The fallback is first-found in floor order, not the smallest overall
    """
    for spot in spots:
        if spot.size == required_size and spot.can_fit(required_size):
            return spot

    for spot in spots:
        if spot.can_fit(required_size):
            return spot

    return None


def first_fit(spots: Sequence[ParkingSpot], required_size: SpotSize) -> Optional[ParkingSpot]:
    """Return the first spot in floor order that fits, ignoring exact matches"""
    for spot in spots:
        if spot.can_fit(required_size):
            return spot
    return None


class SpotFindingStrategy(str, Enum):
    """Closed set of built-in spot-finding policies"""
    BEST_FIT = "best_fit"
    FIRST_FIT = "first_fit"

    def find_spot(
        self,
        spots: Sequence[ParkingSpot],
        required_size: SpotSize
    ) -> Optional[ParkingSpot]:
        return _SPOT_FINDERS[self](spots, required_size)

    def __str__(self) -> str:
        return self.value.replace('_', ' ').title()


_SPOT_FINDERS: Dict[SpotFindingStrategy, SpotFinder] = {
    SpotFindingStrategy.BEST_FIT: best_fit,
    SpotFindingStrategy.FIRST_FIT: first_fit,
}


def resolve_spot_finder(strategy: Union[SpotFindingStrategy, str, SpotFinder]) -> SpotFinder:
    """
    Turn a strategy selector into a callable
    Accepts an enum member, its string value, or any callable finder
    """
    if isinstance(strategy, SpotFindingStrategy):
        return _SPOT_FINDERS[strategy]

    if isinstance(strategy, str):
        try:
            return _SPOT_FINDERS[SpotFindingStrategy(strategy)]
        except ValueError:
            raise ValueError(f"Unknown spot-finding strategy: {strategy}") from None

    if callable(strategy):
        return strategy

    raise ValueError(f"Unsupported spot-finding strategy: {strategy!r}")


def strategy_name(strategy: Union[SpotFindingStrategy, str, SpotFinder]) -> str:
    """Human-readable name for reports and logs"""
    if isinstance(strategy, SpotFindingStrategy):
        return strategy.value
    if isinstance(strategy, str):
        return strategy
    return getattr(strategy, "__name__", strategy.__class__.__name__)


# ============================================================================
# FEE CALCULATION STRATEGIES
# ============================================================================

DEFAULT_HOURLY_RATES: Dict[SpotSize, Decimal] = {
    SpotSize.SMALL: Decimal('10.00'),    # Motorcycles
    SpotSize.MEDIUM: Decimal('20.00'),   # Cars
    SpotSize.LARGE: Decimal('40.00'),    # Buses
}

DEFAULT_BASE_FEE = Decimal('5.00')


class FeeCalculationStrategy(ABC):
    """
    Abstract base class for fee strategies
    Maps (required spot size, parking duration) to an amount
    """

    def __init__(self, currency: str = "USD"):
        self.currency = currency
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def calculate_fee(self, size: SpotSize, duration: timedelta) -> Money:
        """
        Calculate the fee for a finished ticket
        Returns: Calculated fee
        """
        pass

    def _rate_for(self, rates: Dict[SpotSize, Decimal], size: SpotSize) -> Decimal:
        try:
            return rates[size]
        except KeyError:
            raise ValueError(f"No rate configured for spot size {size.value}") from None

    def get_strategy_name(self) -> str:
        return self.__class__.__name__.replace("FeeStrategy", "")

    def __str__(self) -> str:
        return f"{self.get_strategy_name()} Pricing"


class HourlyFeeStrategy(FeeCalculationStrategy):
    """
    Hourly pricing: base fee plus a per-size hourly rate
    Partial hours round up; every stay bills at least one hour
    """

    def __init__(
        self,
        base_fee: Decimal = DEFAULT_BASE_FEE,
        hourly_rates: Optional[Dict[SpotSize, Decimal]] = None,
        currency: str = "USD"
    ):
        super().__init__(currency)
        self.base_fee = Decimal(str(base_fee))
        self.hourly_rates = {
            size: Decimal(str(rate))
            for size, rate in (hourly_rates or DEFAULT_HOURLY_RATES).items()
        }

    def calculate_fee(self, size: SpotSize, duration: timedelta) -> Money:
        hours = billable_hours(duration)
        rate = self._rate_for(self.hourly_rates, size)
        amount = self.base_fee + rate * hours

        self.logger.debug(f"Hourly fee for {size.value}: {hours}h x {rate} + {self.base_fee} = {amount}")
        return Money(amount, self.currency)


class FlatRateFeeStrategy(FeeCalculationStrategy):
    """Flat pricing: one fixed amount per size regardless of duration"""

    def __init__(self, flat_rates: Dict[SpotSize, Decimal], currency: str = "USD"):
        super().__init__(currency)
        self.flat_rates = {size: Decimal(str(rate)) for size, rate in flat_rates.items()}

    def calculate_fee(self, size: SpotSize, duration: timedelta) -> Money:
        if duration.total_seconds() < 0:
            raise ValueError("Parking duration cannot be negative")
        return Money(self._rate_for(self.flat_rates, size), self.currency)


class PerMinuteFeeStrategy(FeeCalculationStrategy):
    """
    Per-minute pricing: base fee plus a per-size rate per started minute
    Every stay bills at least one minute
    """

    def __init__(
        self,
        per_minute_rates: Dict[SpotSize, Decimal],
        base_fee: Decimal = Decimal('0.00'),
        currency: str = "USD"
    ):
        super().__init__(currency)
        self.base_fee = Decimal(str(base_fee))
        self.per_minute_rates = {size: Decimal(str(rate)) for size, rate in per_minute_rates.items()}

    def calculate_fee(self, size: SpotSize, duration: timedelta) -> Money:
        seconds = duration.total_seconds()
        if seconds < 0:
            raise ValueError("Parking duration cannot be negative")

        minutes = max(1, math.ceil(seconds / 60))
        amount = self.base_fee + self._rate_for(self.per_minute_rates, size) * minutes
        return Money(amount, self.currency)
