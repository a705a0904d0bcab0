# File: src/parkpool/application/config.py
"""
Configuration for the Parking Spot Allocation Engine

A lot is described by a ParkingLotConfig: its name, its floors and the
spot groups on each floor, the default spot-finding strategy and the
pricing model. Configs are validated with pydantic and can be loaded
from a plain dict or a YAML file.

Example YAML:

    name: Downtown Parking
    default_strategy: best_fit
    pricing:
      model: hourly
      base_fee: "5.00"
      rates: {small: "10.00", medium: "20.00", large: "40.00"}
    floors:
      - spots:
          - {size: small, count: 5}
          - {size: medium, count: 8}
      - strategy: first_fit
        spots:
          - {size: large, count: 2}
"""

from typing import Dict, List, Optional, Any, Union, Iterator, Tuple
from decimal import Decimal
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..domain.models import SpotSize
from ..domain.strategies import (
    SpotFindingStrategy, FeeCalculationStrategy,
    HourlyFeeStrategy, FlatRateFeeStrategy, PerMinuteFeeStrategy,
    DEFAULT_HOURLY_RATES, DEFAULT_BASE_FEE
)


class PricingModel(str, Enum):
    """Supported pricing models"""
    HOURLY = "hourly"
    FLAT = "flat"
    PER_MINUTE = "per_minute"


SIZE_CODES = {
    SpotSize.SMALL: "S",
    SpotSize.MEDIUM: "M",
    SpotSize.LARGE: "L",
}


class SpotGroupConfig(BaseModel):
    """A run of identical spots on one floor"""
    model_config = ConfigDict(frozen=True)

    size: SpotSize
    count: int = Field(ge=1, description="Number of spots in the group")
    prefix: Optional[str] = Field(
        default=None,
        description="Spot id prefix; defaults to 'F<floor>-<S|M|L>'"
    )


class FloorConfig(BaseModel):
    """Layout of one floor, in the order spots are added"""
    strategy: Optional[SpotFindingStrategy] = Field(
        default=None,
        description="Overrides the lot default for this floor"
    )
    spots: List[SpotGroupConfig] = Field(default_factory=list)


class PricingConfig(BaseModel):
    """
    Pricing model and its per-size rates
    Rates default to the hourly table only for the hourly model; flat and
    per-minute pricing must list their own rates.
    """
    model: PricingModel = PricingModel.HOURLY
    base_fee: Decimal = Field(default=DEFAULT_BASE_FEE, ge=0)
    rates: Optional[Dict[SpotSize, Decimal]] = None
    currency: str = Field(default="USD", min_length=3, max_length=3)

    @field_validator("rates")
    @classmethod
    def rates_cover_every_size(
        cls,
        rates: Optional[Dict[SpotSize, Decimal]]
    ) -> Optional[Dict[SpotSize, Decimal]]:
        if rates is None:
            return rates
        missing = [size.value for size in SpotSize if size not in rates]
        if missing:
            raise ValueError(f"Missing rates for spot sizes: {', '.join(missing)}")
        if any(rate < 0 for rate in rates.values()):
            raise ValueError("Rates cannot be negative")
        return rates

    @model_validator(mode="after")
    def rates_match_model(self) -> 'PricingConfig':
        if self.rates is None:
            if self.model != PricingModel.HOURLY:
                raise ValueError(f"Pricing model '{self.model.value}' requires explicit rates")
            self.rates = dict(DEFAULT_HOURLY_RATES)
        return self

    def build_strategy(self) -> FeeCalculationStrategy:
        """Create the fee strategy this config describes"""
        if self.model == PricingModel.FLAT:
            return FlatRateFeeStrategy(self.rates, currency=self.currency)
        if self.model == PricingModel.PER_MINUTE:
            return PerMinuteFeeStrategy(self.rates, base_fee=self.base_fee, currency=self.currency)
        return HourlyFeeStrategy(self.base_fee, self.rates, currency=self.currency)


class ParkingLotConfig(BaseModel):
    """Complete description of a parking lot"""
    name: str = Field(min_length=1)
    floors: List[FloorConfig] = Field(min_length=1)
    default_strategy: SpotFindingStrategy = SpotFindingStrategy.BEST_FIT
    pricing: PricingConfig = Field(default_factory=PricingConfig)

    @model_validator(mode="after")
    def spot_ids_are_unique(self) -> 'ParkingLotConfig':
        seen = set()
        for floor_number, spot_id, _ in self.iter_spots():
            if spot_id in seen:
                raise ValueError(f"Duplicate spot ID {spot_id} on floor {floor_number}")
            seen.add(spot_id)
        return self

    @property
    def floor_count(self) -> int:
        return len(self.floors)

    def iter_spots(self) -> Iterator[Tuple[int, str, SpotSize]]:
        """
        Yield (floor_number, spot_id, size) in the order spots are added
        Groups with a prefix are numbered prefix1..prefixN; the rest get
        'F<floor>-<S|M|L><n>' with one counter per size on each floor.
        """
        for floor_number, floor in enumerate(self.floors, start=1):
            counters: Dict[SpotSize, int] = {}
            for group in floor.spots:
                for index in range(1, group.count + 1):
                    if group.prefix:
                        spot_id = f"{group.prefix}{index}"
                    else:
                        counters[group.size] = counters.get(group.size, 0) + 1
                        spot_id = f"F{floor_number}-{SIZE_CODES[group.size]}{counters[group.size]}"
                    yield floor_number, spot_id, group.size

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ParkingLotConfig':
        return cls.model_validate(data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> 'ParkingLotConfig':
        """Load a config from a YAML file"""
        path = Path(path)
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        return cls.from_dict(data)

    @classmethod
    def default(cls) -> 'ParkingLotConfig':
        """The three-floor Downtown Parking layout"""
        return cls(
            name="Downtown Parking",
            floors=[
                FloorConfig(spots=[
                    SpotGroupConfig(size=SpotSize.SMALL, count=5),
                    SpotGroupConfig(size=SpotSize.MEDIUM, count=8),
                    SpotGroupConfig(size=SpotSize.LARGE, count=3),
                ]),
                FloorConfig(spots=[
                    SpotGroupConfig(size=SpotSize.SMALL, count=3),
                    SpotGroupConfig(size=SpotSize.MEDIUM, count=10),
                    SpotGroupConfig(size=SpotSize.LARGE, count=2),
                ]),
                FloorConfig(spots=[
                    SpotGroupConfig(size=SpotSize.SMALL, count=4),
                    SpotGroupConfig(size=SpotSize.MEDIUM, count=6),
                    SpotGroupConfig(size=SpotSize.LARGE, count=4),
                ]),
            ]
        )
