"""
Dynamic Pricing Engine  (Strategy Pattern)
==========================================

Formula
-------
Price = max(round_half_up((Base_Fare + Distance x Rate_Per_KM) x Demand_Multiplier), Min_Fare)

* **Demand ratio** = active_requests / available_vehicles
* **Demand_Multiplier** comes from a ladder of ``(threshold, multiplier)``
  tiers.  Tiers are checked from the highest threshold down and the first
  tier whose threshold the ratio strictly exceeds wins, so every tier is
  reachable.  Below every threshold the multiplier is 1.0.
* With zero available vehicles there is no ratio; the multiplier falls
  back to ``fallback_multiplier`` once active requests exceed
  ``fallback_threshold``.
* Rounding is half-up: a fare of exactly x.5 becomes x + 1.

Complexity: O(T) per price calculation, T = number of tiers.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

from .distance import haversine_km


@dataclass(frozen=True)
class PricingRules:
    base_fare: float = 50.0
    rate_per_km: float = 12.0
    min_fare: int = 60
    surge_tiers: tuple[tuple[float, float], ...] = ((2.0, 1.5), (1.5, 1.2))
    fallback_threshold: int = 10
    fallback_multiplier: float = 1.2

    def ordered_tiers(self) -> list[tuple[float, float]]:
        return sorted(self.surge_tiers, key=lambda tier: tier[0], reverse=True)


# ── Strategy hierarchy ────────────────────────────────────────────────


class PricingStrategy(ABC):
    @abstractmethod
    def calculate(
        self, distance_km: float, base_fare: float, rate_per_km: float
    ) -> float: ...


class StandardPricing(PricingStrategy):
    def calculate(
        self, distance_km: float, base_fare: float, rate_per_km: float
    ) -> float:
        return base_fare + distance_km * rate_per_km


class SurgePricing(PricingStrategy):
    def __init__(self, surge_multiplier: float = 1.0):
        self.surge_multiplier = surge_multiplier

    def calculate(
        self, distance_km: float, base_fare: float, rate_per_km: float
    ) -> float:
        return (base_fare + distance_km * rate_per_km) * self.surge_multiplier


# ── Engine facade ─────────────────────────────────────────────────────


class PricingEngine:
    """High-level API used at booking-creation time."""

    def __init__(self, rules: PricingRules | None = None):
        self.rules = rules or PricingRules()
        self._tiers = self.rules.ordered_tiers()

    def demand_multiplier(
        self, active_requests: int, available_vehicles: int
    ) -> float:
        if available_vehicles <= 0:
            if active_requests > self.rules.fallback_threshold:
                return self.rules.fallback_multiplier
            return 1.0

        ratio = active_requests / available_vehicles
        for threshold, multiplier in self._tiers:
            if ratio > threshold:
                return multiplier
        return 1.0

    def strategy_for(
        self, active_requests: int, available_vehicles: int
    ) -> PricingStrategy:
        multiplier = self.demand_multiplier(active_requests, available_vehicles)
        if multiplier == 1.0:
            return StandardPricing()
        return SurgePricing(multiplier)

    def calculate_price(
        self,
        distance_km: float,
        active_requests: int,
        available_vehicles: int,
    ) -> int:
        strategy = self.strategy_for(active_requests, available_vehicles)
        raw = strategy.calculate(
            distance_km, self.rules.base_fare, self.rules.rate_per_km
        )
        return max(math.floor(raw + 0.5), self.rules.min_fare)

    def quote(
        self,
        pickup_lat: float,
        pickup_lng: float,
        dropoff_lat: float,
        dropoff_lng: float,
        active_requests: int,
        available_vehicles: int,
    ) -> tuple[float, int]:
        """Return ``(direct distance km, fare)`` for a pickup/dropoff pair."""
        distance = haversine_km(pickup_lat, pickup_lng, dropoff_lat, dropoff_lng)
        fare = self.calculate_price(distance, active_requests, available_vehicles)
        return distance, fare
