"""
Ranking strategies for chatroute.

A strategy takes the scored candidates for one request and returns them
filtered and ordered. Each strategy re-weights the five sub-scores with
its own profile, so the ``overall_score`` on a ranked match reflects the
strategy that ranked it.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .analyzer import TaskAnalysis, UserPreferences
from .scoring import (
    PROFILE_COST_FOCUSED,
    PROFILE_LATENCY_FOCUSED,
    PROFILE_QUALITY_FOCUSED,
    WEIGHT_PROFILES,
    ProviderMatch,
    RoutingWeights,
)

_log = logging.getLogger(__name__)


class StrategyName(str, Enum):
    COST_OPTIMIZED = "cost_optimized"
    LATENCY_OPTIMIZED = "latency_optimized"
    QUALITY_OPTIMIZED = "quality_optimized"
    BALANCED = "balanced"
    CAPABILITY_FIRST = "capability_first"
    HEALTH_AWARE = "health_aware"
    # Result labels only; never resolved through the registry.
    USER_PREFERENCE = "user_preference"
    DEFAULT = "default"


CAPABILITY_FIRST_WEIGHTS = RoutingWeights(40, 15, 15, 15, 15)
HEALTH_AWARE_WEIGHTS = RoutingWeights(20, 30, 15, 25, 10)

FAST_RESPONSE_BONUS = 20.0


def _by_overall(matches: Iterable[ProviderMatch]) -> List[ProviderMatch]:
    # sorted() is stable: equal scores keep registry order
    return sorted(matches, key=lambda m: m.overall_score, reverse=True)


# ── Strategy interface ────────────────────────────────────────────────────────

class RoutingStrategy(ABC):
    """Filter and order scored candidates for one request."""

    name: str = ""

    @abstractmethod
    def rank(self, matches: Sequence[ProviderMatch], analysis: TaskAnalysis) -> List[ProviderMatch]:
        """Return the surviving candidates, best first."""


class CostOptimizedStrategy(RoutingStrategy):
    """Cheapest adequate model; the cost weight grows with task complexity."""

    name = StrategyName.COST_OPTIMIZED.value
    MIN_CAPABILITY_MATCH = 70

    def __init__(self, weights: RoutingWeights = WEIGHT_PROFILES[PROFILE_COST_FOCUSED]):
        self.weights = weights

    def rank(self, matches, analysis):
        multiplier = 1 + (analysis.complexity_score / 100) * 0.5
        return _by_overall(
            m.rescored(m.weighted(self.weights, cost_multiplier=multiplier))
            for m in matches
            if m.capability_match >= self.MIN_CAPABILITY_MATCH
        )


class LatencyOptimizedStrategy(RoutingStrategy):
    name = StrategyName.LATENCY_OPTIMIZED.value
    MIN_HEALTH_SCORE = 50

    def __init__(self, weights: RoutingWeights = WEIGHT_PROFILES[PROFILE_LATENCY_FOCUSED]):
        self.weights = weights

    def rank(self, matches, analysis):
        bonus = FAST_RESPONSE_BONUS if analysis.required_capabilities.fast_response else 0.0
        return _by_overall(
            m.rescored(m.weighted(self.weights, bonus=bonus))
            for m in matches
            if m.health_score >= self.MIN_HEALTH_SCORE
        )


class QualityOptimizedStrategy(RoutingStrategy):
    name = StrategyName.QUALITY_OPTIMIZED.value
    MIN_CAPABILITY_MATCH = 60

    def __init__(self, weights: RoutingWeights = WEIGHT_PROFILES[PROFILE_QUALITY_FOCUSED]):
        self.weights = weights

    def rank(self, matches, analysis):
        bonus = analysis.complexity_score * 0.3
        return _by_overall(
            m.rescored(m.weighted(self.weights, bonus=bonus))
            for m in matches
            if m.capability_match >= self.MIN_CAPABILITY_MATCH
        )


class BalancedStrategy(RoutingStrategy):
    """Keeps the scores computed with the router's active weight profile."""

    name = StrategyName.BALANCED.value

    def rank(self, matches, analysis):
        return _by_overall(matches)


class CapabilityFirstStrategy(RoutingStrategy):
    """Orders by capability match, then quality; no score filter.

    The ranked ``overall_score`` values carry the fixed 40/15/15/15/15
    profile but do not drive the order.
    """

    name = StrategyName.CAPABILITY_FIRST.value

    def __init__(self, weights: RoutingWeights = CAPABILITY_FIRST_WEIGHTS):
        self.weights = weights

    def rank(self, matches, analysis):
        rescored = [m.rescored(m.weighted(self.weights)) for m in matches]
        return sorted(
            rescored,
            key=lambda m: (m.capability_match, m.quality_score, m.overall_score),
            reverse=True,
        )


class HealthAwareStrategy(RoutingStrategy):
    name = StrategyName.HEALTH_AWARE.value
    MIN_HEALTH_SCORE = 60

    def __init__(self, weights: RoutingWeights = HEALTH_AWARE_WEIGHTS):
        self.weights = weights

    def rank(self, matches, analysis):
        return _by_overall(
            m.rescored(m.weighted(self.weights))
            for m in matches
            if m.health_score >= self.MIN_HEALTH_SCORE
        )


# ── Registry ──────────────────────────────────────────────────────────────────

def _key(name) -> str:
    return name.value if isinstance(name, Enum) else str(name)


class StrategyRegistry:
    """Name → strategy lookup owned by one router."""

    def __init__(self, strategies: Optional[Iterable[RoutingStrategy]] = None):
        self._strategies: Dict[str, RoutingStrategy] = {}
        for strategy in strategies or ():
            self.register(strategy)

    def get(self, name) -> RoutingStrategy:
        """Return the strategy registered under *name*.

        Raises:
            ValueError: If no strategy has that name.
        """
        key = _key(name)
        try:
            return self._strategies[key]
        except KeyError:
            raise ValueError(
                f"unknown strategy {key!r}; expected one of {self.names()}"
            ) from None

    def register(self, strategy: RoutingStrategy, name: Optional[str] = None) -> None:
        """Add or replace a strategy. *name* defaults to ``strategy.name``."""
        if not isinstance(strategy, RoutingStrategy):
            raise ValueError(f"strategy must be a RoutingStrategy, got {type(strategy).__name__}")
        key = _key(name) if name is not None else strategy.name
        if not key:
            raise ValueError("strategy name must be non-empty")
        if key in (StrategyName.USER_PREFERENCE.value, StrategyName.DEFAULT.value):
            raise ValueError(f"{key!r} is reserved for result labels")
        if key in self._strategies:
            _log.info("Replacing routing strategy %r", key)
        self._strategies[key] = strategy

    def names(self) -> List[str]:
        return sorted(self._strategies)

    def __contains__(self, name) -> bool:
        return _key(name) in self._strategies


def default_strategies(profiles: Optional[Mapping[str, RoutingWeights]] = None) -> StrategyRegistry:
    """Registry holding the six built-in strategies.

    Args:
        profiles: Named weight profiles; missing names use the built-ins.
    """
    profiles = {**WEIGHT_PROFILES, **(profiles or {})}
    return StrategyRegistry([
        CostOptimizedStrategy(profiles[PROFILE_COST_FOCUSED]),
        LatencyOptimizedStrategy(profiles[PROFILE_LATENCY_FOCUSED]),
        QualityOptimizedStrategy(profiles[PROFILE_QUALITY_FOCUSED]),
        BalancedStrategy(),
        CapabilityFirstStrategy(),
        HealthAwareStrategy(),
    ])


def select_strategy(
    preferences: Optional[UserPreferences],
    cost_optimization_enabled: bool = True,
    default: str = StrategyName.BALANCED.value,
) -> str:
    """Resolve a strategy name from caller preferences.

    ``speed`` picks latency, ``quality`` picks quality; otherwise a ``high``
    cost preference picks cost (when cost optimisation is enabled). Anything
    else falls back to *default*.
    """
    if preferences is None:
        return _key(default)
    if preferences.quality_speed_tradeoff == "speed":
        return StrategyName.LATENCY_OPTIMIZED.value
    if preferences.quality_speed_tradeoff == "quality":
        return StrategyName.QUALITY_OPTIMIZED.value
    if cost_optimization_enabled and preferences.cost_optimization == "high":
        return StrategyName.COST_OPTIMIZED.value
    return _key(default)
