"""
Candidate scoring for chatroute.

Computes five 0–100 sub-scores for a (model, task, health) triple and a
weighted overall score. Everything here is pure: the same inputs always
produce the same :class:`ProviderMatch`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, List, Mapping, Optional

from .analyzer import TaskAnalysis, TaskCategory
from .config import Config
from .health import HealthSnapshot, HealthStatus
from .pricing import DEFAULT_INPUT_PRICE, DEFAULT_OUTPUT_PRICE
from .registry import CapabilityEntry

WEIGHT_TOTAL = 100.0

PROFILE_COST_FOCUSED = "cost_focused"
PROFILE_LATENCY_FOCUSED = "latency_focused"
PROFILE_QUALITY_FOCUSED = "quality_focused"
PROFILE_BALANCED = "balanced"


# ── RoutingWeights ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RoutingWeights:
    """Percentage weights for the five sub-scores; they must total 100."""

    capability_match: float
    health_score: float
    cost_score: float
    latency_score: float
    quality_score: float

    def __post_init__(self) -> None:
        """Validate all fields on construction."""
        for name, value in asdict(self).items():
            if value < 0:
                raise ValueError(f"{name} weight must be >= 0, got {value}")
        total = self.total
        if abs(total - WEIGHT_TOTAL) > 1e-9:
            raise ValueError(f"routing weights must sum to 100, got {total}")

    @property
    def total(self) -> float:
        return (
            self.capability_match + self.health_score + self.cost_score
            + self.latency_score + self.quality_score
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, float]) -> "RoutingWeights":
        return cls(
            capability_match=float(data["capability_match"]),
            health_score=float(data["health_score"]),
            cost_score=float(data["cost_score"]),
            latency_score=float(data["latency_score"]),
            quality_score=float(data["quality_score"]),
        )

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def load_weight_profiles(config: Config = None) -> Dict[str, RoutingWeights]:
    """Build every named profile from config, validating each one."""
    profiles = (config or Config()).get_weight_profiles()
    return {name: RoutingWeights.from_dict(values) for name, values in profiles.items()}


WEIGHT_PROFILES: Dict[str, RoutingWeights] = {
    PROFILE_COST_FOCUSED: RoutingWeights(20, 15, 40, 10, 15),
    PROFILE_LATENCY_FOCUSED: RoutingWeights(20, 15, 10, 45, 10),
    PROFILE_QUALITY_FOCUSED: RoutingWeights(25, 15, 10, 10, 40),
    PROFILE_BALANCED: RoutingWeights(25, 20, 20, 15, 20),
}


# ── ProviderMatch ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ProviderMatch:
    """Score bundle for one candidate model."""

    provider_id: str
    model_id: str
    model_name: str
    capability_match: float
    health_score: float
    cost_score: float
    latency_score: float
    quality_score: float
    overall_score: float
    reason: str

    def weighted(self, weights: RoutingWeights, cost_multiplier: float = 1.0, bonus: float = 0.0) -> float:
        """Weighted overall score for *weights*, clamped to [0, 100].

        ``cost_multiplier`` scales the cost term only; ``bonus`` is added
        in score points after normalisation.
        """
        return _clamp(weighted_sum(self, weights, cost_multiplier) + bonus)

    def rescored(self, overall_score: float) -> "ProviderMatch":
        return replace(self, overall_score=overall_score)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def weighted_sum(match: ProviderMatch, weights: RoutingWeights, cost_multiplier: float = 1.0) -> float:
    return (
        match.capability_match * weights.capability_match
        + match.health_score * weights.health_score
        + match.cost_score * weights.cost_score * cost_multiplier
        + match.latency_score * weights.latency_score
        + match.quality_score * weights.quality_score
    ) / WEIGHT_TOTAL


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


# ── Scoring ───────────────────────────────────────────────────────────────────

def score_candidate(
    entry: CapabilityEntry,
    analysis: TaskAnalysis,
    health: Optional[HealthSnapshot],
    weights: RoutingWeights = WEIGHT_PROFILES[PROFILE_BALANCED],
) -> ProviderMatch:
    """Score one candidate against a task.

    Args:
        entry: Model entry; unpriced entries use the fixed fallback prices.
        analysis: Task analysis for the request.
        health: Provider health, or None when unavailable (neutral scores).
        weights: Weight profile for the overall score.

    Returns:
        ProviderMatch whose ``overall_score`` is exactly
        ``weighted_sum(match, weights)``.
    """
    capability = capability_match_score(entry, analysis)
    health_score = health_score_for(health)
    cost = cost_score(entry, analysis)
    latency = latency_score(health.latency_ms if health is not None else None)
    quality = quality_score(entry)

    match = ProviderMatch(
        provider_id=entry.provider_id,
        model_id=entry.id,
        model_name=entry.display_name,
        capability_match=capability,
        health_score=health_score,
        cost_score=cost,
        latency_score=latency,
        quality_score=quality,
        overall_score=0.0,
        reason="",
    )
    overall = weighted_sum(match, weights)
    return replace(match, overall_score=overall, reason=selection_reason(entry, analysis, overall))


def capability_match_score(entry: CapabilityEntry, analysis: TaskAnalysis) -> float:
    """How well *entry* covers the required capabilities (0–100)."""
    required = analysis.required_capabilities
    score = 50.0

    if required.vision:
        score += 15 if entry.has_capability("vision") else -20
    if required.coding:
        score += 15 if entry.has_capability("coding") else -20
    if required.reasoning and entry.has_capability("reasoning"):
        score += 10
    if required.analysis and entry.has_capability("analysis"):
        score += 10

    if required.large_context:
        if entry.context_window >= 100_000:
            score += 10
        elif entry.context_window < 32_000:
            score -= 15

    return _clamp(score)


_STATUS_BONUS = {
    HealthStatus.HEALTHY: 40,
    HealthStatus.DEGRADED: 10,
    HealthStatus.UNHEALTHY: -30,
    HealthStatus.UNKNOWN: 0,
}


def health_score_for(health: Optional[HealthSnapshot]) -> float:
    """Health sub-score; 50 when no health data is available."""
    if health is None:
        return 50.0
    score = 50.0 + _STATUS_BONUS.get(HealthStatus(health.status), 0)
    if health.success_rate is not None:
        score += health.success_rate * 20
    score -= min(20, health.queue_length * 2)
    return _clamp(score)


# Request cost at or below the floor scores 100, at or above the ceiling 0
COST_FLOOR_USD = 0.01
COST_CEILING_USD = 0.10


def estimate_request_cost(entry: CapabilityEntry, analysis: TaskAnalysis) -> float:
    """Estimated USD cost of serving *analysis* on *entry*."""
    input_price = entry.price_input if entry.price_input is not None else DEFAULT_INPUT_PRICE
    output_price = entry.price_output if entry.price_output is not None else DEFAULT_OUTPUT_PRICE
    return (
        input_price * analysis.estimated_input_tokens / 1000
        + output_price * analysis.estimated_output_tokens / 1000
    )


def cost_score(entry: CapabilityEntry, analysis: TaskAnalysis) -> float:
    cost = estimate_request_cost(entry, analysis)
    if cost <= COST_FLOOR_USD:
        return 100.0
    if cost >= COST_CEILING_USD:
        return 0.0
    return 100.0 * (COST_CEILING_USD - cost) / (COST_CEILING_USD - COST_FLOOR_USD)


def latency_score(latency_ms: Optional[float]) -> float:
    """<500 ms scores 100, >5000 ms scores 0, linear between; unknown is 50."""
    if latency_ms is None:
        return 50.0
    if latency_ms < 500:
        return 100.0
    if latency_ms > 5000:
        return 0.0
    return 100.0 - ((latency_ms - 500) / 4500) * 100


def quality_score(entry: CapabilityEntry) -> float:
    score = 50.0 + (3 - entry.priority) * 15

    if entry.context_window >= 1_000_000:
        score += 15
    elif entry.context_window >= 100_000:
        score += 10
    elif entry.context_window >= 32_000:
        score += 5

    score += min(15, len(entry.capabilities) * 2)
    return _clamp(score)


def selection_reason(entry: CapabilityEntry, analysis: TaskAnalysis, score: float) -> str:
    """Short justification from up to three matched signals."""
    required = analysis.required_capabilities
    reasons: List[str] = []

    if required.coding and entry.has_capability("coding"):
        reasons.append("excellent coding support")
    if required.vision and entry.has_capability("vision"):
        reasons.append("supports vision/multimodal input")
    if required.reasoning and entry.has_capability("reasoning"):
        reasons.append("strong reasoning capabilities")

    if entry.priority == 1:
        reasons.append("high priority model")
    if entry.context_window >= 100_000:
        reasons.append("large context window")

    if analysis.category == TaskCategory.CODING and "coding" in entry.tags:
        reasons.append("specialized for coding tasks")

    if not reasons:
        return "Good match" if score > 70 else "Acceptable match"
    return "; ".join(reasons[:3])
