"""
Context-window fit checks.

Tells a caller whether a conversation fits a model's context window, and
which larger-context models could take it instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .analyzer import TaskAnalysis
from .pricing import PRICE_INPUT, PRICE_OUTPUT, PriceTable
from .registry import CapabilityEntry, ModelRegistry
from .scoring import estimate_request_cost

RECOMMEND_USE_MODEL = "use_model"
RECOMMEND_SUMMARIZE = "summarize"
RECOMMEND_REDUCE_CONTEXT = "reduce_context"
RECOMMEND_UPGRADE_MODEL = "upgrade_model"

# Above this share of the window, older turns should be summarised
SUMMARIZE_THRESHOLD_PCT = 80.0
MAX_SUGGESTIONS = 3


@dataclass(frozen=True)
class SuggestedModel:
    model_id: str
    context_window: int
    cost_increase: float  # USD per request relative to the current model


@dataclass(frozen=True)
class ContextWindowAnalysis:
    available_context: int
    estimated_tokens: int
    usage_percentage: float
    needs_summarization: bool
    recommendation: str
    suggested_models: List[SuggestedModel] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "available_context": self.available_context,
            "estimated_tokens": self.estimated_tokens,
            "usage_percentage": round(self.usage_percentage, 2),
            "needs_summarization": self.needs_summarization,
            "recommendation": self.recommendation,
            "suggested_models": [
                {
                    "model_id": s.model_id,
                    "context_window": s.context_window,
                    "cost_increase": round(s.cost_increase, 6),
                }
                for s in self.suggested_models
            ],
        }


def _priced(entry: CapabilityEntry, pricing: Optional[PriceTable]) -> CapabilityEntry:
    if pricing is None or (entry.price_input is not None and entry.price_output is not None):
        return entry
    return entry.with_prices(
        entry.price_input if entry.price_input is not None
        else pricing.price(entry.provider_id, PRICE_INPUT),
        entry.price_output if entry.price_output is not None
        else pricing.price(entry.provider_id, PRICE_OUTPUT),
    )


def analyze_context_window(
    analysis: TaskAnalysis,
    entry: CapabilityEntry,
    registry: ModelRegistry,
    pricing: Optional[PriceTable] = None,
) -> ContextWindowAnalysis:
    """Check whether *analysis* fits *entry*'s context window.

    Args:
        analysis: Analysis of the conversation to send.
        entry: Model the caller intends to use.
        registry: Source of alternative models.
        pricing: Optional price table for entries without their own prices.

    Returns:
        ContextWindowAnalysis. Up to the summarise threshold the model is
        used as is; past it, older turns should be summarised; once the
        request no longer fits, a larger available model is suggested
        (``upgrade_model``) or, when none exists, the caller must trim the
        conversation (``reduce_context``).
    """
    estimated = analysis.estimated_input_tokens + analysis.estimated_output_tokens
    window = max(entry.context_window, 1)
    usage = estimated / window * 100

    current = _priced(entry, pricing)
    current_cost = estimate_request_cost(current, analysis)
    larger = sorted(
        (m for m in registry.list_available()
         if m.id != entry.id and m.context_window > entry.context_window
         and m.context_window >= estimated),
        key=lambda m: (m.context_window, m.priority, m.id),
    )
    suggestions = [
        SuggestedModel(
            model_id=m.id,
            context_window=m.context_window,
            cost_increase=estimate_request_cost(_priced(m, pricing), analysis) - current_cost,
        )
        for m in larger[:MAX_SUGGESTIONS]
    ]

    if usage <= SUMMARIZE_THRESHOLD_PCT:
        recommendation = RECOMMEND_USE_MODEL
    elif usage <= 100:
        recommendation = RECOMMEND_SUMMARIZE
    elif suggestions:
        recommendation = RECOMMEND_UPGRADE_MODEL
    else:
        recommendation = RECOMMEND_REDUCE_CONTEXT

    return ContextWindowAnalysis(
        available_context=entry.context_window,
        estimated_tokens=estimated,
        usage_percentage=usage,
        needs_summarization=usage > SUMMARIZE_THRESHOLD_PCT,
        recommendation=recommendation,
        suggested_models=suggestions,
    )
