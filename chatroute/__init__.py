"""
chatroute — Model routing engine for chat applications.

Analyzes a conversation, scores every available model on capability fit,
provider health, cost, latency and quality, ranks them with a named
strategy and returns the selection with a fallback chain and a
confidence value. Zero external dependencies. All state is in-process.

Usage:
    from chatroute import Router, RoutingRequest, UserPreferences

    router = Router()
    result = router.route(RoutingRequest(
        messages=[{"role": "user", "content": "fix this bug: ```js\\nf()\\n```"}],
        user_preferences=UserPreferences(quality_speed_tradeoff="quality"),
    ))
    print(f"Use {result.selected_model_id} ({result.strategy}, confidence: {result.confidence:.0f})")
    print(router.explain(result))

Feeding provider outcomes back:
    router.record_provider_event("openai", "error", latency_ms=4200)
"""

__version__ = "1.0.0"

# Routing
from .router import Router, RouterConfig, RouterStats, RoutingRequest, RoutingResult
from .strategies import (
    RoutingStrategy,
    StrategyName,
    StrategyRegistry,
    CostOptimizedStrategy,
    LatencyOptimizedStrategy,
    QualityOptimizedStrategy,
    BalancedStrategy,
    CapabilityFirstStrategy,
    HealthAwareStrategy,
    default_strategies,
    select_strategy,
)
from .scoring import ProviderMatch, RoutingWeights, WEIGHT_PROFILES, score_candidate

# Task analysis
from .analyzer import (
    Message,
    TaskAnalysis,
    TaskAnalyzer,
    TaskCapabilities,
    TaskCategory,
    TaskComplexity,
    UserPreferences,
)
from .context import ContextWindowAnalysis, SuggestedModel, analyze_context_window

# Collaborators
from .registry import CapabilityEntry, ModelRegistry
from .health import HealthFetch, HealthSnapshot, HealthSource, HealthStatus, ProviderHealthTracker
from .pricing import PriceTable
from .cache import TTLCache
from .config import Config

__all__ = [
    # Routing
    "Router",
    "RouterConfig",
    "RouterStats",
    "RoutingRequest",
    "RoutingResult",
    "RoutingStrategy",
    "StrategyName",
    "StrategyRegistry",
    "CostOptimizedStrategy",
    "LatencyOptimizedStrategy",
    "QualityOptimizedStrategy",
    "BalancedStrategy",
    "CapabilityFirstStrategy",
    "HealthAwareStrategy",
    "default_strategies",
    "select_strategy",
    "ProviderMatch",
    "RoutingWeights",
    "WEIGHT_PROFILES",
    "score_candidate",

    # Task analysis
    "Message",
    "TaskAnalysis",
    "TaskAnalyzer",
    "TaskCapabilities",
    "TaskCategory",
    "TaskComplexity",
    "UserPreferences",
    "ContextWindowAnalysis",
    "SuggestedModel",
    "analyze_context_window",

    # Collaborators
    "CapabilityEntry",
    "ModelRegistry",
    "HealthFetch",
    "HealthSnapshot",
    "HealthSource",
    "HealthStatus",
    "ProviderHealthTracker",
    "PriceTable",
    "TTLCache",
    "Config",
]
