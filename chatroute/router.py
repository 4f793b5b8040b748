"""
Main routing interface for chatroute.

Ties task analysis, provider health, candidate scoring and strategy
ranking together into a single :meth:`Router.route` call that returns an
immutable :class:`RoutingResult`.

Degraded paths (health check failures or timeouts, missing prices,
analysis errors) never fail a routing call: they fall back to neutral
values and are reported on ``RoutingResult.degraded_reasons``. Only an
unexpected internal fault, such as a strategy raising, propagates.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from concurrent.futures import Future, wait
from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from .analyzer import Message, TaskAnalysis, TaskAnalyzer, TaskCapabilities, UserPreferences
from .cache import TTLCache
from .config import Config
from .health import HealthFetch, HealthSnapshot, HealthSource, ProviderHealthTracker
from .pricing import PRICE_INPUT, PRICE_OUTPUT, DEFAULT_INPUT_PRICE, DEFAULT_OUTPUT_PRICE, PriceTable
from .registry import CapabilityEntry, ModelRegistry
from .scoring import (
    PROFILE_BALANCED,
    ProviderMatch,
    RoutingWeights,
    estimate_request_cost,
    load_weight_profiles,
    score_candidate,
)
from .strategies import (
    RoutingStrategy,
    StrategyName,
    StrategyRegistry,
    default_strategies,
    select_strategy,
)

_log = logging.getLogger(__name__)

EXPLICIT_CONFIDENCE = 100.0
EXPLICIT_LATENCY_MS = 1000.0
DEFAULT_LATENCY_MS = 1000.0
FALLBACK_LATENCY_MS = 5000.0
FALLBACK_ESTIMATED_COST = 0.01
SINGLE_CANDIDATE_CONFIDENCE = 80.0

FALLBACK_REASON = "No suitable providers found, using fallback"
EXPLICIT_REASON = "Explicit user selection"


def _run_into(future: Future, fn, *args) -> None:
    """Run ``fn(*args)`` and settle *future* with its outcome."""
    if not future.set_running_or_notify_cancel():
        return
    try:
        result = fn(*args)
    except BaseException as exc:  # settled onto the future, read by the caller
        future.set_exception(exc)
    else:
        future.set_result(result)


# ── RouterConfig ──────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RouterConfig:
    """Router behaviour switches and cache settings.

    Raises:
        ValueError: On a negative fallback count or a non-positive TTL or
            timeout.
    """

    default_model: str = "openai/gpt-4o-mini"
    auto_select_enabled: bool = True
    cost_optimization_enabled: bool = True
    health_based_routing: bool = True
    fallback_enabled: bool = True
    max_fallback_attempts: int = 3
    weights: RoutingWeights = field(default_factory=lambda: RoutingWeights(25, 20, 20, 15, 20))
    analysis_cache_ttl: float = 60.0
    health_cache_ttl: float = 30.0
    health_check_timeout: float = 5.0
    real_time_health_updates: bool = False
    default_strategy: str = StrategyName.BALANCED.value

    def __post_init__(self) -> None:
        if isinstance(self.weights, Mapping):
            object.__setattr__(self, "weights", RoutingWeights.from_dict(self.weights))
        if not isinstance(self.weights, RoutingWeights):
            raise ValueError(f"weights must be RoutingWeights, got {type(self.weights).__name__}")
        if isinstance(self.default_strategy, StrategyName):
            object.__setattr__(self, "default_strategy", self.default_strategy.value)
        if self.max_fallback_attempts < 0:
            raise ValueError(
                f"max_fallback_attempts must be >= 0, got {self.max_fallback_attempts}"
            )
        for name in ("analysis_cache_ttl", "health_cache_ttl", "health_check_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be > 0, got {value}")

    @classmethod
    def from_config(cls, config: Config) -> "RouterConfig":
        """Build from the ``router`` and ``weight_profiles`` config sections."""
        defaults = dict(config.get_router_defaults())
        profile = defaults.pop("weight_profile", PROFILE_BALANCED)
        profiles = load_weight_profiles(config)
        if profile not in profiles:
            raise ValueError(f"unknown weight profile {profile!r}; expected one of {sorted(profiles)}")
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in defaults.items() if k in known}
        values["weights"] = profiles[profile]
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["weights"] = self.weights.to_dict()
        return d


# ── Request / Result ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RoutingRequest:
    """One routing call.

    ``messages`` accepts ``Message`` objects, ``{"role", "content"}``
    mappings or ``(role, content)`` pairs.
    """

    messages: Sequence[Any]
    requested_model: Optional[str] = None
    user_preferences: Optional[UserPreferences] = None
    required_capabilities: Optional[TaskCapabilities] = None
    is_follow_up: bool = False
    conversation_history_length: int = 0
    is_streaming: bool = False
    preferred_max_tokens: Optional[int] = None  # caps the output-token estimate
    strategy: Optional[str] = None              # overrides preference resolution

    def __post_init__(self) -> None:
        object.__setattr__(self, "messages", tuple(self.messages or ()))
        if isinstance(self.user_preferences, Mapping):
            object.__setattr__(self, "user_preferences", UserPreferences.from_dict(self.user_preferences))
        if isinstance(self.required_capabilities, Mapping):
            object.__setattr__(
                self, "required_capabilities", TaskCapabilities(**self.required_capabilities)
            )


@dataclass(frozen=True)
class RoutingResult:
    """The router's decision. Same shape on the normal and fallback paths."""

    selected_model_id: str
    selected_provider_id: str
    candidates: Tuple[ProviderMatch, ...]
    fallback_chain: Tuple[str, ...]
    analysis: TaskAnalysis
    confidence: float
    reason: str
    strategy: str
    estimated_cost: float
    estimated_latency_ms: float
    routed_at: float = field(default_factory=time.time)
    degraded_reasons: Tuple[str, ...] = ()
    is_streaming: bool = False

    @property
    def is_fallback(self) -> bool:
        return self.strategy == StrategyName.DEFAULT.value

    @property
    def degraded(self) -> bool:
        return bool(self.degraded_reasons)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_model_id": self.selected_model_id,
            "selected_provider_id": self.selected_provider_id,
            "candidates": [m.to_dict() for m in self.candidates],
            "fallback_chain": list(self.fallback_chain),
            "analysis": self.analysis.to_dict(),
            "confidence": self.confidence,
            "reason": self.reason,
            "strategy": self.strategy,
            "estimated_cost": self.estimated_cost,
            "estimated_latency_ms": self.estimated_latency_ms,
            "routed_at": self.routed_at,
            "degraded_reasons": list(self.degraded_reasons),
            "is_streaming": self.is_streaming,
        }


@dataclass
class RouterStats:
    """Process-lifetime routing counters. ``Router.get_stats`` returns a copy."""

    total_routings: int = 0
    successful_routings: int = 0
    failed_routings: int = 0
    fallback_usage: int = 0
    model_usage: Dict[str, int] = field(default_factory=dict)
    strategy_usage: Dict[str, int] = field(default_factory=dict)
    total_routing_time_ms: float = 0.0
    cache_hit_rate: float = 0.0

    @property
    def average_routing_time_ms(self) -> float:
        return self.total_routing_time_ms / self.total_routings if self.total_routings else 0.0

    def copy(self) -> "RouterStats":
        return replace(self, model_usage=dict(self.model_usage),
                       strategy_usage=dict(self.strategy_usage))

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["average_routing_time_ms"] = round(self.average_routing_time_ms, 3)
        return d


# ── Router ────────────────────────────────────────────────────────────────────

class Router:
    """Selects a model for each chat request.

    Collaborators are injected; every one of them has an in-process
    default so ``Router()`` works out of the box with the packaged model
    catalog.
    """

    def __init__(
        self,
        registry: Optional[ModelRegistry] = None,
        health_source: Optional[HealthSource] = None,
        pricing: Optional[PriceTable] = None,
        config: Optional[RouterConfig] = None,
        analyzer: Optional[TaskAnalyzer] = None,
        strategies: Optional[StrategyRegistry] = None,
        config_path: str = None,
    ):
        """Initialize the router.

        Args:
            registry: Capability registry. Defaults to the packaged catalog.
            health_source: Provider health collaborator. Defaults to a fresh
                :class:`ProviderHealthTracker`.
            pricing: Per-provider price lookup for unpriced entries.
            config: Router settings. Defaults to the ``router`` section of
                the loaded configuration.
            analyzer: Task analyzer. Defaults to one built from the loaded
                configuration.
            strategies: Strategy registry owned by this router.
            config_path: Directory holding a ``config.json`` that overrides
                the packaged defaults.
        """
        self.settings = Config(config_path)
        self.registry = registry if registry is not None else ModelRegistry(self.settings)
        self.health_source = health_source if health_source is not None else ProviderHealthTracker()
        self.pricing = pricing if pricing is not None else PriceTable(config=self.settings)
        self.analyzer = analyzer if analyzer is not None else TaskAnalyzer(self.settings)
        self.strategies = (
            strategies if strategies is not None
            else default_strategies(load_weight_profiles(self.settings))
        )
        self._config = config if config is not None else RouterConfig.from_config(self.settings)

        self._analysis_cache = TTLCache(self._config.analysis_cache_ttl)
        self._health_cache = TTLCache(self._config.health_cache_ttl)
        self._stats = RouterStats()
        self._stats_lock = threading.Lock()

    # ── Public routing interface ──────────────────────────────────────────

    def route(self, request: RoutingRequest) -> RoutingResult:
        """Route one chat request.

        Args:
            request: Messages plus optional model, preferences and overrides.

        Returns:
            :class:`RoutingResult`. When nothing qualifies, a fallback result
            on the configured default model with confidence 0.

        Raises:
            ValueError: If ``request.strategy`` names an unknown strategy.
            Exception: Any unexpected fault inside scoring or ranking is
                re-raised after ``failed_routings`` is incremented.
        """
        started = time.perf_counter()
        try:
            result = self._route(request)
        except Exception as exc:
            self._record_failure(started)
            _log.error("Routing failed: %s", exc)
            raise
        self._record_success(result, started)
        return result

    def _route(self, request: RoutingRequest) -> RoutingResult:
        degraded: List[str] = []
        analysis = self._analyze(request, degraded)

        if request.requested_model:
            return self._route_explicit(request, analysis, degraded)

        candidates = self._candidates(analysis, degraded)
        health = self._health_for(candidates, degraded)

        matches = [
            score_candidate(entry, analysis, health.get(entry.provider_id), self._config.weights)
            for entry in candidates
        ]

        strategy_name = request.strategy or select_strategy(
            analysis.user_preferences,
            cost_optimization_enabled=self._config.cost_optimization_enabled,
            default=self._config.default_strategy,
        )
        if isinstance(strategy_name, StrategyName):
            strategy_name = strategy_name.value
        strategy = self.strategies.get(strategy_name)
        ranked = strategy.rank(matches, analysis)

        if not ranked:
            _log.info(
                "No candidate survived %s ranking (%d scored); using fallback %s",
                strategy_name, len(matches), self._config.default_model,
            )
            return self._fallback_result(analysis, degraded, request.is_streaming)

        selected = ranked[0]
        entry = {e.id: e for e in candidates}[selected.model_id]
        snapshot = health.get(selected.provider_id)
        latency = (
            snapshot.latency_ms
            if snapshot is not None and snapshot.latency_ms is not None
            else DEFAULT_LATENCY_MS
        )

        result = RoutingResult(
            selected_model_id=selected.model_id,
            selected_provider_id=selected.provider_id,
            candidates=tuple(ranked),
            fallback_chain=self._fallback_chain(ranked),
            analysis=analysis,
            confidence=self._confidence(ranked),
            reason=selected.reason,
            strategy=strategy_name,
            estimated_cost=estimate_request_cost(entry, analysis),
            estimated_latency_ms=latency,
            degraded_reasons=tuple(degraded),
            is_streaming=request.is_streaming,
        )
        _log.debug(
            "Routed to %s via %s (confidence %.1f, %d candidates, %d degraded)",
            result.selected_model_id, result.strategy, result.confidence,
            len(ranked), len(degraded),
        )
        return result

    # ── Explicit selection & fallback ─────────────────────────────────────

    def _route_explicit(
        self, request: RoutingRequest, analysis: TaskAnalysis, degraded: List[str]
    ) -> RoutingResult:
        entry = self.registry.get_model(request.requested_model)
        if entry is None:
            reason = f"requested model {request.requested_model!r} is not registered"
            _log.warning("%s; using fallback", reason)
            degraded.append(reason)
            return self._fallback_result(analysis, degraded, request.is_streaming)

        entry = self._priced(entry, degraded)
        match = ProviderMatch(
            provider_id=entry.provider_id,
            model_id=entry.id,
            model_name=entry.display_name,
            capability_match=100.0,
            health_score=50.0,
            cost_score=50.0,
            latency_score=50.0,
            quality_score=50.0,
            overall_score=75.0,
            reason="User-selected model",
        )
        return RoutingResult(
            selected_model_id=entry.id,
            selected_provider_id=entry.provider_id,
            candidates=(match,),
            fallback_chain=(),
            analysis=analysis,
            confidence=EXPLICIT_CONFIDENCE,
            reason=EXPLICIT_REASON,
            strategy=StrategyName.USER_PREFERENCE.value,
            estimated_cost=estimate_request_cost(entry, analysis),
            estimated_latency_ms=EXPLICIT_LATENCY_MS,
            degraded_reasons=tuple(degraded),
            is_streaming=request.is_streaming,
        )

    def _fallback_result(
        self, analysis: TaskAnalysis, degraded: List[str], is_streaming: bool = False
    ) -> RoutingResult:
        entry = self.registry.get_model(self._config.default_model)
        if entry is None:
            models = self.registry.list_models()
            entry = models[0] if models else None

        return RoutingResult(
            selected_model_id=entry.id if entry else "unknown",
            selected_provider_id=entry.provider_id if entry else "unknown",
            candidates=(),
            fallback_chain=(),
            analysis=analysis,
            confidence=0.0,
            reason=FALLBACK_REASON,
            strategy=StrategyName.DEFAULT.value,
            estimated_cost=FALLBACK_ESTIMATED_COST,
            estimated_latency_ms=FALLBACK_LATENCY_MS,
            degraded_reasons=tuple(degraded),
            is_streaming=is_streaming,
        )

    def _fallback_chain(self, ranked: Sequence[ProviderMatch]) -> Tuple[str, ...]:
        if not self._config.fallback_enabled:
            return ()
        selected_id = ranked[0].model_id
        chain: List[str] = []
        for match in ranked[1:]:
            if len(chain) >= self._config.max_fallback_attempts:
                break
            if match.model_id != selected_id and match.model_id not in chain:
                chain.append(match.model_id)
        return tuple(chain)

    @staticmethod
    def _confidence(ranked: Sequence[ProviderMatch]) -> float:
        if len(ranked) == 1:
            return SINGLE_CANDIDATE_CONFIDENCE
        # capability_first can rank a lower overall score first
        diff = ranked[0].overall_score - ranked[1].overall_score
        return max(0.0, min(100.0, 70.0 + diff * 2))

    # ── Analysis ──────────────────────────────────────────────────────────

    def _analyze(self, request: RoutingRequest, degraded: List[str]) -> TaskAnalysis:
        key = self._analysis_key(request)
        analysis = self._analysis_cache.get(key)
        if analysis is None:
            try:
                analysis = self.analyzer.analyze(
                    request.messages,
                    is_follow_up=request.is_follow_up,
                    conversation_history_length=request.conversation_history_length,
                    user_preferences=request.user_preferences,
                )
            except Exception as exc:
                reason = f"task analysis failed, using neutral defaults: {exc}"
                _log.warning("%s", reason)
                degraded.append(reason)
                analysis = TaskAnalyzer(self.settings).analyze(
                    [], user_preferences=request.user_preferences
                )
            else:
                self._analysis_cache.put(key, analysis)

        analysis = self.analyzer.with_capabilities(analysis, request.required_capabilities)
        if (request.preferred_max_tokens is not None
                and request.preferred_max_tokens < analysis.estimated_output_tokens):
            analysis = replace(analysis, estimated_output_tokens=max(0, request.preferred_max_tokens))
        return analysis

    @staticmethod
    def _analysis_key(request: RoutingRequest) -> Tuple[str, int]:
        """Content hash plus total length; options are part of the hash."""
        contents = [Message.coerce(m).content for m in request.messages]
        options = {
            "is_follow_up": request.is_follow_up,
            "history": request.conversation_history_length,
            "preferences": (
                request.user_preferences.to_dict() if request.user_preferences else None
            ),
        }
        digest = hashlib.sha256()
        digest.update("\x1f".join(contents).encode("utf-8"))
        digest.update(json.dumps(options, sort_keys=True).encode("utf-8"))
        return digest.hexdigest(), sum(len(c) for c in contents)

    # ── Candidates & pricing ──────────────────────────────────────────────

    def _candidates(self, analysis: TaskAnalysis, degraded: List[str]) -> List[CapabilityEntry]:
        if not self._config.auto_select_enabled:
            return []

        entries = self.registry.list_available()
        prefs = analysis.user_preferences
        if prefs is not None:
            if prefs.excluded_models:
                excluded = set(prefs.excluded_models)
                entries = [e for e in entries if e.id not in excluded]
            if prefs.preferred_provider:
                preferred = [e for e in entries if e.provider_id == prefs.preferred_provider]
                if preferred:
                    entries = preferred

        entries = [self._priced(e, degraded) for e in entries]

        if prefs is not None and prefs.max_cost_per_request is not None:
            entries = [
                e for e in entries
                if estimate_request_cost(e, analysis) <= prefs.max_cost_per_request
            ]
        return entries

    def _priced(self, entry: CapabilityEntry, degraded: List[str]) -> CapabilityEntry:
        """Fill missing prices from the price table."""
        if entry.price_input is not None and entry.price_output is not None:
            return entry
        try:
            price_input = (
                entry.price_input if entry.price_input is not None
                else self.pricing.price(entry.provider_id, PRICE_INPUT)
            )
            price_output = (
                entry.price_output if entry.price_output is not None
                else self.pricing.price(entry.provider_id, PRICE_OUTPUT)
            )
        except Exception as exc:
            reason = f"pricing unavailable for {entry.provider_id}, using defaults: {exc}"
            _log.warning("%s", reason)
            degraded.append(reason)
            price_input, price_output = DEFAULT_INPUT_PRICE, DEFAULT_OUTPUT_PRICE
        return entry.with_prices(price_input, price_output)

    # ── Provider health ───────────────────────────────────────────────────

    def _health_for(
        self, candidates: Iterable[CapabilityEntry], degraded: List[str]
    ) -> Dict[str, HealthSnapshot]:
        if not self._config.health_based_routing:
            return {}
        provider_ids = list(dict.fromkeys(e.provider_id for e in candidates))
        fetched = self.fetch_health(provider_ids)
        snapshots: Dict[str, HealthSnapshot] = {}
        for provider_id, fetch in fetched.items():
            if fetch.degraded:
                degraded.append(fetch.degraded_reason)
            snapshots[provider_id] = fetch.snapshot
        return snapshots

    def fetch_health(self, provider_ids: Sequence[str]) -> Dict[str, HealthFetch]:
        """Fetch health for *provider_ids* concurrently.

        Each provider is checked independently; a failure or a check that
        has not finished within ``health_check_timeout`` yields an
        ``unknown`` snapshot for that provider alone. Results go through the
        health cache unless ``real_time_health_updates`` is set.

        Each check runs on its own daemon thread. A source that never
        returns leaves that thread behind but blocks neither this call
        nor interpreter exit.
        """
        use_cache = not self._config.real_time_health_updates
        results: Dict[str, HealthFetch] = {}
        pending: List[str] = []
        for provider_id in provider_ids:
            cached = self._health_cache.get(provider_id) if use_cache else None
            if cached is not None:
                results[provider_id] = cached
            else:
                pending.append(provider_id)

        if not pending:
            return results

        timeout = self._config.health_check_timeout
        futures: Dict[Future, str] = {}
        for provider_id in pending:
            future: Future = Future()
            threading.Thread(
                target=_run_into,
                args=(future, self.health_source.get_health, provider_id),
                name=f"chatroute-health-{provider_id}",
                daemon=True,
            ).start()
            futures[future] = provider_id

        _, not_done = wait(futures, timeout=timeout)
        for future, provider_id in futures.items():
            if future in not_done:
                fetch = HealthFetch(
                    HealthSnapshot.unknown(provider_id, error="health check timed out"),
                    f"health check for {provider_id} timed out after {timeout}s",
                )
            elif future.exception() is not None:
                exc = future.exception()
                fetch = HealthFetch(
                    HealthSnapshot.unknown(provider_id, error=str(exc)),
                    f"health check for {provider_id} failed: {exc}",
                )
            elif future.result() is None:
                fetch = HealthFetch(
                    HealthSnapshot.unknown(provider_id),
                    f"health source returned no snapshot for {provider_id}",
                )
            else:
                fetch = HealthFetch(future.result())

            if fetch.degraded:
                _log.warning("%s; scoring as unknown", fetch.degraded_reason)
            results[provider_id] = fetch
            if use_cache:
                self._health_cache.put(provider_id, fetch)
        return results

    def record_provider_event(
        self,
        provider_id: str,
        event: str,
        latency_ms: Optional[float] = None,
        details: Optional[str] = None,
    ) -> None:
        """Record a request outcome with the health source.

        Args:
            provider_id: Provider identifier.
            event: ``"success"``, ``"error"``, or ``"timeout"``.
            latency_ms: Response latency in milliseconds.
            details: Optional detail string (e.g. ``"rate_limited"``).

        Raises:
            ValueError: If the event is invalid or the health source does
                not accept recorded events.
        """
        record = getattr(self.health_source, "record_event", None)
        if record is None:
            raise ValueError(
                f"{type(self.health_source).__name__} does not accept recorded events"
            )
        record(provider_id, event, latency_ms=latency_ms, details=details)
        self._health_cache.invalidate(provider_id)

    def get_provider_health(self, provider_id: str) -> HealthSnapshot:
        """Current snapshot for *provider_id*, through the health cache."""
        return self.fetch_health([provider_id])[provider_id].snapshot

    # ── Stats ─────────────────────────────────────────────────────────────

    def _record_success(self, result: RoutingResult, started: float) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        with self._stats_lock:
            stats = self._stats
            stats.total_routings += 1
            stats.successful_routings += 1
            stats.total_routing_time_ms += elapsed_ms
            stats.model_usage[result.selected_model_id] = (
                stats.model_usage.get(result.selected_model_id, 0) + 1
            )
            stats.strategy_usage[result.strategy] = stats.strategy_usage.get(result.strategy, 0) + 1
            if result.fallback_chain:
                stats.fallback_usage += 1

    def _record_failure(self, started: float) -> None:
        elapsed_ms = (time.perf_counter() - started) * 1000
        with self._stats_lock:
            self._stats.total_routings += 1
            self._stats.failed_routings += 1
            self._stats.total_routing_time_ms += elapsed_ms

    def get_stats(self) -> RouterStats:
        """Return a snapshot copy of the routing counters."""
        with self._stats_lock:
            stats = self._stats.copy()
        stats.cache_hit_rate = self._analysis_cache.hit_rate
        return stats

    def reset_stats(self) -> None:
        with self._stats_lock:
            self._stats = RouterStats()

    # ── Maintenance ───────────────────────────────────────────────────────

    def clear_caches(self) -> None:
        """Drop cached analyses and health snapshots."""
        self._analysis_cache.clear()
        self._health_cache.clear()

    def get_config(self) -> RouterConfig:
        return self._config

    def update_config(self, **changes: Any) -> RouterConfig:
        """Replace settings by keyword, validating the result.

        Changing a cache TTL rebuilds that cache.

        Raises:
            ValueError: On an unknown setting or an invalid value.
        """
        known = {f.name for f in fields(RouterConfig)}
        unknown = sorted(set(changes) - known)
        if unknown:
            raise ValueError(f"unknown router settings: {unknown}")

        new_config = replace(self._config, **changes)
        if new_config.analysis_cache_ttl != self._config.analysis_cache_ttl:
            self._analysis_cache = TTLCache(new_config.analysis_cache_ttl)
        if new_config.health_cache_ttl != self._config.health_cache_ttl:
            self._health_cache = TTLCache(new_config.health_cache_ttl)
        self._config = new_config
        _log.info("Router settings updated: %s", sorted(changes))
        return new_config

    def available_strategies(self) -> List[str]:
        return self.strategies.names()

    def register_strategy(self, name: str, strategy: RoutingStrategy) -> None:
        self.strategies.register(strategy, name=name)

    # ── Explainability ────────────────────────────────────────────────────

    def explain(self, result: RoutingResult) -> str:
        """Generate a human-readable explanation of a routing result.

        Args:
            result: The :class:`RoutingResult` to explain.

        Returns:
            Multi-line explanation string.
        """
        analysis = result.analysis
        strategy_label = result.strategy.replace("_", " ")

        # ── Model line ────────────────────────────────────────────────────
        lines: List[str] = [
            f"Model selected: {result.selected_model_id} via {result.selected_provider_id} "
            f"(confidence: {int(round(result.confidence))}%)"
        ]
        if result.is_fallback:
            lines.append(f"  [Fallback: {result.reason}]")

        lines.append(f"Strategy: {strategy_label}")

        # ── Task ──────────────────────────────────────────────────────────
        lines.append("Task:")
        lines.append(
            f"  Classified as '{analysis.category.value}' with "
            f"'{analysis.complexity.value}' complexity ({analysis.complexity_score}/100)."
        )
        required = analysis.required_capabilities.required()
        if required:
            lines.append(f"  Requires: {', '.join(required)}")
        lines.append(
            f"  Estimated tokens: {analysis.estimated_input_tokens} in / "
            f"{analysis.estimated_output_tokens} out"
        )

        # ── Reasoning ─────────────────────────────────────────────────────
        if not result.is_fallback:
            lines.append(f"Reasoning: {result.reason}")
            if result.candidates:
                top = result.candidates[0]
                lines.append(
                    f"  Scores: capability {top.capability_match:.0f}, health {top.health_score:.0f}, "
                    f"cost {top.cost_score:.0f}, latency {top.latency_score:.0f}, "
                    f"quality {top.quality_score:.0f} (overall {top.overall_score:.1f})"
                )

        # ── Cost ──────────────────────────────────────────────────────────
        lines.append(
            f"Estimated cost: ${result.estimated_cost:.6f}, "
            f"latency: {result.estimated_latency_ms:.0f}ms."
        )

        # ── Alternatives ─────────────────────────────────────────────────
        if result.fallback_chain:
            by_id = {m.model_id: m for m in result.candidates}
            alt_parts: List[str] = []
            for model_id in result.fallback_chain:
                match = by_id.get(model_id)
                if match is not None:
                    alt_parts.append(f"{model_id} ({match.overall_score:.1f})")
                else:
                    alt_parts.append(model_id)
            lines.append("Fallback chain: " + ", ".join(alt_parts))

        # ── Degraded ─────────────────────────────────────────────────────
        if result.degraded_reasons:
            lines.append("Degraded:")
            for reason in result.degraded_reasons:
                lines.append(f"  • {reason}")

        return "\n".join(lines)
