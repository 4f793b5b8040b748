"""
Tests for the Router: the routing pipeline, explicit selection, fallback
results, degraded health and pricing, caches, stats and configuration.
"""

from __future__ import annotations

import json
import threading
import time
from typing import Dict, List, Optional

import pytest

from chatroute.analyzer import TaskAnalyzer, TaskCapabilities, TaskCategory, UserPreferences
from chatroute.health import HealthSnapshot, HealthSource, HealthStatus, ProviderHealthTracker
from chatroute.pricing import PriceTable
from chatroute.registry import CapabilityEntry, ModelRegistry
from chatroute.router import (
    EXPLICIT_REASON,
    FALLBACK_REASON,
    Router,
    RouterConfig,
    RoutingRequest,
    RoutingResult,
)
from chatroute.strategies import RoutingStrategy


# ─────────────────────────────────────────────────────────────────────────────
# Fakes & builders
# ─────────────────────────────────────────────────────────────────────────────

class StaticHealth(HealthSource):
    """Health source backed by a dict; counts calls per provider."""

    def __init__(self, snapshots: Optional[Dict[str, HealthSnapshot]] = None):
        self.snapshots = snapshots or {}
        self.calls: Dict[str, int] = {}
        self._lock = threading.Lock()

    def get_health(self, provider_id):
        with self._lock:
            self.calls[provider_id] = self.calls.get(provider_id, 0) + 1
        return self.snapshots.get(provider_id, HealthSnapshot.unknown(provider_id))


class FailingHealth(StaticHealth):
    """Raises for the providers listed in ``failing``."""

    def __init__(self, failing, snapshots=None):
        super().__init__(snapshots)
        self.failing = set(failing)

    def get_health(self, provider_id):
        if provider_id in self.failing:
            raise ConnectionError(f"{provider_id} monitor unreachable")
        return super().get_health(provider_id)


class SlowHealth(StaticHealth):
    def __init__(self, slow, delay):
        super().__init__()
        self.slow = set(slow)
        self.delay = delay

    def get_health(self, provider_id):
        if provider_id in self.slow:
            time.sleep(self.delay)
        return HealthSnapshot(provider_id, HealthStatus.HEALTHY, latency_ms=200, success_rate=1.0)


class HangingHealth(StaticHealth):
    """Blocks on ``release`` for the providers in ``hung``; records worker threads."""

    def __init__(self, hung):
        super().__init__()
        self.hung = set(hung)
        self.release = threading.Event()
        self.threads: List[threading.Thread] = []

    def get_health(self, provider_id):
        with self._lock:
            self.threads.append(threading.current_thread())
        if provider_id in self.hung:
            self.release.wait()
        return super().get_health(provider_id)


class BrokenPricing(PriceTable):
    def price(self, provider_id, kind):
        raise RuntimeError("pricing service down")


class CountingAnalyzer(TaskAnalyzer):
    def __init__(self):
        super().__init__()
        self.calls = 0

    def analyze(self, *args, **kwargs):
        self.calls += 1
        return super().analyze(*args, **kwargs)


class BrokenAnalyzer(TaskAnalyzer):
    def analyze(self, messages, *args, **kwargs):
        if messages:
            raise RuntimeError("analyzer exploded")
        return super().analyze(messages, *args, **kwargs)


class ExplodingStrategy(RoutingStrategy):
    name = "exploding"

    def rank(self, matches, analysis):
        raise RuntimeError("strategy bug")


def _entry(model_id, provider_id, capabilities=("text",), price=(0.001, 0.002),
           priority=2, context_window=128_000, status="available") -> CapabilityEntry:
    return CapabilityEntry(
        id=model_id,
        provider_id=provider_id,
        capabilities=frozenset(capabilities),
        context_window=context_window,
        price_input=price[0] if price else None,
        price_output=price[1] if price else None,
        priority=priority,
        status=status,
    )


def _registry(*entries) -> ModelRegistry:
    return ModelRegistry(entries=list(entries) or [
        _entry("gpt-4o-mini", "openai", ("text", "vision", "coding"), (0.00015, 0.0006), 1),
        _entry("claude-sonnet", "anthropic", ("text", "coding", "reasoning", "analysis"), (0.003, 0.015), 1, 200_000),
        _entry("llama-8b", "groq", ("text", "coding"), (0.0001, 0.0001), 2, 131_072),
        _entry("mistral-local", "ollama", ("text",), (0.0, 0.0), 3, 32_768),
    ])


def _router(registry=None, health=None, **config) -> Router:
    config.setdefault("default_model", "gpt-4o-mini")
    return Router(
        registry=registry or _registry(),
        health_source=health if health is not None else StaticHealth(),
        config=RouterConfig(**config),
    )


def _request(content="Hello there", **kwargs) -> RoutingRequest:
    return RoutingRequest(messages=[{"role": "user", "content": content}], **kwargs)


def _assert_fallback_shape(result: RoutingResult):
    assert result.confidence == 0
    assert result.reason == FALLBACK_REASON
    assert result.strategy == "default"
    assert result.fallback_chain == ()
    assert result.estimated_latency_ms == 5000
    assert result.is_fallback


# ─────────────────────────────────────────────────────────────────────────────
# 1. Routing pipeline
# ─────────────────────────────────────────────────────────────────────────────

class TestRoute:

    def test_coding_request(self):
        router = _router()
        result = router.route(_request("fix this bug: ```js\nfunction f(){}\n```"))
        assert result.analysis.category == TaskCategory.CODING
        assert result.analysis.required_capabilities.coding is True
        assert result.selected_model_id in {"gpt-4o-mini", "claude-sonnet", "llama-8b"}
        assert result.strategy == "balanced"

    def test_candidates_ranked_and_selection_is_first(self):
        result = _router().route(_request())
        scores = [m.overall_score for m in result.candidates]
        assert scores == sorted(scores, reverse=True)
        assert result.selected_model_id == result.candidates[0].model_id
        assert result.selected_provider_id == result.candidates[0].provider_id
        assert result.reason == result.candidates[0].reason

    def test_fallback_chain_excludes_selected_and_is_capped(self):
        for attempts in (0, 1, 2, 3, 10):
            result = _router(max_fallback_attempts=attempts).route(_request())
            assert result.selected_model_id not in result.fallback_chain
            assert len(result.fallback_chain) <= attempts
        result = _router(max_fallback_attempts=2).route(_request())
        assert list(result.fallback_chain) == [m.model_id for m in result.candidates[1:3]]

    def test_fallback_disabled_gives_empty_chain(self):
        result = _router(fallback_enabled=False).route(_request())
        assert result.fallback_chain == ()
        assert len(result.candidates) == 4

    def test_confidence_from_score_gap(self):
        result = _router().route(_request())
        gap = result.candidates[0].overall_score - result.candidates[1].overall_score
        assert result.confidence == pytest.approx(min(100.0, 70 + 2 * gap))

    def test_confidence_floored_when_capability_outranks_score(self):
        registry = _registry(
            _entry("a", "p1", ("text", "vision"), price=(1.0, 1.0), priority=1,
                   context_window=1_000_000),
            _entry("b", "p2", ("text", "vision"), price=(0.0, 0.0), priority=3),
        )
        health = StaticHealth({
            "p1": HealthSnapshot("p1", HealthStatus.UNHEALTHY, latency_ms=9000, success_rate=0.0,
                                 queue_length=10),
            "p2": HealthSnapshot("p2", HealthStatus.HEALTHY, latency_ms=100, success_rate=1.0),
        })
        result = _router(registry=registry, health=health).route(
            _request("look at this image", strategy="capability_first"))
        first, second = result.candidates
        assert result.selected_model_id == "a"
        assert first.overall_score < second.overall_score - 35
        assert result.confidence == 0

    def test_single_candidate_confidence_80(self):
        router = _router(registry=_registry(_entry("only", "p1")))
        result = router.route(_request())
        assert result.confidence == 80
        assert result.fallback_chain == ()

    def test_unavailable_models_skipped(self):
        registry = _registry(
            _entry("up", "p1"),
            _entry("down", "p2", status="maintenance"),
        )
        result = _router(registry=registry).route(_request())
        assert [m.model_id for m in result.candidates] == ["up"]

    def test_estimated_cost_and_latency(self):
        health = StaticHealth({
            "p1": HealthSnapshot("p1", HealthStatus.HEALTHY, latency_ms=321, success_rate=1.0),
        })
        router = _router(registry=_registry(_entry("only", "p1", price=(0.01, 0.03))), health=health)
        result = router.route(_request())
        analysis = result.analysis
        expected = 0.01 * analysis.estimated_input_tokens / 1000 + 0.03 * analysis.estimated_output_tokens / 1000
        assert result.estimated_cost == pytest.approx(expected)
        assert result.estimated_latency_ms == 321

    def test_latency_defaults_without_health(self):
        router = _router(registry=_registry(_entry("only", "p1")), health_based_routing=False)
        assert router.route(_request()).estimated_latency_ms == 1000

    def test_unpriced_entries_priced_from_table(self):
        registry = _registry(_entry("g", "groq", price=None))
        router = Router(registry=registry, health_source=StaticHealth(),
                        pricing=PriceTable({"groq": {"input": 0.001, "output": 0.003}}),
                        config=RouterConfig(default_model="g"))
        result = router.route(_request())
        analysis = result.analysis
        expected = 0.001 * analysis.estimated_input_tokens / 1000 + 0.003 * analysis.estimated_output_tokens / 1000
        assert result.estimated_cost == pytest.approx(expected)
        assert result.degraded_reasons == ()

    def test_cost_optimized_prefers_cheaper(self):
        caps = ("text", "coding", "reasoning")
        registry = _registry(
            _entry("pricey", "p1", caps, price=(0.02, 0.06)),
            _entry("cheap", "p2", caps, price=(0.001, 0.002)),
        )
        result = _router(registry=registry).route(_request(
            "hello world " * 500,
            strategy="cost_optimized",
            required_capabilities=TaskCapabilities(coding=True, reasoning=True),
        ))
        pricey, cheap = sorted(result.candidates, key=lambda m: m.model_id)
        assert (cheap.capability_match, cheap.health_score, cheap.latency_score) == \
               (pricey.capability_match, pricey.health_score, pricey.latency_score)
        assert cheap.cost_score > pricey.cost_score
        assert result.selected_model_id == "cheap"

    def test_default_router_uses_packaged_catalog(self):
        router = Router()
        result = router.route(_request("Write a short story about a dragon"))
        assert router.registry.get_model(result.selected_model_id) is not None
        assert result.analysis.category == TaskCategory.CREATIVE_WRITING


# ─────────────────────────────────────────────────────────────────────────────
# 2. Explicit selection & fallback
# ─────────────────────────────────────────────────────────────────────────────

class TestExplicitAndFallback:

    def test_explicit_model(self):
        router = _router()
        result = router.route(_request(requested_model="gpt-4o-mini"))
        assert result.selected_model_id == "gpt-4o-mini"
        assert result.confidence == 100
        assert result.fallback_chain == ()
        assert result.reason == EXPLICIT_REASON
        assert result.strategy == "user_preference"
        assert len(result.candidates) == 1
        assert result.candidates[0].capability_match == 100
        assert router.get_stats().strategy_usage == {"user_preference": 1}

    def test_explicit_model_skips_health(self):
        health = StaticHealth()
        _router(health=health).route(_request(requested_model="llama-8b"))
        assert health.calls == {}

    def test_unknown_explicit_model_falls_back(self):
        result = _router().route(_request(requested_model="no-such-model"))
        _assert_fallback_shape(result)
        assert result.selected_model_id == "gpt-4o-mini"
        assert any("no-such-model" in r for r in result.degraded_reasons)

    def test_all_unhealthy_under_health_aware(self):
        snapshots = {
            p: HealthSnapshot(p, HealthStatus.UNHEALTHY, success_rate=0.1, queue_length=4)
            for p in ("openai", "anthropic", "groq", "ollama")
        }
        result = _router(health=StaticHealth(snapshots)).route(_request(strategy="health_aware"))
        _assert_fallback_shape(result)
        assert result.selected_model_id == "gpt-4o-mini"
        assert result.selected_provider_id == "openai"
        assert result.candidates == ()

    def test_auto_select_disabled_always_falls_back(self):
        result = _router(auto_select_enabled=False).route(_request())
        _assert_fallback_shape(result)

    def test_fallback_without_default_uses_first_model(self):
        router = _router(registry=_registry(_entry("first", "p1", status="offline")),
                         default_model="missing")
        result = router.route(_request())
        _assert_fallback_shape(result)
        assert result.selected_model_id == "first"

    def test_fallback_with_empty_registry(self):
        router = Router(registry=ModelRegistry(entries=[]), health_source=StaticHealth(),
                        config=RouterConfig(default_model="missing"))
        result = router.route(_request())
        assert result.selected_model_id == "unknown"
        assert result.selected_provider_id == "unknown"

    def test_fallback_counts_as_success(self):
        router = _router(auto_select_enabled=False)
        router.route(_request())
        stats = router.get_stats()
        assert stats.successful_routings == 1
        assert stats.failed_routings == 0
        assert stats.strategy_usage == {"default": 1}


# ─────────────────────────────────────────────────────────────────────────────
# 3. Degraded collaborators
# ─────────────────────────────────────────────────────────────────────────────

class TestDegradedPaths:

    def test_failed_health_fetch_is_isolated(self):
        snapshots = {"openai": HealthSnapshot("openai", HealthStatus.HEALTHY, latency_ms=300, success_rate=1.0)}
        router = _router(health=FailingHealth({"groq"}, snapshots))
        result = router.route(_request())
        by_provider = {m.provider_id: m for m in result.candidates}
        assert by_provider["groq"].health_score == 50
        assert by_provider["openai"].health_score == 100
        assert any("groq" in r and "unreachable" in r for r in result.degraded_reasons)
        assert not any("openai" in r for r in result.degraded_reasons)

    def test_health_timeout_is_bounded(self):
        router = _router(health=SlowHealth({"anthropic"}, delay=1.0), health_check_timeout=0.1)
        started = time.monotonic()
        result = router.route(_request())
        assert time.monotonic() - started < 0.9
        by_provider = {m.provider_id: m for m in result.candidates}
        assert by_provider["anthropic"].health_score == 50
        assert by_provider["openai"].health_score == 100
        assert any("timed out" in r for r in result.degraded_reasons)

    def test_hung_health_check_runs_on_daemon_thread(self):
        health = HangingHealth({"anthropic"})
        router = _router(health=health, health_check_timeout=0.1)
        try:
            started = time.monotonic()
            result = router.route(_request())
            assert time.monotonic() - started < 2.0
            assert any("anthropic" in r and "timed out" in r for r in result.degraded_reasons)
            assert health.threads
            assert all(t.daemon for t in health.threads)
            assert all(t is not threading.main_thread() for t in health.threads)
        finally:
            health.release.set()

    def test_health_routing_disabled_skips_fetch(self):
        health = StaticHealth()
        result = _router(health=health, health_based_routing=False).route(_request())
        assert health.calls == {}
        assert all(m.health_score == 50 for m in result.candidates)

    def test_pricing_failure_uses_default_prices(self):
        registry = _registry(_entry("g", "groq", price=None))
        router = Router(registry=registry, health_source=StaticHealth(),
                        pricing=BrokenPricing({}), config=RouterConfig(default_model="g"))
        result = router.route(_request())
        analysis = result.analysis
        expected = 0.01 * analysis.estimated_input_tokens / 1000 + 0.03 * analysis.estimated_output_tokens / 1000
        assert result.estimated_cost == pytest.approx(expected)
        assert any("pricing unavailable" in r for r in result.degraded_reasons)

    def test_analyzer_failure_uses_neutral_analysis(self):
        router = Router(registry=_registry(), health_source=StaticHealth(),
                        analyzer=BrokenAnalyzer(), config=RouterConfig(default_model="gpt-4o-mini"))
        result = router.route(_request("fix this bug: ```js\nf()\n```"))
        assert result.analysis.category == TaskCategory.GENERAL_CONVERSATION
        assert any("analysis failed" in r for r in result.degraded_reasons)
        assert router.get_stats().successful_routings == 1

    def test_strategy_fault_propagates_and_counts(self):
        router = _router()
        router.register_strategy("exploding", ExplodingStrategy())
        with pytest.raises(RuntimeError, match="strategy bug"):
            router.route(_request(strategy="exploding"))
        stats = router.get_stats()
        assert stats.failed_routings == 1
        assert stats.total_routings == 1
        assert stats.successful_routings == 0

    def test_unknown_strategy_raises(self):
        router = _router()
        with pytest.raises(ValueError, match="unknown strategy"):
            router.route(_request(strategy="fastest"))
        assert router.get_stats().failed_routings == 1

    def test_fallback_result_has_normal_shape(self):
        normal = _router().route(_request()).to_dict()
        fallback = _router(auto_select_enabled=False).route(_request()).to_dict()
        assert set(normal) == set(fallback)
        json.dumps(fallback)
        json.dumps(normal)


# ─────────────────────────────────────────────────────────────────────────────
# 4. Preferences & request options
# ─────────────────────────────────────────────────────────────────────────────

class TestPreferences:

    def test_tradeoff_selects_strategy(self):
        router = _router()
        coding = TaskCapabilities(coding=True)
        speed = router.route(_request(user_preferences=UserPreferences(quality_speed_tradeoff="speed")))
        quality = router.route(_request(user_preferences=UserPreferences(quality_speed_tradeoff="quality"),
                                        required_capabilities=coding))
        assert speed.strategy == "latency_optimized"
        assert quality.strategy == "quality_optimized"

    def test_cost_preference_respects_toggle(self):
        # only claude-sonnet clears the cost strategy capability floor
        request = _request(user_preferences=UserPreferences(cost_optimization="high"),
                           required_capabilities=TaskCapabilities(coding=True, reasoning=True))
        result = _router().route(request)
        assert result.strategy == "cost_optimized"
        assert result.selected_model_id == "claude-sonnet"
        assert _router(cost_optimization_enabled=False).route(request).strategy == "balanced"

    def test_default_strategy_setting(self):
        assert _router(default_strategy="capability_first").route(_request()).strategy == "capability_first"

    def test_request_strategy_overrides_preferences(self):
        prefs = UserPreferences(quality_speed_tradeoff="speed")
        result = _router().route(_request(user_preferences=prefs, strategy="capability_first"))
        assert result.strategy == "capability_first"

    def test_preferences_as_mapping(self):
        result = _router().route(_request(user_preferences={"quality_speed_tradeoff": "quality"},
                                          required_capabilities={"coding": True}))
        assert result.strategy == "quality_optimized"

    def test_excluded_models(self):
        prefs = UserPreferences(excluded_models=("gpt-4o-mini", "llama-8b"))
        result = _router().route(_request(user_preferences=prefs))
        assert {m.model_id for m in result.candidates} == {"claude-sonnet", "mistral-local"}

    def test_preferred_provider_narrows(self):
        prefs = UserPreferences(preferred_provider="anthropic")
        result = _router().route(_request(user_preferences=prefs))
        assert [m.model_id for m in result.candidates] == ["claude-sonnet"]

    def test_unknown_preferred_provider_ignored(self):
        prefs = UserPreferences(preferred_provider="nobody")
        assert len(_router().route(_request(user_preferences=prefs)).candidates) == 4

    def test_max_cost_per_request(self):
        prefs = UserPreferences(max_cost_per_request=0.0)
        result = _router().route(_request(user_preferences=prefs))
        assert [m.model_id for m in result.candidates] == ["mistral-local"]

    def test_required_capabilities_merged(self):
        result = _router().route(_request(required_capabilities=TaskCapabilities(vision=True)))
        assert result.analysis.required_capabilities.vision is True
        assert result.analysis.required_capabilities.fast_response is True

    def test_preferred_max_tokens_caps_output(self):
        result = _router().route(_request(preferred_max_tokens=10))
        assert result.analysis.estimated_output_tokens == 10

    def test_streaming_flag_carried(self):
        assert _router().route(_request(is_streaming=True)).is_streaming is True


# ─────────────────────────────────────────────────────────────────────────────
# 5. Caches
# ─────────────────────────────────────────────────────────────────────────────

class TestCaches:

    def test_analysis_cached_by_content(self):
        analyzer = CountingAnalyzer()
        router = Router(registry=_registry(), health_source=StaticHealth(), analyzer=analyzer,
                        config=RouterConfig(default_model="gpt-4o-mini"))
        first = router.route(_request("Explain the system design"))
        second = router.route(_request("Explain the system design"))
        router.route(_request("Something else"))
        assert analyzer.calls == 2
        assert first.analysis.id == second.analysis.id
        assert router.get_stats().cache_hit_rate == pytest.approx(1 / 3)

    def test_analysis_cache_keyed_on_options(self):
        analyzer = CountingAnalyzer()
        router = Router(registry=_registry(), health_source=StaticHealth(), analyzer=analyzer,
                        config=RouterConfig(default_model="gpt-4o-mini"))
        router.route(_request("Hi"))
        router.route(_request("Hi", user_preferences=UserPreferences(cost_optimization="high")))
        assert analyzer.calls == 2

    def test_analysis_cache_expires(self):
        analyzer = CountingAnalyzer()
        router = Router(registry=_registry(), health_source=StaticHealth(), analyzer=analyzer,
                        config=RouterConfig(default_model="gpt-4o-mini", analysis_cache_ttl=0.05))
        router.route(_request("Hi"))
        time.sleep(0.1)
        router.route(_request("Hi"))
        assert analyzer.calls == 2

    def test_health_cached_per_provider(self):
        health = StaticHealth()
        router = _router(health=health)
        router.route(_request())
        router.route(_request())
        assert health.calls == {"openai": 1, "anthropic": 1, "groq": 1, "ollama": 1}

    def test_real_time_health_bypasses_cache(self):
        health = StaticHealth()
        router = _router(health=health, real_time_health_updates=True)
        router.route(_request())
        router.route(_request())
        assert health.calls["openai"] == 2

    def test_clear_caches(self):
        analyzer = CountingAnalyzer()
        health = StaticHealth()
        router = Router(registry=_registry(), health_source=health, analyzer=analyzer,
                        config=RouterConfig(default_model="gpt-4o-mini"))
        router.route(_request())
        router.clear_caches()
        router.route(_request())
        assert analyzer.calls == 2
        assert health.calls["openai"] == 2

    def test_recorded_event_invalidates_health(self):
        tracker = ProviderHealthTracker()
        router = _router(health=tracker)
        for provider in ("openai", "anthropic", "groq", "ollama"):
            for _ in range(10):
                router.record_provider_event(provider, "success", latency_ms=300)
        before = router.route(_request(strategy="health_aware"))
        for _ in range(10):
            router.record_provider_event("openai", "error", latency_ms=4000)
        after = router.route(_request(strategy="health_aware"))
        assert "openai" in {m.provider_id for m in before.candidates}
        assert "openai" not in {m.provider_id for m in after.candidates}
        assert router.get_provider_health("openai").status == HealthStatus.UNHEALTHY

    def test_record_event_needs_recording_source(self):
        with pytest.raises(ValueError, match="recorded events"):
            _router(health=StaticHealth()).record_provider_event("openai", "success")


# ─────────────────────────────────────────────────────────────────────────────
# 6. Stats, config, concurrency
# ─────────────────────────────────────────────────────────────────────────────

class TestStatsAndConfig:

    def test_stats_counters(self):
        snapshots = {
            p: HealthSnapshot(p, HealthStatus.HEALTHY, latency_ms=400, success_rate=1.0)
            for p in ("openai", "anthropic", "groq", "ollama")
        }
        router = _router(health=StaticHealth(snapshots))
        router.route(_request())
        router.route(_request(requested_model="llama-8b"))
        router.route(_request(strategy="health_aware"))
        stats = router.get_stats()
        assert stats.total_routings == 3
        assert stats.successful_routings == 3
        assert sum(stats.model_usage.values()) == 3
        assert stats.model_usage["llama-8b"] >= 1
        assert stats.strategy_usage == {"balanced": 1, "user_preference": 1, "health_aware": 1}
        assert stats.fallback_usage == 2
        assert stats.average_routing_time_ms > 0

    def test_get_stats_returns_copy(self):
        router = _router()
        router.route(_request())
        stats = router.get_stats()
        stats.model_usage["tampered"] = 99
        assert "tampered" not in router.get_stats().model_usage

    def test_reset_stats(self):
        router = _router()
        router.route(_request())
        router.reset_stats()
        assert router.get_stats().total_routings == 0

    @pytest.mark.parametrize("kwargs", [
        {"max_fallback_attempts": -1},
        {"analysis_cache_ttl": 0},
        {"health_cache_ttl": -5},
        {"health_check_timeout": 0},
    ])
    def test_router_config_validation(self, kwargs):
        with pytest.raises(ValueError):
            RouterConfig(**kwargs)

    def test_router_config_weights_from_mapping(self):
        config = RouterConfig(weights={
            "capability_match": 40, "health_score": 15, "cost_score": 15,
            "latency_score": 15, "quality_score": 15,
        })
        assert config.weights.capability_match == 40
        with pytest.raises(ValueError):
            RouterConfig(weights={
                "capability_match": 40, "health_score": 40, "cost_score": 40,
                "latency_score": 0, "quality_score": 0,
            })

    def test_update_config(self):
        router = _router()
        updated = router.update_config(max_fallback_attempts=1, default_strategy="capability_first")
        assert router.get_config() is updated
        result = router.route(_request())
        assert result.strategy == "capability_first"
        assert len(result.fallback_chain) <= 1

    def test_update_config_rejects_bad_values(self):
        router = _router()
        with pytest.raises(ValueError):
            router.update_config(max_fallback_attempts=-2)
        with pytest.raises(ValueError, match="unknown router settings"):
            router.update_config(colour="blue")
        assert router.get_config().max_fallback_attempts == 3

    def test_router_config_from_packaged_defaults(self):
        config = Router(registry=_registry(), health_source=StaticHealth()).get_config()
        assert config.analysis_cache_ttl == 60
        assert config.weights.total == 100
        assert config.default_strategy == "balanced"

    def test_available_strategies(self):
        router = _router()
        assert "health_aware" in router.available_strategies()
        router.register_strategy("exploding", ExplodingStrategy())
        assert "exploding" in router.available_strategies()

    def test_concurrent_routing_keeps_counts(self):
        router = _router(health=StaticHealth())
        errors: List[BaseException] = []

        def worker(n):
            try:
                for i in range(25):
                    router.route(_request(f"message {n} {i % 3}"))
            except BaseException as exc:  # surfaced below
                errors.append(exc)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        stats = router.get_stats()
        assert stats.total_routings == 200
        assert stats.successful_routings == 200
        assert sum(stats.model_usage.values()) == 200


# ─────────────────────────────────────────────────────────────────────────────
# 7. Explain
# ─────────────────────────────────────────────────────────────────────────────

class TestExplain:

    def test_explain_normal(self):
        router = _router()
        result = router.route(_request("fix this bug: ```js\nfunction f(){}\n```"))
        text = router.explain(result)
        assert text.startswith(f"Model selected: {result.selected_model_id}")
        assert "Strategy: balanced" in text
        assert "'coding'" in text
        assert "Estimated cost" in text

    def test_explain_fallback_and_degraded(self):
        router = _router()
        result = router.route(_request(requested_model="nope"))
        text = router.explain(result)
        assert "Fallback" in text
        assert "Degraded:" in text
        assert "nope" in text
