#!/usr/bin/env python3
"""
chatroute Quickstart Example

Demonstrates task analysis, strategy-based routing, health feedback,
context-window checks and routing statistics.
"""

from chatroute import (
    Router,
    RoutingRequest,
    UserPreferences,
    analyze_context_window,
)


def main():
    """Run quickstart demonstration."""
    print("=== chatroute Quickstart ===\n")

    # Initialize router
    print("1. Initializing router...")
    router = Router()
    print(f"   Loaded {len(router.registry.list_models())} models")
    print(f"   Available providers: {', '.join(router.registry.get_providers())}")
    print(f"   Strategies: {', '.join(router.available_strategies())}")
    print()

    test_messages = [
        ("Greeting", "Hello!"),
        ("Coding", "fix this bug:\n```js\nfunction f() { return x }\n```"),
        ("Reasoning", "Can you prove that the square root of 2 is irrational? Think step by step."),
        ("Data", "Analyze this dataset and find the trend:\n| month | sales |\n| jan | 10 |\n| feb | 14 |"),
        ("Vision", "What is in this picture? ![chart](chart.png)"),
    ]

    print("2. Routing different kinds of requests...")
    for label, content in test_messages:
        result = router.route(RoutingRequest(messages=[{"role": "user", "content": content}]))
        analysis = result.analysis
        print(f"\n   {label}: {content[:60]!r}")
        print(f"   → Model: {result.selected_model_id} ({result.selected_provider_id})")
        print(f"   → Task: {analysis.category.value}, {analysis.complexity.value}")
        print(f"   → Confidence: {result.confidence:.0f}, strategy: {result.strategy}")
        print(f"   → Estimated cost: ${result.estimated_cost:.5f}")
        print(f"   → Reason: {result.reason}")
        if result.fallback_chain:
            print(f"   → Fallbacks: {', '.join(result.fallback_chain)}")

    print("\n" + "=" * 60)

    # Preferences pick the strategy
    print("\n3. Preference-driven strategies:")
    prompt = [{"role": "user", "content": "Explain how TCP congestion control works"}]
    for prefs in (
        UserPreferences(quality_speed_tradeoff="speed"),
        UserPreferences(quality_speed_tradeoff="quality"),
        UserPreferences(cost_optimization="high"),
    ):
        result = router.route(RoutingRequest(messages=prompt, user_preferences=prefs))
        print(f"   {result.strategy:<18} → {result.selected_model_id}")

    # Explicit model
    print("\n4. Explicit model selection:")
    result = router.route(RoutingRequest(messages=prompt, requested_model="openai/gpt-4o-mini"))
    print(f"   → {result.selected_model_id} (confidence {result.confidence:.0f}, {result.reason})")

    # Health feedback
    print("\n5. Provider health feedback:")
    for _ in range(5):
        router.record_provider_event("groq", "error", latency_ms=4800, details="rate_limited")
    health = router.get_provider_health("groq")
    print(f"   groq: {health.status.value} (success rate {health.success_rate})")
    result = router.route(RoutingRequest(messages=prompt, strategy="health_aware"))
    print(f"   health_aware now picks {result.selected_model_id}")

    # Explanation
    print("\n6. Explanation:")
    for line in router.explain(result).splitlines():
        print(f"   {line}")

    # Context window
    print("\n7. Context window check:")
    long_chat = [{"role": "user", "content": "lorem ipsum " * 20000}]
    analysis = router.analyzer.analyze(long_chat)
    entry = router.registry.get_model("ollama/mistral")
    window = analyze_context_window(analysis, entry, router.registry, router.pricing)
    print(f"   {entry.id}: {window.usage_percentage:.0f}% of {window.available_context} tokens")
    print(f"   → Recommendation: {window.recommendation}")
    for suggestion in window.suggested_models:
        print(f"     - {suggestion.model_id} ({suggestion.context_window} tokens, "
              f"+${suggestion.cost_increase:.4f})")

    # Stats
    print("\n8. Routing statistics:")
    stats = router.get_stats()
    print(f"   Total routings: {stats.total_routings}")
    print(f"   Average routing time: {stats.average_routing_time_ms:.2f}ms")
    print(f"   Analysis cache hit rate: {stats.cache_hit_rate:.0%}")
    print(f"   Models used: {stats.model_usage}")
    print(f"   Strategies used: {stats.strategy_usage}")

    print("\n" + "=" * 60)
    print("Quickstart complete!")


if __name__ == "__main__":
    main()
