"""
chatroute MCP Server

Exposes the chatroute router as MCP tools for any MCP-enabled agent.

Tools:
  - route(request, strategy?, requested_model?) → routing result
  - explain(request, strategy?)                 → human-readable routing explanation
  - record_outcome(provider, outcome, latency_ms?) → feed back real performance
  - get_provider_health(provider)               → health snapshot for a provider
  - get_stats()                                 → routing counters

Usage:
    python -m chatroute.mcp_server
    # or
    from chatroute.mcp_server import create_server
"""

from __future__ import annotations

import argparse
import sys
from typing import Any, Dict, Optional

# ---------------------------------------------------------------------------
# Graceful MCP availability check
# ---------------------------------------------------------------------------
try:
    from mcp.server.fastmcp import FastMCP
    MCP_AVAILABLE = True
except ImportError:
    MCP_AVAILABLE = False
    FastMCP = None  # type: ignore

from chatroute.health import VALID_OUTCOMES
from chatroute.router import Router, RoutingRequest


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _get_router(config_path: Optional[str] = None) -> Router:
    """Create the Router shared by every tool of one server."""
    return Router(config_path=config_path)


def _request(text: str, strategy: Optional[str] = None,
             requested_model: Optional[str] = None) -> RoutingRequest:
    return RoutingRequest(
        messages=[{"role": "user", "content": text}],
        strategy=strategy or None,
        requested_model=requested_model or None,
    )


# ---------------------------------------------------------------------------
# Server factory
# ---------------------------------------------------------------------------

def create_server(config_path: Optional[str] = None) -> "FastMCP":
    """Create and return the FastMCP server with chatroute tools.

    Args:
        config_path: Optional directory holding a ``config.json`` override.

    Returns:
        A configured ``FastMCP`` instance ready to run.

    Raises:
        ImportError: If the ``mcp`` package is not installed.
    """
    if not MCP_AVAILABLE:
        raise ImportError(
            "The 'mcp' package is required to run the chatroute MCP server. "
            "Install it with: pip install chatroute[mcp]"
        )

    router = _get_router(config_path)
    mcp = FastMCP(
        name="chatroute",
        instructions=(
            "chatroute picks a language model for a chat request. "
            "Use route() for a selection, explain() for its reasoning, "
            "record_outcome() to feed provider outcomes back, "
            "get_provider_health() to check a provider and get_stats() for counters."
        ),
    )

    # ------------------------------------------------------------------
    # Tool: route
    # ------------------------------------------------------------------
    @mcp.tool()
    def route(
        request: str,
        strategy: Optional[str] = None,
        requested_model: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Route a request to the most appropriate model.

        Args:
            request: The text of the request to route.
            strategy: Optional strategy name, e.g. ``"cost_optimized"``,
                ``"quality_optimized"`` or ``"health_aware"``.
            requested_model: Optional model id that bypasses ranking.

        Returns:
            Dict with keys: model, provider, confidence, strategy, reason,
            estimated_cost, estimated_latency_ms, fallback_chain, category,
            complexity, degraded_reasons. Unknown strategies yield an
            ``error`` key instead.
        """
        try:
            result = router.route(_request(request, strategy, requested_model))
        except ValueError as exc:
            return {"error": str(exc), "available_strategies": router.available_strategies()}
        return {
            "model": result.selected_model_id,
            "provider": result.selected_provider_id,
            "confidence": round(result.confidence, 2),
            "strategy": result.strategy,
            "reason": result.reason,
            "estimated_cost": round(result.estimated_cost, 6),
            "estimated_latency_ms": result.estimated_latency_ms,
            "fallback_chain": list(result.fallback_chain),
            "category": result.analysis.category.value,
            "complexity": result.analysis.complexity.value,
            "degraded_reasons": list(result.degraded_reasons),
        }

    # ------------------------------------------------------------------
    # Tool: explain
    # ------------------------------------------------------------------
    @mcp.tool()
    def explain(request: str, strategy: Optional[str] = None) -> str:
        """Generate a human-readable explanation of how this request would be routed.

        Args:
            request: The text of the request to analyse.
            strategy: Optional strategy name.

        Returns:
            Multi-line explanation string.
        """
        result = router.route(_request(request, strategy))
        return router.explain(result)

    # ------------------------------------------------------------------
    # Tool: record_outcome
    # ------------------------------------------------------------------
    @mcp.tool()
    def record_outcome(
        provider: str,
        outcome: str,
        latency_ms: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Record a real-world outcome for a provider to improve future routing.

        Args:
            provider: The provider id (e.g. ``"openai"``).
            outcome: ``"success"``, ``"error"``, or ``"timeout"``.
            latency_ms: Optional observed latency in milliseconds.

        Returns:
            Dict with keys: provider, outcome, recorded (bool).
        """
        if outcome not in VALID_OUTCOMES:
            return {
                "provider": provider,
                "outcome": outcome,
                "recorded": False,
                "error": f"outcome must be one of {sorted(VALID_OUTCOMES)}",
            }

        router.record_provider_event(provider, outcome, latency_ms=latency_ms)
        return {"provider": provider, "outcome": outcome, "recorded": True}

    # ------------------------------------------------------------------
    # Tool: get_provider_health
    # ------------------------------------------------------------------
    @mcp.tool()
    def get_provider_health(provider: str) -> Dict[str, Any]:
        """Return the current health snapshot for a provider.

        Args:
            provider: Provider id (e.g. ``"anthropic"``).

        Returns:
            Dict with keys: provider_id, status, latency_ms, error,
            queue_length, success_rate, checked_at.
        """
        return router.get_provider_health(provider).to_dict()

    # ------------------------------------------------------------------
    # Tool: get_stats
    # ------------------------------------------------------------------
    @mcp.tool()
    def get_stats() -> Dict[str, Any]:
        """Return routing counters since the server started."""
        return router.get_stats().to_dict()

    return mcp


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main() -> None:
    """Run the chatroute MCP server (stdio transport by default)."""
    parser = argparse.ArgumentParser(
        description="chatroute MCP Server, exposing model routing over MCP."
    )
    parser.add_argument(
        "--transport",
        choices=["stdio", "sse"],
        default="stdio",
        help="MCP transport (default: stdio).",
    )
    parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host for SSE transport (default: 127.0.0.1).",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=8766,
        help="Port for SSE transport (default: 8766).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Directory containing a config.json override.",
    )
    args = parser.parse_args()

    if not MCP_AVAILABLE:
        print(
            "ERROR: The 'mcp' package is not installed.\n"
            "Install it with: pip install chatroute[mcp]",
            file=sys.stderr,
        )
        sys.exit(1)

    server = create_server(args.config)

    if args.transport == "stdio":
        server.run(transport="stdio")
    else:
        server.settings.host = args.host
        server.settings.port = args.port
        server.run(transport="sse")


if __name__ == "__main__":
    main()
