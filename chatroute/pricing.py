"""
Provider pricing lookup for chatroute.

Resolves a per-1K-token price for a provider, falling back to a fixed
price when the provider is unknown.
"""

from __future__ import annotations

from typing import Dict, Optional

from .config import Config

PRICE_INPUT = "input"
PRICE_OUTPUT = "output"
VALID_PRICE_KINDS = {PRICE_INPUT, PRICE_OUTPUT}

# USD per 1K tokens for providers with no known pricing
DEFAULT_INPUT_PRICE = 0.01
DEFAULT_OUTPUT_PRICE = 0.03


class PriceTable:
    """Per-provider price lookup backed by the ``provider_pricing`` config section."""

    def __init__(
        self,
        prices: Optional[Dict[str, Dict[str, float]]] = None,
        config: Optional[Config] = None,
    ) -> None:
        if prices is None:
            prices = (config or Config()).get_provider_pricing()
        self._prices: Dict[str, Dict[str, float]] = {
            provider: dict(table) for provider, table in prices.items()
        }

    def price(self, provider_id: str, kind: str) -> float:
        """Return the price per 1K tokens of *kind* for *provider_id*.

        Args:
            provider_id: Provider identifier, e.g. ``"openai"``.
            kind: ``"input"`` or ``"output"``.

        Raises:
            ValueError: If *kind* is not a known price kind.
        """
        if kind not in VALID_PRICE_KINDS:
            raise ValueError(
                f"kind must be one of {sorted(VALID_PRICE_KINDS)}, got {kind!r}"
            )
        table = self._prices.get(provider_id)
        if table is not None and kind in table:
            return float(table[kind])
        return DEFAULT_INPUT_PRICE if kind == PRICE_INPUT else DEFAULT_OUTPUT_PRICE

    def set_price(self, provider_id: str, input_price: float, output_price: float) -> None:
        self._prices[provider_id] = {PRICE_INPUT: input_price, PRICE_OUTPUT: output_price}

    def known_providers(self):
        return sorted(self._prices)
