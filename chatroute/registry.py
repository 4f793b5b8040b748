"""
Capability registry for chatroute.

Holds the static catalog of backend models: capabilities, context window,
pricing, and priority tier. The router reads it through
:meth:`ModelRegistry.list_available`; entries are never mutated at
routing time.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, FrozenSet, List, Optional

from .config import Config

STATUS_AVAILABLE = "available"


@dataclass(frozen=True)
class CapabilityEntry:
    """Immutable description of one routable model."""
    id: str
    provider_id: str
    capabilities: FrozenSet[str] = field(default_factory=frozenset)
    context_window: int = 8192
    price_input: Optional[float] = None   # USD per 1K input tokens
    price_output: Optional[float] = None  # USD per 1K output tokens
    priority: int = 2                     # 1 = best
    name: str = ""
    tags: FrozenSet[str] = field(default_factory=frozenset)
    status: str = STATUS_AVAILABLE

    @property
    def display_name(self) -> str:
        return self.name or self.id

    @property
    def is_available(self) -> bool:
        return self.status == STATUS_AVAILABLE

    def has_capability(self, capability: str) -> bool:
        """Check if model has a specific capability.

        Args:
            capability: Capability to check (e.g., 'vision', 'coding')

        Returns:
            True if model has the capability
        """
        return capability in self.capabilities

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> float:
        """Calculate cost for given token usage.

        Unpriced entries cost nothing here; the router resolves prices
        through :class:`~chatroute.pricing.PriceTable` before scoring.
        """
        input_cost = (input_tokens / 1000) * (self.price_input or 0.0)
        output_cost = (output_tokens / 1000) * (self.price_output or 0.0)
        return input_cost + output_cost

    def with_prices(self, price_input: float, price_output: float) -> "CapabilityEntry":
        """Return a copy of this entry carrying resolved prices."""
        return replace(self, price_input=price_input, price_output=price_output)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CapabilityEntry":
        return cls(
            id=data['id'],
            provider_id=data['provider_id'],
            capabilities=frozenset(data.get('capabilities', [])),
            context_window=int(data.get('context_window', 8192)),
            price_input=data.get('price_input'),
            price_output=data.get('price_output'),
            priority=int(data.get('priority', 2)),
            name=data.get('name', ''),
            tags=frozenset(data.get('tags', [])),
            status=data.get('status', STATUS_AVAILABLE),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'provider_id': self.provider_id,
            'capabilities': sorted(self.capabilities),
            'context_window': self.context_window,
            'price_input': self.price_input,
            'price_output': self.price_output,
            'priority': self.priority,
            'tags': sorted(self.tags),
            'status': self.status,
        }


class ModelRegistry:
    """Registry for managing model capability entries."""

    def __init__(self, config: Config = None, entries: Optional[List[CapabilityEntry]] = None):
        """Initialize model registry.

        Args:
            config: Configuration instance with model definitions. Defaults
                to the packaged catalog.
            entries: Explicit entries; when given, ``config`` is only used
                for persistence.
        """
        self.config = config if config is not None else Config()
        if entries is not None:
            self.models: Dict[str, CapabilityEntry] = {e.id: e for e in entries}
        else:
            self.models = self._load_models()

    def _load_models(self) -> Dict[str, CapabilityEntry]:
        """Load models from configuration."""
        models = {}
        for model_def in self.config.get_models():
            entry = CapabilityEntry.from_dict(model_def)
            models[entry.id] = entry
        return models

    def get_model(self, model_id: str) -> Optional[CapabilityEntry]:
        """Get model by id, or None if unknown."""
        return self.models.get(model_id)

    def list_models(self) -> List[CapabilityEntry]:
        """Get all registered models regardless of status."""
        return list(self.models.values())

    def list_available(self) -> List[CapabilityEntry]:
        """Snapshot of the entries whose status is ``available``."""
        return [m for m in self.models.values() if m.is_available]

    def models_with_capability(self, capability: str) -> List[CapabilityEntry]:
        """Get available models that have a specific capability."""
        return [m for m in self.list_available() if m.has_capability(capability)]

    def models_by_provider(self, provider_id: str) -> List[CapabilityEntry]:
        """Get models from a specific provider."""
        return [
            model for model in self.models.values()
            if model.provider_id.lower() == provider_id.lower()
        ]

    def get_providers(self) -> List[str]:
        """Get sorted list of all provider ids in the registry."""
        return sorted({model.provider_id for model in self.models.values()})

    def add_model(self, entry: CapabilityEntry) -> None:
        """Add or replace a model in the registry and its config."""
        self.models[entry.id] = entry
        self.config.add_model(entry.to_dict())

    def remove_model(self, model_id: str) -> bool:
        """Remove a model from the registry.

        Returns:
            True if model was removed, False if not found
        """
        if model_id in self.models:
            del self.models[model_id]
            self.config.remove_model(model_id)
            return True
        return False

    def save_to_file(self, file_path: str) -> None:
        """Save registry to a JSON file."""
        data = {'models': [m.to_dict() for m in self.models.values()]}
        directory = os.path.dirname(file_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(file_path, 'w') as f:
            json.dump(data, f, indent=2)

    def load_from_file(self, file_path: str) -> None:
        """Replace the registry contents with models from a JSON file."""
        with open(file_path, 'r') as f:
            data = json.load(f)
        self.models = {}
        for model_def in data.get('models', []):
            entry = CapabilityEntry.from_dict(model_def)
            self.models[entry.id] = entry
