"""
Configuration management for chatroute.

Loads the capability catalog, provider pricing, task-analysis rules,
weight profiles and router defaults from JSON configuration files.
"""

import copy
import json
import os
from pathlib import Path
from typing import Dict, Any, List, Optional


DEFAULTS_PATH = Path(__file__).parent / 'defaults.json'



def _merge_sections(target: Dict[str, Any], document: Dict[str, Any]) -> None:
    """Merge a partial document into *target*.

    Dict sections merge key by key; list sections (``models``) replace
    the default list outright.
    """
    for section, value in document.items():
        current = target.get(section)
        if isinstance(current, dict) and isinstance(value, dict):
            current.update(copy.deepcopy(value))
        else:
            target[section] = copy.deepcopy(value)


class Config:
    """Configuration manager for the routing catalog and analysis rules."""

    def __init__(self, config_path: str = None, overrides: Optional[Dict[str, Any]] = None):
        """Initialize configuration.

        Args:
            config_path: Path to a config directory holding ``config.json``.
                If None or the file is absent, packaged defaults are used.
            overrides: Optional in-memory document merged on top, section
                by section, after the file is loaded.
        """
        self.config_path = config_path
        self.config = self._load_config()
        if overrides:
            _merge_sections(self.config, overrides)

    def _load_config(self) -> Dict[str, Any]:
        """Load packaged defaults, then merge the user file if present."""
        with open(DEFAULTS_PATH, 'r') as f:
            config = json.load(f)

        if self.config_path and os.path.exists(os.path.join(self.config_path, 'config.json')):
            config_file = os.path.join(self.config_path, 'config.json')
            with open(config_file, 'r') as f:
                _merge_sections(config, json.load(f))
        return config

    # ── Sections ──────────────────────────────────────────────────────────

    def get_models(self) -> List[Dict[str, Any]]:
        """Get model definitions."""
        return self.config.get('models', [])

    def get_router_defaults(self) -> Dict[str, Any]:
        """Get default router settings."""
        return self.config.get('router', {})

    def get_weight_profiles(self) -> Dict[str, Dict[str, float]]:
        """Get named weight profiles."""
        return self.config.get('weight_profiles', {})

    def get_provider_pricing(self) -> Dict[str, Dict[str, float]]:
        """Get per-provider price per 1K tokens."""
        return self.config.get('provider_pricing', {})

    def get_analyzer_rules(self) -> Dict[str, Any]:
        """Get task analysis rules and keywords."""
        return self.config.get('analyzer', {})

    # ── Analyzer keyword lists ────────────────────────────────────────────

    def get_coding_keywords(self) -> List[str]:
        return self.get_analyzer_rules().get('coding_keywords', [])

    def get_data_analysis_keywords(self) -> List[str]:
        return self.get_analyzer_rules().get('data_analysis_keywords', [])

    def get_creative_writing_keywords(self) -> List[str]:
        return self.get_analyzer_rules().get('creative_writing_keywords', [])

    def get_technical_keywords(self) -> List[str]:
        return self.get_analyzer_rules().get('technical_keywords', [])

    def get_reasoning_keywords(self) -> List[str]:
        return self.get_analyzer_rules().get('reasoning_keywords', [])

    def get_multipliers(self) -> Dict[str, float]:
        """Get pattern multipliers used by complexity scoring."""
        return self.get_analyzer_rules().get('multipliers', {})

    def get_base_output_tokens(self) -> Dict[str, int]:
        """Get the per-category base output token table."""
        return self.get_analyzer_rules().get('base_output_tokens', {})

    def get_complexity_multipliers(self) -> Dict[str, float]:
        """Get the per-complexity output token multipliers."""
        return self.get_analyzer_rules().get('complexity_multipliers', {})

    # ── Mutation & persistence ────────────────────────────────────────────

    def save_config(self, config_path: str) -> None:
        """Save current configuration to file.

        Args:
            config_path: Path to config directory
        """
        os.makedirs(config_path, exist_ok=True)
        config_file = os.path.join(config_path, 'config.json')
        with open(config_file, 'w') as f:
            json.dump(self.config, f, indent=2)

    def add_model(self, model_def: Dict[str, Any]) -> None:
        """Add or update a model definition.

        Args:
            model_def: Model definition dict with required fields
        """
        models = self.config.get('models', [])
        # Remove existing model with same id
        models = [m for m in models if m.get('id') != model_def.get('id')]
        models.append(model_def)
        self.config['models'] = models

    def remove_model(self, model_id: str) -> bool:
        """Remove a model definition.

        Args:
            model_id: Id of model to remove

        Returns:
            True if model was found and removed, False otherwise
        """
        models = self.config.get('models', [])
        original_count = len(models)
        self.config['models'] = [m for m in models if m.get('id') != model_id]
        return len(self.config['models']) < original_count

    def update_analyzer_rules(self, rules: Dict[str, Any]) -> None:
        """Update task analysis rules.

        Args:
            rules: New analysis rules to merge
        """
        current_rules = self.config.get('analyzer', {})
        current_rules.update(rules)
        self.config['analyzer'] = current_rules
