"""
Task analysis for chatroute.

Classifies a conversation into a complexity bucket, a task category and a
set of required capabilities using deterministic pattern and keyword
checks. Keyword lists and token tables come from :class:`Config`.
"""

from __future__ import annotations

import math
import re
import time
import uuid
from dataclasses import asdict, dataclass, field, fields, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import Config


class TaskComplexity(str, Enum):
    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"
    HIGHLY_COMPLEX = "highly_complex"


class TaskCategory(str, Enum):
    GENERAL_CONVERSATION = "general_conversation"
    CODING = "coding"
    DATA_ANALYSIS = "data_analysis"
    CREATIVE_WRITING = "creative_writing"
    TECHNICAL_EXPLANATION = "technical_explanation"
    REASONING = "reasoning"
    VISION = "vision"
    MULTIMODAL = "multimodal"
    LONG_CONTEXT = "long_context"


# Numeric complexityScore is the bucket midpoint, not the raw sum.
COMPLEXITY_SCORES: Dict[TaskComplexity, int] = {
    TaskComplexity.SIMPLE: 25,
    TaskComplexity.MODERATE: 50,
    TaskComplexity.COMPLEX: 75,
    TaskComplexity.HIGHLY_COMPLEX: 100,
}


@dataclass(frozen=True)
class Message:
    """One role-tagged chat message."""
    role: str
    content: str

    @classmethod
    def coerce(cls, message: Any) -> "Message":
        """Accept a Message, a ``{"role", "content"}`` mapping, or a pair.

        Anything else is read through ``role``/``content`` attributes, or
        treated as user content itself.
        """
        if isinstance(message, Message):
            return message
        if isinstance(message, Mapping):
            role, content = message.get("role", "user"), message.get("content")
        elif isinstance(message, (tuple, list)) and len(message) == 2:
            role, content = message
        else:
            role = getattr(message, "role", "user")
            content = getattr(message, "content", message)
        return cls(role=str(role), content="" if content is None else str(content))


@dataclass(frozen=True)
class TaskCapabilities:
    """Capabilities a task needs from the serving model."""
    vision: bool = False
    coding: bool = False
    reasoning: bool = False
    analysis: bool = False
    creativity: bool = False
    fast_response: bool = False
    large_context: bool = False
    multilingual: bool = False

    def merged(self, other: Optional["TaskCapabilities"]) -> "TaskCapabilities":
        """Logical OR of both capability sets."""
        if other is None:
            return self
        return TaskCapabilities(**{
            f.name: getattr(self, f.name) or getattr(other, f.name) for f in fields(self)
        })

    def required(self) -> List[str]:
        return [f.name for f in fields(self) if getattr(self, f.name)]

    def to_dict(self) -> Dict[str, bool]:
        return asdict(self)


@dataclass(frozen=True)
class UserPreferences:
    """Caller routing preferences."""
    preferred_provider: Optional[str] = None
    preferred_model: Optional[str] = None
    cost_optimization: str = "medium"          # low | medium | high
    latency_priority: str = "medium"           # low | medium | high
    quality_speed_tradeoff: str = "balanced"   # quality | balanced | speed
    favorite_models: Tuple[str, ...] = ()
    excluded_models: Tuple[str, ...] = ()
    max_cost_per_request: Optional[float] = None
    preferred_capabilities: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UserPreferences":
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        for name in ("favorite_models", "excluded_models", "preferred_capabilities"):
            if name in values:
                values[name] = tuple(values[name])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        for name in ("favorite_models", "excluded_models", "preferred_capabilities"):
            d[name] = list(d[name])
        return d


@dataclass(frozen=True)
class TaskAnalysis:
    """Result of analyzing a conversation. Never mutated after creation."""
    id: str
    complexity: TaskComplexity
    complexity_score: int
    category: TaskCategory
    estimated_input_tokens: int
    estimated_output_tokens: int
    required_capabilities: TaskCapabilities
    detected_language: str = "en"
    is_follow_up: bool = False
    conversation_history_length: int = 0
    user_preferences: Optional[UserPreferences] = None
    analyzed_at: float = field(default_factory=time.time)
    signals: Mapping[str, Any] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        # shared by every cache hit, so exposed read-only
        object.__setattr__(self, "signals", MappingProxyType(dict(self.signals)))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "complexity": self.complexity.value,
            "complexity_score": self.complexity_score,
            "category": self.category.value,
            "estimated_input_tokens": self.estimated_input_tokens,
            "estimated_output_tokens": self.estimated_output_tokens,
            "required_capabilities": self.required_capabilities.to_dict(),
            "detected_language": self.detected_language,
            "is_follow_up": self.is_follow_up,
            "conversation_history_length": self.conversation_history_length,
            "user_preferences": (
                self.user_preferences.to_dict() if self.user_preferences else None
            ),
            "analyzed_at": self.analyzed_at,
            "signals": dict(self.signals),
        }


# ── Content patterns ──────────────────────────────────────────────────────────

CODE_BLOCK_RE = re.compile(r"```[\s\S]*?```")
MATH_RE = re.compile(r"\$[\s\S]*?\$|\\[\s\S]*?\\|\\begin\{[\s\S]*?\\end\{")
TABLE_RE = re.compile(r"\|.*\|.*(?:\n\|.*\|.*)*")
IMAGE_RE = re.compile(r"!\[.*?\]\(.*?\)")
BULLET_RE = re.compile(r"^\s*[-*\u2022]\s", re.MULTILINE)

CJK_RE = re.compile(r"[\u4e00-\u9fff]")
KANA_RE = re.compile(r"[\u3040-\u309f\u30a0-\u30ff]")
HANGUL_RE = re.compile(r"[\uac00-\ud7af]")
ARABIC_RE = re.compile(r"[\u0600-\u06ff]")
CYRILLIC_RE = re.compile(r"[\u0400-\u04ff]")
NON_ASCII_RE = re.compile(r"[^\x00-\x7f]")

VISION_WORDS = ("image", "picture", "photo")


class TaskAnalyzer:
    """Analyzes conversations into a :class:`TaskAnalysis`.

    ``analyze`` is pure: identical messages and options give identical
    complexity, category and capability results (ids and timestamps
    differ between calls).
    """

    def __init__(self, config: Config = None):
        """Initialize analyzer with configuration.

        Args:
            config: Configuration instance with analysis rules. Defaults to
                the packaged rules.
        """
        self.config = config if config is not None else Config()

    def analyze(
        self,
        messages: Sequence[Any],
        is_follow_up: bool = False,
        conversation_history_length: int = 0,
        user_preferences: Optional[UserPreferences] = None,
    ) -> TaskAnalysis:
        """Analyze a conversation.

        Args:
            messages: Ordered messages (``Message`` objects, mappings with
                ``role``/``content`` keys, or ``(role, content)`` pairs).
            is_follow_up: Whether the conversation already has turns.
            conversation_history_length: Number of earlier turns.
            user_preferences: Caller preferences carried on the analysis.

        Returns:
            TaskAnalysis. Empty or malformed input yields the
            ``simple`` / ``general_conversation`` defaults.
        """
        contents = [Message.coerce(m).content for m in (messages or [])]
        content = " ".join(contents)
        signals = self._analyze_signals(content)

        complexity = self._calculate_complexity(signals, contents)
        category = self._categorize(signals)
        capabilities = self._detect_capabilities(signals, content, category)

        return TaskAnalysis(
            id=self._generate_analysis_id(),
            complexity=complexity,
            complexity_score=COMPLEXITY_SCORES[complexity],
            category=category,
            estimated_input_tokens=self.estimate_tokens(content),
            estimated_output_tokens=self.estimate_output_tokens(category, complexity),
            required_capabilities=capabilities,
            detected_language=self.detect_language(content),
            is_follow_up=is_follow_up,
            conversation_history_length=conversation_history_length,
            user_preferences=user_preferences,
            signals=signals,
        )

    # ── Signals ───────────────────────────────────────────────────────────

    def _analyze_signals(self, content: str) -> Dict[str, Any]:
        """Scan the text blob for structural patterns and keyword hits."""
        lower = content.lower()
        words = lower.split()
        technical_keywords = self.config.get_technical_keywords()

        return {
            "code_blocks": len(CODE_BLOCK_RE.findall(content)),
            "math_expressions": len(MATH_RE.findall(content)),
            "tables": len(TABLE_RE.findall(content)),
            "images": len(IMAGE_RE.findall(content)),
            "questions": content.count("?"),
            "bullet_points": len(BULLET_RE.findall(content)),
            "total_length": len(content),
            "unique_words": len(set(words)),
            "technical_terms": sum(
                1 for word in words if any(kw in word for kw in technical_keywords)
            ),
            "has_code_keywords": self._has_any(lower, self.config.get_coding_keywords()),
            "has_data_keywords": self._has_any(lower, self.config.get_data_analysis_keywords()),
            "has_creative_keywords": self._has_any(lower, self.config.get_creative_writing_keywords()),
            "has_technical_keywords": self._has_any(lower, technical_keywords),
            "has_reasoning_keywords": self._has_any(lower, self.config.get_reasoning_keywords()),
        }

    @staticmethod
    def _has_any(text: str, keywords: Sequence[str]) -> bool:
        return any(kw.lower() in text for kw in keywords)

    # ── Complexity ────────────────────────────────────────────────────────

    def _calculate_complexity(self, signals: Dict[str, Any], contents: List[str]) -> TaskComplexity:
        score = self.raw_complexity(signals, contents)
        if score >= 75:
            return TaskComplexity.HIGHLY_COMPLEX
        if score >= 50:
            return TaskComplexity.COMPLEX
        if score >= 25:
            return TaskComplexity.MODERATE
        return TaskComplexity.SIMPLE

    def raw_complexity(self, signals: Mapping[str, Any], contents: List[str]) -> float:
        """Weighted complexity sum clamped to [0, 100]."""
        multipliers = self.config.get_multipliers()
        score = 0.0

        avg_length = sum(len(c) for c in contents) / len(contents) if contents else 0
        if avg_length > 2000:
            score += 25
        elif avg_length > 1000:
            score += 15
        elif avg_length > 500:
            score += 5

        score += signals["code_blocks"] * 15 * multipliers.get("code_blocks", 1.5)
        score += signals["math_expressions"] * 10 * multipliers.get("math_expressions", 1.3)
        score += signals["tables"] * 8 * multipliers.get("tables", 1.2)
        score += signals["images"] * 12 * multipliers.get("images", 1.4)
        score += signals["questions"] * 5

        score += min(signals["technical_terms"] * 2, 20)

        if signals["has_code_keywords"]:
            score += 15
        if signals["has_data_keywords"]:
            score += 10
        if signals["has_reasoning_keywords"]:
            score += 12

        return max(0.0, min(100.0, score))

    # ── Category ──────────────────────────────────────────────────────────

    def _categorize(self, signals: Dict[str, Any]) -> TaskCategory:
        """First matching rule wins."""
        if signals["code_blocks"] > 0 and signals["has_code_keywords"]:
            return TaskCategory.CODING
        if signals["has_data_keywords"] and (signals["tables"] > 0 or signals["bullet_points"] > 3):
            return TaskCategory.DATA_ANALYSIS
        if signals["has_creative_keywords"] and not signals["has_technical_keywords"]:
            return TaskCategory.CREATIVE_WRITING
        if signals["has_technical_keywords"] and signals["has_reasoning_keywords"]:
            return TaskCategory.TECHNICAL_EXPLANATION
        if signals["has_reasoning_keywords"] or signals["questions"] > 3:
            return TaskCategory.REASONING
        if signals["images"] > 0:
            return TaskCategory.VISION
        if signals["total_length"] > 10000:
            return TaskCategory.LONG_CONTEXT
        return TaskCategory.GENERAL_CONVERSATION

    # ── Capabilities ──────────────────────────────────────────────────────

    def _detect_capabilities(
        self, signals: Dict[str, Any], content: str, category: TaskCategory
    ) -> TaskCapabilities:
        lower = content.lower()
        total_length = signals["total_length"]
        non_ascii = len(NON_ASCII_RE.findall(content))

        return TaskCapabilities(
            vision=signals["images"] > 0 or any(w in lower for w in VISION_WORDS),
            coding=(
                signals["code_blocks"] > 0
                or category == TaskCategory.CODING
                or signals["has_code_keywords"]
            ),
            reasoning=(
                category in (TaskCategory.REASONING, TaskCategory.TECHNICAL_EXPLANATION)
                or signals["has_reasoning_keywords"]
                or signals["questions"] > 2
            ),
            analysis=(
                category == TaskCategory.DATA_ANALYSIS
                or signals["has_data_keywords"]
                or signals["tables"] > 0
            ),
            creativity=category == TaskCategory.CREATIVE_WRITING,
            fast_response=category == TaskCategory.GENERAL_CONVERSATION and total_length < 1000,
            large_context=total_length > 5000 or category == TaskCategory.LONG_CONTEXT,
            multilingual=bool(total_length) and non_ascii / total_length > 0.05,
        )

    # ── Tokens & language ─────────────────────────────────────────────────

    @staticmethod
    def estimate_tokens(content: str) -> int:
        """Roughly four characters per token."""
        return math.ceil(len(content) / 4)

    def estimate_output_tokens(self, category: TaskCategory, complexity: TaskComplexity) -> int:
        base = self.config.get_base_output_tokens().get(category.value, 500)
        multiplier = self.config.get_complexity_multipliers().get(complexity.value, 1.0)
        return math.ceil(base * multiplier)

    @staticmethod
    def detect_language(content: str) -> str:
        """Guess the primary script; ``"en"`` when nothing else is found."""
        if not NON_ASCII_RE.search(content):
            return "en"
        if CJK_RE.search(content):
            return "zh"
        if KANA_RE.search(content):
            return "ja"
        if HANGUL_RE.search(content):
            return "ko"
        if ARABIC_RE.search(content):
            return "ar"
        if CYRILLIC_RE.search(content):
            return "ru"
        return "en"

    @staticmethod
    def _generate_analysis_id() -> str:
        return f"analysis_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"

    def with_capabilities(
        self, analysis: TaskAnalysis, extra: Optional[TaskCapabilities]
    ) -> TaskAnalysis:
        """Copy of *analysis* with *extra* capabilities OR-ed in (same id)."""
        if extra is None:
            return analysis
        return replace(analysis, required_capabilities=analysis.required_capabilities.merged(extra))
