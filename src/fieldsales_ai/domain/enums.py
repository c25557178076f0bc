"""Domain enumerations for the provider-orchestration core."""

from __future__ import annotations

import enum


class Provider(str, enum.Enum):
    """Upstream AI vendors the orchestrator can route to."""

    GEMINI = "gemini"
    GROQ = "groq"
    TOGETHER = "together"
    HUGGINGFACE = "huggingface"


class RequestType(str, enum.Enum):
    """Caller-declared kind of work a request carries."""

    TEXT = "text"
    VOICE = "voice"
    IMAGE = "image"
    KNOWLEDGE_SEARCH = "knowledge-search"
    CODE_GENERATION = "code-generation"
    ANALYSIS = "analysis"


class Urgency(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class RequestMode(str, enum.Enum):
    NORMAL = "normal"
    HANDS_FREE = "hands-free"
    BATCH = "batch"


class AlertLevel(str, enum.Enum):
    """Budget alert severity, lowest first."""

    SAFE = "safe"
    WARNING = "warning"
    CRITICAL = "critical"
    EXCEEDED = "exceeded"


class VendorErrorKind(str, enum.Enum):
    """Normalised failure classes reported by vendor adapters."""

    NETWORK = "network"
    AUTH = "auth"
    RATE_LIMIT = "rate_limit"
    INVALID_RESPONSE = "invalid_response"


class RouteRule(str, enum.Enum):
    """Which routing rule produced a provider decision."""

    USER_PREFERENCE = "user_preference"
    FREE_TIER = "free_tier"
    FAST_PATH = "fast_path"
    ECONOMY = "economy"
    BALANCED = "balanced"
    FALLBACK = "fallback"
    LAST_RESORT = "last_resort"
