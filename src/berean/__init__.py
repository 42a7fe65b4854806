"""Berean assistant client - streaming generation core."""

from .app import build_coordinator, setup_logging
from .citations import extract_citations
from .coordinator import Generation, GenerationCoordinator
from .errors import (
    AIServiceUnavailableError,
    BereanError,
    ErrorKind,
    InvalidResponseError,
    NetworkUnavailableError,
    RateLimitExceededError,
    UnknownError,
    classify,
)
from .history import window
from .models import GenerationState, Message, Role
from .session import ChatSession
from .stream import GenerationStream, GenkitClient, GenkitConfig
from .usage import CompositeUsageGate, DailyQuotaGate, MessageRateLimiter, UsageGate

__all__ = [
    # Core
    "GenerationCoordinator",
    "Generation",
    "ChatSession",
    "build_coordinator",
    "setup_logging",
    # Models
    "Message",
    "Role",
    "GenerationState",
    # Pure helpers
    "window",
    "extract_citations",
    "classify",
    # Errors
    "ErrorKind",
    "BereanError",
    "NetworkUnavailableError",
    "RateLimitExceededError",
    "AIServiceUnavailableError",
    "InvalidResponseError",
    "UnknownError",
    # Collaborators
    "GenerationStream",
    "GenkitClient",
    "GenkitConfig",
    "UsageGate",
    "DailyQuotaGate",
    "MessageRateLimiter",
    "CompositeUsageGate",
]
