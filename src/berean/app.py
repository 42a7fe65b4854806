"""Wiring helpers: build a ready-to-use coordinator from Settings."""

import logging
from pathlib import Path
from typing import Optional

from .config import Settings, get_settings
from .coordinator import GenerationCoordinator
from .logging_config import configure_logging
from .session import ChatSession
from .stream import GenerationStream, GenkitClient, GenkitConfig
from .usage import UsageGate, build_usage_gate

logger = logging.getLogger(__name__)


def build_coordinator(
    settings: Optional[Settings] = None,
    session: Optional[ChatSession] = None,
    stream: Optional[GenerationStream] = None,
    usage_gate: Optional[UsageGate] = None,
) -> GenerationCoordinator:
    """Create a GenerationCoordinator, filling in collaborators from settings.

    Args:
        settings: Loaded settings (default: the global settings instance)
        session: Existing session to continue (default: a new empty one)
        stream: Remote stream (default: a GenkitClient for ``settings.genkit``)
        usage_gate: Usage gate (default: daily quota + rate limiter)
    """
    settings = settings or get_settings()
    if stream is None:
        stream = GenkitClient(GenkitConfig.from_settings(settings))
        logger.info(f"Using flow server at {settings.genkit.url}")

    return GenerationCoordinator(
        session=session or ChatSession(),
        stream=stream,
        usage_gate=usage_gate or build_usage_gate(settings),
        history_window_limit=settings.generation.history_window_limit,
        timeout_seconds=settings.generation.timeout_seconds,
    )


def setup_logging(settings: Optional[Settings] = None) -> Optional[Path]:
    """Apply the ``logging`` section of settings."""
    settings = settings or get_settings()
    log = settings.logging
    return configure_logging(
        level=log.level,
        log_dir=Path(log.log_dir) if log.log_dir else None,
        max_bytes=log.max_bytes,
        retention_days=log.retention_days,
    )
