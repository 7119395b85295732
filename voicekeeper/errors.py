"""Domain exceptions."""

from __future__ import annotations


class VoiceKeeperError(Exception):
    """Base class for application errors."""


class GatewayUnavailableError(VoiceKeeperError):
    """An external provider was called but is not configured."""


class RetrievalError(VoiceKeeperError):
    """Every retrieval path failed, including keyword search."""
