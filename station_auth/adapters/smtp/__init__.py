"""Mail-trigger adapters."""

from .console import ConsolePasswordResetNotifier

__all__ = ["ConsolePasswordResetNotifier"]
