"""
Console password-reset adapter - Implements PasswordResetNotifier protocol.

This module provides a console-based implementation of the domain's
password-reset mail trigger, logging the request instead of sending mail.
"""

import logging

logger = logging.getLogger(__name__)


class ConsolePasswordResetNotifier:
    """
    Implements PasswordResetNotifier protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Stands in for the external mail service during development.
    """

    def send_password_reset(self, email: str) -> None:
        """
        Log a password-reset request (simulates mail delivery).

        Args:
            email: Recipient email address (normalized by domain layer)
        """
        logger.info("[PASSWORD RESET] Email: %s", email)
