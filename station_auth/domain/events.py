"""
Event registration domain service - capacity-bounded join/leave.

Registration State Machine
==========================

Per (event, user) pair:

    unregistered -> registered     (register)
    registered   -> unregistered   (unregister)

There are no intermediate states.

Capacity Invariant
==================

An event's registered_count always equals its number of registration rows
and never exceeds its capacity. The "check, then insert and increment"
sequence is delegated in full to the repository, which executes it as one
atomic unit (SELECT ... FOR UPDATE on the event row in PostgreSQL). Two
concurrent calls can therefore never both take the last slot.
"""

import logging
from dataclasses import dataclass

from .exceptions import AlreadyRegistered, EventFull, NotFoundError, ValidationError
from .ports import Event, EventRepository, RegistrationResult

logger = logging.getLogger(__name__)


@dataclass
class EventRegistrationService:
    """Domain service for joining and leaving events."""

    repository: EventRepository

    def register(self, event_id: int, user_id: int) -> None:
        """
        Register a user for an event.

        Raises:
            NotFoundError: If the event does not exist
            AlreadyRegistered: If the pair is already registered
            EventFull: If capacity is set and reached
        """
        result = self.repository.add_registration(event_id, user_id)

        if result == RegistrationResult.REGISTERED:
            logger.info("User id=%s registered for event id=%s", user_id, event_id)
            return
        if result == RegistrationResult.EVENT_NOT_FOUND:
            raise NotFoundError("event not found")
        if result == RegistrationResult.USER_NOT_FOUND:
            raise NotFoundError("user not found")
        if result == RegistrationResult.ALREADY_REGISTERED:
            raise AlreadyRegistered()
        if result == RegistrationResult.FULL:
            raise EventFull()
        raise RuntimeError(f"Unexpected registration result: {result}")

    def unregister(self, event_id: int, user_id: int) -> None:
        """
        Remove a user's registration.

        Raises:
            NotFoundError: If the event does not exist or the user is not registered
        """
        result = self.repository.remove_registration(event_id, user_id)

        if result == RegistrationResult.UNREGISTERED:
            logger.info("User id=%s unregistered from event id=%s", user_id, event_id)
            return
        if result == RegistrationResult.EVENT_NOT_FOUND:
            raise NotFoundError("event not found")
        if result == RegistrationResult.NOT_REGISTERED:
            raise NotFoundError("not registered")
        raise RuntimeError(f"Unexpected unregistration result: {result}")

    def get_registration_count(self, event_id: int) -> int:
        """Current number of registrations, for display."""
        return self.get_event(event_id).registered_count

    def get_event(self, event_id: int) -> Event:
        event = self.repository.get_event(event_id)
        if event is None:
            raise NotFoundError("event not found")
        return event

    def is_registered(self, event_id: int, user_id: int) -> bool:
        return self.repository.is_registered(event_id, user_id)

    def create_event(self, title: str, capacity: int | None = None, published: bool = False) -> Event:
        """
        Create an event row.

        Raises:
            ValidationError: If the title is blank or capacity is negative
        """
        if not title or not title.strip():
            raise ValidationError("title is required")
        if capacity is not None and capacity < 0:
            raise ValidationError("capacity must not be negative")

        event = self.repository.create_event(title.strip(), capacity, published)
        logger.info("Created event id=%s capacity=%s", event.id, event.capacity)
        return event
