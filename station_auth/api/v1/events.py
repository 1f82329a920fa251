"""
Event routes - capacity-bounded registration.

Duplicate and full registrations both return 400 with distinct messages;
an unknown event or a missing registration returns 404.
"""

from fastapi import APIRouter, Depends, status

from station_auth.api.dependencies import get_current_claims, get_event_service, require_admin
from station_auth.api.models import (
    CreateEventRequest,
    Envelope,
    ErrorResponse,
    EventResponse,
    RegistrationCountResponse,
)
from station_auth.domain.events import EventRegistrationService
from station_auth.domain.ports import Claims

router = APIRouter(prefix="/events", tags=["events"])


@router.post(
    "",
    response_model=Envelope[EventResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
    },
    summary="Create an event (admin)",
)
def create_event(
    request_data: CreateEventRequest,
    claims: Claims = Depends(require_admin),
    service: EventRegistrationService = Depends(get_event_service),
) -> Envelope[EventResponse]:
    event = service.create_event(request_data.title, request_data.capacity, request_data.published)
    return Envelope(message="Event created", data=EventResponse.from_event(event))


@router.get(
    "/{event_id}",
    response_model=Envelope[EventResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Get an event with its registration count",
)
def get_event(
    event_id: int,
    service: EventRegistrationService = Depends(get_event_service),
) -> Envelope[EventResponse]:
    return Envelope(data=EventResponse.from_event(service.get_event(event_id)))


@router.get(
    "/{event_id}/registrations",
    response_model=Envelope[RegistrationCountResponse],
    responses={404: {"model": ErrorResponse}},
    summary="Get the number of registrations",
)
def registration_count(
    event_id: int,
    service: EventRegistrationService = Depends(get_event_service),
) -> Envelope[RegistrationCountResponse]:
    total = service.get_registration_count(event_id)
    return Envelope(data=RegistrationCountResponse(event_id=event_id, total=total))


@router.post(
    "/{event_id}/register",
    response_model=Envelope[RegistrationCountResponse],
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Already registered or event full"},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "Event not found"},
    },
    summary="Register the authenticated user for an event",
)
def register_for_event(
    event_id: int,
    claims: Claims = Depends(get_current_claims),
    service: EventRegistrationService = Depends(get_event_service),
) -> Envelope[RegistrationCountResponse]:
    service.register(event_id, claims.id)
    total = service.get_registration_count(event_id)
    return Envelope(
        message="Registered for event",
        data=RegistrationCountResponse(event_id=event_id, total=total),
    )


@router.delete(
    "/{event_id}/register",
    response_model=Envelope[RegistrationCountResponse],
    responses={
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse, "description": "Event not found or not registered"},
    },
    summary="Unregister the authenticated user from an event",
)
def unregister_from_event(
    event_id: int,
    claims: Claims = Depends(get_current_claims),
    service: EventRegistrationService = Depends(get_event_service),
) -> Envelope[RegistrationCountResponse]:
    service.unregister(event_id, claims.id)
    total = service.get_registration_count(event_id)
    return Envelope(
        message="Unregistered from event",
        data=RegistrationCountResponse(event_id=event_id, total=total),
    )
