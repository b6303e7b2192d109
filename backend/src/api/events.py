"""
Events API endpoints for volunteer events.

Provides endpoints for:
- Creating events (recurring events also create their series)
- Getting event details
- Completing an ended event (drives next-instance materialization)
- Volunteer registration
- Attendance marking by organizers

Design:
- Uses dependency injection for services
- All endpoints use GUID format (evt_xxx) for identifiers
- Responses use the {success, message, data} envelope
"""

from fastapi import APIRouter, Depends, HTTPException, status

from backend.src.api.dependencies import get_event_service
from backend.src.middleware.auth import UserContext, require_auth
from backend.src.models import Registration
from backend.src.schemas.event import (
    AttendanceUpdate,
    EventCompletionData,
    EventCompletionResponse,
    EventCreate,
    EventEnvelope,
    EventResponse,
    RegistrationEnvelope,
    RegistrationResponse,
    UserSummary,
)
from backend.src.services.event_service import EventService, build_event_response
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
    ValidationError,
)
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/events",
    tags=["Events"],
)


def _registration_response(registration: Registration) -> RegistrationResponse:
    return RegistrationResponse(
        event_guid=registration.event.guid,
        volunteer=UserSummary.model_validate(registration.volunteer),
        has_attended=registration.has_attended,
        registered_at=registration.registered_at,
    )


# ============================================================================
# API Endpoints
# ============================================================================


@router.post(
    "",
    response_model=EventEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new event",
    description="Create an event; a recurring event also creates its series",
)
async def create_event(
    event_data: EventCreate,
    ctx: UserContext = Depends(require_auth),
    event_service: EventService = Depends(get_event_service),
) -> EventEnvelope:
    """
    Create a new event.

    Request Body:
        title: Event title (required)
        organization_guid: Hosting organization (required)
        start_datetime / end_datetime: Schedule (required, end after start)
        organizer_guids: Additional organizer team members
        recurring_event: Whether the event repeats
        recurring_type: weekly or monthly (required when recurring)
        recurring_value: Weekday name or day of month (required when recurring)
        series_end_date: No instances on or after this date
        series_max_instances: Instance cap

    Returns:
        Created event (201 Created)

    Raises:
        400: Invalid series bounds
        404: Organization or organizer not found
        422: Validation error

    Example:
        POST /api/events
        {
          "title": "Beach Cleanup",
          "organization_guid": "org_xxx",
          "start_datetime": "2024-01-01T09:00:00Z",
          "end_datetime": "2024-01-01T11:00:00Z",
          "recurring_event": true,
          "recurring_type": "weekly",
          "recurring_value": "Monday"
        }
    """
    try:
        event = event_service.create(ctx.user_id, event_data)

        # Reload with relationships
        event = event_service.get_by_guid(event.guid)

        logger.info(f"Created event: {event.guid}")

        return EventEnvelope(
            message="Event created",
            data=EventResponse(**build_event_response(event)),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except Exception as e:
        logger.error(f"Error creating event: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create event",
        )


@router.get(
    "/{guid}",
    response_model=EventEnvelope,
    summary="Get event by GUID",
    description="Get detailed information about a specific event",
)
async def get_event(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    event_service: EventService = Depends(get_event_service),
) -> EventEnvelope:
    """
    Get event details by GUID.

    Raises:
        404: Event not found
    """
    try:
        event = event_service.get_by_guid(guid)

        return EventEnvelope(
            message="Event retrieved",
            data=EventResponse(**build_event_response(event)),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except Exception as e:
        logger.error(f"Error getting event {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve event",
        )


@router.post(
    "/{guid}/complete",
    response_model=EventCompletionResponse,
    summary="Complete an event",
    description="Mark an ended event completed; series instances may materialize the next one",
)
async def complete_event(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    event_service: EventService = Depends(get_event_service),
) -> EventCompletionResponse:
    """
    Complete an ended event.

    For a series instance the next instance is created when the series is
    active, below its cap, and before its end date.

    Raises:
        400: Event has not ended yet
        403: Caller is not on the organizer team
        404: Event not found
        409: Next instance was materialized concurrently
    """
    try:
        event, next_instance, series_status = event_service.complete_event(guid, ctx.user_id)

        message = "Event completed"
        if next_instance is not None:
            message = f"Event completed; next instance {next_instance.guid} created"

        return EventCompletionResponse(
            message=message,
            data=EventCompletionData(
                event=EventResponse(**build_event_response(event)),
                next_instance=(
                    EventResponse(**build_event_response(next_instance))
                    if next_instance is not None else None
                ),
                series_status=series_status,
            ),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    except PreconditionFailedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    except Exception as e:
        logger.error(f"Error completing event {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to complete event",
        )


# ============================================================================
# Registration Endpoints
# ============================================================================


@router.post(
    "/{guid}/registrations",
    response_model=RegistrationEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Register for an event",
    description="Register the caller as a volunteer",
)
async def register_for_event(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    event_service: EventService = Depends(get_event_service),
) -> RegistrationEnvelope:
    """
    Register the caller for an event. Removes any calendar bookmark.

    Raises:
        400: Event ended, full, or organized by the caller
        404: Event not found
        409: Already registered
    """
    try:
        registration = event_service.register(guid, ctx.user_id)

        return RegistrationEnvelope(
            message="Registered for event",
            data=_registration_response(registration),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PreconditionFailedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except ConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)

    except Exception as e:
        logger.error(f"Error registering for event {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register for event",
        )


@router.patch(
    "/{guid}/registrations/{user_guid}/attendance",
    response_model=RegistrationEnvelope,
    summary="Mark attendance",
    description="Record whether a registered volunteer attended",
)
async def mark_attendance(
    guid: str,
    user_guid: str,
    body: AttendanceUpdate,
    ctx: UserContext = Depends(require_auth),
    event_service: EventService = Depends(get_event_service),
) -> RegistrationEnvelope:
    """
    Mark a volunteer's attendance.

    Raises:
        403: Caller is not on the organizer team
        404: Event, volunteer, or registration not found
    """
    try:
        registration = event_service.mark_attendance(
            guid, ctx.user_id, user_guid, body.has_attended
        )

        return RegistrationEnvelope(
            message="Attendance updated",
            data=_registration_response(registration),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    except Exception as e:
        logger.error(f"Error marking attendance for event {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update attendance",
        )
