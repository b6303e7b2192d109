"""
Calendar API endpoints.

Provides endpoints for:
- Projected calendar entries for a date range (volunteer or organizer view)
- Calendar statistics per entry status
- Event details with the caller's registration and organizer flags
- Bookmark status, add and remove

Design:
- Recurring events are expanded into virtual occurrences per request;
  nothing is persisted by reading the calendar
- Registered and organized events are always on the calendar and cannot
  be bookmarked
- Query datetimes may carry an offset; they are converted to naive UTC
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status

from backend.src.api.dependencies import get_calendar_service
from backend.src.middleware.auth import UserContext, require_auth
from backend.src.schemas.calendar import (
    CalendarActionResponse,
    CalendarEntry,
    CalendarEventDetails,
    CalendarEventDetailsResponse,
    CalendarEventsResponse,
    CalendarRole,
    CalendarStats,
    CalendarStatsResponse,
    CalendarStatus,
    CalendarStatusResponse,
    RegistrationDetails,
)
from backend.src.schemas.event import EventResponse
from backend.src.services.calendar_service import CalendarService
from backend.src.services.event_service import build_event_response
from backend.src.services.exceptions import (
    NotFoundError,
    PreconditionFailedError,
    ValidationError,
)
from backend.src.utils.formatting import to_naive_utc
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/calendar",
    tags=["Calendar"],
)


# ============================================================================
# Calendar Views
# ============================================================================


@router.get(
    "",
    response_model=CalendarEventsResponse,
    summary="Get calendar entries",
    description="Get the caller's calendar for a date range, with recurring events expanded",
)
async def get_calendar(
    start: datetime = Query(..., description="Range start (ISO 8601)"),
    end: datetime = Query(..., description="Range end (ISO 8601)"),
    role: CalendarRole = Query(default=CalendarRole.VOLUNTEER, description="Calendar viewpoint"),
    ctx: UserContext = Depends(require_auth),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> CalendarEventsResponse:
    """
    Get calendar entries for [start, end].

    Query Parameters:
        start: Range start
        end: Range end
        role: volunteer (registrations) or organizer (created/organized events)

    Raises:
        400: start after end

    Example:
        GET /api/calendar?start=2024-01-10T00:00:00Z&end=2024-01-31T23:59:59Z

        Response data (weekly Monday series from 2024-01-01):
        [
          {"id": "evt_..._recurring_0", "start": "2024-01-15T09:00:00Z", ...},
          {"id": "evt_..._recurring_1", "start": "2024-01-22T09:00:00Z", ...},
          {"id": "evt_..._recurring_2", "start": "2024-01-29T09:00:00Z", ...}
        ]
    """
    try:
        entries = calendar_service.get_calendar_events(
            ctx.user_id, to_naive_utc(start), to_naive_utc(end), role.value
        )

        logger.info(
            "Retrieved calendar",
            extra={"role": role.value, "entries": len(entries)}
        )

        return CalendarEventsResponse(
            message=f"Found {len(entries)} calendar entries",
            data=[CalendarEntry(**entry) for entry in entries],
        )

    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except Exception as e:
        logger.error(f"Error getting calendar: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve calendar",
        )


@router.get(
    "/stats",
    response_model=CalendarStatsResponse,
    summary="Get calendar statistics",
    description="Count the caller's calendar entries per status for a date range",
)
async def get_calendar_stats(
    start: datetime = Query(..., description="Range start (ISO 8601)"),
    end: datetime = Query(..., description="Range end (ISO 8601)"),
    role: CalendarRole = Query(default=CalendarRole.VOLUNTEER, description="Calendar viewpoint"),
    ctx: UserContext = Depends(require_auth),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> CalendarStatsResponse:
    """Count calendar entries per status (total, upcoming, attended, missed, created)."""
    try:
        stats = calendar_service.get_calendar_stats(
            ctx.user_id, to_naive_utc(start), to_naive_utc(end), role.value
        )

        return CalendarStatsResponse(
            message="Calendar statistics computed",
            data=CalendarStats(**stats),
        )

    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except Exception as e:
        logger.error(f"Error getting calendar stats: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute calendar statistics",
        )


@router.get(
    "/events/{guid}",
    response_model=CalendarEventDetailsResponse,
    summary="Get calendar event details",
    description="Get an event with the caller's registration and organizer flags",
)
async def get_calendar_event_details(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> CalendarEventDetailsResponse:
    """
    Get event details for the calendar.

    Raises:
        404: Event not found
    """
    try:
        event, is_registered, is_organizer, registration = calendar_service.get_event_details(
            guid, ctx.user_id
        )

        return CalendarEventDetailsResponse(
            message="Event details retrieved",
            data=CalendarEventDetails(
                event=EventResponse(**build_event_response(event)),
                is_registered=is_registered,
                is_organizer=is_organizer,
                registration=(
                    RegistrationDetails.model_validate(registration) if registration else None
                ),
            ),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except Exception as e:
        logger.error(f"Error getting calendar event {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve event details",
        )


# ============================================================================
# Bookmarks
# ============================================================================


@router.get(
    "/{guid}/status",
    response_model=CalendarStatusResponse,
    summary="Get calendar status of an event",
    description="Whether the event is on the caller's calendar and can be added or removed",
)
async def get_calendar_status(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> CalendarStatusResponse:
    """
    Get bookmark status flags.

    Raises:
        404: Event not found
    """
    try:
        flags = calendar_service.get_bookmark_status(guid, ctx.user_id)

        return CalendarStatusResponse(
            message="Calendar status retrieved",
            data=CalendarStatus(**flags),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except Exception as e:
        logger.error(f"Error getting calendar status for {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve calendar status",
        )


@router.post(
    "/{guid}",
    response_model=CalendarActionResponse,
    summary="Add event to calendar",
    description="Bookmark an event the caller neither registered for nor organizes",
)
async def add_to_calendar(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> CalendarActionResponse:
    """
    Add a calendar bookmark.

    Raises:
        400: Event is registered, organized, or already bookmarked
        404: Event not found
    """
    try:
        flags = calendar_service.add_bookmark(guid, ctx.user_id)

        return CalendarActionResponse(
            message="Event added to calendar",
            data=CalendarStatus(**flags),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PreconditionFailedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except Exception as e:
        logger.error(f"Error adding {guid} to calendar: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to add event to calendar",
        )


@router.delete(
    "/{guid}",
    response_model=CalendarActionResponse,
    summary="Remove event from calendar",
    description="Remove a calendar bookmark",
)
async def remove_from_calendar(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    calendar_service: CalendarService = Depends(get_calendar_service),
) -> CalendarActionResponse:
    """
    Remove a calendar bookmark.

    Raises:
        400: Event is registered or organized
        404: Event not found, or not bookmarked
    """
    try:
        flags = calendar_service.remove_bookmark(guid, ctx.user_id)

        return CalendarActionResponse(
            message="Event removed from calendar",
            data=CalendarStatus(**flags),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PreconditionFailedError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except Exception as e:
        logger.error(f"Error removing {guid} from calendar: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove event from calendar",
        )
