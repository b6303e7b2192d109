"""
Recurring series API endpoints.

Provides endpoints for:
- Materializing the next instance of a series
- Listing the caller's series
- Getting series details with instances
- Changing series status (cascades onto future instances)
- Cancelling a series (soft delete)
- Recomputing series statistics
- Scheduling AI summaries for instances without one

Design:
- Only the series owner (creator) may act on a series
- All endpoints use GUID format (ser_xxx) for identifiers
- Responses use the {success, message, data} envelope
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter
from slowapi.util import get_remote_address

from backend.src.api.dependencies import get_series_service
from backend.src.middleware.auth import UserContext, require_auth
from backend.src.models import Event, RecurringSeries
from backend.src.schemas.event import EventResponse
from backend.src.schemas.recurring_series import (
    NextInstanceResponse,
    RecurringSeriesResponse,
    SeriesDetailData,
    SeriesDetailResponse,
    SeriesEnvelope,
    SeriesListResponse,
    SeriesStatsData,
    SeriesStatsResponse,
    SeriesStatusData,
    SeriesStatusResponse,
    SeriesStatusUpdate,
)
from backend.src.services.event_service import build_event_response
from backend.src.services.exceptions import (
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    PreconditionFailedError,
    ValidationError,
)
from backend.src.services.recurring_series_service import RecurringSeriesService
from backend.src.utils.logging_config import get_logger


logger = get_logger("api")

router = APIRouter(
    prefix="/series",
    tags=["Recurring Series"],
)

# Rate limiter for endpoints that call the AI summary endpoint
limiter = Limiter(key_func=get_remote_address)


def _series_response(series: RecurringSeries) -> RecurringSeriesResponse:
    return RecurringSeriesResponse.model_validate(series)


def _instance_responses(instances: List[Event]) -> List[EventResponse]:
    return [EventResponse(**build_event_response(event)) for event in instances]


# ============================================================================
# API Endpoints
# ============================================================================


@router.post(
    "/{guid}/next-instance",
    response_model=NextInstanceResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create next series instance",
    description="Materialize the next occurrence of a recurring series",
)
async def create_next_instance(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> NextInstanceResponse:
    """
    Materialize the next instance of a series.

    The new instance starts on the next occurrence after the latest
    instance and keeps its duration.

    Raises:
        400: Series not active, instance cap reached, or series ended
        403: Caller does not own the series
        404: Series or prior instance not found
        409: Instance was materialized concurrently
    """
    try:
        event = series_service.create_next_instance(guid, ctx.user_id)

        logger.info(f"Created next instance {event.guid} for series {guid}")

        return NextInstanceResponse(
            message="Next instance created",
            data=EventResponse(**build_event_response(event)),
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
        logger.error(f"Error creating next instance for series {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create next instance",
        )


@router.get(
    "/mine",
    response_model=SeriesListResponse,
    summary="List my series",
    description="List recurring series created by the caller, newest first",
)
async def list_my_series(
    ctx: UserContext = Depends(require_auth),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesListResponse:
    """List the caller's series ordered by creation time, newest first."""
    try:
        series_list = series_service.list_for_user(ctx.user_id)

        return SeriesListResponse(
            message=f"Found {len(series_list)} series",
            data=[_series_response(series) for series in series_list],
        )

    except Exception as e:
        logger.error(f"Error listing series: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list series",
        )


@router.get(
    "/{guid}",
    response_model=SeriesDetailResponse,
    summary="Get series details",
    description="Get a series with its instances ordered by instance number",
)
async def get_series(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesDetailResponse:
    """
    Get series details.

    Raises:
        403: Caller does not own the series
        404: Series not found
    """
    try:
        series, instances = series_service.get_details(guid, ctx.user_id)

        return SeriesDetailResponse(
            message="Series retrieved",
            data=SeriesDetailData(
                series=_series_response(series),
                instances=_instance_responses(instances),
            ),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    except Exception as e:
        logger.error(f"Error getting series {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to retrieve series",
        )


@router.patch(
    "/{guid}/status",
    response_model=SeriesStatusResponse,
    summary="Update series status",
    description="Set series status and cascade it onto future instances",
)
async def update_series_status(
    guid: str,
    body: SeriesStatusUpdate,
    ctx: UserContext = Depends(require_auth),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesStatusResponse:
    """
    Update series status.

    Request Body:
        status: active, paused, completed, or cancelled

    Raises:
        400: Invalid status
        403: Caller does not own the series
        404: Series not found

    Example:
        PATCH /api/series/ser_01hgw2bbg0000000000000001/status
        {"status": "paused"}
    """
    try:
        series, updated = series_service.update_status(guid, ctx.user_id, body.status.value)

        return SeriesStatusResponse(
            message=f"Series status updated to {series.status}",
            data=SeriesStatusData(
                series=_series_response(series),
                updated_instances=updated,
            ),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)

    except Exception as e:
        logger.error(f"Error updating status of series {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update series status",
        )


@router.delete(
    "/{guid}",
    response_model=SeriesEnvelope,
    summary="Cancel series",
    description="Soft delete a series by cancelling it and its future instances",
)
async def cancel_series(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesEnvelope:
    """
    Cancel a series. Past instances are kept unchanged.

    Raises:
        403: Caller does not own the series
        404: Series not found
    """
    try:
        series = series_service.cancel(guid, ctx.user_id)

        logger.info(f"Cancelled series: {guid}")

        return SeriesEnvelope(
            message="Series cancelled",
            data=_series_response(series),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    except Exception as e:
        logger.error(f"Error cancelling series {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to cancel series",
        )


@router.get(
    "/{guid}/stats",
    response_model=SeriesStatsResponse,
    summary="Get series statistics",
    description="Recompute and return series statistics",
)
async def get_series_stats(
    guid: str,
    ctx: UserContext = Depends(require_auth),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesStatsResponse:
    """
    Recompute series statistics from its instances and registrations.

    Raises:
        403: Caller does not own the series
        404: Series not found

    Example:
        GET /api/series/ser_01hgw2bbg0000000000000001/stats

        Response data:
        {
          "total_instances": 4,
          "completed_instances": 3,
          "upcoming_instances": 1,
          "total_registrations": 12,
          "total_attendances": 9,
          "average_attendance": 3.0,
          "instances": [...]
        }
    """
    try:
        stats, instances = series_service.get_stats(guid, ctx.user_id)

        return SeriesStatsResponse(
            message="Series statistics computed",
            data=SeriesStatsData(**stats, instances=_instance_responses(instances)),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    except Exception as e:
        logger.error(f"Error computing stats for series {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to compute series statistics",
        )


@router.post(
    "/{guid}/generate-summaries",
    response_model=SeriesEnvelope,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Generate missing AI summaries",
    description="Schedule AI summaries for series instances that have none",
)
@limiter.limit("10/minute")
async def generate_series_summaries(
    request: Request,  # Required for rate limiter
    guid: str,
    ctx: UserContext = Depends(require_auth),
    series_service: RecurringSeriesService = Depends(get_series_service),
) -> SeriesEnvelope:
    """
    Schedule AI summary backfill. Work runs after the response is sent.

    Raises:
        403: Caller does not own the series
        404: Series not found
    """
    try:
        series = series_service.request_summary_backfill(guid, ctx.user_id)

        return SeriesEnvelope(
            message="AI summary generation scheduled",
            data=_series_response(series),
        )

    except NotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)

    except PermissionDeniedError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)

    except Exception as e:
        logger.error(f"Error scheduling summaries for series {guid}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to schedule summary generation",
        )
