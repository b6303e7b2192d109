"""
Shared FastAPI dependencies for API routers.

Provides service factories and the request-scoped summary dispatcher that
defers AI summary work to FastAPI background tasks, so summary calls never
block or fail a request.
"""

from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from backend.src.db.database import get_db
from backend.src.services.calendar_service import CalendarService
from backend.src.services.event_service import EventService
from backend.src.services.recurring_series_service import RecurringSeriesService
from backend.src.services.summary_service import (
    SummaryDispatcher,
    backfill_series_summaries,
    generate_event_summary,
)


class BackgroundTaskSummaryDispatcher(SummaryDispatcher):
    """Queues summary work on the response's background tasks."""

    def __init__(self, background_tasks: BackgroundTasks):
        self.background_tasks = background_tasks

    def dispatch(self, event_id: int) -> None:
        self.background_tasks.add_task(generate_event_summary, event_id)

    def dispatch_backfill(self, series_id: int) -> None:
        self.background_tasks.add_task(backfill_series_summaries, series_id)


def get_summary_dispatcher(background_tasks: BackgroundTasks) -> SummaryDispatcher:
    """Create the summary dispatcher for the current request."""
    return BackgroundTaskSummaryDispatcher(background_tasks)


def get_series_service(
    db: Session = Depends(get_db),
    dispatcher: SummaryDispatcher = Depends(get_summary_dispatcher),
) -> RecurringSeriesService:
    """Create RecurringSeriesService instance with database session."""
    return RecurringSeriesService(db=db, dispatcher=dispatcher)


def get_event_service(
    db: Session = Depends(get_db),
    dispatcher: SummaryDispatcher = Depends(get_summary_dispatcher),
) -> EventService:
    """Create EventService instance with database session."""
    return EventService(db=db, dispatcher=dispatcher)


def get_calendar_service(db: Session = Depends(get_db)) -> CalendarService:
    """Create CalendarService instance with database session."""
    return CalendarService(db=db)
