"""
AI summary generation for events.

Summaries are best-effort: they are produced out of band after an event is
created, a failure is logged and never reaches the caller, and an event is
fully usable without one.

Components:
- SummaryService: builds the prompt and calls an OpenRouter-compatible
  chat-completions endpoint with httpx
- generate_event_summary / backfill_series_summaries: background task
  entry points; each opens its own database session
- SummaryDispatcher: seam used by the recurring series service to schedule
  summary work without knowing how it is executed
"""

import time
from typing import Callable, Optional

import httpx
from sqlalchemy import or_
from sqlalchemy.orm import Session

from backend.src.config.settings import AppSettings, get_settings
from backend.src.db.database import SessionLocal
from backend.src.models import Event
from backend.src.services.exceptions import SummaryError
from backend.src.utils.logging_config import get_logger


logger = get_logger("tasks")


# ============================================================================
# Summary Service
# ============================================================================


class SummaryService:
    """
    Client for the AI summary endpoint.

    Usage:
        >>> service = SummaryService()
        >>> text = service.generate(SummaryService.build_prompt(event))
    """

    def __init__(
        self,
        settings: Optional[AppSettings] = None,
        client: Optional[httpx.Client] = None,
    ):
        """
        Initialize summary service.

        Args:
            settings: Application settings (defaults to get_settings())
            client: Optional preconfigured httpx client (tests inject a mock)
        """
        self.settings = settings or get_settings()
        self._client = client

    @property
    def enabled(self) -> bool:
        """Whether the endpoint is configured."""
        return self.settings.ai_summary_configured

    @staticmethod
    def build_prompt(event: Event) -> str:
        """
        Build the summary prompt for an event.

        Args:
            event: Event to summarize

        Returns:
            Prompt text
        """
        organizer = event.organization.name if event.organization else ""
        lines = [
            "Write a detailed, engaging, 150-word summary for this event, "
            "including what the event is about, its importance, and "
            "interesting facts about the location or event type if possible.",
            "",
            f"Event: {event.title}",
            f"Description: {event.description or ''}",
            f"Type: {event.event_type or ''}",
            f"Location: {event.location or ''}",
            f"Date: {event.start_datetime.isoformat()}",
            f"Organizer: {organizer}",
            f"Precautions: {event.precautions or ''}",
            f"Instructions: {event.instructions or ''}",
        ]
        if event.recurring_instance_number:
            lines.append(f"Recurring Instance: #{event.recurring_instance_number}")
        return "\n".join(lines)

    def generate(self, prompt: str) -> str:
        """
        Request a summary for a prompt.

        Args:
            prompt: Prompt text

        Returns:
            Generated summary text

        Raises:
            SummaryError: If the endpoint is not configured, unreachable,
                returns an error status, or returns no content
        """
        if not self.enabled:
            raise SummaryError("AI summary endpoint is not configured")

        headers = {
            "Authorization": f"Bearer {self.settings.ai_summary_api_key}",
            "Content-Type": "application/json",
            "X-Title": "Volunteer Hub Event Summary",
        }
        payload = {
            "model": self.settings.ai_summary_model,
            "messages": [{"role": "user", "content": prompt}],
        }

        client = self._client or httpx.Client(timeout=self.settings.ai_summary_timeout)
        try:
            response = client.post(
                self.settings.ai_summary_url,
                json=payload,
                headers=headers,
            )
        except httpx.TimeoutException as e:
            raise SummaryError(f"Summary request timed out: {e}")
        except httpx.HTTPError as e:
            raise SummaryError(f"Summary request failed: {e}")
        finally:
            if self._client is None:
                client.close()

        if response.status_code != 200:
            raise SummaryError(
                f"Summary endpoint returned HTTP {response.status_code}",
                status_code=response.status_code,
            )

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            raise SummaryError("Summary endpoint returned an unexpected payload")

        if not content or not content.strip():
            raise SummaryError("Summary endpoint returned an empty summary")

        return content.strip()

    def summarize_event(self, db: Session, event: Event) -> Optional[str]:
        """
        Generate and store the summary of one event.

        Failures are logged and swallowed.

        Returns:
            The stored summary, or None when generation failed
        """
        try:
            summary = self.generate(self.build_prompt(event))
        except SummaryError as e:
            logger.warning(
                f"Failed to generate AI summary for event {event.guid}: {e.message}",
                extra={"event_guid": event.guid, "status_code": e.status_code}
            )
            return None

        event.summary = summary
        db.commit()
        logger.info(
            f"AI summary generated for event {event.guid}",
            extra={"event_guid": event.guid, "instance": event.recurring_instance_number}
        )
        return summary


# ============================================================================
# Background Tasks
# ============================================================================


def generate_event_summary(
    event_id: int,
    session_factory: Callable[[], Session] = SessionLocal,
    service: Optional[SummaryService] = None,
) -> None:
    """
    Background task: generate the summary of one event.

    Runs after the response is sent, in its own session. Never raises.

    Args:
        event_id: Internal event ID
        session_factory: Session factory (tests pass their own)
        service: Optional SummaryService (defaults to a new one)
    """
    service = service or SummaryService()
    if not service.enabled:
        logger.warning(
            "AI summary skipped: endpoint not configured",
            extra={"event_id": event_id}
        )
        return

    db = session_factory()
    try:
        event = db.query(Event).filter(Event.id == event_id).first()
        if event is None:
            logger.warning(f"AI summary skipped: event {event_id} no longer exists")
            return
        service.summarize_event(db, event)
    except Exception as e:
        db.rollback()
        logger.error(f"AI summary task failed for event {event_id}: {e}", exc_info=True)
    finally:
        db.close()


def backfill_series_summaries(
    series_id: int,
    session_factory: Callable[[], Session] = SessionLocal,
    service: Optional[SummaryService] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> int:
    """
    Background task: generate summaries for series instances missing one.

    Instances are processed in instance-number order with a pause of
    settings.summary_backfill_delay seconds between requests.

    Args:
        series_id: Internal series ID
        session_factory: Session factory (tests pass their own)
        service: Optional SummaryService (defaults to a new one)
        sleep: Sleep function (tests pass a no-op)

    Returns:
        Number of summaries generated
    """
    service = service or SummaryService()
    if not service.enabled:
        logger.warning(
            "AI summary backfill skipped: endpoint not configured",
            extra={"series_id": series_id}
        )
        return 0

    generated = 0
    db = session_factory()
    try:
        instances = (
            db.query(Event)
            .filter(
                Event.recurring_series_id == series_id,
                or_(Event.summary.is_(None), Event.summary == ""),
            )
            .order_by(Event.recurring_instance_number)
            .all()
        )
        logger.info(
            f"Found {len(instances)} series instances without AI summaries",
            extra={"series_id": series_id}
        )

        for position, instance in enumerate(instances):
            if position > 0 and service.settings.summary_backfill_delay:
                sleep(service.settings.summary_backfill_delay)
            if service.summarize_event(db, instance) is not None:
                generated += 1

        logger.info(
            f"Completed AI summary backfill: {generated}/{len(instances)} generated",
            extra={"series_id": series_id}
        )
    except Exception as e:
        db.rollback()
        logger.error(f"AI summary backfill failed for series {series_id}: {e}", exc_info=True)
    finally:
        db.close()

    return generated


# ============================================================================
# Dispatchers
# ============================================================================


class SummaryDispatcher:
    """
    Schedules summary work. The base dispatcher discards every request.

    The API layer uses a BackgroundTasks-backed dispatcher; the CLI runs
    summaries inline.
    """

    def dispatch(self, event_id: int) -> None:
        """Schedule summary generation for one event."""
        logger.debug(f"Summary dispatch discarded for event {event_id}")

    def dispatch_backfill(self, series_id: int) -> None:
        """Schedule summary backfill for a series."""
        logger.debug(f"Summary backfill discarded for series {series_id}")


class InlineSummaryDispatcher(SummaryDispatcher):
    """Runs summary work immediately in the calling thread."""

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def dispatch(self, event_id: int) -> None:
        generate_event_summary(event_id, session_factory=self.session_factory)

    def dispatch_backfill(self, series_id: int) -> None:
        backfill_series_summaries(series_id, session_factory=self.session_factory)

