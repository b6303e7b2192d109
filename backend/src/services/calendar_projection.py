"""
Calendar projection of recurring events.

Expands events carrying recurrence metadata into virtual occurrences inside
a queried date range. Nothing here touches the database: inputs and outputs
are calendar entry dicts built by CalendarService.

A calendar entry has at least:
    id, start, end, recurring_event, recurring_type, recurring_value,
    recurring_series_id

A virtual occurrence is a copy of its base entry with:
    id = "<base id>_recurring_<index>", start, end,
    is_recurring_instance=True, original_event_id, recurring_index,
    recurring_pattern = "<type> - <value>"
"""

from datetime import datetime, timedelta
from typing import Any, Dict, List

from backend.src.models.event import RecurringType
from backend.src.services.recurrence import add_months
from backend.src.utils.logging_config import get_logger


logger = get_logger("services")

# Loop-safety bound on steps walked for one base event
MAX_PROJECTION_STEPS = 52


def has_full_recurrence(entry: Dict[str, Any]) -> bool:
    """True when an entry carries a complete recurrence rule."""
    return bool(
        entry.get("recurring_event")
        and entry.get("recurring_type")
        and entry.get("recurring_value")
    )


def _occurrence_start(anchor: datetime, recurring_type: str, step: int) -> datetime:
    if recurring_type == RecurringType.WEEKLY.value:
        return anchor + timedelta(weeks=step)
    # Offsets are taken from the anchor so a month-end anchor does not drift
    return add_months(anchor, step)


def generate_recurring_instances(
    base_event: Dict[str, Any],
    start: datetime,
    end: datetime,
) -> List[Dict[str, Any]]:
    """
    Expand one recurring entry into virtual occurrences within [start, end].

    Walks forward from the base entry's own start in weekly or monthly steps
    and stops once a step passes ``end`` or MAX_PROJECTION_STEPS steps have
    been walked. Steps before ``start`` are walked but not emitted; the
    occurrence index counts emitted occurrences only.

    Args:
        base_event: Calendar entry with recurrence metadata
        start: Range start (inclusive)
        end: Range end (inclusive)

    Returns:
        List of virtual occurrence dicts (possibly empty)
    """
    recurring_type = base_event.get("recurring_type")
    if recurring_type not in (RecurringType.WEEKLY.value, RecurringType.MONTHLY.value):
        logger.warning(
            "Skipping projection for unknown recurring type",
            extra={"event_id": base_event.get("id"), "recurring_type": recurring_type}
        )
        return []

    anchor = base_event["start"]
    duration = base_event["end"] - anchor
    pattern = f"{recurring_type} - {base_event.get('recurring_value')}"

    occurrences = []
    for step in range(MAX_PROJECTION_STEPS):
        occurrence_start = _occurrence_start(anchor, recurring_type, step)
        if occurrence_start > end:
            break
        if occurrence_start < start:
            continue

        index = len(occurrences)
        occurrences.append({
            **base_event,
            "id": f"{base_event['id']}_recurring_{index}",
            "start": occurrence_start,
            "end": occurrence_start + duration,
            "is_recurring_instance": True,
            "original_event_id": base_event["id"],
            "recurring_index": index,
            "recurring_pattern": pattern,
        })

    return occurrences


def process_recurring_events(
    events: List[Dict[str, Any]],
    start: datetime,
    end: datetime,
) -> List[Dict[str, Any]]:
    """
    Replace recurring entries by their virtual occurrences.

    Entries with full recurrence metadata never appear verbatim in the
    output, only their occurrences do. Other entries pass through unchanged.
    Several stored instances of the same series project onto the same
    slots; only the first occurrence per (series, start) is kept.

    Args:
        events: Calendar entries, earliest anchors first
        start: Range start (inclusive)
        end: Range end (inclusive)

    Returns:
        Processed entry list
    """
    processed = []
    seen_slots = set()

    for entry in events:
        if not has_full_recurrence(entry):
            processed.append(entry)
            continue

        series_key = entry.get("recurring_series_id") or entry["id"]
        for occurrence in generate_recurring_instances(entry, start, end):
            slot = (series_key, occurrence["start"])
            if slot in seen_slots:
                continue
            seen_slots.add(slot)
            processed.append(occurrence)

    return processed
