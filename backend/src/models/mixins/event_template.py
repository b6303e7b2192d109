"""
Event template mixin.

Columns shared by Event and RecurringSeries. A recurring series stores the
template once; every materialized instance receives a copy of these columns
at creation time, so later edits to the series never rewrite past events.
"""

from sqlalchemy import Column, Integer, String, Boolean, Float, Text, JSON
from sqlalchemy.dialects.postgresql import JSONB


# Columns copied from a series onto each materialized instance
TEMPLATE_FIELDS = (
    "title",
    "description",
    "location",
    "map_address",
    "map_lat",
    "map_lng",
    "event_type",
    "max_volunteers",
    "unlimited_volunteers",
    "instructions",
    "group_registration",
    "equipment_needed",
    "water_provided",
    "medical_support",
    "age_group",
    "precautions",
    "public_transport",
    "contact_person",
)


class EventTemplateMixin:
    """
    Descriptive and questionnaire attributes of an event.

    Attributes:
        title: Event title
        description: Event description
        location: Free-text location
        map_address, map_lat, map_lng: Geocoded map location
        event_type: Event type label (e.g., "beach cleanup")
        max_volunteers: Volunteer capacity (ignored when unlimited_volunteers)
        unlimited_volunteers: Whether capacity is unlimited
        instructions: Instructions for volunteers
        group_registration: Whether group registration is allowed
        equipment_needed: List of equipment names
        water_provided, medical_support, age_group, precautions,
        public_transport, contact_person: Questionnaire defaults
    """

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    location = Column(String(500), nullable=True)

    map_address = Column(String(500), nullable=True)
    map_lat = Column(Float, nullable=True)
    map_lng = Column(Float, nullable=True)

    event_type = Column(String(100), nullable=True)
    max_volunteers = Column(Integer, nullable=True)
    unlimited_volunteers = Column(Boolean, default=False, nullable=False)
    instructions = Column(Text, nullable=True)
    group_registration = Column(Boolean, default=False, nullable=False)
    equipment_needed = Column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=True,
    )

    # Questionnaire defaults
    water_provided = Column(Boolean, default=False, nullable=False)
    medical_support = Column(Boolean, default=False, nullable=False)
    age_group = Column(String(100), nullable=True)
    precautions = Column(Text, nullable=True)
    public_transport = Column(Text, nullable=True)
    contact_person = Column(String(255), nullable=True)

    def template_values(self) -> dict:
        """Return the template columns as a dict suitable for a new Event."""
        values = {field: getattr(self, field) for field in TEMPLATE_FIELDS}
        values["equipment_needed"] = list(self.equipment_needed or [])
        return values
