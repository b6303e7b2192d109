"""
Organization model.

Organizations (NGOs, clubs, community groups) host events and recurring
series.
"""

from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.orm import relationship

from backend.src.models import Base
from backend.src.models.mixins import GuidMixin


class Organization(Base, GuidMixin):
    """
    Hosting organization.

    Attributes:
        id: Primary key (internal, never exposed)
        guid: GUID string property (org_xxx, inherited from GuidMixin)
        name: Organization name
        description: Optional description
        created_at: Creation timestamp

    Relationships:
        events: Events hosted by the organization
        recurring_series: Recurring series hosted by the organization
    """

    __tablename__ = "organizations"

    GUID_PREFIX = "org"

    id = Column(Integer, primary_key=True, autoincrement=True)

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    events = relationship("Event", back_populates="organization")
    recurring_series = relationship("RecurringSeries", back_populates="organization")

    def __repr__(self) -> str:
        return f"<Organization(id={self.id}, name='{self.name}')>"
