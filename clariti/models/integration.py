"""
Integration model - one connected account per (user, provider)
"""
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Boolean, ForeignKey, Enum, JSON,
    UniqueConstraint,
)
from clariti.database import Base
from clariti.models.task import TaskSource
from clariti.utils.helpers import utcnow
import enum


class IntegrationProvider(str, enum.Enum):
    CANVAS = "canvas"
    GOOGLE = "google"
    SLACK = "slack"


# A Google account feeds both Gmail and Calendar
PROVIDER_SOURCES = {
    IntegrationProvider.CANVAS: [TaskSource.CANVAS],
    IntegrationProvider.GOOGLE: [TaskSource.GMAIL, TaskSource.GOOGLE_CALENDAR],
    IntegrationProvider.SLACK: [TaskSource.SLACK],
}


def provider_for_source(source: TaskSource) -> IntegrationProvider:
    for provider, sources in PROVIDER_SOURCES.items():
        if source in sources:
            return provider
    raise ValueError(f"No provider owns source {source}")


class Integration(Base):
    __tablename__ = "integrations"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_integration_user_provider"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    provider = Column(Enum(IntegrationProvider, native_enum=False), nullable=False)
    is_connected = Column(Boolean, nullable=False, default=True)

    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    # Provider-specific settings, e.g. {"canvasUrl": "..."}
    integration_metadata = Column("metadata", JSON, nullable=True)

    last_synced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
