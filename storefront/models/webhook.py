from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class WebhookEvent(SQLModel, table=True):
    """One row per gateway event id; the unique index makes re-deliveries cheap to detect."""

    __tablename__ = "webhook_events"

    id: int | None = Field(default=None, primary_key=True)
    event_id: str = Field(unique=True, index=True, max_length=255)
    event_type: str = Field(max_length=128)
    order_id: str | None = Field(default=None, index=True, max_length=32)
    outcome: str = Field(max_length=16)  # applied | duplicate | ignored | escalated
    received_at: datetime | None = Field(default_factory=lambda: datetime.now(timezone.utc))
