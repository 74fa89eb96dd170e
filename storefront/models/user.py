from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """Buyer identity; registration / login live outside the order engine."""

    __tablename__ = "users"

    id: int | None = Field(default=None, primary_key=True)
    email: str = Field(unique=True, index=True)
    full_name: str = ""
    phone: str | None = None
    is_banned: bool = False
    created_at: datetime | None = Field(default_factory=lambda: datetime.now(timezone.utc))
