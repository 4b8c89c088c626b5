"""User model: front-desk staff accounts."""

from datetime import datetime

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from frontdesk.database import Base, TimestampMixin, UUIDPrimaryKeyMixin

ROLES = ("admin", "manager", "staff")


class User(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """Staff account for the hotel front desk.

    Emails are stored lower-cased. ``role`` gates reporting and archival; it
    is always read from this row, never trusted from a token.
    """

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="staff", nullable=False)
    last_login_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"
