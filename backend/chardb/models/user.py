import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    username: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )
    email: Mapped[str | None] = mapped_column(String(255), unique=True)

    # Global permission flags
    is_admin: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    can_create_community: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    can_list_users: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    can_list_invite_codes: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    can_create_invite_code: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )
    can_grant_global_permissions: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="false"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
