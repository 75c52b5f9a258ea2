import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class Community(Base):
    __tablename__ = "communities"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class CommunityRole(Base):
    __tablename__ = "community_roles"
    __table_args__ = (
        UniqueConstraint("community_id", "name", name="uq_community_roles_community_id_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    community_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("communities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)

    # One column per CommunityPermission flag
    can_create_species: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_create_character: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_create_orphaned_character: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_edit_character: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_edit_own_character: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_edit_character_registry: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_edit_own_character_registry: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_edit_species: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_create_invite_code: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_list_invite_codes: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_create_role: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_edit_role: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_remove_community_member: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_manage_member_roles: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_manage_items: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_grant_items: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_upload_own_character_images: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_upload_character_images: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    can_moderate_images: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class CommunityMember(Base):
    __tablename__ = "community_members"
    __table_args__ = (
        UniqueConstraint("user_id", "role_id", name="uq_community_members_user_id_role_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("community_roles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )


class CommunityInvitation(Base):
    __tablename__ = "community_invitations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    community_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("communities.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    role_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("community_roles.id", ondelete="CASCADE"),
        nullable=False,
    )
    inviter_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    invitee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    accepted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    declined_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
