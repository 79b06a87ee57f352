"""User accounts and their characters.

A user is created on the first login of a character that is not linked to anyone yet. Characters
added while a session is active are linked to the session's user instead.
"""

from datetime import datetime
from sqlalchemy import DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import insert

from pathfinder.sso.model.base import Base, eveid, guidpk, str255, str512


class User(Base):
    __tablename__ = "users"

    guid: Mapped[guidpk]
    name: Mapped[str255]
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class UserCharacter(Base):
    """Link between a character and the user that owns it. A character has at most one user."""

    __tablename__ = "user_characters"

    character_id: Mapped[eveid] = mapped_column(
        ForeignKey("characters.id"), primary_key=True
    )
    user_guid: Mapped[str512] = mapped_column(
        ForeignKey("users.guid"), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_user_characters_user_guid", "user_guid"),)


def upsert_user_character_stmt(character_id: int, user_guid: str, now: datetime):
    """Link a character to a user, moving it if it belonged to another user."""
    return (
        insert(UserCharacter)
        .values(
            [{"character_id": character_id, "user_guid": user_guid, "updated_at": now}]
        )
        .on_conflict_do_update(
            index_elements=["character_id"],
            set_={"user_guid": user_guid, "updated_at": now},
        )
    )
