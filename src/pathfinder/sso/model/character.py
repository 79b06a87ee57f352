"""EVE Online entity models.

Characters, corporations and alliances are keyed by their EVE ids and are written with upserts,
so a login either creates the record or refreshes it in place.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy import BigInteger, Boolean, DateTime, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import insert

from pathfinder.sso.ccp.mapper import (
    AllianceData,
    CharacterData,
    CharacterLocation,
    CorporationData,
)
from pathfinder.sso.model.base import Base, eveid, str255


class Corporation(Base):
    __tablename__ = "corporations"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str255]
    is_npc: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Alliance(Base):
    __tablename__ = "alliances"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str255]
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


class Character(Base):
    """
    A character that logged in at least once.

    The CREST token pair is replaced on every login; the owner hash identifies the account that
    authorized it.
    """

    __tablename__ = "characters"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    name: Mapped[str255]
    owner_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    crest_access_token: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    crest_refresh_token: Mapped[Optional[str]] = mapped_column(String(2048), nullable=True)
    corporation_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("corporations.id"), nullable=True
    )
    alliance_id: Mapped[Optional[int]] = mapped_column(
        BigInteger, ForeignKey("alliances.id"), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (Index("idx_characters_owner_hash", "owner_hash"),)


class CharacterLog(Base):
    """Last known location of a character."""

    __tablename__ = "character_logs"

    character_id: Mapped[eveid] = mapped_column(
        ForeignKey("characters.id"), primary_key=True
    )
    system_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    system_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    station_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    station_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def upsert_corporation_stmt(corporation: CorporationData, now: datetime):
    values = {"name": corporation.name, "is_npc": corporation.is_npc, "updated_at": now}
    return (
        insert(Corporation)
        .values([{"id": corporation.id, **values}])
        .on_conflict_do_update(index_elements=["id"], set_=values)
    )


def upsert_alliance_stmt(alliance: AllianceData, now: datetime):
    values = {"name": alliance.name, "updated_at": now}
    return (
        insert(Alliance)
        .values([{"id": alliance.id, **values}])
        .on_conflict_do_update(index_elements=["id"], set_=values)
    )


def upsert_character_stmt(
    character: CharacterData,
    corporation_id: Optional[int],
    alliance_id: Optional[int],
    now: datetime,
):
    """
    Create PostgreSQL upsert statement for character records.

    Corporation and alliance links are always overwritten, so a character that left its
    corporation or alliance loses the old reference. Returns the character id.
    """
    values = {
        "name": character.name,
        "owner_hash": character.owner_hash,
        "crest_access_token": character.crest_access_token,
        "crest_refresh_token": character.crest_refresh_token,
        "corporation_id": corporation_id,
        "alliance_id": alliance_id,
        "updated_at": now,
    }
    return (
        insert(Character)
        .values([{"id": character.id, **values}])
        .on_conflict_do_update(index_elements=["id"], set_=values)
        .returning(Character.id)
    )


def upsert_character_log_stmt(
    character_id: int, location: CharacterLocation, now: datetime
):
    values = {
        "system_id": location.system.id if location.system else None,
        "system_name": location.system.name if location.system else None,
        "station_id": location.station.id if location.station else None,
        "station_name": location.station.name if location.station else None,
        "updated_at": now,
    }
    return (
        insert(CharacterLog)
        .values([{"character_id": character_id, **values}])
        .on_conflict_do_update(index_elements=["character_id"], set_=values)
    )
