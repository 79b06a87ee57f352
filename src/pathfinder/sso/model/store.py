"""Repository used by the login flow.

Wraps the async session factory so that the login flow deals in EVE ids and mapped CREST data
rather than statements, and so that it can be replaced with a mock in tests.
"""

from datetime import datetime, timezone
import logging
from typing import Optional
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import (
    async_sessionmaker,
    AsyncSession,
)
from ulid import ULID

from pathfinder.sso.ccp.mapper import CharacterBundle, CharacterLocation
from pathfinder.sso.model.character import (
    Character,
    upsert_alliance_stmt,
    upsert_character_log_stmt,
    upsert_character_stmt,
    upsert_corporation_stmt,
)
from pathfinder.sso.model.user import User, UserCharacter, upsert_user_character_stmt

logger = logging.getLogger(__name__)


class CharacterStore:
    def __init__(self, database_session_maker: async_sessionmaker[AsyncSession]) -> None:
        self._database_session_maker = database_session_maker

    async def save_character_data(self, bundle: CharacterBundle) -> Optional[Character]:
        """
        Upsert the corporation, alliance and character of a login in one transaction.

        Returns:
            The stored character, or None when the bundle has no character

        Raises:
            NoResultFound: The character upsert returned no row. The transaction is rolled back.
        """
        if bundle.character is None:
            return None

        now = datetime.now(timezone.utc)

        async with self._database_session_maker() as database_session:
            async with database_session.begin():
                if bundle.corporation is not None:
                    await database_session.execute(
                        upsert_corporation_stmt(bundle.corporation, now)
                    )

                if bundle.alliance is not None:
                    await database_session.execute(
                        upsert_alliance_stmt(bundle.alliance, now)
                    )

                character_id_result = await database_session.execute(
                    upsert_character_stmt(
                        bundle.character,
                        bundle.corporation.id if bundle.corporation else None,
                        bundle.alliance.id if bundle.alliance else None,
                        now,
                    )
                )
                character_id = character_id_result.scalars().one()

                character: Optional[Character] = (
                    await database_session.scalars(
                        select(Character).where(Character.id == character_id)
                    )
                ).first()

        return character

    async def get_character(self, character_id: int) -> Optional[Character]:
        async with self._database_session_maker() as database_session:
            return (
                await database_session.scalars(
                    select(Character).where(Character.id == character_id)
                )
            ).first()

    async def update_log(self, character_id: int, location: CharacterLocation) -> None:
        """Store the location snapshot. Timed out lookups leave the previous snapshot alone."""
        if location.timeout:
            return
        now = datetime.now(timezone.utc)
        async with self._database_session_maker() as database_session:
            async with database_session.begin():
                await database_session.execute(
                    upsert_character_log_stmt(character_id, location, now)
                )

    async def update_tokens(
        self, character_id: int, access_token: str, refresh_token: str
    ) -> None:
        now = datetime.now(timezone.utc)
        async with self._database_session_maker() as database_session:
            async with database_session.begin():
                await database_session.execute(
                    update(Character)
                    .where(Character.id == character_id)
                    .values(
                        crest_access_token=access_token,
                        crest_refresh_token=refresh_token,
                        updated_at=now,
                    )
                )

    async def get_user_guid(self, character_id: int) -> Optional[str]:
        async with self._database_session_maker() as database_session:
            return (
                await database_session.scalars(
                    select(UserCharacter.user_guid).where(
                        UserCharacter.character_id == character_id
                    )
                )
            ).first()

    async def create_user(self, name: str) -> str:
        guid = str(ULID())
        async with self._database_session_maker() as database_session:
            async with database_session.begin():
                database_session.add(
                    User(guid=guid, name=name, created_at=datetime.now(timezone.utc))
                )
        logger.info("Created user %s for character %s", guid, name)
        return guid

    async def link_user_character(self, character_id: int, user_guid: str) -> None:
        now = datetime.now(timezone.utc)
        async with self._database_session_maker() as database_session:
            async with database_session.begin():
                await database_session.execute(
                    upsert_user_character_stmt(character_id, user_guid, now)
                )
