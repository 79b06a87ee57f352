"""Field mapping from CREST documents to typed records.

CREST documents carry more than the service stores (hrefs, portraits, logos). The mapping
functions pick the fields used by the persistence layer and the location cache.
"""

from typing import Any, Mapping, Optional
from pydantic import BaseModel


class IdentityRecord(BaseModel):
    """Canonical identity returned by the SSO verify endpoint."""

    character_id: int
    character_name: str
    owner_hash: str


class CorporationData(BaseModel):
    id: int
    name: str
    is_npc: bool = False


class AllianceData(BaseModel):
    id: int
    name: str


class CharacterData(BaseModel):
    """
    Character record built from the CREST character endpoint.

    owner_hash and the token pair are attached by the login flow after identity verification.
    """

    id: int
    name: str
    owner_hash: Optional[str] = None
    crest_access_token: Optional[str] = None
    crest_refresh_token: Optional[str] = None


class CharacterBundle(BaseModel):
    """Everything one walk to the character endpoint yields."""

    character: Optional[CharacterData] = None
    corporation: Optional[CorporationData] = None
    alliance: Optional[AllianceData] = None


class SystemData(BaseModel):
    id: int
    name: str


class StationData(BaseModel):
    id: int
    name: str


class CharacterLocation(BaseModel):
    system: Optional[SystemData] = None
    station: Optional[StationData] = None
    timeout: bool = False


def map_identity(data: Mapping[str, Any]) -> IdentityRecord:
    return IdentityRecord(
        character_id=data["CharacterID"],
        character_name=data["CharacterName"],
        owner_hash=data["CharacterOwnerHash"],
    )


def map_character(data: Mapping[str, Any]) -> CharacterData:
    return CharacterData(id=data["id"], name=data["name"])


def map_corporation(data: Mapping[str, Any]) -> CorporationData:
    return CorporationData(
        id=data["id"], name=data["name"], is_npc=bool(data.get("isNPC", False))
    )


def map_alliance(data: Mapping[str, Any]) -> AllianceData:
    return AllianceData(id=data["id"], name=data["name"])


def map_system(data: Mapping[str, Any]) -> SystemData:
    return SystemData(id=data["id"], name=data["name"])


def map_station(data: Mapping[str, Any]) -> StationData:
    return StationData(id=data["id"], name=data["name"])
