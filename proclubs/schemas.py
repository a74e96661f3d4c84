"""
Pydantic schemas for API request/response models
Field names follow the JSON the frontend sends and reads (camelCase)
"""
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from typing import Optional
from datetime import datetime


class CamelModel(BaseModel):
    """Reads ORM attributes, serializes with camelCase keys"""

    class Config:
        from_attributes = True
        alias_generator = to_camel
        populate_by_name = True

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


# ===== REQUEST BODIES =====
# Fields are optional so missing values get the route's own 400 message

class ClubVoteRequest(BaseModel):
    clubId: Optional[str] = None
    platform: Optional[str] = None
    action: Optional[str] = None


class PlayerVoteRequest(BaseModel):
    playerId: Optional[str] = None
    action: Optional[str] = None


class PlayerClaimRequest(BaseModel):
    """Claim by matching the first linked console username"""
    playerName: Optional[str] = None
    platform: Optional[str] = None
    personaId: Optional[str] = None
    clubId: Optional[str] = None
    clubName: Optional[str] = None


class PersonaClaimRequest(BaseModel):
    """Claim by explicit console username + persona id"""
    platform: Optional[str] = None
    consoleUsername: Optional[str] = None
    playerName: Optional[str] = None
    personaId: Optional[str] = None
    clubId: Optional[str] = None
    clubName: Optional[str] = None


class BioUpdateRequest(BaseModel):
    playerId: Optional[str] = None
    bio: Optional[str] = None


class FollowRequest(BaseModel):
    followingId: Optional[str] = None


# ===== RESPONSES =====

class ClaimOwner(CamelModel):
    discord_id: str
    username: Optional[str] = None
    avatar_hash: Optional[str] = None


class ClaimedPlayer(CamelModel):
    id: str
    user_id: str
    platform: str
    console_username: str
    player_name: str
    persona_id: Optional[str] = None
    club_id: Optional[str] = None
    club_name: Optional[str] = None
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None
    likes_count: int = 0
    dislikes_count: int = 0
    verified_at: Optional[datetime] = None


class ClaimedPlayerProfile(CamelModel):
    """Claim as shown on a player page, with the owner's Discord identity"""
    id: str
    user_id: str
    player_name: str
    bio: Optional[str] = None
    profile_picture_url: Optional[str] = None
    likes_count: int = 0
    dislikes_count: int = 0
    verified_at: Optional[datetime] = None
    user: ClaimOwner


class ClaimStatus(CamelModel):
    persona_id: Optional[str] = None
    user_id: str
    player_name: str
    verified_at: Optional[datetime] = None
    user: ClaimOwner


class Follow(CamelModel):
    id: str
    follower_id: str
    following_id: str
    created_at: Optional[datetime] = None


class SessionUser(CamelModel):
    """The logged-in user as exposed by /api/auth/session"""
    id: str
    discord_id: str
    username: str
    name: Optional[str] = None
    email: Optional[str] = None
    image: Optional[str] = None
    discriminator: Optional[str] = None
    avatar_hash: Optional[str] = None
    psn_username: Optional[str] = None
    xbox_username: Optional[str] = None
    pc_username: Optional[str] = None
    role: str = "user"
