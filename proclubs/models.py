"""
Database models for Pro Clubs View
SQLAlchemy ORM models for users, sessions, claimed players, votes and follows
"""
import uuid
from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, UniqueConstraint
)
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import relationship

Base = declarative_base()


def new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    """
    User entity - one record per Discord account
    Console usernames come from the account's linked Discord connections
    """
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    discord_id = Column(String, unique=True, nullable=False, index=True)
    username = Column(String, nullable=False)
    discriminator = Column(String, nullable=True)
    avatar_hash = Column(String, nullable=True)
    email = Column(String, nullable=True)
    name = Column(String, nullable=True)
    image = Column(String, nullable=True)

    # Linked console accounts
    psn_username = Column(String, nullable=True)
    xbox_username = Column(String, nullable=True)
    pc_username = Column(String, nullable=True)

    role = Column(String, nullable=False, default="user")
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sessions = relationship("UserSession", back_populates="user", cascade="all, delete-orphan")
    claimed_players = relationship("ClaimedPlayer", back_populates="user", cascade="all, delete-orphan")

    def connected_accounts(self) -> dict:
        return {"psn": self.psn_username, "xbox": self.xbox_username, "pc": self.pc_username}

    def __repr__(self):
        return f"<User(id='{self.id}', username='{self.username}')>"


class UserSession(Base):
    """Login session - the cookie carries the token"""
    __tablename__ = "sessions"

    id = Column(String, primary_key=True, default=new_id)
    token = Column(String, unique=True, nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    expires = Column(DateTime, nullable=False)

    user = relationship("User", back_populates="sessions")

    def __repr__(self):
        return f"<UserSession(user_id='{self.user_id}', expires={self.expires})>"


class ClaimedPlayer(Base):
    """
    ClaimedPlayer entity - an EA persona verified as belonging to a user
    One claim per persona per platform
    """
    __tablename__ = "claimed_players"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    platform = Column(String, nullable=False)
    console_username = Column(String, nullable=False)
    player_name = Column(String, nullable=False, index=True)
    persona_id = Column(String, nullable=True, index=True)
    club_id = Column(String, nullable=True)
    club_name = Column(String, nullable=True)
    bio = Column(Text, nullable=True)
    profile_picture_url = Column(String, nullable=True)

    # Denormalized vote counters, kept in step with PlayerLike rows
    likes_count = Column(Integer, nullable=False, default=0)
    dislikes_count = Column(Integer, nullable=False, default=0)

    verified_at = Column(DateTime, default=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user = relationship("User", back_populates="claimed_players")
    likes = relationship("PlayerLike", back_populates="player", cascade="all, delete-orphan")

    # Constraints
    __table_args__ = (
        UniqueConstraint("platform", "persona_id", name="uix_claim_platform_persona"),
        UniqueConstraint("user_id", "platform", "console_username", name="uix_claim_user_console"),
    )

    def __repr__(self):
        return f"<ClaimedPlayer(player_name='{self.player_name}', platform='{self.platform}', user_id='{self.user_id}')>"


class PlayerLike(Base):
    """Like/dislike of a claimed player - one per user per player"""
    __tablename__ = "player_likes"

    id = Column(String, primary_key=True, default=new_id)
    player_id = Column(String, ForeignKey("claimed_players.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    action = Column(String, nullable=False)  # "like" or "dislike"
    created_at = Column(DateTime, default=datetime.utcnow)

    player = relationship("ClaimedPlayer", back_populates="likes")

    __table_args__ = (
        UniqueConstraint("player_id", "user_id", name="uix_player_like_user"),
    )

    def __repr__(self):
        return f"<PlayerLike(player_id='{self.player_id}', user_id='{self.user_id}', action={self.action})>"


class ClubLike(Base):
    """Like/dislike of an EA club - clubs are not stored, only their id + platform"""
    __tablename__ = "club_likes"

    id = Column(String, primary_key=True, default=new_id)
    club_id = Column(String, nullable=False, index=True)
    platform = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    action = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("club_id", "platform", "user_id", name="uix_club_like_user"),
    )

    def __repr__(self):
        return f"<ClubLike(club_id='{self.club_id}', platform='{self.platform}', action={self.action})>"


class Follow(Base):
    """User-to-user follow"""
    __tablename__ = "follows"

    id = Column(String, primary_key=True, default=new_id)
    follower_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    following_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("follower_id", "following_id", name="uix_follow_pair"),
    )

    def __repr__(self):
        return f"<Follow(follower_id='{self.follower_id}', following_id='{self.following_id}')>"
