"""
CRUD operations (Create, Read, Update, Delete)
Database query functions for users, sessions, claims, votes and follows
"""
import logging
import secrets
from datetime import datetime, timedelta
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from proclubs.models import User, UserSession, ClaimedPlayer, PlayerLike, ClubLike, Follow
from typing import Dict, List, Optional

logger = logging.getLogger("crud")

VOTE_ACTIONS = ("like", "dislike")


class ClaimConflictError(Exception):
    """A claim collided with an existing one on a unique constraint."""


# ===== USERS =====

def get_user(db: Session, user_id: str) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_discord_id(db: Session, discord_id: str) -> Optional[User]:
    return db.query(User).filter(User.discord_id == discord_id).first()


def upsert_discord_user(db: Session, profile: Dict, connections: Dict[str, Optional[str]]) -> User:
    """
    Create or refresh a user from a Discord profile + connections
    Console usernames are overwritten on every login
    """
    user = get_user_by_discord_id(db, profile["id"])
    if user is None:
        user = User(discord_id=profile["id"])
        db.add(user)
        logger.info(f"Creating user for Discord account {profile['id']}")

    user.username = profile.get("username") or profile.get("email", "").split("@")[0] or profile["id"]
    user.name = profile.get("global_name") or profile.get("username")
    user.email = profile.get("email")
    user.discriminator = profile.get("discriminator")
    user.avatar_hash = profile.get("avatar")
    user.image = profile.get("image")
    user.psn_username = connections.get("psn")
    user.xbox_username = connections.get("xbox")
    user.pc_username = connections.get("pc")

    db.commit()
    db.refresh(user)
    return user


# ===== SESSIONS =====

def create_session(db: Session, user: User, max_age_days: int) -> UserSession:
    session = UserSession(
        token=secrets.token_urlsafe(32),
        user_id=user.id,
        expires=datetime.utcnow() + timedelta(days=max_age_days),
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    return session


def get_session_user(db: Session, token: str) -> Optional[User]:
    """
    User for a session token, or None if unknown or expired
    Expired sessions are deleted on lookup
    """
    session = (
        db.query(UserSession)
        .options(joinedload(UserSession.user))
        .filter(UserSession.token == token)
        .first()
    )
    if session is None:
        return None
    if session.expires < datetime.utcnow():
        db.delete(session)
        db.commit()
        return None
    return session.user


def delete_session(db: Session, token: str) -> bool:
    deleted = db.query(UserSession).filter(UserSession.token == token).delete()
    db.commit()
    return deleted > 0


# ===== CLAIMED PLAYERS =====

def get_claim(db: Session, claim_id: str) -> Optional[ClaimedPlayer]:
    return db.query(ClaimedPlayer).filter(ClaimedPlayer.id == claim_id).first()


def get_user_claims(db: Session, user_id: str) -> List[ClaimedPlayer]:
    """
    A user's claims, most recently verified first
    """
    return (
        db.query(ClaimedPlayer)
        .filter(ClaimedPlayer.user_id == user_id)
        .order_by(ClaimedPlayer.verified_at.desc())
        .all()
    )


def find_claim_by_name(
    db: Session,
    platform: str,
    player_name: str,
    exclude_user_id: Optional[str] = None,
    user_id: Optional[str] = None,
) -> Optional[ClaimedPlayer]:
    query = db.query(ClaimedPlayer).filter(
        ClaimedPlayer.platform == platform,
        ClaimedPlayer.player_name == player_name,
    )
    if exclude_user_id is not None:
        query = query.filter(ClaimedPlayer.user_id != exclude_user_id)
    if user_id is not None:
        query = query.filter(ClaimedPlayer.user_id == user_id)
    return query.first()


def find_claim_by_persona(db: Session, platform: str, persona_id: str) -> Optional[ClaimedPlayer]:
    return (
        db.query(ClaimedPlayer)
        .options(joinedload(ClaimedPlayer.user))
        .filter(ClaimedPlayer.platform == platform, ClaimedPlayer.persona_id == persona_id)
        .first()
    )


def find_claimed_player(
    db: Session,
    platform: str,
    player_name: Optional[str] = None,
    persona_id: Optional[str] = None,
) -> Optional[ClaimedPlayer]:
    """
    Claim lookup for a profile page: by player name (preferred) or persona id
    """
    query = (
        db.query(ClaimedPlayer)
        .options(joinedload(ClaimedPlayer.user))
        .filter(ClaimedPlayer.platform == platform)
    )
    if player_name:
        query = query.filter(ClaimedPlayer.player_name == player_name)
    else:
        query = query.filter(ClaimedPlayer.persona_id == persona_id)
    return query.first()


def get_claimed_status(
    db: Session,
    platform: str,
    player_names: Optional[List[str]] = None,
    persona_ids: Optional[List[str]] = None,
) -> List[ClaimedPlayer]:
    """
    Batch claim lookup for a roster: by names (preferred) or persona ids
    """
    query = (
        db.query(ClaimedPlayer)
        .options(joinedload(ClaimedPlayer.user))
        .filter(ClaimedPlayer.platform == platform)
    )
    if player_names:
        query = query.filter(ClaimedPlayer.player_name.in_(player_names))
    else:
        query = query.filter(ClaimedPlayer.persona_id.in_(persona_ids or []))
    return query.all()


def _commit_claim(db: Session) -> None:
    """
    Raises:
        ClaimConflictError: the (platform, persona) or (user, platform, console)
            pair is already taken
    """
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Claim conflict: {e.orig}")
        raise ClaimConflictError(str(e.orig)) from e


def create_claim(
    db: Session,
    user_id: str,
    platform: str,
    console_username: str,
    player_name: str,
    persona_id: Optional[str] = None,
    club_id: Optional[str] = None,
    club_name: Optional[str] = None,
) -> ClaimedPlayer:
    claim = ClaimedPlayer(
        user_id=user_id,
        platform=platform,
        console_username=console_username,
        player_name=player_name,
        persona_id=persona_id,
        club_id=club_id,
        club_name=club_name,
    )
    db.add(claim)
    _commit_claim(db)
    db.refresh(claim)
    logger.info(f"User {user_id} claimed '{player_name}' on {platform}")
    return claim


def upsert_claim(
    db: Session,
    user_id: str,
    platform: str,
    console_username: str,
    player_name: str,
    persona_id: str,
    club_id: Optional[str] = None,
    club_name: Optional[str] = None,
) -> ClaimedPlayer:
    """
    Create or refresh the claim keyed by (user, platform, console username)
    An existing claim is re-verified
    """
    claim = (
        db.query(ClaimedPlayer)
        .filter(
            ClaimedPlayer.user_id == user_id,
            ClaimedPlayer.platform == platform,
            ClaimedPlayer.console_username == console_username,
        )
        .first()
    )
    if claim is None:
        return create_claim(
            db, user_id, platform, console_username, player_name,
            persona_id=persona_id, club_id=club_id, club_name=club_name,
        )

    claim.player_name = player_name
    claim.persona_id = persona_id
    claim.club_id = club_id
    claim.club_name = club_name
    claim.verified_at = datetime.utcnow()
    _commit_claim(db)
    db.refresh(claim)
    return claim


def delete_claim(db: Session, claim: ClaimedPlayer) -> None:
    db.delete(claim)
    db.commit()


def update_bio(db: Session, claim: ClaimedPlayer, bio: Optional[str]) -> ClaimedPlayer:
    claim.bio = bio or None
    db.commit()
    db.refresh(claim)
    return claim


# ===== VOTES =====

def get_club_votes(db: Session, club_id: str, platform: str) -> Dict[str, int]:
    counts = dict(
        db.query(ClubLike.action, func.count(ClubLike.id))
        .filter(ClubLike.club_id == club_id, ClubLike.platform == platform)
        .group_by(ClubLike.action)
        .all()
    )
    return {"likesCount": counts.get("like", 0), "dislikesCount": counts.get("dislike", 0)}


def get_user_club_vote(db: Session, club_id: str, platform: str, user_id: str) -> Optional[str]:
    vote = (
        db.query(ClubLike)
        .filter(ClubLike.club_id == club_id, ClubLike.platform == platform, ClubLike.user_id == user_id)
        .first()
    )
    return vote.action if vote else None


def toggle_club_vote(db: Session, club_id: str, platform: str, user_id: str, action: str) -> Optional[str]:
    """
    Apply a like/dislike on a club
    Same action again removes the vote, a different action replaces it

    Returns the user's vote after the toggle (None when removed)
    """
    vote = (
        db.query(ClubLike)
        .filter(ClubLike.club_id == club_id, ClubLike.platform == platform, ClubLike.user_id == user_id)
        .first()
    )
    if vote is None:
        db.add(ClubLike(club_id=club_id, platform=platform, user_id=user_id, action=action))
        result = action
    elif vote.action == action:
        db.delete(vote)
        result = None
    else:
        vote.action = action
        result = action

    db.commit()
    return result


def get_user_player_vote(db: Session, player_id: str, user_id: str) -> Optional[str]:
    vote = (
        db.query(PlayerLike)
        .filter(PlayerLike.player_id == player_id, PlayerLike.user_id == user_id)
        .first()
    )
    return vote.action if vote else None


def _adjust_counter(player: ClaimedPlayer, action: str, delta: int) -> None:
    if action == "like":
        player.likes_count = (player.likes_count or 0) + delta
    else:
        player.dislikes_count = (player.dislikes_count or 0) + delta


def toggle_player_vote(db: Session, player: ClaimedPlayer, user_id: str, action: str) -> Optional[str]:
    """
    Apply a like/dislike on a claimed player
    The vote row and the player's counters change in one transaction

    Returns the user's vote after the toggle (None when removed)
    """
    try:
        vote = (
            db.query(PlayerLike)
            .filter(PlayerLike.player_id == player.id, PlayerLike.user_id == user_id)
            .first()
        )
        if vote is None:
            db.add(PlayerLike(player_id=player.id, user_id=user_id, action=action))
            _adjust_counter(player, action, 1)
            result = action
        elif vote.action == action:
            db.delete(vote)
            _adjust_counter(player, action, -1)
            result = None
        else:
            _adjust_counter(player, vote.action, -1)
            _adjust_counter(player, action, 1)
            vote.action = action
            result = action
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(player)
    return result


# ===== FOLLOWS =====

def get_follow(db: Session, follower_id: str, following_id: str) -> Optional[Follow]:
    return (
        db.query(Follow)
        .filter(Follow.follower_id == follower_id, Follow.following_id == following_id)
        .first()
    )


def create_follow(db: Session, follower_id: str, following_id: str) -> Follow:
    follow = Follow(follower_id=follower_id, following_id=following_id)
    db.add(follow)
    db.commit()
    db.refresh(follow)
    return follow


def delete_follow(db: Session, follow: Follow) -> None:
    db.delete(follow)
    db.commit()
