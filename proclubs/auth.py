"""
Discord OAuth2 login and session-cookie authentication.

Login flow:
    /api/auth/login     -> redirect to Discord (scope: identify email connections)
    /api/auth/callback  -> exchange code, fetch profile + connections,
                           upsert user, create session, set cookie

Linked console accounts (PlayStation, Xbox, Battle.net) come from the
Discord connections endpoint and are what player claims are verified against.
"""
import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from proclubs import crud
from proclubs.db import get_db
from proclubs.models import User
from config.settings import settings

logger = logging.getLogger("auth")

DISCORD_AUTHORIZE_URL = "https://discord.com/oauth2/authorize"
DISCORD_TOKEN_URL = "https://discord.com/api/oauth2/token"
DISCORD_API_URL = "https://discord.com/api"
DISCORD_CDN_URL = "https://cdn.discordapp.com"
DISCORD_SCOPE = "identify email connections"

OAUTH_STATE_COOKIE = "proclubs_oauth_state"

# Discord connection type -> our console field
CONNECTION_TYPES = {
    "playstation": "psn",
    "xbox": "xbox",
    "battlenet": "pc",
}


class DiscordAuthError(Exception):
    """Discord rejected the code exchange or profile fetch."""


def is_configured() -> bool:
    return bool(settings.discord_client_id and settings.discord_client_secret)


def build_authorize_url(state: str) -> str:
    params = {
        "client_id": settings.discord_client_id,
        "redirect_uri": settings.discord_redirect_uri,
        "response_type": "code",
        "scope": DISCORD_SCOPE,
        "state": state,
        "prompt": "none",
    }
    return f"{DISCORD_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(code: str) -> str:
    """
    Trade an authorization code for an access token.

    Raises:
        DiscordAuthError: Discord answered with a non-2xx status or no token
    """
    response = requests.post(
        DISCORD_TOKEN_URL,
        data={
            "client_id": settings.discord_client_id,
            "client_secret": settings.discord_client_secret,
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": settings.discord_redirect_uri,
        },
        headers={"Content-Type": "application/x-www-form-urlencoded"},
        timeout=10,
    )
    if not response.ok:
        logger.error(f"Discord token exchange failed: {response.status_code} {response.text[:200]}")
        raise DiscordAuthError("Token exchange failed")
    token = response.json().get("access_token")
    if not token:
        logger.error("Discord token exchange returned no access_token")
        raise DiscordAuthError("Token exchange failed")
    return token


def fetch_discord_profile(access_token: str) -> Dict[str, Any]:
    response = requests.get(
        f"{DISCORD_API_URL}/users/@me",
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=10,
    )
    if not response.ok:
        logger.error(f"Discord profile fetch failed: {response.status_code}")
        raise DiscordAuthError("Profile fetch failed")
    return response.json()


def parse_connections(connections: Any) -> Dict[str, Optional[str]]:
    """First connection name per console type; missing types map to None."""
    accounts: Dict[str, Optional[str]] = {field: None for field in CONNECTION_TYPES.values()}
    if not isinstance(connections, list):
        return accounts
    for connection in connections:
        if not isinstance(connection, dict):
            continue
        field = CONNECTION_TYPES.get(connection.get("type"))
        if field and accounts[field] is None and connection.get("name"):
            accounts[field] = connection["name"]
    return accounts


def fetch_discord_connections(access_token: str) -> Dict[str, Optional[str]]:
    """
    Linked console accounts for the token's user.

    Failures are logged and reported as no linked accounts; login still
    succeeds without them.
    """
    try:
        response = requests.get(
            f"{DISCORD_API_URL}/users/@me/connections",
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=10,
        )
    except requests.RequestException as e:
        logger.error(f"Error fetching Discord connections: {e}")
        return parse_connections(None)

    if not response.ok:
        logger.error(f"Failed to fetch Discord connections: {response.status_code}")
        return parse_connections(None)

    try:
        return parse_connections(response.json())
    except ValueError:
        logger.error("Discord connections response was not JSON")
        return parse_connections(None)


def get_discord_avatar_url(discord_id: str, avatar_hash: Optional[str], size: int = 128) -> str:
    """CDN avatar URL; animated hashes (a_ prefix) are gifs."""
    if not avatar_hash:
        try:
            default_avatar = int(discord_id) % 5
        except (TypeError, ValueError):
            default_avatar = 0
        return f"{DISCORD_CDN_URL}/embed/avatars/{default_avatar}.png"

    extension = "gif" if avatar_hash.startswith("a_") else "png"
    return f"{DISCORD_CDN_URL}/avatars/{discord_id}/{avatar_hash}.{extension}?size={size}"


def login_with_code(db: Session, code: str) -> str:
    """
    Complete the OAuth callback.

    Returns:
        New session token for the cookie
    """
    access_token = exchange_code(code)
    profile = fetch_discord_profile(access_token)
    connections = fetch_discord_connections(access_token)

    profile = dict(profile)
    profile["image"] = get_discord_avatar_url(profile["id"], profile.get("avatar"))

    user = crud.upsert_discord_user(db, profile, connections)
    session = crud.create_session(db, user, settings.session_max_age_days)
    logger.info(f"User {user.id} logged in via Discord")
    return session.token


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Logged-in user from the session cookie, or None."""
    token = request.cookies.get(settings.session_cookie_name)
    if not token:
        return None
    return crud.get_session_user(db, token)


def require_user(user: Optional[User] = Depends(get_current_user)) -> User:
    """
    Raises:
        HTTPException: 401 when no valid session
    """
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user
