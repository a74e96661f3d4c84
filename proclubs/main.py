"""
Pro Clubs View - Main FastAPI Application
EA Sports FC Pro Clubs data fetched LIVE from EA, plus Discord accounts,
player claims, votes and follows stored locally
"""
import logging
import secrets
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import requests
from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from proclubs import api_client, auth, crud, schemas
from proclubs.api_client import EAUpstreamError
from proclubs.db import get_db, init_db
from proclubs.featured import get_featured_clubs, get_featured_players
from proclubs.formatting import format_date, get_club_badge_url
from proclubs.match_results import classify_match_result, club_form, last_match_card
from proclubs.models import User
from proclubs.rate_limit import limit_searches, limit_writes
from proclubs.view_models import (
    club_standing, extract_club_info, match_list, normalize_match, normalize_members, summarize_club_stats
)
from config.settings import settings

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("main")

# Version tracking
APP_VERSION = "v0.3.0"
APP_NAME = "Pro Clubs View"
APP_STAGE = "Beta"

CACHE_LONG = "public, s-maxage=300, stale-while-revalidate=300"
CACHE_SHORT = "public, s-maxage=120, stale-while-revalidate=120"

CLAIM_PLATFORMS = ("common-gen5", "common-gen4")
BIO_MAX_LENGTH = 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(
    title=f"{APP_NAME} ({APP_STAGE})",
    description="Live EA Sports FC Pro Clubs stats with Discord-verified player profiles",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """All errors render as {"error": message}."""
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request body"}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse({"error": "Internal server error"}, status_code=500)


def error(message: str, status_code: int, **extra: Any) -> JSONResponse:
    return JSONResponse({"error": message, **extra}, status_code=status_code)


def ea_response(
    fetch: Callable[[], Any],
    cache_control: str = CACHE_LONG,
    transform: Optional[Callable[[Any], Any]] = None,
) -> JSONResponse:
    """
    Run an EA fetch and map the outcome to a response.

    Upstream non-2xx keeps EA's status, an empty body is a 502 and a
    transport failure is a 500.
    """
    try:
        data = fetch()
    except EAUpstreamError as e:
        return error(e.message or "EA request failed", e.status_code)
    except requests.RequestException as e:
        logger.error(f"EA request failed: {e}")
        return error(str(e), 500)

    if data is None:
        return error("Empty response from EA", 502)
    if transform is not None:
        data = transform(data)
    return JSONResponse(data, headers={"Cache-Control": cache_control})


def _first_club_id(club_ids: str) -> str:
    return club_ids.split(",")[0].strip()


# =============================================================================
# SERVICE
# =============================================================================

@app.get("/health")
def health_check():
    """Health check with configuration presence flags (never values)."""
    return {
        "status": "ok",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "env": {
            "hasDiscordClientId": bool(settings.discord_client_id),
            "hasDiscordClientSecret": bool(settings.discord_client_secret),
            "hasDatabaseUrl": bool(settings.database_url),
            "hasEaProxyUrl": bool(settings.ea_proxy_url),
            "cacheEnabled": settings.cache_enabled,
        },
    }


@app.get("/version")
def version_info():
    """Version information endpoint."""
    return {
        "name": APP_NAME,
        "version": APP_VERSION,
        "stage": APP_STAGE,
        "full": f"{APP_NAME} {APP_VERSION} ({APP_STAGE})"
    }


@app.get("/cache/stats")
def cache_stats():
    """Get cache statistics."""
    return api_client.get_cache_stats()


# =============================================================================
# EA PASSTHROUGH
# =============================================================================

@app.get("/api/ea/club-info")
def ea_club_info(
    clubIds: Optional[str] = Query(None, description="Comma-separated club ids"),
    platform: str = Query(settings.default_platform),
    normalized: bool = Query(False, description="Return the extracted club + badge"),
):
    if not clubIds:
        return error("Missing clubIds", 400)

    def transform(data):
        club_id = _first_club_id(clubIds)
        club = extract_club_info(data, club_id)
        return {"clubId": club_id, "club": club, "badgeUrl": get_club_badge_url(club)}

    return ea_response(
        lambda: api_client.get_club_info(clubIds, platform),
        transform=transform if normalized else None,
    )


@app.get("/api/ea/club-stats")
def ea_club_stats(
    clubIds: Optional[str] = Query(None),
    platform: str = Query(settings.default_platform),
    normalized: bool = Query(False, description="Add a W/D/L summary"),
):
    if not clubIds:
        return error("Missing clubIds", 400)

    def transform(data):
        club_id = _first_club_id(clubIds)
        stats = extract_club_info(data, club_id)
        return {"clubId": club_id, "stats": stats, "summary": summarize_club_stats(stats).to_dict()}

    return ea_response(
        lambda: api_client.get_club_stats(clubIds, platform),
        transform=transform if normalized else None,
    )


@app.get("/api/ea/matches")
def ea_matches(
    clubIds: Optional[str] = Query(None),
    matchType: str = Query("leagueMatch", description="leagueMatch, playoffMatch or friendlyMatch"),
    platform: str = Query(settings.default_platform),
    normalized: bool = Query(False, description="Return match payloads with results and form"),
):
    if not clubIds:
        return error("Missing clubIds", 400)

    def transform(data):
        club_id = _first_club_id(clubIds)
        matches = match_list(data)
        payloads = []
        for match in matches:
            payload = normalize_match(match)
            payload["result"] = classify_match_result(match, club_id)
            payload["date"] = format_date(payload["timestamp"])
            payloads.append(payload)
        return {
            "clubId": club_id,
            "matches": payloads,
            "form": club_form(matches, club_id),
            "lastMatch": last_match_card(matches, club_id),
        }

    return ea_response(
        lambda: api_client.get_club_matches(clubIds, matchType, platform),
        transform=transform if normalized else None,
    )


@app.get("/api/ea/members")
def ea_members(
    clubId: Optional[str] = Query(None),
    scope: str = Query("club", description="club or career"),
    platform: str = Query(settings.default_platform),
):
    """Club roster as normalized members."""
    if not clubId:
        return error("Missing clubId", 400)
    if scope not in api_client.MEMBER_SCOPES:
        return error("Invalid scope. Must be 'club' or 'career'", 400)

    return ea_response(
        lambda: api_client.get_club_members(clubId, platform, scope=scope),
        transform=lambda data: [m.to_dict() for m in normalize_members(data, scope=scope)],
    )


def _persona_career_response(personaId: Optional[str], platform: str) -> JSONResponse:
    if not personaId:
        return error("Missing personaId", 400)
    result = api_client.get_player_career(personaId, platform)
    if not result.ok:
        return error(result.error, 502)
    return JSONResponse(result.to_dict(), headers={"Cache-Control": CACHE_LONG})


@app.get("/api/ea/player")
def ea_player(
    personaId: Optional[str] = Query(None),
    platform: str = Query(settings.default_platform),
):
    return _persona_career_response(personaId, platform)


@app.get("/api/ea/player-career")
def ea_player_career(
    personaId: Optional[str] = Query(None),
    platform: str = Query(settings.default_platform),
):
    return _persona_career_response(personaId, platform)


@app.get("/api/ea/player-club")
def ea_player_club(
    personaId: Optional[str] = Query(None),
    clubId: Optional[str] = Query(None),
    platform: str = Query(settings.default_platform),
):
    """One member's row from a club's career stats."""
    if not personaId or not clubId:
        return error("Missing personaId or clubId", 400)

    try:
        player = api_client.get_player_in_club(personaId, clubId, platform)
    except EAUpstreamError as e:
        return error(e.message, e.status_code)
    except requests.RequestException as e:
        return error(str(e), 500)

    if player is None:
        return error("Player not found in club", 404)
    return JSONResponse(player, headers={"Cache-Control": CACHE_LONG})


@app.get("/api/ea/search-player", dependencies=[Depends(limit_searches)])
def ea_search_player(
    name: Optional[str] = Query(None),
    platform: str = Query(settings.default_platform),
):
    if not name:
        return error("Missing player name", 400)
    result = api_client.search_player(name, platform)
    if not result.ok:
        return error(result.error, 404)
    return JSONResponse(result.to_dict(), headers={"Cache-Control": CACHE_LONG})


@app.get("/api/ea/search-clubs", dependencies=[Depends(limit_searches)])
def ea_search_clubs(
    q: Optional[str] = Query(None, description="Club name"),
    platform: str = Query(settings.default_platform),
):
    """Autocomplete search; upstream failures return an empty list."""
    if not q:
        return error("Missing query parameter", 400)
    clubs = api_client.search_clubs(q, platform)
    return JSONResponse([c.to_dict() for c in clubs], headers={"Cache-Control": CACHE_SHORT})


@app.get("/api/ea/club-leaderboard")
def ea_club_leaderboard(
    clubName: Optional[str] = Query(None),
    platform: str = Query(settings.default_platform),
    clubId: Optional[str] = Query(None, description="Return only this club's standing"),
):
    if not clubName:
        return error("Missing clubName", 400)

    def transform(data):
        return {"clubId": clubId, "standing": club_standing(data, clubId)}

    return ea_response(
        lambda: api_client.get_club_leaderboard(clubName, platform),
        transform=transform if clubId else None,
    )


@app.get("/api/ea/playoff-achievements")
def ea_playoff_achievements(
    clubId: Optional[str] = Query(None),
    platform: str = Query(settings.default_platform),
):
    if not clubId:
        return error("Missing clubId", 400)
    return ea_response(lambda: api_client.get_playoff_achievements(clubId, platform))


@app.get("/api/ea/proxy")
def ea_proxy(url: Optional[str] = Query(None, description="Full EA API URL")):
    """
    Generic passthrough for client-side EA calls.
    Only URLs under https://proclubs.ea.com/api/ are allowed.
    """
    if not url:
        return error("Missing url parameter", 400)
    if not api_client.is_ea_api_url(url):
        return error("Only EA API requests allowed", 403)

    try:
        data = api_client.proxy_ea_url(url)
    except EAUpstreamError as e:
        return error(e.message, e.status_code)
    except requests.RequestException as e:
        logger.error(f"EA proxy error: {e}")
        return error("Proxy error", 502)

    return JSONResponse(data, headers={"Cache-Control": CACHE_SHORT})


@app.get("/api/club/{club_id}/overview")
def club_overview(club_id: str, platform: str = Query(settings.default_platform)):
    """
    Everything a club page needs in one call.
    Parts load in parallel; failed parts are listed under "errors".
    """
    overview = api_client.get_club_overview(club_id, platform)
    all_matches = [m for mt in api_client.MATCH_TYPES for m in overview["matches"].get(mt) or []]
    overview["badgeUrl"] = get_club_badge_url(overview["info"])
    overview["summary"] = summarize_club_stats(overview["stats"]).to_dict()
    overview["members"] = [m.to_dict() for m in normalize_members(overview["members"])]
    overview["form"] = club_form(all_matches, club_id)
    overview["lastMatch"] = last_match_card(all_matches, club_id)
    return JSONResponse(overview, headers={"Cache-Control": CACHE_LONG})


@app.get("/api/featured")
def featured():
    """Today's homepage clubs and players."""
    return JSONResponse(
        {"clubs": get_featured_clubs(), "players": get_featured_players()},
        headers={"Cache-Control": CACHE_LONG},
    )


# =============================================================================
# AUTH
# =============================================================================

@app.get("/api/auth/login")
def auth_login():
    """Redirect to Discord's consent screen."""
    if not auth.is_configured():
        return error("Discord login is not configured", 503)
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(auth.build_authorize_url(state))
    response.set_cookie(auth.OAUTH_STATE_COOKIE, state, max_age=600, httponly=True, samesite="lax")
    return response


@app.get("/api/auth/callback")
def auth_callback(
    request: Request,
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    if not code:
        return error("Missing code", 400)
    expected_state = request.cookies.get(auth.OAUTH_STATE_COOKIE)
    if not state or not expected_state or not secrets.compare_digest(state, expected_state):
        return error("Invalid OAuth state", 400)

    try:
        token = auth.login_with_code(db, code)
    except auth.DiscordAuthError as e:
        return error(str(e), 502)
    except requests.RequestException as e:
        logger.error(f"Discord request failed: {e}")
        return error("Discord is unavailable", 502)

    response = RedirectResponse("/")
    response.delete_cookie(auth.OAUTH_STATE_COOKIE)
    response.set_cookie(
        settings.session_cookie_name,
        token,
        max_age=settings.session_max_age_days * 24 * 60 * 60,
        httponly=True,
        secure=settings.session_cookie_secure,
        samesite="lax",
    )
    return response


@app.get("/api/auth/session")
def auth_session(user: Optional[User] = Depends(auth.get_current_user)):
    if user is None:
        return {"user": None}
    return {"user": schemas.SessionUser.model_validate(user).to_json()}


@app.post("/api/auth/logout")
def auth_logout(request: Request, db: Session = Depends(get_db)):
    token = request.cookies.get(settings.session_cookie_name)
    if token:
        crud.delete_session(db, token)
    response = JSONResponse({"success": True})
    response.delete_cookie(settings.session_cookie_name)
    return response


# =============================================================================
# VOTES
# =============================================================================

@app.get("/api/club/vote")
def club_votes(
    clubId: Optional[str] = Query(None),
    platform: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(auth.get_current_user),
):
    """Vote counts plus the current user's vote, if logged in."""
    if not clubId or not platform:
        return error("Missing clubId or platform", 400)

    counts = crud.get_club_votes(db, clubId, platform)
    user_vote = crud.get_user_club_vote(db, clubId, platform, user.id) if user else None
    return {**counts, "userVote": user_vote}


@app.post("/api/club/vote", dependencies=[Depends(limit_writes)])
def club_vote(
    body: schemas.ClubVoteRequest,
    db: Session = Depends(get_db),
    user: User = Depends(auth.require_user),
):
    if not body.clubId or not body.platform or body.action not in crud.VOTE_ACTIONS:
        return error("Invalid clubId, platform, or action", 400)

    action = crud.toggle_club_vote(db, body.clubId, body.platform, user.id, body.action)
    return {"success": True, "action": action}


@app.post("/api/player/vote", dependencies=[Depends(limit_writes)])
def player_vote(
    body: schemas.PlayerVoteRequest,
    db: Session = Depends(get_db),
    user: User = Depends(auth.require_user),
):
    if not body.playerId or body.action not in crud.VOTE_ACTIONS:
        return error("Invalid playerId or action", 400)

    player = crud.get_claim(db, body.playerId)
    if player is None:
        return error("Player not found", 404)

    action = crud.toggle_player_vote(db, player, user.id, body.action)
    return {
        "success": True,
        "action": action,
        "likesCount": player.likes_count,
        "dislikesCount": player.dislikes_count,
    }


# =============================================================================
# CLAIMS
# =============================================================================

@app.post("/api/player/claim", dependencies=[Depends(limit_writes)])
def claim_player(
    body: schemas.PlayerClaimRequest,
    db: Session = Depends(get_db),
    user: User = Depends(auth.require_user),
):
    """Claim a profile whose name matches the user's first linked console account."""
    if not body.playerName or not body.platform:
        return error("Missing required fields: playerName and platform", 400)

    console_username = user.psn_username or user.xbox_username or user.pc_username
    if not console_username:
        return error(
            "No console account linked. Please link your PSN, Xbox, or PC account through Discord.",
            400,
        )

    if console_username.lower() != body.playerName.lower():
        return error(
            "Console username does not match player name. "
            "You can only claim profiles that match your console username.",
            403,
        )

    if crud.find_claim_by_name(db, body.platform, body.playerName, exclude_user_id=user.id):
        return error("This player profile has already been claimed by another user.", 409)
    if crud.find_claim_by_name(db, body.platform, body.playerName, user_id=user.id):
        return error("You have already claimed this player profile.", 409)
    if body.personaId:
        existing = crud.find_claim_by_persona(db, body.platform, body.personaId)
        if existing is not None and existing.user_id != user.id:
            return error("This player profile has already been claimed by another user.", 409)

    try:
        claim = crud.create_claim(
            db,
            user_id=user.id,
            platform=body.platform,
            console_username=console_username,
            player_name=body.playerName,
            persona_id=body.personaId,
            club_id=body.clubId,
            club_name=body.clubName,
        )
    except crud.ClaimConflictError:
        return error("You have already claimed this player profile.", 409)
    return {"success": True, "claimedPlayer": schemas.ClaimedPlayer.model_validate(claim).to_json()}


@app.get("/api/players/claim")
def list_claims(db: Session = Depends(get_db), user: User = Depends(auth.require_user)):
    claims = crud.get_user_claims(db, user.id)
    return {"claimedPlayers": [schemas.ClaimedPlayer.model_validate(c).to_json() for c in claims]}


@app.post("/api/players/claim", dependencies=[Depends(limit_writes)])
def claim_persona(
    body: schemas.PersonaClaimRequest,
    db: Session = Depends(get_db),
    user: User = Depends(auth.require_user),
):
    """Claim (or re-verify) a persona for one of the user's console accounts."""
    if not body.platform or not body.consoleUsername or not body.playerName or not body.personaId:
        return error("Missing required fields: platform, consoleUsername, playerName, personaId", 400)

    if body.platform not in CLAIM_PLATFORMS:
        return error("Invalid platform. Must be 'common-gen5' or 'common-gen4'", 400)

    console = body.consoleUsername.lower()
    linked = [u for u in (user.psn_username, user.xbox_username, user.pc_username) if u]
    if not any(u.lower() == console for u in linked):
        return error(
            "Console username does not match any of your connected Discord accounts",
            400,
            connectedAccounts=user.connected_accounts(),
        )

    if body.playerName.lower() != console:
        return error("Player name must match your console username", 400)

    existing = crud.find_claim_by_persona(db, body.platform, body.personaId)
    if existing is not None and existing.user_id != user.id:
        return error(
            "This player is already claimed by another user",
            409,
            claimedBy=existing.user.username,
        )

    try:
        claim = crud.upsert_claim(
            db,
            user_id=user.id,
            platform=body.platform,
            console_username=body.consoleUsername,
            player_name=body.playerName,
            persona_id=body.personaId,
            club_id=body.clubId,
            club_name=body.clubName,
        )
    except crud.ClaimConflictError:
        return error("This player is already claimed under another console username", 409)
    return {"success": True, "claimedPlayer": schemas.ClaimedPlayer.model_validate(claim).to_json()}


@app.delete("/api/players/{claim_id}")
def unclaim_player(claim_id: str, db: Session = Depends(get_db), user: User = Depends(auth.require_user)):
    claim = crud.get_claim(db, claim_id)
    if claim is None:
        return error("Claim not found", 404)
    if claim.user_id != user.id:
        return error("Forbidden: This claim belongs to another user", 403)

    crud.delete_claim(db, claim)
    return {"success": True, "message": "Player unclaimed successfully"}


@app.patch("/api/player/bio")
def update_bio(
    body: schemas.BioUpdateRequest,
    db: Session = Depends(get_db),
    user: User = Depends(auth.require_user),
):
    if not body.playerId:
        return error("Missing playerId", 400)
    if body.bio and len(body.bio) > BIO_MAX_LENGTH:
        return error(f"Bio cannot exceed {BIO_MAX_LENGTH} characters", 400)

    claim = crud.get_claim(db, body.playerId)
    if claim is None:
        return error("Player profile not found", 404)
    if claim.user_id != user.id:
        return error("You can only edit your own profile", 403)

    claim = crud.update_bio(db, claim, body.bio)
    return {"success": True, "bio": claim.bio}


@app.get("/api/player/claimed-data")
def claimed_data(
    platform: Optional[str] = Query(None),
    playerName: Optional[str] = Query(None),
    personaId: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: Optional[User] = Depends(auth.get_current_user),
):
    """Claim shown on a player page, with the viewer's vote."""
    if not platform or (not playerName and not personaId):
        return error("Missing platform or playerName", 400)

    claim = crud.find_claimed_player(db, platform, player_name=playerName, persona_id=personaId)
    if claim is None:
        return {"claimedPlayer": None, "userVote": None}

    user_vote = None
    if user is not None:
        action = crud.get_user_player_vote(db, claim.id, user.id)
        user_vote = {"action": action} if action else None

    return {
        "claimedPlayer": schemas.ClaimedPlayerProfile.model_validate(claim).to_json(),
        "userVote": user_vote,
    }


@app.get("/api/player/claimed-status")
def claimed_status(
    platform: Optional[str] = Query(None),
    playerNames: Optional[str] = Query(None, description="Comma-separated player names"),
    personaIds: Optional[str] = Query(None, description="Comma-separated persona ids"),
    db: Session = Depends(get_db),
):
    """Which players of a roster are claimed."""
    if not platform or (not playerNames and not personaIds):
        return error("Missing platform or playerNames", 400)

    values = [v for v in (playerNames or personaIds).split(",") if v]
    if not values:
        return {"claimedPlayers": []}

    if playerNames:
        claims = crud.get_claimed_status(db, platform, player_names=values)
    else:
        claims = crud.get_claimed_status(db, platform, persona_ids=values)
    return {"claimedPlayers": [schemas.ClaimStatus.model_validate(c).to_json() for c in claims]}


# =============================================================================
# FOLLOWS
# =============================================================================

@app.post("/api/follows", status_code=201)
def follow_user(
    body: schemas.FollowRequest,
    db: Session = Depends(get_db),
    user: User = Depends(auth.require_user),
):
    if not body.followingId:
        return error("Missing followingId", 400)
    if body.followingId == user.id:
        return error("Cannot follow yourself", 400)
    if crud.get_user(db, body.followingId) is None:
        return error("User not found", 404)
    if crud.get_follow(db, user.id, body.followingId) is not None:
        return error("Already following this user", 409)

    follow = crud.create_follow(db, user.id, body.followingId)
    return {"success": True, "follow": schemas.Follow.model_validate(follow).to_json()}


@app.delete("/api/follows/{following_id}")
def unfollow_user(following_id: str, db: Session = Depends(get_db), user: User = Depends(auth.require_user)):
    follow = crud.get_follow(db, user.id, following_id)
    if follow is None:
        return error("Follow relationship not found", 404)

    crud.delete_follow(db, follow)
    return {"success": True, "message": "Unfollowed successfully"}
