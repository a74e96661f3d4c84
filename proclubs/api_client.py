"""
Live API client for the EA Sports FC Pro Clubs API
All data fetched directly from EA with browser-like headers and tiered caching
"""
import json
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, List, Optional, Union
from urllib.parse import quote, urlencode

import requests
from dotenv import load_dotenv
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from proclubs.cache import CacheMeta, get_cache_manager
from proclubs.candidates import (
    EndpointCandidate,
    FetchResult,
    first_success,
    persona_candidates,
    player_search_candidates,
)
from proclubs.view_models import (
    ClubSearchResult,
    extract_club_info,
    find_member,
    match_list,
    normalize_club_search,
)
from config.settings import settings

load_dotenv()

logger = logging.getLogger("api_client")

EA_API_PREFIX = "https://proclubs.ea.com/api/"
MATCH_TYPES = ("leagueMatch", "playoffMatch", "friendlyMatch")
MEMBER_SCOPES = ("club", "career")

# EA rejects requests that don't look like they came from ea.com in a browser
EA_HEADERS = {
    "accept": "application/json, text/plain, */*",
    "accept-language": "en-US,en;q=0.9",
    "referer": "https://www.ea.com/",
    "origin": "https://www.ea.com",
    "sec-ch-ua": '"Google Chrome";v="131", "Chromium";v="131", "Not_A Brand";v="24"',
    "sec-ch-ua-mobile": "?0",
    "sec-ch-ua-platform": '"Windows"',
    "sec-fetch-dest": "empty",
    "sec-fetch-mode": "cors",
    "sec-fetch-site": "same-site",
    "user-agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    ),
}

# Caps concurrent upstream calls across all parallel club loads
_api_semaphore = threading.Semaphore(8)

_last_cache_meta: Optional[CacheMeta] = None


class EAUpstreamError(Exception):
    """EA (or the relay in front of it) answered with something unusable."""

    def __init__(self, status_code: int, message: str):
        super().__init__(f"EA API returned {status_code}: {message}")
        self.status_code = status_code
        self.message = message


class _CandidatesExhausted(Exception):
    """Carries a failed FetchResult out of a cached fetch without storing it."""

    def __init__(self, result: FetchResult):
        super().__init__(result.error)
        self.result = result


def build_url(path: str, params: Optional[Dict[str, Any]] = None) -> str:
    """EA URL for a path like "/fc/clubs/info"."""
    query = urlencode({k: v for k, v in (params or {}).items() if v is not None})
    base = f"{settings.ea_base_url}{path}"
    return f"{base}?{query}" if query else base


def is_ea_api_url(url: str) -> bool:
    return url.startswith(EA_API_PREFIX)


def fetch_ea_once(url: str, timeout: Optional[float] = None) -> requests.Response:
    """
    GET an EA URL, through the edge relay when EA_PROXY_URL is configured.

    The relay adds the browser headers itself; direct calls send EA_HEADERS
    (works locally, often 403s from datacenter IPs). Single attempt; candidate
    chains use this directly.
    """
    timeout = timeout or settings.ea_timeout_seconds
    with _api_semaphore:
        if settings.ea_proxy_url:
            relay_url = f"{settings.ea_proxy_url}?url={quote(url, safe='')}"
            logger.info(f"Proxying via relay: {url}")
            return requests.get(relay_url, timeout=timeout)

        logger.info(f"Direct fetch: {url}")
        return requests.get(url, headers=EA_HEADERS, timeout=timeout)


@retry(
    stop=stop_after_attempt(2),
    wait=wait_exponential(multiplier=0.25, max=2),
    retry=retry_if_exception_type(requests.ConnectionError),
    reraise=True,
)
def fetch_ea(url: str, timeout: Optional[float] = None) -> requests.Response:
    """fetch_ea_once for single-endpoint calls; a dropped connection is retried once, timeouts are not."""
    return fetch_ea_once(url, timeout=timeout)


def parse_ea_response(response: requests.Response) -> Any:
    """
    Parse an EA response body.

    Returns None for an empty body.

    Raises:
        EAUpstreamError: non-2xx status or a body that is not JSON
    """
    if not response.ok:
        raise EAUpstreamError(response.status_code, response.text or response.reason or "")

    text = response.text or ""
    if not text.strip():
        return None

    content_type = response.headers.get("content-type", "")
    try:
        return json.loads(text)
    except ValueError:
        # EA's WAF answers blocked requests with an HTML page
        logger.warning(f"Non-JSON body from EA (content-type={content_type}): {text[:200]}")
        raise EAUpstreamError(502, "Server returned non-JSON")


def fetch_ea_json(url: str, timeout: Optional[float] = None) -> Any:
    """Fetch and parse an EA URL without caching."""
    return parse_ea_response(fetch_ea(url, timeout=timeout))


def _cache_key(path: str, params: Dict[str, Any]) -> str:
    sorted_params = sorted((k, v) for k, v in params.items() if v is not None)
    return f"{path}:{sorted_params}"


def _make_request(
    path: str,
    params: Dict[str, Any],
    force_refresh: bool = False,
    timeout: Optional[float] = None,
) -> Any:
    """
    Fetch an EA path with caching.

    Args:
        path: EA path under the API base, e.g. "/fc/clubs/info"
        params: Query parameters
        force_refresh: Bypass cache and fetch fresh
        timeout: Per-request timeout override

    Returns:
        Parsed JSON, or None for an empty body
    """
    global _last_cache_meta

    url = build_url(path, params)
    cache_manager = get_cache_manager()
    cache_key = _cache_key(path, params)

    def fetch():
        return fetch_ea_json(url, timeout=timeout)

    if not settings.cache_enabled:
        data, meta = cache_manager.fetch_uncached(cache_key, fetch)
    else:
        data, meta = cache_manager.get(
            cache_key=cache_key,
            fetch_fn=fetch,
            path=path,
            params=params,
            force_refresh=force_refresh,
        )

    _last_cache_meta = meta
    return data


def get_last_cache_meta() -> Optional[CacheMeta]:
    """Metadata from the most recent cache access."""
    return _last_cache_meta


def get_cache_stats() -> Dict[str, Any]:
    stats = get_cache_manager().get_stats()
    stats["lastAccess"] = _last_cache_meta.to_dict() if _last_cache_meta else None
    return stats


def _club_ids_param(club_ids: Union[str, List[str]]) -> str:
    if isinstance(club_ids, (list, tuple)):
        return ",".join(str(c) for c in club_ids)
    return str(club_ids)


# =============================================================================
# CLUBS
# =============================================================================

def get_club_info(club_ids: Union[str, List[str]], platform: Optional[str] = None) -> Any:
    """Raw /clubs/info response, keyed by club id."""
    return _make_request("/fc/clubs/info", {
        "platform": platform or settings.default_platform,
        "clubIds": _club_ids_param(club_ids),
    })


def get_club_stats(club_ids: Union[str, List[str]], platform: Optional[str] = None) -> Any:
    """Raw /clubs/overallStats response (usually a list)."""
    return _make_request("/fc/clubs/overallStats", {
        "platform": platform or settings.default_platform,
        "clubIds": _club_ids_param(club_ids),
    })


def get_club_matches(
    club_ids: Union[str, List[str]],
    match_type: str = "leagueMatch",
    platform: Optional[str] = None,
) -> Any:
    """Raw /clubs/matches response."""
    return _make_request("/fc/clubs/matches", {
        "platform": platform or settings.default_platform,
        "matchType": match_type,
        "clubIds": _club_ids_param(club_ids),
    })


def get_club_members(club_id: str, platform: Optional[str] = None, scope: str = "club") -> Any:
    """
    Raw member stats for a club.

    scope "club" uses the club-specific stats endpoint, "career" the
    career totals endpoint.
    """
    path = "/fc/members/career/stats" if scope == "career" else "/fc/members/stats"
    return _make_request(path, {
        "platform": platform or settings.default_platform,
        "clubId": str(club_id),
    })


def get_club_leaderboard(club_name: str, platform: Optional[str] = None) -> Any:
    """Raw all-time leaderboard search (includes divisions and skill rating)."""
    return _make_request("/fc/allTimeLeaderboard/search", {
        "platform": platform or settings.default_platform,
        "clubName": club_name,
    })


def get_playoff_achievements(club_id: str, platform: Optional[str] = None) -> Any:
    return _make_request("/fc/club/playoffAchievements", {
        "platform": platform or settings.default_platform,
        "clubId": str(club_id),
    })


def search_clubs(query: str, platform: Optional[str] = None) -> List[ClubSearchResult]:
    """
    Search clubs by name.

    Search feeds an autocomplete box, so any upstream failure is logged and
    reported as no results.
    """
    platform = platform or settings.default_platform
    try:
        data = _make_request(
            "/fc/allTimeLeaderboard/search",
            {"platform": platform, "clubName": query},
            timeout=8,
        )
    except (EAUpstreamError, requests.RequestException) as e:
        logger.error(f"Club search failed for '{query}': {e}")
        return []

    clubs = normalize_club_search(data, platform)
    logger.info(f"Club search '{query}' returned {len(clubs)} clubs")
    return clubs


def get_club_overview(club_id: str, platform: Optional[str] = None) -> Dict[str, Any]:
    """
    Load everything a club page needs in parallel.

    Each part fails independently: a failed part is None (info, stats)
    or empty (members, matches) and is listed under "errors".
    """
    platform = platform or settings.default_platform
    tasks = {
        "info": lambda: get_club_info(club_id, platform),
        "stats": lambda: get_club_stats(club_id, platform),
        "members": lambda: get_club_members(club_id, platform, scope="club"),
    }
    for match_type in MATCH_TYPES:
        tasks[match_type] = (lambda mt: lambda: get_club_matches(club_id, mt, platform))(match_type)

    results: Dict[str, Any] = {}
    errors: Dict[str, str] = {}
    with ThreadPoolExecutor(max_workers=len(tasks)) as executor:
        futures = {name: executor.submit(fn) for name, fn in tasks.items()}
        for name, future in futures.items():
            try:
                results[name] = future.result()
            except (EAUpstreamError, requests.RequestException) as e:
                logger.warning(f"Club overview part '{name}' failed for {club_id}: {e}")
                results[name] = None
                errors[name] = str(e)

    return {
        "clubId": str(club_id),
        "platform": platform,
        "info": extract_club_info(results["info"], club_id),
        "stats": extract_club_info(results["stats"], club_id),
        "members": results["members"],
        "matches": {mt: match_list(results[mt]) for mt in MATCH_TYPES},
        "errors": errors,
    }


# =============================================================================
# PLAYERS
# =============================================================================

def _first_success_cached(
    candidates: List[EndpointCandidate],
    error_message: str,
    timeout: Optional[float] = None,
) -> FetchResult:
    """Candidate iteration with successful results cached like any EA call."""
    urls = [c.url(settings.ea_base_url) for c in candidates]

    def run():
        # Each candidate gets exactly one attempt
        result = first_success(urls, lambda url: fetch_ea_once(url, timeout=timeout), error_message)
        if not result.ok:
            raise _CandidatesExhausted(result)
        return result

    if not settings.cache_enabled:
        return _run_uncached(run)

    first = candidates[0]
    try:
        result, _ = get_cache_manager().get(
            cache_key=f"candidates:{urls}",
            fetch_fn=run,
            path=first.path,
            params=first.params,
        )
    except _CandidatesExhausted as e:
        return e.result
    return result


def _run_uncached(run) -> FetchResult:
    try:
        return run()
    except _CandidatesExhausted as e:
        return e.result


def get_player_career(persona_id: str, platform: Optional[str] = None) -> FetchResult:
    """Persona career stats from whichever EA endpoint currently answers."""
    return _first_success_cached(
        persona_candidates(str(persona_id), platform or settings.default_platform),
        "No player career endpoint worked. Player data may not be available.",
    )


def search_player(name: str, platform: Optional[str] = None) -> FetchResult:
    """Player-name search; EA exposes this inconsistently, if at all."""
    return _first_success_cached(
        player_search_candidates(name, platform or settings.default_platform),
        "Player search not available. EA's API doesn't provide player search by name.",
    )


def get_player_in_club(
    persona_id: str,
    club_id: str,
    platform: Optional[str] = None,
) -> Optional[Dict[str, Any]]:
    """
    One member's career row from a club roster, or None if not listed.

    Raises:
        EAUpstreamError: EA failed or returned an empty roster body
    """
    data = get_club_members(club_id, platform, scope="career")
    if data is None:
        raise EAUpstreamError(502, "Empty response from EA")
    return find_member(data, persona_id)


# =============================================================================
# PASSTHROUGH
# =============================================================================

def proxy_ea_url(url: str) -> Any:
    """
    Fetch an arbitrary EA API URL (cached briefly).

    Raises:
        ValueError: url is not under the EA API
        EAUpstreamError: EA answered with an error
    """
    if not is_ea_api_url(url):
        raise ValueError("Only EA API requests allowed")

    global _last_cache_meta
    cache_manager = get_cache_manager()
    cache_key = f"proxy:{url}"

    def fetch():
        return fetch_ea_json(url)

    if not settings.cache_enabled:
        data, meta = cache_manager.fetch_uncached(cache_key, fetch)
    else:
        # Categorized by path only so passthrough traffic gets the short proxy TTL
        data, meta = cache_manager.get(cache_key=cache_key, fetch_fn=fetch, path="proxy", params={})

    _last_cache_meta = meta
    return data
