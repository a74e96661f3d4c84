"""
First-success iteration over alternative EA endpoints.

Some EA queries (persona career stats, player search) have no stable
endpoint; the working path changes between titles. Each logical query
lists its candidate endpoints in order and the first one that answers
with a non-empty JSON body wins. Candidates are tried exactly once, with
no delay between them.
"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

import requests

logger = logging.getLogger("candidates")


@dataclass(frozen=True)
class EndpointCandidate:
    """One possible EA path for a logical query."""
    path: str
    params: Dict[str, str] = field(default_factory=dict)

    def url(self, base_url: str) -> str:
        query = urlencode(self.params)
        return f"{base_url}{self.path}?{query}" if query else f"{base_url}{self.path}"


@dataclass
class CandidateAttempt:
    """Why a single candidate was rejected."""
    url: str
    reason: str
    status_code: Optional[int] = None


@dataclass
class FetchResult:
    """
    Tagged result of a candidate iteration.

    ok=True carries the parsed data and the URL that produced it.
    ok=False carries one aggregated error plus the per-candidate attempts.
    """
    ok: bool
    data: Any = None
    via: Optional[str] = None
    error: Optional[str] = None
    attempts: List[CandidateAttempt] = field(default_factory=list)

    @classmethod
    def success(cls, data: Any, via: str, attempts: List[CandidateAttempt]) -> "FetchResult":
        return cls(ok=True, data=data, via=via, attempts=attempts)

    @classmethod
    def failure(cls, error: str, attempts: List[CandidateAttempt]) -> "FetchResult":
        return cls(ok=False, error=error, attempts=attempts)

    def to_dict(self) -> Dict[str, Any]:
        if self.ok:
            return {"ok": True, "via": self.via, "data": self.data}
        return {"ok": False, "error": self.error}


def first_success(
    urls: List[str],
    fetch: Callable[[str], requests.Response],
    error_message: str = "No endpoint worked",
) -> FetchResult:
    """
    Try each URL in order; return the first 2xx response with a
    non-empty, JSON-parsable body.

    Args:
        urls: Candidate URLs, most likely first
        fetch: Performs the GET for one URL
        error_message: Error reported when every candidate fails

    Returns:
        FetchResult; failures of individual candidates never propagate
    """
    attempts: List[CandidateAttempt] = []

    for url in urls:
        try:
            response = fetch(url)
        except requests.RequestException as e:
            attempts.append(CandidateAttempt(url=url, reason=f"request failed: {e}"))
            logger.debug(f"Candidate failed (transport): {url} - {e}")
            continue

        status = response.status_code
        if not 200 <= status < 300:
            attempts.append(CandidateAttempt(url=url, reason="non-2xx", status_code=status))
            logger.debug(f"Candidate failed (HTTP {status}): {url}")
            continue

        text = response.text or ""
        if not text.strip():
            attempts.append(CandidateAttempt(url=url, reason="empty body", status_code=status))
            logger.debug(f"Candidate failed (empty body): {url}")
            continue

        try:
            data = json.loads(text)
        except ValueError:
            attempts.append(CandidateAttempt(url=url, reason="invalid json", status_code=status))
            logger.debug(f"Candidate failed (invalid JSON): {url}")
            continue

        logger.info(f"Candidate succeeded: {url} (after {len(attempts)} failures)")
        return FetchResult.success(data, via=url, attempts=attempts)

    logger.warning(f"{error_message}: all {len(urls)} candidates failed")
    return FetchResult.failure(error_message, attempts)


def persona_candidates(persona_id: str, platform: str) -> List[EndpointCandidate]:
    """Endpoints that have served persona career stats across titles."""
    params = {"platform": platform, "personaId": persona_id}
    return [
        EndpointCandidate("/fc/members/career/stats", params),
        EndpointCandidate("/fc/members/stats", params),
        EndpointCandidate("/fc/members", params),
    ]


def player_search_candidates(name: str, platform: str) -> List[EndpointCandidate]:
    """Endpoints that may answer a player-name search."""
    params = {"platform": platform, "name": name}
    return [
        EndpointCandidate("/fc/members/search", params),
        EndpointCandidate("/fc/players/search", params),
        EndpointCandidate("/fc/search/members", params),
    ]
