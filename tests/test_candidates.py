"""
Unit tests for first-success iteration over candidate EA endpoints.
"""
from unittest.mock import MagicMock

import requests

from proclubs.candidates import (
    EndpointCandidate,
    first_success,
    persona_candidates,
    player_search_candidates,
)


def fake_response(status_code=200, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


def test_first_valid_candidate_wins():
    responses = {
        "u1": fake_response(500, "boom"),
        "u2": fake_response(200, "   "),
        "u3": fake_response(200, '{"ok": 1}'),
        "u4": fake_response(200, '{"never": 1}'),
    }
    calls = []

    def fetch(url):
        calls.append(url)
        return responses[url]

    result = first_success(["u1", "u2", "u3", "u4"], fetch)
    assert result.ok
    assert result.data == {"ok": 1}
    assert result.via == "u3"
    assert calls == ["u1", "u2", "u3"]
    assert [a.reason for a in result.attempts] == ["non-2xx", "empty body"]


def test_all_candidates_failing_gives_one_aggregated_error():
    def fetch(url):
        if url == "bad-json":
            return fake_response(200, "<html>blocked</html>")
        if url == "down":
            raise requests.ConnectionError("refused")
        return fake_response(404, "")

    result = first_success(["bad-json", "down", "missing"], fetch, "Nothing answered")
    assert not result.ok
    assert result.error == "Nothing answered"
    assert len(result.attempts) == 3
    assert result.to_dict() == {"ok": False, "error": "Nothing answered"}


def test_each_candidate_is_tried_once():
    fetch = MagicMock(return_value=fake_response(503))
    first_success(["a", "b"], fetch)
    assert fetch.call_count == 2


def test_success_to_dict_shape():
    result = first_success(["u"], lambda url: fake_response(200, "[1, 2]"))
    assert result.to_dict() == {"ok": True, "via": "u", "data": [1, 2]}


def test_endpoint_candidate_url():
    candidate = EndpointCandidate("/fc/members", {"platform": "common-gen5", "personaId": "42"})
    assert candidate.url("https://proclubs.ea.com/api") == (
        "https://proclubs.ea.com/api/fc/members?platform=common-gen5&personaId=42"
    )
    assert EndpointCandidate("/fc/x").url("https://h") == "https://h/fc/x"


def test_persona_candidates_order():
    paths = [c.path for c in persona_candidates("42", "common-gen5")]
    assert paths == ["/fc/members/career/stats", "/fc/members/stats", "/fc/members"]


def test_player_search_candidates_carry_name():
    candidates = player_search_candidates("Alice FC", "common-gen4")
    assert len(candidates) == 3
    assert all(c.params == {"platform": "common-gen4", "name": "Alice FC"} for c in candidates)
