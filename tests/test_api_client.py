"""
Tests for the EA transport: relay routing, response parsing, caching and
parallel club loads. No network access; requests.get is mocked.
"""
from unittest.mock import MagicMock, patch

import pytest
import requests

from proclubs import api_client
from proclubs.api_client import EAUpstreamError
from proclubs.cache import get_cache_manager
from config.settings import settings


def fake_response(status_code=200, text="", reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    response.reason = reason
    response.headers = {"content-type": "application/json"}
    return response


@pytest.fixture(autouse=True)
def clean_cache(monkeypatch):
    monkeypatch.setattr(settings, "ea_proxy_url", None)
    monkeypatch.setattr(settings, "cache_enabled", True)
    get_cache_manager().clear()
    yield
    get_cache_manager().clear()


def test_direct_fetch_sends_browser_headers():
    with patch("proclubs.api_client.requests.get", return_value=fake_response(200, "{}")) as mock_get:
        api_client.fetch_ea("https://proclubs.ea.com/api/fc/clubs/info?clubIds=1")
    args, kwargs = mock_get.call_args
    assert args[0] == "https://proclubs.ea.com/api/fc/clubs/info?clubIds=1"
    assert kwargs["headers"]["referer"] == "https://www.ea.com/"
    assert kwargs["timeout"] == settings.ea_timeout_seconds


def test_relay_fetch_encodes_target_url(monkeypatch):
    monkeypatch.setattr(settings, "ea_proxy_url", "https://relay.example.workers.dev")
    with patch("proclubs.api_client.requests.get", return_value=fake_response(200, "{}")) as mock_get:
        api_client.fetch_ea("https://proclubs.ea.com/api/fc/clubs/info?clubIds=1&platform=common-gen5")
    relay_url = mock_get.call_args[0][0]
    assert relay_url.startswith("https://relay.example.workers.dev?url=https%3A%2F%2Fproclubs.ea.com")
    assert "%26platform%3Dcommon-gen5" in relay_url


def test_parse_response_errors():
    with pytest.raises(EAUpstreamError) as exc_info:
        api_client.parse_ea_response(fake_response(403, "Forbidden"))
    assert exc_info.value.status_code == 403
    assert exc_info.value.message == "Forbidden"

    with pytest.raises(EAUpstreamError) as exc_info:
        api_client.parse_ea_response(fake_response(200, "<html>Access Denied</html>"))
    assert exc_info.value.status_code == 502


def test_parse_response_empty_body_is_none():
    assert api_client.parse_ea_response(fake_response(200, "  ")) is None


def test_club_info_is_cached():
    with patch("proclubs.api_client.requests.get", return_value=fake_response(200, '{"1": {"name": "A"}}')) as mock_get:
        first = api_client.get_club_info("1")
        second = api_client.get_club_info("1")
    assert first == second == {"1": {"name": "A"}}
    assert mock_get.call_count == 1
    assert api_client.get_last_cache_meta().cache_source == "fresh"


def test_cache_disabled_always_fetches(monkeypatch):
    monkeypatch.setattr(settings, "cache_enabled", False)
    with patch("proclubs.api_client.requests.get", return_value=fake_response(200, "[]")) as mock_get:
        api_client.get_club_stats("1")
        api_client.get_club_stats("1")
    assert mock_get.call_count == 2


def test_failed_fetch_is_not_cached():
    responses = [fake_response(500, "down"), fake_response(200, '{"ok": true}')]
    with patch("proclubs.api_client.requests.get", side_effect=responses):
        with pytest.raises(EAUpstreamError):
            api_client.get_club_info("7")
        assert api_client.get_club_info("7") == {"ok": True}


def test_members_scope_selects_endpoint():
    with patch("proclubs.api_client.requests.get", return_value=fake_response(200, "[]")) as mock_get:
        api_client.get_club_members("5", scope="club")
        api_client.get_club_members("5", scope="career")
    urls = [c[0][0] for c in mock_get.call_args_list]
    assert "/fc/members/stats?" in urls[0]
    assert "/fc/members/career/stats?" in urls[1]


def test_search_clubs_swallows_failures():
    with patch("proclubs.api_client.requests.get", side_effect=requests.Timeout("slow")):
        assert api_client.search_clubs("anything") == []


def test_search_clubs_normalizes():
    body = '[{"clubId": 12, "clubName": "Twelve"}]'
    with patch("proclubs.api_client.requests.get", return_value=fake_response(200, body)):
        clubs = api_client.search_clubs("Twel", "common-gen4")
    assert [c.to_dict() for c in clubs] == [{"clubId": "12", "name": "Twelve", "platform": "common-gen4"}]


def test_player_career_falls_through_candidates():
    responses = [fake_response(404), fake_response(200, '{"name": "P"}')]
    with patch("proclubs.api_client.requests.get", side_effect=responses) as mock_get:
        result = api_client.get_player_career("42")
    assert result.ok
    assert "/fc/members/stats?" in result.via
    assert mock_get.call_count == 2


def test_player_search_exhaustion_is_not_cached():
    with patch("proclubs.api_client.requests.get", return_value=fake_response(404)) as mock_get:
        first = api_client.search_player("Nobody")
        second = api_client.search_player("Nobody")
    assert not first.ok and not second.ok
    assert mock_get.call_count == 6


def test_player_in_club():
    body = '{"members": [{"personaId": "42", "name": "P"}]}'
    with patch("proclubs.api_client.requests.get", return_value=fake_response(200, body)):
        assert api_client.get_player_in_club("42", "9")["name"] == "P"
        assert api_client.get_player_in_club("43", "9") is None


def test_proxy_rejects_non_ea_urls():
    with pytest.raises(ValueError):
        api_client.proxy_ea_url("https://evil.example.com/api/")


def test_club_overview_degrades_per_part():
    def fake_get(url, **kwargs):
        if "/fc/clubs/info" in url:
            return fake_response(200, '{"9": {"name": "Nine"}}')
        if "matchType=playoffMatch" in url:
            return fake_response(503, "busy")
        if "/fc/clubs/matches" in url:
            return fake_response(200, "[]")
        if "/fc/clubs/overallStats" in url:
            return fake_response(200, '[{"wins": "1"}]')
        return fake_response(200, "[]")

    with patch("proclubs.api_client.requests.get", side_effect=fake_get):
        overview = api_client.get_club_overview("9")

    assert overview["info"] == {"name": "Nine"}
    assert overview["stats"] == {"wins": "1"}
    assert overview["matches"]["playoffMatch"] == []
    assert set(overview["errors"]) == {"playoffMatch"}


def test_dropped_connection_is_retried_once():
    responses = [requests.ConnectionError("reset"), fake_response(200, "{}")]
    with patch("proclubs.api_client.requests.get", side_effect=responses) as mock_get:
        assert api_client.fetch_ea("https://proclubs.ea.com/api/fc/clubs/info").ok
    assert mock_get.call_count == 2


def test_timeouts_are_not_retried():
    with patch("proclubs.api_client.requests.get", side_effect=requests.Timeout("slow")) as mock_get:
        with pytest.raises(requests.Timeout):
            api_client.fetch_ea("https://proclubs.ea.com/api/fc/clubs/info")
    assert mock_get.call_count == 1


def test_candidate_connection_errors_are_not_retried():
    responses = [requests.ConnectionError("reset"), fake_response(200, '{"name": "P"}')]
    with patch("proclubs.api_client.requests.get", side_effect=responses) as mock_get:
        result = api_client.get_player_career("42")
    urls = [c[0][0] for c in mock_get.call_args_list]
    assert result.ok
    assert len(urls) == 2
    assert "/fc/members/career/stats?" in urls[0]
    assert "/fc/members/stats?" in urls[1]
