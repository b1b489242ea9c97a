"""Unit tests for destination URL extraction."""

import pytest

from core.destination import extract_destination, raw_request_target
from core.exceptions import DestinationParseError


class TestExtractDestination:
    @pytest.mark.parametrize(
        "url",
        [
            "http://svc/allowed-get",
            "https://api.example.com:8443/v1/items?page=2&sort=asc",
            "http://svc/a%2Fb%3F?q=x%20y",
            "http://[fd00::1]:8080/path",
            "https://svc/trailing/",
        ],
    )
    def test_url_is_returned_byte_for_byte(self, url):
        destination = extract_destination("/proxy/" + url)
        assert destination.raw == url
        assert str(destination) == url

    def test_components(self):
        destination = extract_destination("/proxy/https://api.example.com:8443/v1?x=1")
        assert destination.scheme == "https"
        assert destination.host == "api.example.com"
        assert destination.netloc == "api.example.com:8443"

    @pytest.mark.parametrize(
        "raw_path",
        [
            "/proxy/not-a-valid-url",
            "/proxy/",
            "/proxy/http://",
            "/proxy/http:/svc/path",
            "/proxy//svc/path",
            "/proxy/http://svc:notaport/",
            "/proxy/http://[fd00::1/path",
        ],
    )
    def test_rejects_non_absolute_urls(self, raw_path):
        with pytest.raises(DestinationParseError):
            extract_destination(raw_path)

    def test_rejects_missing_prefix(self):
        with pytest.raises(DestinationParseError):
            extract_destination("/other/http://svc/")

    def test_custom_prefix(self):
        assert extract_destination("/fwd/http://svc/x", prefix="/fwd/").raw == "http://svc/x"


class TestRawRequestTarget:
    def test_uses_raw_path_and_query(self):
        scope = {"path": "/proxy/http://svc/a/b", "raw_path": b"/proxy/http://svc/a%2Fb", "query_string": b"q=x%20y"}
        assert raw_request_target(scope) == "/proxy/http://svc/a%2Fb?q=x%20y"

    def test_query_left_on_raw_path_is_not_doubled(self):
        scope = {"path": "/p", "raw_path": b"/p?q=1", "query_string": b"q=1"}
        assert raw_request_target(scope) == "/p?q=1"

    def test_falls_back_to_path(self):
        scope = {"path": "/proxy/http://svc/x", "query_string": b""}
        assert raw_request_target(scope) == "/proxy/http://svc/x"

    def test_bare_question_mark_is_kept(self):
        scope = {"path": "/proxy/http://svc/x", "raw_path": b"/proxy/http://svc/x?", "query_string": b""}
        target = raw_request_target(scope)
        assert target == "/proxy/http://svc/x?"
        assert extract_destination(target).raw == "http://svc/x?"
