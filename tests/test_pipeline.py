"""Unit tests for the extraction and matching stages."""

import pytest

from conftest import RecordingLogger
from core.allowlist import Allowlist, AllowlistRule
from core.exceptions import DestinationParseError, PolicyRejection
from core.request_types import PipelineState
from services.pipeline import ProxyPipeline


@pytest.fixture
def pipeline():
    rules = [AllowlistRule(url="http://svc/allowed-get", methods=frozenset({"GET"}))]
    return ProxyPipeline(Allowlist(rules), RecordingLogger())


def test_prepare_returns_matched_exchange(pipeline):
    exchange = pipeline.prepare("GET", "/proxy/http://svc/allowed-get")
    assert exchange.state is PipelineState.MATCHED
    assert exchange.rule.url == "http://svc/allowed-get"
    assert exchange.destination.raw == "http://svc/allowed-get"


def test_policy_rejection_carries_request(pipeline):
    with pytest.raises(PolicyRejection) as exc:
        pipeline.prepare("DELETE", "/proxy/http://svc/allowed-get")
    assert exc.value.method == "DELETE"
    assert exc.value.url == "http://svc/allowed-get"
    assert str(exc.value) == "url is not in allowlist"


def test_parse_error_stops_before_matching(pipeline):
    with pytest.raises(DestinationParseError):
        pipeline.prepare("GET", "/proxy/not-a-valid-url")
    assert pipeline._logger.states == [PipelineState.RECEIVED, PipelineState.REJECTED_PARSE]


def test_exchanges_are_independent(pipeline):
    first = pipeline.prepare("GET", "/proxy/http://svc/allowed-get")
    second = pipeline.prepare("GET", "/proxy/http://svc/allowed-get")
    assert first is not second
    assert first == second
    assert first.state.terminal is False
