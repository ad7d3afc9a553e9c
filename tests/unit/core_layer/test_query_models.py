"""
Unit Tests for QueryRequest / QueryResponse / QueryFailure
"""

import pytest
from pydantic import ValidationError

from iris.core.config.constants import FailureKind
from iris.core.exceptions import InvalidRequestError
from iris.models.query import QueryFailure, QueryRequest, QueryResponse, sanitize_text


@pytest.mark.unit
class TestSanitizeText:
    def test_strips_control_and_zero_width_characters(self):
        assert sanitize_text("  he\u200bllo\x00 world\x07 ") == "hello world"

    def test_keeps_newlines_and_tabs(self):
        assert sanitize_text("line one\n\tline two") == "line one\n\tline two"

    def test_truncates(self):
        assert sanitize_text("abcdef", max_length=3) == "abc"

    def test_empty_after_cleaning_rejected(self):
        with pytest.raises(InvalidRequestError):
            sanitize_text(" \u200b\x00 ")


@pytest.mark.unit
class TestQueryRequest:
    def test_defaults(self):
        request = QueryRequest(text="hi")
        assert request.task_type == "balanced"
        assert request.provider_hint is None
        assert request.client_id == "anonymous"
        assert len(request.request_id) == 36

    def test_request_ids_are_unique(self):
        assert QueryRequest(text="hi").request_id != QueryRequest(text="hi").request_id

    def test_task_type_normalized(self):
        assert QueryRequest(text="hi", task_type=" CODE ").task_type == "code"
        assert QueryRequest(text="hi", task_type=None).task_type == "balanced"

    def test_invalid_task_type_rejected(self):
        with pytest.raises(ValidationError):
            QueryRequest(text="hi", task_type="drop table;")

    @pytest.mark.parametrize("hint,expected", [("auto", None), ("", None), (" Groq ", "groq"), (None, None)])
    def test_provider_hint_normalized(self, hint, expected):
        assert QueryRequest(text="hi", provider_hint=hint).provider_hint == expected

    def test_blank_text_rejected(self):
        with pytest.raises(ValidationError):
            QueryRequest(text="   ")

    def test_request_is_immutable(self):
        request = QueryRequest(text="hi")
        with pytest.raises(ValidationError):
            request.text = "changed"


@pytest.mark.unit
class TestOutcomes:
    def test_response_to_dict(self):
        response = QueryResponse(
            content="answer", provider="groq", cached=False, latency_ms=12.3456,
            request_id="r1", model="llama", usage={"total_tokens": 3},
        )
        data = response.to_dict()

        assert response.ok
        assert data["latency_ms"] == 12.35
        assert data["usage"] == {"total_tokens": 3}
        assert data["failover_used"] is False

    def test_failure_to_dict(self):
        failure = QueryFailure(FailureKind.UPSTREAM_EXHAUSTED, "all failed", "r1", details={"tried": ["a", "b"]})
        data = failure.to_dict()

        assert not failure.ok
        assert failure.http_status == 504
        assert data["error"] == "upstream_exhausted"
        assert data["disposition"] == "exhausted"
        assert data["details"] == {"tried": ["a", "b"]}
