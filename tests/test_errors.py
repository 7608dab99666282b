"""Tests for the normalized error taxonomy and the classification table."""

from __future__ import annotations

import httpx
import pytest

from gitforge.errors import (
    ERROR_RULES,
    AuthenticationError,
    ErrorKind,
    ForgeError,
    GenericError,
    NotFoundError,
    RateLimitError,
    ValidationError,
    classify,
    is_not_found,
    map_error,
)


def _status_error(status: int, json=None, headers=None) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://api.example.com/thing")
    response = httpx.Response(status, json=json or {"message": "boom"}, headers=headers, request=request)
    return httpx.HTTPStatusError("failed", request=request, response=response)


# ═══════════════════════════════════════════════════════════════════════════
# 1. classify — ordered precedence table
# ═══════════════════════════════════════════════════════════════════════════

class TestClassify:

    @pytest.mark.parametrize(
        "status, kind",
        [
            (401, ErrorKind.AUTHENTICATION),
            (403, ErrorKind.AUTHENTICATION),
            (404, ErrorKind.NOT_FOUND),
            (400, ErrorKind.VALIDATION),
            (422, ErrorKind.VALIDATION),
            (429, ErrorKind.RATE_LIMIT),
            (500, ErrorKind.GENERIC),
            (409, ErrorKind.GENERIC),
        ],
    )
    def test_status_codes(self, status, kind):
        assert classify(status, "") is kind

    def test_status_wins_over_message(self):
        # A 500 whose body mentions "not found" is still generic
        assert classify(500, "upstream not found") is ErrorKind.GENERIC

    def test_message_used_without_status(self):
        assert classify(None, "Unauthorized access") is ErrorKind.AUTHENTICATION
        assert classify(None, "Project Not Found") is ErrorKind.NOT_FOUND
        assert classify(None, "invalid ref name") is ErrorKind.VALIDATION
        assert classify(None, "API rate limit exceeded") is ErrorKind.RATE_LIMIT
        assert classify(None, "connection refused") is ErrorKind.GENERIC

    def test_message_matching_is_case_insensitive(self):
        assert classify(None, "UNAUTHORIZED") is ErrorKind.AUTHENTICATION

    def test_authentication_checked_before_not_found(self):
        assert classify(None, "unauthorized: resource not found") is ErrorKind.AUTHENTICATION

    def test_not_found_checked_before_validation(self):
        assert classify(None, "not found: invalid project") is ErrorKind.NOT_FOUND

    def test_numeric_codes_in_message(self):
        assert classify(None, "Request failed with status 404") is ErrorKind.NOT_FOUND
        assert classify(None, "429 Too Many Requests") is ErrorKind.RATE_LIMIT

    def test_table_order(self):
        assert [rule.kind for rule in ERROR_RULES] == [
            ErrorKind.AUTHENTICATION,
            ErrorKind.NOT_FOUND,
            ErrorKind.VALIDATION,
            ErrorKind.RATE_LIMIT,
        ]


# ═══════════════════════════════════════════════════════════════════════════
# 2. map_error
# ═══════════════════════════════════════════════════════════════════════════

class TestMapError:

    def test_401_maps_to_authentication(self):
        err = map_error("github", _status_error(401, {"message": "Bad credentials"}), "getBranch")
        assert isinstance(err, AuthenticationError)
        assert err.provider == "github"
        assert "Bad credentials" in err.message

    def test_404_defaults_to_repository(self):
        err = map_error("gitlab", _status_error(404), "listBranches", identifier="acme/widgets")
        assert isinstance(err, NotFoundError)
        assert err.resource == "repository"
        assert err.identifier == "acme/widgets"

    def test_404_with_specific_resource(self):
        err = map_error(
            "gitlab", _status_error(404), "getPullRequest",
            resource="pull-request", identifier="12",
        )
        assert isinstance(err, NotFoundError)
        assert err.resource == "pull-request"
        assert err.identifier == "12"

    def test_422_maps_to_validation(self):
        err = map_error("github", _status_error(422, {"message": "Reference already exists"}), "createBranch")
        assert isinstance(err, ValidationError)
        assert "Reference already exists" in err.message
        assert err.field is None

    def test_429_with_retry_after(self):
        err = map_error("github", _status_error(429, headers={"Retry-After": "42"}), "listBranches")
        assert isinstance(err, RateLimitError)
        assert err.retry_after == 42

    def test_429_without_retry_after(self):
        err = map_error("gitlab", _status_error(429), "listBranches")
        assert isinstance(err, RateLimitError)
        assert err.retry_after is None

    def test_429_unparseable_retry_after(self):
        err = map_error("github", _status_error(429, headers={"Retry-After": "soon"}), "listBranches")
        assert err.retry_after is None

    def test_500_maps_to_generic_with_operation(self):
        exc = _status_error(500)
        err = map_error("azure-devops", exc, "listPullRequests")
        assert isinstance(err, GenericError)
        assert err.operation == "listPullRequests"
        assert err.cause is exc

    def test_transport_error_uses_message(self):
        err = map_error("gitlab", httpx.ConnectError("connection refused"), "getBranch")
        assert isinstance(err, GenericError)
        assert "connection refused" in err.message

    def test_transport_error_message_can_classify(self):
        err = map_error("gitlab", httpx.ReadError("401 Unauthorized"), "getBranch")
        assert isinstance(err, AuthenticationError)

    def test_already_normalized_passes_through(self):
        original = NotFoundError("github", "branch", "main")
        assert map_error("github", original, "getBranch") is original

    def test_non_json_body(self):
        request = httpx.Request("GET", "https://x")
        response = httpx.Response(500, text="<html>oops</html>", request=request)
        exc = httpx.HTTPStatusError("failed", request=request, response=response)
        err = map_error("github", exc, "getBranch")
        assert isinstance(err, GenericError)
        assert "oops" in err.message


# ═══════════════════════════════════════════════════════════════════════════
# 3. Error kinds
# ═══════════════════════════════════════════════════════════════════════════

class TestErrorKinds:

    def test_all_kinds_are_forge_errors(self):
        for err in (
            AuthenticationError("github", "bad token"),
            NotFoundError("github", "branch", "main"),
            RateLimitError("github"),
            ValidationError("github", "bad", field="name"),
            GenericError("github", "getBranch", "boom"),
        ):
            assert isinstance(err, ForgeError)
            assert isinstance(err, Exception)

    def test_kind_tags(self):
        assert NotFoundError("github", "branch", "x").kind is ErrorKind.NOT_FOUND
        assert GenericError("github", "op", "m").kind is ErrorKind.GENERIC

    def test_structural_pattern_matching(self):
        def describe(error: ForgeError) -> str:
            match error:
                case AuthenticationError(provider, message):
                    return f"auth:{provider}"
                case NotFoundError(provider, resource, identifier):
                    return f"missing:{resource}:{identifier}"
                case RateLimitError(provider, retry_after):
                    return f"slow:{retry_after}"
                case ValidationError(provider, message, field):
                    return f"invalid:{field}"
                case GenericError(provider, operation, message):
                    return f"generic:{operation}"
            return "unreachable"

        assert describe(NotFoundError("gitlab", "pull-request", "7")) == "missing:pull-request:7"
        assert describe(ValidationError("azure-devops", "m", field="project")) == "invalid:project"
        assert describe(RateLimitError("github", 5)) == "slow:5"
        assert describe(GenericError("github", "createBranch", "m")) == "generic:createBranch"
        assert describe(AuthenticationError("github", "m")) == "auth:github"

    def test_not_found_message(self):
        err = NotFoundError("github", "branch", "feature-x")
        assert str(err) == "branch not found: feature-x"

    def test_is_not_found(self):
        assert is_not_found(_status_error(404))
        assert not is_not_found(_status_error(500))
        assert is_not_found(NotFoundError("github", "branch", "x"))
        assert not is_not_found(ValueError("nope"))
