"""
Unit tests for HTTP response building.
"""

from datetime import date, datetime, timezone

from portfolioapi.http.response import (
    HTTPResponse,
    ResponseBuilder,
    created,
    dump_json,
    empty,
    error,
    format_http_date,
    success,
)
from portfolioapi.http.status_codes import HTTPStatus


class TestHTTPResponse:
    """Tests for HTTPResponse serialization."""

    def test_status_line(self):
        assert HTTPResponse(status=HTTPStatus.OK).status_line == "HTTP/1.1 200 OK"
        assert HTTPResponse(status=HTTPStatus.TOO_MANY_REQUESTS).status_line == \
            "HTTP/1.1 429 Too Many Requests"

    def test_to_bytes(self):
        """Status line, headers, blank line, body."""
        raw = HTTPResponse(headers={"X-Custom": "value"}, body=b"test").to_bytes()

        assert raw.startswith(b"HTTP/1.1 200 OK\r\n")
        assert b"X-Custom: value\r\n" in raw
        assert b"Content-Length: 4\r\n" in raw
        assert b"Server: PortfolioAPI/1.0\r\n" in raw
        assert raw.endswith(b"\r\n\r\ntest")

    def test_explicit_content_length_kept(self):
        raw = HTTPResponse(headers={"Content-Length": "0"}).to_bytes()
        assert raw.count(b"Content-Length") == 1

    def test_format_http_date(self):
        dt = datetime(2026, 10, 18, 10, 0, 0, tzinfo=timezone.utc)
        assert format_http_date(dt) == "Sun, 18 Oct 2026 10:00:00 GMT"


class TestEnvelopes:
    """Tests for the success and failure envelopes."""

    def test_success(self):
        response = success({"id": 1}, "Done")
        assert response.status == 200
        assert response.headers["Content-Type"] == "application/json; charset=utf-8"
        assert response.json == {"success": True, "message": "Done", "data": {"id": 1}}

    def test_success_defaults(self):
        assert success().json == {"success": True, "message": "Success", "data": None}

    def test_created(self):
        response = created({"project_id": 3}, "Project created successfully")
        assert response.status == 201
        assert response.json["data"] == {"project_id": 3}

    def test_error_without_field_errors(self):
        response = error("Endpoint not found", status=HTTPStatus.NOT_FOUND)
        assert response.status == 404
        assert response.json == {"error": True, "message": "Endpoint not found"}

    def test_error_with_field_errors_and_headers(self):
        response = error(
            "Validation failed",
            status=HTTPStatus.UNPROCESSABLE_ENTITY,
            errors={"title": "The title field is required."},
            headers={"Retry-After": "5"},
        )
        assert response.json["errors"] == {"title": "The title field is required."}
        assert response.headers["Retry-After"] == "5"

    def test_empty(self):
        response = empty()
        assert response.body == b""
        assert response.headers["Content-Length"] == "0"

    def test_dump_json_handles_dates(self):
        assert dump_json({"d": date(2024, 1, 2)}) == b'{"d": "2024-01-02"}'


class TestResponseBuilder:
    """Tests for ResponseBuilder."""

    def test_html(self):
        response = ResponseBuilder().html("<h1>CV</h1>").build()
        assert response.headers["Content-Type"] == "text/html; charset=utf-8"
        assert response.body == b"<h1>CV</h1>"

    def test_attachment(self):
        response = (ResponseBuilder()
            .attachment(b"%PDF", "cv_Jane_Doe.pdf", "application/pdf")
            .build())
        assert response.headers["Content-Disposition"] == 'attachment; filename="cv_Jane_Doe.pdf"'

    def test_inline_attachment(self):
        response = ResponseBuilder().attachment(b"<html>", "cv.html", "text/html", inline=True).build()
        assert response.headers["Content-Disposition"].startswith("inline;")

    def test_session_cookie(self):
        response = ResponseBuilder().cookie("SID", "tok", max_age=3600, secure=True).build()
        cookie = response.headers["Set-Cookie"]
        assert cookie.startswith("SID=tok; Path=/; Max-Age=3600")
        assert "HttpOnly" in cookie
        assert "Secure" in cookie
        assert "SameSite=Lax" in cookie

    def test_expired_cookie(self):
        cookie = ResponseBuilder().cookie("SID", "", max_age=0).build().headers["Set-Cookie"]
        assert "Max-Age=0" in cookie
        assert "Expires=Thu, 01 Jan 1970 00:00:00 GMT" in cookie

    def test_cache_headers(self):
        assert ResponseBuilder().cache(3600).build().headers["Cache-Control"] == "public, max-age=3600"
        assert "no-store" in ResponseBuilder().no_cache().build().headers["Cache-Control"]

    def test_close_connection(self):
        assert ResponseBuilder().close_connection().build().headers["Connection"] == "close"
