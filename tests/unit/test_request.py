"""
Unit tests for HTTP request parsing.
"""

import pytest

from portfolioapi.http.request import HTTPParseError, HTTPRequest, RequestParser


GET_REQUEST = (
    b"GET /api/admin/messages?page=2&status=unread&search= HTTP/1.1\r\n"
    b"Host: localhost:8080\r\n"
    b"User-Agent: pytest\r\n"
    b"Cookie: PORTFOLIO_API_SESSION=abc123; theme=dark\r\n"
    b"Connection: keep-alive\r\n"
    b"\r\n"
)


def post_request(body: bytes, content_type: str = "application/json") -> bytes:
    return (
        b"POST /api/contact/submit HTTP/1.1\r\n"
        b"Host: localhost\r\n"
        + f"Content-Type: {content_type}\r\n".encode()
        + f"Content-Length: {len(body)}\r\n".encode()
        + b"\r\n"
        + body
    )


class TestRequestParser:
    """Tests for RequestParser."""

    def test_parse_get(self):
        """Method, path, version and peer address are parsed."""
        request = RequestParser().parse(GET_REQUEST, ("10.0.0.1", 5555))

        assert request.method == "GET"
        assert request.path == "/api/admin/messages"
        assert request.version == "HTTP/1.1"
        assert request.client_address == ("10.0.0.1", 5555)

    def test_headers_lowercased(self):
        """Header names are case-insensitive."""
        request = RequestParser().parse(GET_REQUEST)

        assert request.headers["host"] == "localhost:8080"
        assert request.get_header("User-Agent") == "pytest"
        assert request.user_agent == "pytest"

    def test_query_params(self):
        """Query parameters keep blank values."""
        request = RequestParser().parse(GET_REQUEST)

        assert request.get_query("page") == "2"
        assert request.get_query("status") == "unread"
        assert request.get_query("search") == ""
        assert request.get_query("missing", "x") == "x"

    def test_cookies(self):
        """The Cookie header is split into name/value pairs."""
        request = RequestParser().parse(GET_REQUEST)
        assert request.cookies == {"PORTFOLIO_API_SESSION": "abc123", "theme": "dark"}

    def test_json_body(self):
        """JSON bodies are exposed through .json and .data."""
        request = RequestParser().parse(post_request(b'{"name": "Ann", "email": "a@b.co"}'))

        assert request.is_json
        assert request.json["name"] == "Ann"
        assert request.data == {"name": "Ann", "email": "a@b.co"}

    def test_form_body(self):
        """Form-encoded bodies flatten to the first value per field."""
        request = RequestParser().parse(
            post_request(b"name=Ann&subject=Hi&subject=Again", "application/x-www-form-urlencoded")
        )
        assert request.data == {"name": "Ann", "subject": "Hi"}

    def test_invalid_json_body(self):
        """A body that is not JSON is a 400."""
        request = RequestParser().parse(post_request(b"{not json"))
        with pytest.raises(HTTPParseError) as exc:
            request.data
        assert exc.value.status_code == 400

    def test_non_object_json_body(self):
        """.data requires a JSON object."""
        request = RequestParser().parse(post_request(b"[1, 2, 3]"))
        with pytest.raises(HTTPParseError):
            request.data

    def test_duplicate_headers_joined(self):
        """Repeated headers are joined with a comma."""
        raw = (
            b"GET / HTTP/1.1\r\n"
            b"X-Forwarded-For: 203.0.113.1\r\n"
            b"X-Forwarded-For: 10.0.0.1\r\n"
            b"\r\n"
        )
        request = RequestParser().parse(raw)
        assert request.headers["x-forwarded-for"] == "203.0.113.1, 10.0.0.1"


class TestParseErrors:
    """Malformed input maps to the right status."""

    def test_missing_terminator(self):
        with pytest.raises(HTTPParseError) as exc:
            RequestParser().parse(b"GET / HTTP/1.1\r\nHost: x\r\n")
        assert exc.value.status_code == 400

    def test_invalid_request_line(self):
        with pytest.raises(HTTPParseError) as exc:
            RequestParser().parse(b"GARBAGE\r\n\r\n")
        assert exc.value.status_code == 400

    def test_unknown_method(self):
        with pytest.raises(HTTPParseError) as exc:
            RequestParser().parse(b"BREW /pot HTTP/1.1\r\n\r\n")
        assert exc.value.status_code == 405

    def test_unsupported_version(self):
        with pytest.raises(HTTPParseError) as exc:
            RequestParser().parse(b"GET / HTTP/2.0\r\n\r\n")
        assert exc.value.status_code == 505

    def test_too_large(self):
        with pytest.raises(HTTPParseError) as exc:
            RequestParser(max_request_size=64).parse(post_request(b"x" * 100))
        assert exc.value.status_code == 413

    def test_path_traversal(self):
        with pytest.raises(HTTPParseError):
            RequestParser().parse(b"GET /api/../etc/passwd HTTP/1.1\r\n\r\n")

    def test_incomplete_body(self):
        raw = b"POST /api HTTP/1.1\r\nContent-Length: 10\r\n\r\nshort"
        with pytest.raises(HTTPParseError):
            RequestParser().parse(raw)


class TestKeepAlive:
    """Tests for HTTPRequest.is_keep_alive."""

    def test_http11_default_keep_alive(self):
        assert HTTPRequest(method="GET", path="/").is_keep_alive

    def test_http11_connection_close(self):
        request = HTTPRequest(method="GET", path="/", headers={"connection": "close"})
        assert not request.is_keep_alive

    def test_http10_default_close(self):
        assert not HTTPRequest(method="GET", path="/", version="HTTP/1.0").is_keep_alive

    def test_http10_explicit_keep_alive(self):
        request = HTTPRequest(method="GET", path="/", version="HTTP/1.0",
                              headers={"connection": "keep-alive"})
        assert request.is_keep_alive
