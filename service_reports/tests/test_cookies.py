"""
Tests for Set-Cookie directive extraction.
"""

from service_reports.app.adapters.cookies import extract_cookie_directives


class TestExtractCookieDirectives:
    """Test cases for extract_cookie_directives."""

    def test_extracts_pairs_ignoring_attributes(self):
        cookies = extract_cookie_directives([
            "accessToken=abc; Path=/; HttpOnly; Secure; SameSite=Strict",
            "refreshToken=def; Max-Age=3600",
        ])

        assert cookies == {"accessToken": "abc", "refreshToken": "def"}

    def test_attribute_order_does_not_matter(self):
        cookies = extract_cookie_directives(["Path=/; HttpOnly; csrfToken=xyz; Secure"])

        assert cookies == {"csrfToken": "xyz"}

    def test_expires_with_comma_is_ignored(self):
        cookies = extract_cookie_directives([
            "accessToken=abc; Expires=Wed, 21 Oct 2026 07:28:00 GMT; Path=/",
        ])

        assert cookies == {"accessToken": "abc"}

    def test_placeholder_values_are_skipped(self):
        cookies = extract_cookie_directives([
            "accessToken=; Path=/",
            'refreshToken=""; Path=/',
            "csrfToken=deleted; Max-Age=0",
        ])

        assert cookies == {}

    def test_later_lines_win(self):
        cookies = extract_cookie_directives([
            "accessToken=first; Path=/",
            "accessToken=second; Path=/",
        ])

        assert cookies["accessToken"] == "second"

    def test_value_keeps_embedded_equals(self):
        cookies = extract_cookie_directives(["accessToken=a.b=c; Path=/"])

        assert cookies["accessToken"] == "a.b=c"

    def test_no_headers(self):
        assert extract_cookie_directives([]) == {}
