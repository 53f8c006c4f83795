"""Tests for the callback relay pages."""

from telegate.core.modules.auth.models import AuthResult
from telegate.core.modules.verifier.models import VerifiedIdentity
from telegate.web.pages import render_error_page, render_success_page, script_json


def make_result(first_name: str = "Ann") -> AuthResult:
    return AuthResult(identity=VerifiedIdentity(external_user_id=42, first_name=first_name), session_id="f" * 64)


class TestSuccessPage:
    """Tests for render_success_page."""

    def test_posts_to_configured_origin(self):
        """Test that the message targets the configured origin."""
        html = render_success_page(make_result(), "https://app.example.com")
        assert 'postMessage({"type": "auth-success"' in html
        assert '"https://app.example.com")' in html
        assert f'"sessionId": "{"f" * 64}"' in html

    def test_script_injection_is_neutralised(self):
        """Test that a hostile name cannot close the script element."""
        html = render_success_page(make_result("</script><script>alert(1)</script>"), "*")
        assert "</script><script>" not in html
        assert "\\u003c/script\\u003e" in html


class TestErrorPage:
    """Tests for render_error_page."""

    def test_no_message_posted(self):
        """Test that error pages contain no script."""
        html = render_error_page("Authentication Failed", "Invalid authentication data")
        assert "<script>" not in html
        assert "<h1>Authentication Failed</h1>" in html

    def test_text_is_escaped(self):
        """Test that error text is HTML-escaped."""
        html = render_error_page("Oops", "<b>bad</b>")
        assert "&lt;b&gt;bad&lt;/b&gt;" in html


def test_script_json_escapes_markup():
    assert script_json("<&>") == '"\\u003c\\u0026\\u003e"'
