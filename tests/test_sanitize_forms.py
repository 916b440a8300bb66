"""
Tests for input sanitisation, form validation and translations.
"""

import pytest

from wts_forms.services.forms import (
    NEWSLETTER_FORM,
    QUOTE_REQUEST_FORM,
    get_form,
    validate_fields,
)
from wts_forms.services.messages import TRANSLATIONS, get_translation
from wts_forms.services.sanitize import escape_html, sanitize_fields


class TestEscapeHtml:
    def test_script_tag_neutralised(self):
        assert escape_html("<script>alert('x')</script>") == (
            "&lt;script&gt;alert(&#x27;x&#x27;)&lt;&#x2F;script&gt;"
        )

    @pytest.mark.parametrize(
        "raw,escaped",
        [
            ("&", "&amp;"),
            ('"', "&quot;"),
            ("/", "&#x2F;"),
            ("a & b", "a &amp; b"),
        ],
    )
    def test_single_characters(self, raw, escaped):
        assert escape_html(raw) == escaped

    def test_ampersand_not_double_escaped_in_one_pass(self):
        assert escape_html("&lt;") == "&amp;lt;"

    def test_plain_text_untouched(self):
        assert escape_html("jane@example.com") == "jane@example.com"


class TestSanitizeFields:
    def test_values_and_keys_escaped(self):
        assert sanitize_fields({"<b>": "<i>hi</i>"}) == {"&lt;b&gt;": "&lt;i&gt;hi&lt;&#x2F;i&gt;"}

    def test_values_stringified_and_stripped(self):
        assert sanitize_fields({"name": "  Jane ", "count": 3, "optin": True, "phone": None}) == {
            "name": "Jane",
            "count": "3",
            "optin": "true",
            "phone": "",
        }


class TestValidation:
    def test_valid_quote_request(self):
        fields = {"name": "Jane", "email": "jane@example.com", "message": "Hello", "phone": "+856 20 1234 5678"}

        assert validate_fields(QUOTE_REQUEST_FORM, fields) == {}

    def test_required_fields(self):
        errors = validate_fields(QUOTE_REQUEST_FORM, {"name": "  ", "email": "jane@example.com"})

        assert errors == {"name": "requiredField", "message": "requiredField"}

    def test_invalid_email(self):
        errors = validate_fields(NEWSLETTER_FORM, {"email": "not-an-email"})

        assert errors == {"email": "invalidEmail"}

    def test_missing_email_reports_required_only(self):
        assert validate_fields(NEWSLETTER_FORM, {}) == {"email": "requiredField"}

    def test_optional_phone_checked_when_filled(self):
        fields = {"name": "Jane", "email": "jane@example.com", "message": "Hi", "phone": "call me"}

        assert validate_fields(QUOTE_REQUEST_FORM, fields) == {"phone": "invalidPhone"}

    def test_get_form(self):
        assert get_form("quote-requests") is QUOTE_REQUEST_FORM
        assert get_form("newsletter-subscriptions") is NEWSLETTER_FORM
        assert get_form("unknown") is None

    def test_forms_use_separate_queues(self):
        assert QUOTE_REQUEST_FORM.storage_key == "pendingSubmissions"
        assert NEWSLETTER_FORM.storage_key == "pendingNewsletterSignups"


class TestTranslations:
    def test_known_language(self):
        assert get_translation("requiredField", "fr") == "Ce champ est obligatoire."

    def test_unknown_language_falls_back_to_english(self):
        assert get_translation("requiredField", "de") == TRANSLATIONS["en"]["requiredField"]

    def test_missing_key_falls_back_to_english_then_key(self):
        assert get_translation("submissionQueued", "lo") == TRANSLATIONS["en"]["submissionQueued"]
        assert get_translation("noSuchKey", "en") == "noSuchKey"
