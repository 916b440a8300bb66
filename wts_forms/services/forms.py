"""
Site form definitions and field validation.

Each form kind maps to one document-store collection, one durable queue key
and one circuit breaker.
"""

import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from wts_forms.services.submission_queue import NEWSLETTER_QUEUE_KEY, QUEUE_KEY

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_PATTERN = re.compile(r"^\+?[0-9 ()\-]{7,20}$")


@dataclass(frozen=True)
class FormDefinition:
    kind: str  # URL segment, e.g. "quote-requests"
    storage_key: str
    collection: str
    required_fields: Tuple[str, ...] = ()
    email_fields: Tuple[str, ...] = ()
    phone_fields: Tuple[str, ...] = ()
    busy_label_key: str = "sending"
    submit_label_key: str = "submitRequest"
    success_key: str = "submissionSuccess"


QUOTE_REQUEST_FORM = FormDefinition(
    kind="quote-requests",
    storage_key=QUEUE_KEY,
    collection="quote-requests",
    required_fields=("name", "email", "message"),
    email_fields=("email",),
    phone_fields=("phone",),
)

NEWSLETTER_FORM = FormDefinition(
    kind="newsletter-subscriptions",
    storage_key=NEWSLETTER_QUEUE_KEY,
    collection="newsletter-subscriptions",
    required_fields=("email",),
    email_fields=("email",),
    busy_label_key="subscribing",
    submit_label_key="subscribe",
    success_key="subscribeSuccess",
)

FORMS: Dict[str, FormDefinition] = {
    QUOTE_REQUEST_FORM.kind: QUOTE_REQUEST_FORM,
    NEWSLETTER_FORM.kind: NEWSLETTER_FORM,
}


def get_form(kind: str) -> Optional[FormDefinition]:
    return FORMS.get(kind)


def validate_fields(definition: FormDefinition, fields: Mapping[str, Any]) -> Dict[str, str]:
    """
    Check submitted values against the form's rules.

    Returns:
        {field_name: message_key} for every invalid field; empty when valid.
        Optional email/phone fields are only checked when filled in.
    """
    errors: Dict[str, str] = {}

    for name in definition.required_fields:
        value = fields.get(name)
        if value is None or str(value).strip() == "":
            errors[name] = "requiredField"

    for name in definition.email_fields:
        value = str(fields.get(name) or "").strip()
        if name not in errors and value and not EMAIL_PATTERN.match(value):
            errors[name] = "invalidEmail"

    for name in definition.phone_fields:
        value = str(fields.get(name) or "").strip()
        if name not in errors and value and not PHONE_PATTERN.match(value):
            errors[name] = "invalidPhone"

    return errors
