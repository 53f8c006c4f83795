"""Signature and freshness checks for provider login assertions."""

import hashlib
import hmac
import time
from collections.abc import Mapping
from typing import Any

import structlog
from pydantic import ValidationError as PydanticValidationError

from telegate.core.modules.verifier.models import REQUIRED_FIELDS, AuthAssertion, VerifiedIdentity
from telegate.errors import AssertionExpiredError, BadSignatureError, MalformedAssertionError, MissingFieldsError

logger = structlog.get_logger(__name__)

MAX_ASSERTION_AGE = 24 * 60 * 60  # seconds
SECRET_KEY_SALT = b"WebAppData"


def missing_fields(raw: Mapping[str, Any]) -> list[str]:
    """Return required wire fields that are absent or blank."""
    return [key for key in REQUIRED_FIELDS if raw.get(key) is None or str(raw.get(key)).strip() == ""]


def parse_assertion(raw: Mapping[str, Any]) -> AuthAssertion:
    """Build an AuthAssertion from a JSON body or query parameters.

    Raises:
        MissingFieldsError: If a required field is absent
        MalformedAssertionError: If a field has the wrong shape
    """
    missing = missing_fields(raw)
    if missing:
        raise MissingFieldsError(missing)
    try:
        return AuthAssertion.model_validate(dict(raw))
    except PydanticValidationError as e:
        raise MalformedAssertionError(f"Unparseable assertion: {e.error_count()} invalid field(s)") from e


def build_check_string(assertion: AuthAssertion) -> str:
    """Sorted `key=value` lines of every signed field."""
    return "\n".join(f"{key}={value}" for key, value in sorted(assertion.signed_fields().items()))


def compute_signature(check_string: str, shared_secret: str) -> str:
    secret_key = hmac.new(SECRET_KEY_SALT, shared_secret.encode(), hashlib.sha256).digest()
    return hmac.new(secret_key, check_string.encode(), hashlib.sha256).hexdigest()


def verify(assertion: AuthAssertion, shared_secret: str, now: int | None = None) -> VerifiedIdentity:
    """Verify a provider assertion against the shared secret.

    Args:
        assertion: Parsed assertion
        shared_secret: Provider bot token
        now: Current unix time, defaults to the system clock

    Returns:
        The identity carried by the assertion

    Raises:
        AssertionExpiredError: auth_date is older than 24 hours
        BadSignatureError: hash does not match
        MalformedAssertionError: assertion content cannot be processed
    """
    current = int(time.time()) if now is None else now
    if current - assertion.issued_at > MAX_ASSERTION_AGE:
        logger.warning("assertion_expired", external_user_id=assertion.external_user_id, auth_date=assertion.issued_at)
        raise AssertionExpiredError("Assertion is older than 24 hours")

    try:
        expected = compute_signature(build_check_string(assertion), shared_secret)
        matches = hmac.compare_digest(expected.encode(), assertion.signature.encode())
    except (UnicodeEncodeError, TypeError, ValueError) as e:
        raise MalformedAssertionError("Assertion could not be processed") from e

    if not matches:
        logger.warning("assertion_bad_signature", external_user_id=assertion.external_user_id)
        raise BadSignatureError("Signature mismatch")

    return VerifiedIdentity.from_assertion(assertion)
