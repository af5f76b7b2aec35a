"""
TallyHub Backend — Request Validation Layer
=============================================

What:  Declarative field rules for user input, plus query/path parameter parsing.
Why:   Malformed requests are rejected before any service code or database
       statement runs.
How:   Each field has an ordered list of (predicate, message) rules. Every rule
       is evaluated (no short-circuit) and the messages of all violated rules,
       across all fields, are joined with ", " into the `error` detail of a
       single 400 "Invalid data" response.

Normalization (applied before the rules run):
    name:     surrounding whitespace trimmed
    email:    surrounding whitespace trimmed, lowercased
    password: used as sent

The FastAPI dependencies at the bottom of this module are what routes declare;
the plain functions above them are reusable from services and tests.
"""

import re
import uuid
from typing import Callable, Dict, List, NamedTuple, Optional, Sequence, Tuple, Union

from fastapi import Body, Query

from tallyhub.exceptions import ValidationError
from tallyhub.schemas.user import UserCreate, UserUpdate

Rule = Tuple[Callable[[str], bool], str]

NAME_PATTERN = re.compile(r"[a-zA-ZÀ-ÿ\s]+")
EMAIL_PATTERN = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
PASSWORD_PATTERN = re.compile(r"(?=.*[a-z])(?=.*[A-Z])(?=.*[0-9]).+")

NAME_MIN_LENGTH, NAME_MAX_LENGTH = 2, 100
EMAIL_MAX_LENGTH = 255
PASSWORD_MIN_LENGTH, PASSWORD_MAX_LENGTH = 8, 128

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100

INVALID_DATA = "Invalid data"

# ── Field Rules ───────────────────────────────────────────────────────────
NAME_RULES: Sequence[Rule] = (
    (lambda v: len(v) > 0, "Name is required"),
    (
        lambda v: NAME_MIN_LENGTH <= len(v) <= NAME_MAX_LENGTH,
        f"Name must be between {NAME_MIN_LENGTH} and {NAME_MAX_LENGTH} characters",
    ),
    (lambda v: NAME_PATTERN.fullmatch(v) is not None, "Name must contain only letters and spaces"),
)

EMAIL_RULES: Sequence[Rule] = (
    (lambda v: len(v) > 0, "Email is required"),
    (lambda v: EMAIL_PATTERN.fullmatch(v) is not None, "Email must be a valid address"),
    (lambda v: len(v) <= EMAIL_MAX_LENGTH, f"Email must not exceed {EMAIL_MAX_LENGTH} characters"),
)

PASSWORD_RULES: Sequence[Rule] = (
    (
        lambda v: PASSWORD_MIN_LENGTH <= len(v) <= PASSWORD_MAX_LENGTH,
        f"Password must be between {PASSWORD_MIN_LENGTH} and {PASSWORD_MAX_LENGTH} characters",
    ),
    (
        lambda v: PASSWORD_PATTERN.fullmatch(v) is not None,
        "Password must contain at least one uppercase letter, one lowercase letter and one number",
    ),
)


def normalize_name(value: Optional[str]) -> str:
    return (value or "").strip()


def normalize_email(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def check_rules(value: str, rules: Sequence[Rule]) -> List[str]:
    """Return the message of every rule `value` violates, in rule order."""
    return [message for predicate, message in rules if not predicate(value)]


def _raise_if_errors(errors: List[str]) -> None:
    if errors:
        raise ValidationError(message=INVALID_DATA, error=", ".join(errors))


def validate_new_user(
    name: Optional[str],
    email: Optional[str],
    password: Optional[str],
) -> Tuple[str, str, str]:
    """
    Validate a creation payload.

    Returns:
        (name, email, password) normalized
    Raises:
        ValidationError: with every violated rule's message joined by ", "
    """
    clean_name = normalize_name(name)
    clean_email = normalize_email(email)
    raw_password = password or ""

    errors = (
        check_rules(clean_name, NAME_RULES)
        + check_rules(clean_email, EMAIL_RULES)
        + check_rules(raw_password, PASSWORD_RULES)
    )
    _raise_if_errors(errors)
    return clean_name, clean_email, raw_password


def validate_user_changes(name: Optional[str], email: Optional[str]) -> Dict[str, str]:
    """
    Validate a partial update. Only the fields that were sent are checked.

    Returns:
        dict with the normalized values of the fields present (may be empty)
    """
    changes: Dict[str, str] = {}
    errors: List[str] = []
    if name is not None:
        changes["name"] = normalize_name(name)
        errors += check_rules(changes["name"], NAME_RULES)
    if email is not None:
        changes["email"] = normalize_email(email)
        errors += check_rules(changes["email"], EMAIL_RULES)
    _raise_if_errors(errors)
    return changes


def coerce_user_id(value: Union[str, uuid.UUID]) -> uuid.UUID:
    """Parse a path/id value into a UUID or raise a 400-class error."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except ValueError:
        raise ValidationError(
            message="Parameter id must be a valid UUID",
            field="id",
            context={"value": str(value)[:64]},
        )


LEADING_INT_PATTERN = re.compile(r"\s*([+-]?\d+)")


def _parse_int(raw: Optional[str], default: int) -> Optional[int]:
    """Leading-integer parse: "2.5" -> 2, "10abc" -> 10, "abc" -> None."""
    if raw is None or raw.strip() == "":
        return default
    match = LEADING_INT_PATTERN.match(raw)
    return int(match.group(1)) if match else None


class PageParams(NamedTuple):
    page: int
    limit: int


def parse_pagination(page: Optional[str] = None, limit: Optional[str] = None) -> PageParams:
    """
    Parse page/limit query values.

    Absent or empty values fall back to page=1, limit=10. Otherwise the leading
    integer of each value is used (trailing text such as ".5" is ignored) and
    must satisfy page >= 1, 1 <= limit <= 100. Pages past the end are valid.
    """
    page_num = _parse_int(page, DEFAULT_PAGE)
    if page_num is None or page_num < 1:
        raise ValidationError(message="Parameter page must be a positive integer", field="page")

    limit_num = _parse_int(limit, DEFAULT_LIMIT)
    if limit_num is None or not 1 <= limit_num <= MAX_LIMIT:
        raise ValidationError(
            message=f"Parameter limit must be a number between 1 and {MAX_LIMIT}",
            field="limit",
        )
    return PageParams(page=page_num, limit=limit_num)


# ══════════════════════════════════════════════════════════════════════════
# FastAPI Dependencies
# ══════════════════════════════════════════════════════════════════════════


def pagination_params(
    page: Optional[str] = Query(default=None, description="Page number, starting at 1"),
    limit: Optional[str] = Query(default=None, description="Items per page (1-100, default 10)"),
) -> PageParams:
    # Declared as str so "abc" reaches our own 400 message instead of pydantic's
    return parse_pagination(page, limit)


def valid_user_id(user_id: str) -> uuid.UUID:
    return coerce_user_id(user_id)


def required_email(
    email: Optional[str] = Query(default=None, description="E-mail address to look up"),
) -> str:
    normalized = normalize_email(email)
    if not normalized:
        raise ValidationError(message="Email is required", field="email")
    return normalized


def validated_user_create(payload: UserCreate) -> UserCreate:
    name, email, password = validate_new_user(payload.name, payload.email, payload.password)
    return UserCreate(name=name, email=email, password=password)


def validated_user_update(payload: Optional[UserUpdate] = Body(default=None)) -> UserUpdate:
    if payload is None:
        return UserUpdate()
    return UserUpdate(**validate_user_changes(payload.name, payload.email))
