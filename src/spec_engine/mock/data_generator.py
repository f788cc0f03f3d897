"""
Mock value generation
=====================
Produces values for schema leaves.

A property's ``x-ouroboros-mock`` decides the value:
  - ``{{$category.method(key=value, ...)}}`` → evaluated against the provider table
  - any other non-blank string → returned verbatim
  - non-string values → returned verbatim
  - blank or missing → a value guessed from the field name, then the type
"""
from __future__ import annotations

import logging
import random
import re
import string
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from src.shared.constants import X_MOCK

logger = logging.getLogger(__name__)

EXPRESSION_PATTERN = re.compile(r"^\{\{\$(.*?)\}\}$")
PARAM_PATTERN = re.compile(r"(\w+)\s*=\s*(-?\d+(?:\.\d+)?|'.*?'|\".*?\")")
ERROR_PREFIX = "[FAKER_ERROR]"


# ──────────────────────────────────────────────────────
# WORD LISTS
# ──────────────────────────────────────────────────────

_FIRST_NAMES = [
    "James", "Mary", "Robert", "Patricia", "John", "Jennifer", "Michael",
    "Linda", "David", "Elizabeth", "Minjun", "Seoyeon", "Aarav", "Sofia",
]
_LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller",
    "Davis", "Kim", "Lee", "Park", "Martinez", "Wilson", "Anderson",
]
_DOMAINS = ["example.com", "mail.test", "corp.example", "demo.io"]
_WORDS = [
    "alpha", "bravo", "delta", "echo", "lorem", "ipsum", "dolor", "amet",
    "vector", "signal", "orbit", "matrix", "harbor", "summit", "pixel",
]
_CITIES = ["Seoul", "Busan", "New York", "London", "Berlin", "Tokyo", "Paris", "Toronto"]
_COUNTRIES = ["South Korea", "United States", "United Kingdom", "Germany", "Japan", "France"]
_STREETS = ["Main St", "Oak Ave", "Maple Rd", "Cedar Ln", "Park Blvd"]
_COMPANIES = ["Acme Corp", "Globex", "Initech", "Umbrella", "Hooli", "Stark Industries"]
_PRODUCTS = ["Keyboard", "Monitor", "Chair", "Notebook", "Headset", "Backpack"]
_COLORS = ["red", "green", "blue", "black", "white", "orange", "purple"]
_STATUSES = ["active", "pending", "inactive", "archived"]


def _word() -> str:
    return random.choice(_WORDS)


def _sentence(words: int = 6) -> str:
    text = " ".join(random.choice(_WORDS) for _ in range(max(words, 1)))
    return text.capitalize() + "."


def _int(min: Any = 1, max: Any = 100) -> int:  # noqa: A002
    low, high = int(float(min)), int(float(max))
    if low > high:
        low, high = high, low
    return random.randint(low, high)


def _decimal(min: Any = 1000, max: Any = 100000, digits: Any = 2) -> float:  # noqa: A002
    low, high = float(min), float(max)
    if low > high:
        low, high = high, low
    return round(random.uniform(low, high), int(float(digits)))


def _email() -> str:
    first = random.choice(_FIRST_NAMES).lower()
    last = random.choice(_LAST_NAMES).lower()
    return f"{first}.{last}@{random.choice(_DOMAINS)}"


def _past(days: Any = 365) -> str:
    delta = timedelta(days=random.randint(1, int(float(days))), seconds=random.randint(0, 86400))
    return (datetime.now(timezone.utc) - delta).isoformat()


def _future(days: Any = 90) -> str:
    delta = timedelta(days=random.randint(1, int(float(days))), seconds=random.randint(0, 86400))
    return (datetime.now(timezone.utc) + delta).isoformat()


# ──────────────────────────────────────────────────────
# PROVIDER TABLE
# category -> method -> callable(**params)
# ──────────────────────────────────────────────────────

PROVIDERS: dict[str, dict[str, Callable[..., Any]]] = {
    "name": {
        "firstName": lambda: random.choice(_FIRST_NAMES),
        "lastName": lambda: random.choice(_LAST_NAMES),
        "fullName": lambda: f"{random.choice(_FIRST_NAMES)} {random.choice(_LAST_NAMES)}",
        "name": lambda: f"{random.choice(_FIRST_NAMES)} {random.choice(_LAST_NAMES)}",
        "username": lambda: f"{random.choice(_FIRST_NAMES).lower()}{random.randint(1, 999)}",
    },
    "internet": {
        "emailAddress": _email,
        "email": _email,
        "url": lambda: f"https://{random.choice(_DOMAINS)}/{_word()}",
        "domainName": lambda: random.choice(_DOMAINS),
        "ipV4Address": lambda: ".".join(str(random.randint(1, 254)) for _ in range(4)),
        "uuid": lambda: str(uuid.uuid4()),
        "password": lambda: "".join(random.choices(string.ascii_letters + string.digits, k=12)),
        "image": lambda: f"https://picsum.photos/seed/{random.randint(1, 1000)}/200/200",
    },
    "number": {
        "int": _int,
        "numberBetween": _int,
        "randomDigit": lambda: random.randint(0, 9),
        "decimal": _decimal,
        "randomDouble": _decimal,
    },
    "bool": {"bool": lambda: random.random() > 0.5},
    "lorem": {
        "word": _word,
        "sentence": _sentence,
        "paragraph": lambda: " ".join(_sentence() for _ in range(3)),
        "characters": lambda length=10: "".join(
            random.choices(string.ascii_lowercase, k=int(float(length)))
        ),
    },
    "address": {
        "city": lambda: random.choice(_CITIES),
        "country": lambda: random.choice(_COUNTRIES),
        "streetAddress": lambda: f"{random.randint(1, 9999)} {random.choice(_STREETS)}",
        "zipCode": lambda: f"{random.randint(10000, 99999)}",
        "latitude": lambda: round(random.uniform(-90.0, 90.0), 6),
        "longitude": lambda: round(random.uniform(-180.0, 180.0), 6),
    },
    "phoneNumber": {
        "cellPhone": lambda: f"010-{random.randint(1000, 9999)}-{random.randint(1000, 9999)}",
        "phoneNumber": lambda: f"+1-{random.randint(200, 999)}-{random.randint(100, 999)}-{random.randint(1000, 9999)}",
    },
    "company": {
        "name": lambda: random.choice(_COMPANIES),
        "industry": lambda: random.choice(["Software", "Retail", "Finance", "Logistics"]),
    },
    "commerce": {
        "productName": lambda: random.choice(_PRODUCTS),
        "price": lambda min=1, max=1000: f"{_decimal(min, max):.2f}",  # noqa: A002
        "color": lambda: random.choice(_COLORS),
    },
    "date": {
        "past": _past,
        "future": _future,
        "birthday": lambda: _past(365 * 60)[:10],
    },
    "idNumber": {"valid": lambda: str(uuid.uuid4())},
}


def _parse_params(raw: str) -> dict[str, str]:
    params: dict[str, str] = {}
    for key, value in PARAM_PATTERN.findall(raw):
        params[key] = value.strip("'\"")
    return params


def evaluate_expression(expression: str) -> Any:
    """Evaluate ``{{$category.method(k=v)}}``; None when it cannot be evaluated."""
    match = EXPRESSION_PATTERN.match(expression.strip())
    if match is None:
        return None
    inner = match.group(1).strip()
    path, _, raw_params = inner.partition("(")
    parts = path.strip().split(".")
    if len(parts) < 2:
        return None
    category, method = parts[0], parts[1]
    provider = PROVIDERS.get(category, {}).get(method)
    if provider is None:
        return None
    try:
        return provider(**_parse_params(raw_params.rstrip(")")))
    except (TypeError, ValueError) as exc:
        logger.debug("Mock expression failed: %s (%s)", expression, exc)
        return None


# ──────────────────────────────────────────────────────
# FIELD-NAME HEURISTICS
# Order matters: first match wins.
# ──────────────────────────────────────────────────────

_FIELD_PATTERNS: list[tuple[tuple[str, ...], Callable[[], Any]]] = [
    (("uuid",), lambda: str(uuid.uuid4())),
    (("email", "mail"), _email),
    (("phone", "mobile", "tel"), PROVIDERS["phoneNumber"]["phoneNumber"]),
    (("first_name", "firstname"), PROVIDERS["name"]["firstName"]),
    (("last_name", "lastname", "surname"), PROVIDERS["name"]["lastName"]),
    (("username", "nickname", "author", "name"), PROVIDERS["name"]["fullName"]),
    (("image", "avatar", "photo", "thumbnail"), PROVIDERS["internet"]["image"]),
    (("url", "link", "href", "website"), PROVIDERS["internet"]["url"]),
    (("created", "updated", "date", "_at"), _past),
    (("city",), PROVIDERS["address"]["city"]),
    (("country",), PROVIDERS["address"]["country"]),
    (("address", "street"), PROVIDERS["address"]["streetAddress"]),
    (("status", "state"), lambda: random.choice(_STATUSES)),
    (("title", "subject"), lambda: _sentence(3).rstrip(".")),
    (("description", "content", "message", "comment", "body"), _sentence),
]


def smart_string(field_name: str) -> str | None:
    lower = field_name.lower()
    for patterns, generator in _FIELD_PATTERNS:
        if any(pattern in lower for pattern in patterns):
            return str(generator())
    return None


def value_for_type(schema: dict[str, Any], field_name: str = "") -> Any:
    """Type-driven fallback honouring ``enum`` and numeric bounds."""
    enum = schema.get("enum")
    if isinstance(enum, list) and enum:
        return random.choice(enum)
    schema_type = schema.get("type", "string")
    if schema_type == "integer":
        return _int(schema.get("minimum", 1), schema.get("maximum", 1000))
    if schema_type == "number":
        return _decimal(schema.get("minimum", 1), schema.get("maximum", 1000))
    if schema_type == "boolean":
        return random.random() > 0.5
    if schema_type == "array":
        return [_word(), _word()]
    if schema_type == "object":
        return {"message": _sentence()}
    fmt = schema.get("format")
    if fmt == "uuid":
        return str(uuid.uuid4())
    if fmt == "email":
        return _email()
    if fmt in ("date-time", "date"):
        value = _past()
        return value[:10] if fmt == "date" else value
    if fmt == "binary":
        return ""
    guessed = smart_string(field_name) if field_name else None
    return guessed if guessed is not None else _word()


def generate_value(schema: dict[str, Any] | None, field_name: str = "") -> Any:
    if schema is None:
        return None
    mock = schema.get(X_MOCK)
    if isinstance(mock, str):
        stripped = mock.strip()
        if stripped.startswith("{{$") and stripped.endswith("}}"):
            value = evaluate_expression(stripped)
            return value if value is not None else f"{ERROR_PREFIX} {mock}"
        if stripped:
            return mock
    elif mock is not None:
        return mock
    return value_for_type(schema, field_name)
