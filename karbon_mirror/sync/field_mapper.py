"""Field helpers shared by the Karbon entity mappers.

Karbon payloads are inconsistently shaped: collections sometimes arrive as a
single object, names are spread across several optional fields, and dates
carry a time component we do not store. Every helper here tolerates ``None``
and wrong types and returns ``None`` instead of raising.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

from ..config import settings

# Entity kind -> path segment in the Karbon web app.
APP_URL_SEGMENTS: dict[str, str] = {
    "users": "team",
    "contacts": "contacts",
    "organizations": "organizations",
    "client-groups": "client-groups",
    "work-items": "work",
    "tasks": "tasks",
    "timesheets": "timesheets",
    "invoices": "invoices",
    "notes": "notes",
}

_TAX_YEAR_RE = re.compile(r"\b(20\d{2})\b")
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def karbon_app_url(kind: str, key: str | None) -> str | None:
    """Deep link into the Karbon web app for an entity key."""
    if not key:
        return None
    segment = APP_URL_SEGMENTS[kind]
    base = settings.app_base_url.rstrip("/")
    return f"{base}/{settings.app_tenant}#/{segment}/{key}"


def text(value: Any) -> str | None:
    """Non-empty string or None; numbers are stringified."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def first_present(*values: Any) -> str | None:
    """First value that normalizes to a non-empty string."""
    for value in values:
        result = text(value)
        if result:
            return result
    return None


def as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list:
    """Karbon returns single objects where arrays are expected; normalize."""
    if isinstance(value, list):
        return value
    if value is None or value == "":
        return []
    return [value]


def as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def as_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def as_bool(value: Any, default: bool | None = False) -> bool | None:
    if isinstance(value, bool):
        return value
    return default


def parse_date(value: Any) -> date | None:
    """``"2024-05-01T00:00:00Z"`` -> ``date(2024, 5, 1)``; keeps the date part only."""
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip().split("T")[0])
    except ValueError:
        return None


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 -> aware UTC datetime.

    Karbon emits up to seven fractional digits and a trailing ``Z``; both are
    normalized before parsing. Naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        raw = value.strip()
        if raw.endswith(("Z", "z")):
            raw = raw[:-1] + "+00:00"
        raw = _FRACTION_RE.sub(r"\1", raw)
        try:
            parsed = datetime.fromisoformat(raw)
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def primary_business_card(source: dict) -> dict:
    """The business card flagged primary, else the first one, else ``{}``."""
    cards = [c for c in as_list(source.get("BusinessCards")) if isinstance(c, dict)]
    for card in cards:
        if card.get("IsPrimaryCard"):
            return card
    return cards[0] if cards else {}


def pick_address(card: dict, label: str, *, fallback_first: bool = True) -> dict:
    addresses = [a for a in as_list(card.get("Addresses")) if isinstance(a, dict)]
    for address in addresses:
        if address.get("Label") == label:
            return address
    if fallback_first and addresses:
        return addresses[0]
    return {}


def address_fields(address: dict, prefix: str = "") -> dict:
    return {
        f"{prefix}address_line1": first_present(address.get("AddressLines"), address.get("Street")),
        f"{prefix}address_line2": text(address.get("AddressLine2")),
        f"{prefix}city": text(address.get("City")),
        f"{prefix}state": first_present(address.get("StateProvinceCounty"), address.get("State")),
        f"{prefix}zip_code": first_present(address.get("ZipCode"), address.get("PostalCode")),
        f"{prefix}country": first_present(address.get("CountryCode"), address.get("Country")),
    }


def pick_phone(card: dict, label: str | None = None) -> str | None:
    """Phone number with ``label``, or the first number when no label is given."""
    phones = [p for p in as_list(card.get("PhoneNumbers")) if isinstance(p, dict)]
    if label is None:
        return text(phones[0].get("Number")) if phones else None
    for phone in phones:
        if phone.get("Label") == label:
            return text(phone.get("Number"))
    return None


def card_emails(card: dict) -> list[str]:
    emails: list[str] = []
    for item in as_list(card.get("EmailAddresses")):
        if isinstance(item, dict):
            item = item.get("EmailAddress") or item.get("Address")
        value = text(item)
        if value:
            emails.append(value)
    return emails


def first_website(card: dict) -> str | None:
    sites = as_list(card.get("WebSites"))
    return text(sites[0]) if sites else None


def registration_numbers(accounting: dict) -> list[dict]:
    """RegistrationNumbers may be a single object or a list."""
    raw = accounting.get("RegistrationNumbers")
    if isinstance(raw, dict):
        return [raw] if raw.get("Type") else []
    return [r for r in as_list(raw) if isinstance(r, dict)]


def registration_value(entries: list[dict], *needles: str, exclude: str | None = None) -> str | None:
    """Last registration number whose Type contains any of ``needles``."""
    found: str | None = None
    for entry in entries:
        kind = entry.get("Type")
        if not isinstance(kind, str):
            continue
        if exclude and exclude in kind:
            continue
        if any(needle in kind for needle in needles):
            found = text(entry.get("RegistrationNumber")) or found
    return found


def parse_tax_year(item: dict) -> int | None:
    """Explicit TaxYear, else the YearEnd year, else a 20xx year in the title."""
    explicit = as_int(item.get("TaxYear"))
    if explicit:
        return explicit
    year_end = parse_date(item.get("YearEnd"))
    if year_end and 2000 < year_end.year < 2100:
        return year_end.year
    title = item.get("Title")
    if isinstance(title, str):
        match = _TAX_YEAR_RE.search(title)
        if match:
            return int(match.group(1))
    return None
