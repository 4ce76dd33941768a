"""
Contact data model for cross-account mirroring.

Provides:
- ContactRecord: immutable snapshot of one contact as fetched from one account
- GoldenContact: mutable merge accumulator with no single origin account
- Value types for labeled multi-valued fields (postal addresses, social
  profiles, instant message handles, partial dates)
- Equality helpers used for bucketing and duplicate suppression
- Conversion to/from plain JSON-compatible dictionaries
"""

from __future__ import annotations

import base64
from collections.abc import Callable
from dataclasses import dataclass, field, fields
from typing import Any, Generic, Optional, TypeVar, Union

from contact_mirror.utils.normalization import (
    composite_key,
    name_key,
    normalize_email,
    normalize_phone,
    normalize_text,
)

T = TypeVar("T")


@dataclass(frozen=True)
class LabeledValue(Generic[T]):
    """A (label, value) pair, e.g. ("work", "jo@example.com")."""

    label: str
    value: T


@dataclass(frozen=True)
class PostalAddress:
    """Postal address components."""

    street: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""
    iso_country_code: str = ""


@dataclass(frozen=True)
class SocialProfile:
    """A profile on a social service."""

    service: str = ""
    username: str = ""
    url: str = ""


@dataclass(frozen=True)
class InstantMessageHandle:
    """A handle on an instant messaging service."""

    service: str = ""
    username: str = ""


@dataclass(frozen=True)
class PartialDate:
    """
    Calendar date where any component may be unknown.

    Birthdays often have no year, and some providers attach a time of day
    to anniversaries; hour and minute are kept for round-tripping but never
    take part in equality checks (see date_key).
    """

    year: Optional[int] = None
    month: Optional[int] = None
    day: Optional[int] = None
    hour: Optional[int] = None
    minute: Optional[int] = None


# Field groups -----------------------------------------------------------------

# Singular text fields that the merge fills only when empty
FILLABLE_TEXT_FIELDS = (
    "middle_name",
    "nickname",
    "organization_name",
    "department_name",
    "job_title",
)

# Every singular text field of a contact, in display order
TEXT_FIELDS = ("given_name", "family_name", *FILLABLE_TEXT_FIELDS, "note")


def phone_key(value: str) -> str:
    return normalize_phone(value)


def email_key(value: str) -> str:
    return normalize_email(value)


def url_key(value: str) -> str:
    return normalize_text(value)


def postal_key(value: PostalAddress) -> str:
    return composite_key(
        value.street,
        value.city,
        value.state,
        value.postal_code,
        value.country,
        value.iso_country_code,
    )


def social_key(value: SocialProfile) -> str:
    return composite_key(value.service, value.username)


def im_key(value: InstantMessageHandle) -> str:
    return composite_key(value.service, value.username)


def date_key(value: PartialDate) -> tuple[Optional[int], Optional[int], Optional[int]]:
    return (value.day, value.month, value.year)


# Multi-valued labeled fields mapped to the key that decides value equality
LABELED_FIELDS: dict[str, Callable[[Any], Any]] = {
    "phone_numbers": phone_key,
    "email_addresses": email_key,
    "postal_addresses": postal_key,
    "urls": url_key,
    "social_profiles": social_key,
    "instant_message_handles": im_key,
    "dates": date_key,
}

# Field names requested from an account store on fetch
CONTACT_FIELDS = (*TEXT_FIELDS, "birthday", "image_data", *LABELED_FIELDS)


def labeled_equals(field_name: str, a: LabeledValue, b: LabeledValue) -> bool:
    """
    Check whether two labeled entries of the same field are duplicates.

    Entries are equal when the labels match exactly and the field's value
    keys match (phones digits-only, emails and urls case-insensitive,
    composites case-insensitive, dates on day/month/year).

    Raises:
        KeyError: If field_name is not a labeled field
    """
    key = LABELED_FIELDS[field_name]
    return a.label == b.label and key(a.value) == key(b.value)


def normalized_name(contact: Union["ContactRecord", "GoldenContact"]) -> str:
    """Return the name bucket key ("given||family") of a contact."""
    return name_key(contact.given_name, contact.family_name)


def display_name(contact: Union["ContactRecord", "GoldenContact"]) -> str:
    """Human-readable name, falling back to organization or first email."""
    name = " ".join(
        p.strip() for p in (contact.given_name, contact.family_name) if p.strip()
    )
    if name:
        return name
    if contact.organization_name.strip():
        return contact.organization_name.strip()
    if contact.email_addresses:
        return contact.email_addresses[0].value
    return "(no name)"


# Serialization helpers ----------------------------------------------------------

_VALUE_TYPES: dict[str, Any] = {
    "postal_addresses": PostalAddress,
    "social_profiles": SocialProfile,
    "instant_message_handles": InstantMessageHandle,
    "dates": PartialDate,
}


def _value_to_json(value: Any) -> Any:
    if isinstance(value, str):
        return value
    return {f.name: getattr(value, f.name) for f in fields(value)}


def _value_from_json(field_name: str, raw: Any) -> Any:
    value_type = _VALUE_TYPES.get(field_name)
    if value_type is None:
        return str(raw) if raw is not None else ""
    return value_type(**raw)


def _content_to_dict(contact: Union["ContactRecord", "GoldenContact"]) -> dict[str, Any]:
    data: dict[str, Any] = {name: getattr(contact, name) for name in TEXT_FIELDS}
    data["birthday"] = _value_to_json(contact.birthday) if contact.birthday else None
    data["image_data"] = (
        base64.b64encode(contact.image_data).decode("ascii")
        if contact.image_data is not None
        else None
    )
    for name in LABELED_FIELDS:
        data[name] = [
            {"label": entry.label, "value": _value_to_json(entry.value)}
            for entry in getattr(contact, name)
        ]
    return data


def _content_from_dict(data: dict[str, Any]) -> dict[str, Any]:
    content: dict[str, Any] = {name: data.get(name) or "" for name in TEXT_FIELDS}
    birthday = data.get("birthday")
    content["birthday"] = PartialDate(**birthday) if birthday else None
    image = data.get("image_data")
    content["image_data"] = base64.b64decode(image) if image is not None else None
    for name in LABELED_FIELDS:
        content[name] = [
            LabeledValue(
                label=entry.get("label") or "",
                value=_value_from_json(name, entry.get("value")),
            )
            for entry in data.get(name) or []
        ]
    return content


# Models -------------------------------------------------------------------------


@dataclass(frozen=True)
class ContactRecord:
    """
    Immutable snapshot of one contact fetched from one account.

    Attributes:
        id: Store identifier, unique within its account only
        account_id: Identifier of the owning account
        given_name, family_name, middle_name, nickname: Name parts
        organization_name, department_name, job_title: Work details
        note: Free-form note
        birthday: Optional partial date
        image_data: Optional raw image bytes
        phone_numbers, email_addresses, urls: Labeled strings
        postal_addresses, social_profiles, instant_message_handles, dates:
            Labeled structured values

    Records are never mutated; merges produce a GoldenContact and the
    store creates new records from it.
    """

    id: str
    account_id: str

    given_name: str = ""
    family_name: str = ""
    middle_name: str = ""
    nickname: str = ""
    organization_name: str = ""
    department_name: str = ""
    job_title: str = ""
    note: str = ""
    birthday: Optional[PartialDate] = None
    image_data: Optional[bytes] = None

    phone_numbers: tuple[LabeledValue[str], ...] = ()
    email_addresses: tuple[LabeledValue[str], ...] = ()
    postal_addresses: tuple[LabeledValue[PostalAddress], ...] = ()
    urls: tuple[LabeledValue[str], ...] = ()
    social_profiles: tuple[LabeledValue[SocialProfile], ...] = ()
    instant_message_handles: tuple[LabeledValue[InstantMessageHandle], ...] = ()
    dates: tuple[LabeledValue[PartialDate], ...] = ()

    def __post_init__(self) -> None:
        # Accept lists from callers but store tuples
        for name in LABELED_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    @classmethod
    def from_golden(
        cls, golden: "GoldenContact", record_id: str, account_id: str
    ) -> "ContactRecord":
        """Create a stored record from a golden contact."""
        content = {name: getattr(golden, name) for name in CONTACT_FIELDS}
        return cls(id=record_id, account_id=account_id, **content)

    @classmethod
    def from_dict(cls, data: dict[str, Any], account_id: str = "") -> "ContactRecord":
        """
        Create a ContactRecord from its dictionary form.

        Args:
            data: Dictionary as produced by to_dict()
            account_id: Account to tag the record with when the dictionary
                        carries none

        Raises:
            KeyError: If the dictionary has no "id"
        """
        return cls(
            id=str(data["id"]),
            account_id=data.get("account_id") or account_id,
            **_content_from_dict(data),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return {"id": self.id, "account_id": self.account_id, **_content_to_dict(self)}

    def __repr__(self) -> str:
        return (
            f"ContactRecord(id={self.id!r}, account_id={self.account_id!r}, "
            f"name={display_name(self)!r})"
        )


@dataclass
class GoldenContact:
    """
    Canonical contact produced by merging one duplicate cluster.

    Has the same content fields as ContactRecord but no id or account:
    a golden contact is inserted as a brand new record into every
    target account.
    """

    given_name: str = ""
    family_name: str = ""
    middle_name: str = ""
    nickname: str = ""
    organization_name: str = ""
    department_name: str = ""
    job_title: str = ""
    note: str = ""
    birthday: Optional[PartialDate] = None
    image_data: Optional[bytes] = None

    phone_numbers: list[LabeledValue[str]] = field(default_factory=list)
    email_addresses: list[LabeledValue[str]] = field(default_factory=list)
    postal_addresses: list[LabeledValue[PostalAddress]] = field(default_factory=list)
    urls: list[LabeledValue[str]] = field(default_factory=list)
    social_profiles: list[LabeledValue[SocialProfile]] = field(default_factory=list)
    instant_message_handles: list[LabeledValue[InstantMessageHandle]] = field(
        default_factory=list
    )
    dates: list[LabeledValue[PartialDate]] = field(default_factory=list)

    @classmethod
    def from_record(
        cls, record: Union[ContactRecord, "GoldenContact"]
    ) -> "GoldenContact":
        """Start a golden contact as a copy of one record's content."""
        content: dict[str, Any] = {
            name: getattr(record, name) for name in (*TEXT_FIELDS, "birthday", "image_data")
        }
        for name in LABELED_FIELDS:
            content[name] = list(getattr(record, name))
        return cls(**content)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GoldenContact":
        """Create a GoldenContact from its dictionary form."""
        return cls(**_content_from_dict(data))

    def copy(self) -> "GoldenContact":
        """Return an independent copy (fresh lists)."""
        return GoldenContact.from_record(self)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-compatible dictionary."""
        return _content_to_dict(self)

    def __repr__(self) -> str:
        return (
            f"GoldenContact(name={display_name(self)!r}, "
            f"emails={[e.value for e in self.email_addresses]!r})"
        )
