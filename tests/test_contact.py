"""
Tests for the contact data model.

Tests ContactRecord and GoldenContact construction, the labeled value
equality rules and the dictionary conversion used by the stores.
"""

import pytest

from contact_mirror.sync.contact import (
    CONTACT_FIELDS,
    LABELED_FIELDS,
    ContactRecord,
    GoldenContact,
    InstantMessageHandle,
    LabeledValue,
    PartialDate,
    PostalAddress,
    SocialProfile,
    display_name,
    labeled_equals,
    normalized_name,
)


@pytest.fixture
def full_record():
    """Create a record with every kind of field populated."""
    return ContactRecord(
        id="c1",
        account_id="work",
        given_name="Jo",
        family_name="Lee",
        middle_name="Ann",
        nickname="JJ",
        organization_name="Acme",
        department_name="R&D",
        job_title="Engineer",
        note="Met at conference",
        birthday=PartialDate(month=4, day=12),
        image_data=b"\x89PNG\r\n",
        phone_numbers=[LabeledValue("mobile", "+1 (555) 010-2000")],
        email_addresses=[LabeledValue("work", "jo@acme.com")],
        postal_addresses=[
            LabeledValue("home", PostalAddress(street="1 Main St", city="Springfield"))
        ],
        urls=[LabeledValue("homepage", "https://jo.example.com")],
        social_profiles=[
            LabeledValue("", SocialProfile(service="GitHub", username="jolee"))
        ],
        instant_message_handles=[
            LabeledValue("", InstantMessageHandle(service="Matrix", username="@jo:x"))
        ],
        dates=[LabeledValue("anniversary", PartialDate(year=2010, month=6, day=1))],
    )


class TestContactRecord:
    """Tests for ContactRecord."""

    def test_lists_are_stored_as_tuples(self):
        """Test that labeled fields given as lists become tuples."""
        record = ContactRecord(
            id="1",
            account_id="a",
            email_addresses=[LabeledValue("home", "jo@x.com")],
        )
        assert isinstance(record.email_addresses, tuple)
        assert record.email_addresses[0].value == "jo@x.com"

    def test_record_is_immutable(self):
        """Test that records cannot be modified after creation."""
        record = ContactRecord(id="1", account_id="a", given_name="Jo")
        with pytest.raises(AttributeError):
            record.given_name = "Joe"  # type: ignore[misc]

    def test_dict_round_trip_keeps_content(self, full_record):
        """Test that to_dict/from_dict preserve every field."""
        restored = ContactRecord.from_dict(full_record.to_dict())
        assert restored == full_record

    def test_from_dict_uses_fallback_account(self):
        """Test that from_dict tags records without an account id."""
        record = ContactRecord.from_dict({"id": 7, "given_name": "Jo"}, account_id="home")
        assert record.id == "7"
        assert record.account_id == "home"
        assert record.family_name == ""
        assert record.phone_numbers == ()

    def test_from_dict_requires_id(self):
        """Test that a dictionary without id is rejected."""
        with pytest.raises(KeyError):
            ContactRecord.from_dict({"given_name": "Jo"})

    def test_from_golden_assigns_identity(self):
        """Test creating a stored record from a golden contact."""
        golden = GoldenContact(
            given_name="Jo", email_addresses=[LabeledValue("home", "jo@x.com")]
        )
        record = ContactRecord.from_golden(golden, record_id="n1", account_id="home")
        assert record.id == "n1"
        assert record.account_id == "home"
        assert record.given_name == "Jo"
        assert record.email_addresses == (LabeledValue("home", "jo@x.com"),)

    def test_image_is_base64_in_dict(self, full_record):
        """Test that image bytes are serialized as text."""
        data = full_record.to_dict()
        assert isinstance(data["image_data"], str)

    def test_repr_shows_name(self, full_record):
        """Test the record repr."""
        assert "Jo Lee" in repr(full_record)


class TestGoldenContact:
    """Tests for GoldenContact."""

    def test_from_record_copies_content(self, full_record):
        """Test that a golden contact starts as a copy of a record."""
        golden = GoldenContact.from_record(full_record)
        assert golden.organization_name == "Acme"
        assert golden.phone_numbers == list(full_record.phone_numbers)
        assert isinstance(golden.phone_numbers, list)

    def test_copy_is_independent(self):
        """Test that copy() does not share lists with the original."""
        golden = GoldenContact(email_addresses=[LabeledValue("home", "a@x.com")])
        clone = golden.copy()
        clone.email_addresses.append(LabeledValue("work", "b@x.com"))
        assert len(golden.email_addresses) == 1
        assert clone != golden

    def test_dict_round_trip(self, full_record):
        """Test GoldenContact dictionary conversion."""
        golden = GoldenContact.from_record(full_record)
        assert GoldenContact.from_dict(golden.to_dict()) == golden

    def test_dict_has_no_identity(self):
        """Test that golden dictionaries carry no id or account."""
        data = GoldenContact(given_name="Jo").to_dict()
        assert "id" not in data
        assert "account_id" not in data


class TestLabeledEquals:
    """Tests for labeled value equality."""

    def test_phone_compares_digits_only(self):
        """Test that phone formatting is ignored."""
        assert labeled_equals(
            "phone_numbers",
            LabeledValue("mobile", "+1 (555) 010-2000"),
            LabeledValue("mobile", "15550102000"),
        )

    def test_email_is_case_insensitive(self):
        """Test that email case and whitespace are ignored."""
        assert labeled_equals(
            "email_addresses",
            LabeledValue("home", " Jo@X.com"),
            LabeledValue("home", "jo@x.com"),
        )

    def test_label_must_match_exactly(self):
        """Test that the same value under another label is distinct."""
        assert not labeled_equals(
            "email_addresses",
            LabeledValue("home", "jo@x.com"),
            LabeledValue("work", "jo@x.com"),
        )

    def test_postal_address_compares_all_components(self):
        """Test postal address equality."""
        a = PostalAddress(street="1 Main St", city="Springfield", country="US")
        b = PostalAddress(street="1 main st", city="SPRINGFIELD", country="us")
        c = PostalAddress(street="1 Main St", city="Shelbyville", country="US")
        assert labeled_equals("postal_addresses", LabeledValue("", a), LabeledValue("", b))
        assert not labeled_equals(
            "postal_addresses", LabeledValue("", a), LabeledValue("", c)
        )

    def test_social_profile_ignores_url(self):
        """Test that social profiles compare on service and username."""
        a = SocialProfile(service="GitHub", username="jolee", url="https://a")
        b = SocialProfile(service="github", username="JoLee", url="https://b")
        assert labeled_equals("social_profiles", LabeledValue("", a), LabeledValue("", b))

    def test_dates_ignore_time_of_day(self):
        """Test that dates compare on day, month and year."""
        a = PartialDate(year=2010, month=6, day=1, hour=9)
        b = PartialDate(year=2010, month=6, day=1)
        c = PartialDate(month=6, day=1)
        assert labeled_equals("dates", LabeledValue("x", a), LabeledValue("x", b))
        assert not labeled_equals("dates", LabeledValue("x", a), LabeledValue("x", c))

    def test_unknown_field_raises(self):
        """Test that only labeled fields can be compared."""
        with pytest.raises(KeyError):
            labeled_equals("given_name", LabeledValue("", "a"), LabeledValue("", "a"))

    def test_every_labeled_field_is_fetched(self):
        """Test that the fetch field list covers every labeled field."""
        for name in LABELED_FIELDS:
            assert name in CONTACT_FIELDS


class TestNames:
    """Tests for name helpers."""

    def test_normalized_name(self):
        """Test the name bucket key."""
        record = ContactRecord(id="1", account_id="a", given_name=" Jo ", family_name="LEE")
        assert normalized_name(record) == "jo||lee"

    def test_normalized_name_empty(self):
        """Test that nameless records have an empty key."""
        record = ContactRecord(id="1", account_id="a", organization_name="Acme")
        assert normalized_name(record) == ""

    def test_display_name_fallbacks(self):
        """Test display name falls back to organization, then email."""
        assert display_name(GoldenContact(given_name="Jo", family_name="Lee")) == "Jo Lee"
        assert display_name(GoldenContact(organization_name="Acme")) == "Acme"
        assert (
            display_name(
                GoldenContact(email_addresses=[LabeledValue("home", "jo@x.com")])
            )
            == "jo@x.com"
        )
        assert display_name(GoldenContact()) == "(no name)"
