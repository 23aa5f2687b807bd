"""Tests for catalog module."""

import pytest

from hsa_claims_engine.catalog import SERVICE_CATALOG, CatalogEntry, build_catalog, qualified_service_names


def test_catalog_names_are_unique_ignoring_case() -> None:
    names = [entry.name.lower() for entry in SERVICE_CATALOG]
    assert len(names) == len(set(names))


def test_catalog_contains_known_entries() -> None:
    by_name = {entry.name: entry for entry in SERVICE_CATALOG}
    assert by_name["Dental cleaning"].irs_qualified is True
    assert by_name["Gym membership"].irs_qualified is False
    assert by_name["Allergy medicine"].requires_prescription is True
    assert by_name["Massage therapy"].requires_letter_of_necessity is True


def test_entries_are_immutable() -> None:
    entry = SERVICE_CATALOG[0]
    with pytest.raises(AttributeError):
        entry.name = "Changed"  # type: ignore[misc]


def test_build_catalog_rejects_case_insensitive_duplicates() -> None:
    entries = [
        CatalogEntry(name="Eye exam", category="Vision", irs_qualified=True),
        CatalogEntry(name="EYE EXAM ", category="Vision", irs_qualified=True),
    ]
    with pytest.raises(ValueError, match="Duplicate"):
        build_catalog(entries)


def test_build_catalog_preserves_order() -> None:
    entries = [
        CatalogEntry(name="B", category="x", irs_qualified=True),
        CatalogEntry(name="A", category="x", irs_qualified=True),
    ]
    assert [entry.name for entry in build_catalog(entries)] == ["B", "A"]


def test_qualified_service_names_skips_unqualified_and_limits() -> None:
    catalog = build_catalog(
        [
            CatalogEntry(name="Vitamins", category="Supplements", irs_qualified=False),
            CatalogEntry(name="Insulin", category="Pharmacy", irs_qualified=True),
            CatalogEntry(name="Crutches", category="Medical Equipment", irs_qualified=True),
        ]
    )
    assert qualified_service_names(catalog, limit=1) == ["Insulin"]
    assert qualified_service_names(catalog) == ["Insulin", "Crutches"]


def test_default_suggestions_are_first_five_qualified_entries() -> None:
    assert qualified_service_names(SERVICE_CATALOG) == [
        "Abortion",
        "Acne treatment",
        "Acupuncture",
        "Adoption (medical expenses)",
        "Adult diapers",
    ]
