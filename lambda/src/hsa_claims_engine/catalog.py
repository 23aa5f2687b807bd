"""Static catalog of known HSA expense descriptions.

Data sourced from HealthEquity's qualified medical expense list.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class CatalogEntry:
    name: str
    category: str
    irs_qualified: bool
    requires_prescription: bool = False
    requires_letter_of_necessity: bool = False
    description: str | None = None


def _entry(
    name: str,
    category: str,
    irs_qualified: bool = True,
    rx: bool = False,
    lmn: bool = False,
    description: str | None = None,
) -> CatalogEntry:
    return CatalogEntry(
        name=name,
        category=category,
        irs_qualified=irs_qualified,
        requires_prescription=rx,
        requires_letter_of_necessity=lmn,
        description=description,
    )


_RAW_CATALOG: list[CatalogEntry] = [
    # Medical
    _entry("Abortion", "Medical", description="Legal abortion services are eligible"),
    _entry("Acne treatment", "Medical", rx=True, description="For treatment of acne when prescribed"),
    _entry("Acupuncture", "Alternative Medicine"),
    _entry("Adoption (medical expenses)", "Medical", description="Medical expenses for adopted child"),
    _entry("Adult diapers", "Medical Supplies"),
    _entry("Age-related cognitive decline treatment", "Medical", lmn=True),
    _entry("Alcohol addiction treatment", "Medical"),
    _entry("Allergy medicine", "Pharmacy", rx=True),
    _entry("Allergy treatment", "Medical"),
    _entry("Ambulance", "Medical"),
    _entry("Annual physical examination", "Medical"),
    _entry("Artificial limbs", "Medical Equipment"),
    _entry("Artificial teeth", "Dental"),
    # Dental
    _entry("Dental treatment", "Dental"),
    _entry("Dental cleaning", "Dental"),
    _entry("Dentures", "Dental"),
    _entry("Dental X-rays", "Dental"),
    _entry("Dental fillings", "Dental"),
    _entry("Dental implants", "Dental"),
    _entry("Dental surgery", "Dental"),
    _entry("Orthodontia", "Dental"),
    # Vision
    _entry("Eye exam", "Vision"),
    _entry("Eyeglasses", "Vision"),
    _entry("Contact lenses", "Vision"),
    _entry("Contact lens solution", "Vision"),
    _entry("Laser eye surgery", "Vision"),
    _entry("Prescription sunglasses", "Vision"),
    # Mental health
    _entry("Therapy session", "Mental Health"),
    _entry("Psychiatric care", "Mental Health"),
    _entry("Psychologist", "Mental Health"),
    _entry("Mental health counseling", "Mental Health"),
    _entry("Substance abuse treatment", "Mental Health"),
    # Pharmacy
    _entry("Prescription medication", "Pharmacy", rx=True),
    _entry("Insulin", "Pharmacy"),
    _entry("Birth control pills", "Pharmacy", rx=True),
    _entry("Antacids", "Pharmacy", rx=True),
    _entry("Pain relievers", "Pharmacy", rx=True),
    _entry("Cold medicine", "Pharmacy", rx=True),
    _entry("Antibiotic ointment", "Pharmacy", rx=True),
    # Equipment and supplies
    _entry("Bandages", "Medical Supplies"),
    _entry("Crutches", "Medical Equipment"),
    _entry("Wheelchair", "Medical Equipment"),
    _entry("Blood pressure monitor", "Medical Equipment"),
    _entry("Hearing aids", "Medical Equipment"),
    _entry("CPAP machine", "Medical Equipment"),
    _entry("Oxygen equipment", "Medical Equipment"),
    # Therapy
    _entry("Physical therapy", "Therapy"),
    _entry("Speech therapy", "Therapy"),
    _entry("Occupational therapy", "Therapy"),
    _entry("Chiropractic treatment", "Therapy"),
    _entry("Massage therapy", "Therapy", lmn=True, description="Requires letter of medical necessity"),
    # Preventive care
    _entry("Flu shot", "Preventive Care"),
    _entry("Vaccines", "Preventive Care"),
    _entry("Mammogram", "Preventive Care"),
    _entry("Colonoscopy", "Preventive Care"),
    _entry("Well-baby visits", "Preventive Care"),
    # Not qualified, kept so the matcher can recognise them
    _entry(
        "Gym membership",
        "Fitness",
        irs_qualified=False,
        lmn=True,
        description="May be eligible with letter of medical necessity",
    ),
    _entry(
        "Cosmetic surgery",
        "Medical",
        irs_qualified=False,
        lmn=True,
        description="Only eligible if medically necessary, not for cosmetic purposes",
    ),
    _entry("Teeth whitening", "Dental", irs_qualified=False, description="Cosmetic procedure, not eligible"),
    _entry(
        "Vitamins",
        "Supplements",
        irs_qualified=False,
        lmn=True,
        description="Only eligible with prescription for specific medical condition",
    ),
    _entry(
        "Weight loss programs",
        "Fitness",
        irs_qualified=False,
        lmn=True,
        description="May be eligible with letter of medical necessity for specific conditions",
    ),
    _entry("Maternity clothes", "Personal", irs_qualified=False, description="Personal expense, not eligible"),
    _entry("Funeral expenses", "Personal", irs_qualified=False, description="Not eligible"),
    _entry("Childcare", "Personal", irs_qualified=False, description="Not eligible unless for medical care"),
    _entry("Diapers for infants", "Personal", irs_qualified=False, description="Not eligible"),
    _entry("Toothpaste", "Personal", irs_qualified=False, description="General health product, not eligible"),
]


def build_catalog(entries: list[CatalogEntry]) -> tuple[CatalogEntry, ...]:
    """Freeze a list of entries into a catalog, preserving order.

    Names must be unique ignoring case and surrounding whitespace.
    """
    seen: set[str] = set()
    for entry in entries:
        key = entry.name.strip().lower()
        if key in seen:
            raise ValueError(f"Duplicate catalog entry: {entry.name}")
        seen.add(key)
    return tuple(entries)


def qualified_service_names(catalog: tuple[CatalogEntry, ...], limit: int = 5) -> list[str]:
    """Names of the first `limit` IRS-qualified entries, in catalog order."""
    return [entry.name for entry in catalog if entry.irs_qualified][:limit]


SERVICE_CATALOG: tuple[CatalogEntry, ...] = build_catalog(_RAW_CATALOG)
