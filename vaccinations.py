# vaccinations.py
# National immunization schedule and the dose types evaluated against it

import re
from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ScheduleError(Exception):
    """The schedule table is empty or one of its entries cannot be placed in time."""


_AGE_LABEL = re.compile(
    r"^(\d+)(?:\s*-\s*\d+)?\s*(month|year)s?$",
    re.IGNORECASE,
)


def nominal_age_from_label(label: str) -> int:
    """
    Age in months at which an age group falls due.
    "At Birth" -> 0, "2 Months" -> 2, "2 Years" -> 24,
    ranges such as "4-6 Years" use their lower bound (48).
    """
    text = (label or "").strip()
    if text.lower() in ("at birth", "birth"):
        return 0

    m = _AGE_LABEL.match(text)
    if not m:
        raise ScheduleError(f"Cannot derive a nominal age from age group {label!r}")

    value = int(m.group(1))
    if m.group(2).lower() == "year":
        return value * 12
    return value


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class ScheduleEntry(CamelModel):
    age_group: str
    vaccine_name: str
    dose_number: int = Field(ge=1)
    total_doses: int = Field(ge=1)
    age_in_months: int | None = Field(default=None, ge=0)
    description: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.vaccine_name, self.dose_number)

    @property
    def nominal_age_months(self) -> int:
        if self.age_in_months is not None:
            return self.age_in_months
        return nominal_age_from_label(self.age_group)


class AdministeredDose(CamelModel):
    vaccine_name: str
    dose_number: int
    child_id: str | None = None
    date_given: date | None = None
    provider_id: str | None = None

    @property
    def key(self) -> tuple[str, int]:
        return (self.vaccine_name, self.dose_number)

    @classmethod
    def from_record(cls, doc: dict) -> "AdministeredDose":
        given = doc.get("dateGiven")
        if isinstance(given, datetime):
            given = given.date()
        return cls(
            vaccine_name=doc["vaccineName"],
            dose_number=doc["doseNumber"],
            child_id=str(doc["childId"]) if doc.get("childId") else None,
            date_given=given,
            provider_id=str(doc["givenBy"]) if doc.get("givenBy") else None,
        )


# ------------------ schedule table ------------------

GROUP_DESCRIPTIONS = {
    "At Birth": "First dose of Hepatitis B vaccine and BCG for tuberculosis protection",
    "2 Months": "First dose of multiple vaccines including DTaP, IPV, and Hib",
    "4 Months": "Second dose of vaccines given at 2 months",
    "6 Months": "Third dose of most vaccines plus first influenza vaccine",
    "9 Months": "First dose of meningococcal vaccine",
    "12 Months": "First dose of MMR, Varicella, and Hepatitis A vaccines",
    "15 Months": "Fourth dose of DTaP, Hib, and PCV13",
    "18 Months": "Second dose of Hepatitis A vaccine",
    "2 Years": "Fifth dose of DTaP and second dose of MMR and Varicella",
    "4-6 Years": "Sixth dose of DTaP and third dose of MMR and Varicella",
    "11-12 Years": "Tdap booster, second meningococcal dose, and HPV vaccine",
    "16 Years": "Third meningococcal ACWY dose and first meningococcal B dose",
}

# (age group, vaccine, dose number, total doses)
_SCHEDULE_ROWS = [
    ("At Birth", "BCG", 1, 1),
    ("At Birth", "Hepatitis B", 1, 4),

    ("2 Months", "DTaP", 1, 6),
    ("2 Months", "IPV", 1, 5),
    ("2 Months", "Hib", 1, 4),
    ("2 Months", "Hepatitis B", 2, 4),
    ("2 Months", "PCV13", 1, 5),
    ("2 Months", "Rotavirus", 1, 3),

    ("4 Months", "DTaP", 2, 6),
    ("4 Months", "IPV", 2, 5),
    ("4 Months", "Hib", 2, 4),
    ("4 Months", "Hepatitis B", 3, 4),
    ("4 Months", "PCV13", 2, 5),
    ("4 Months", "Rotavirus", 2, 3),

    ("6 Months", "DTaP", 3, 6),
    ("6 Months", "IPV", 3, 5),
    ("6 Months", "Hib", 3, 4),
    ("6 Months", "Hepatitis B", 4, 4),
    ("6 Months", "PCV13", 3, 5),
    ("6 Months", "Rotavirus", 3, 3),
    ("6 Months", "Influenza", 1, 1),

    ("9 Months", "Meningococcal ACWY", 1, 3),

    ("12 Months", "MMR", 1, 3),
    ("12 Months", "Varicella", 1, 3),
    ("12 Months", "Hepatitis A", 1, 2),
    ("12 Months", "PCV13", 4, 5),

    ("15 Months", "DTaP", 4, 6),
    ("15 Months", "Hib", 4, 4),
    ("15 Months", "PCV13", 5, 5),

    ("18 Months", "Hepatitis A", 2, 2),

    ("2 Years", "DTaP", 5, 6),
    ("2 Years", "IPV", 4, 5),
    ("2 Years", "MMR", 2, 3),
    ("2 Years", "Varicella", 2, 3),

    ("4-6 Years", "DTaP", 6, 6),
    ("4-6 Years", "IPV", 5, 5),
    ("4-6 Years", "MMR", 3, 3),
    ("4-6 Years", "Varicella", 3, 3),

    ("11-12 Years", "Tdap", 1, 1),
    ("11-12 Years", "Meningococcal ACWY", 2, 3),
    ("11-12 Years", "HPV", 1, 1),

    ("16 Years", "Meningococcal ACWY", 3, 3),
    ("16 Years", "Meningococcal B", 1, 1),
]

VACCINATION_SCHEDULE: tuple[ScheduleEntry, ...] = tuple(
    ScheduleEntry(
        age_group=group,
        vaccine_name=vaccine,
        dose_number=dose,
        total_doses=total,
        age_in_months=nominal_age_from_label(group),
        description=GROUP_DESCRIPTIONS.get(group),
    )
    for group, vaccine, dose, total in _SCHEDULE_ROWS
)


def find_entry(schedule, vaccine_name: str, dose_number: int) -> ScheduleEntry | None:
    for entry in schedule:
        if entry.vaccine_name == vaccine_name and entry.dose_number == dose_number:
            return entry
    return None
