"""
Vaccination progress evaluation.

Maps a child's age and administered doses onto the immunization schedule.
Everything here is pure: the schedule and the reference date are passed in,
nothing is cached between calls.

Group status policy:
    completed  every entry of the group has a matching dose
    pending    no entry of the group has a matching dose
    overdue    some entries done, the group is due, and something is missing
    partial    some entries done, the group is not due yet
A pending group can still be due; its missing entries are listed under
``overdue`` for that group and in ``ProgressReport.overdue()``.
"""

import logging
from datetime import date, datetime
from typing import Iterable, Literal

from dateutil import parser as date_parser
from dateutil.relativedelta import relativedelta
from pydantic import Field

from vaccinations import AdministeredDose, CamelModel, ScheduleEntry, ScheduleError

logger = logging.getLogger(__name__)

SCHOOL_AGE_MONTHS = 72
ADULT_AGE_MONTHS = 216

GroupStatus = Literal["pending", "partial", "completed", "overdue"]
OverallStatus = Literal["completed", "overdue", "up_to_date"]


class InvalidDateError(ValueError):
    pass


def parse_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise InvalidDateError(f"Invalid date: {value!r}")
    try:
        return date_parser.parse(value).date()
    except (date_parser.ParserError, ValueError, OverflowError) as exc:
        raise InvalidDateError(f"Invalid date: {value!r}") from exc


def age_in_months(date_of_birth, reference_date=None) -> int:
    """Whole months lived; a month counts once its day of month is reached."""
    born = parse_date(date_of_birth)
    today = parse_date(reference_date) if reference_date is not None else date.today()
    if born > today:
        return 0
    delta = relativedelta(today, born)
    return delta.years * 12 + delta.months


class DoseRef(CamelModel):
    vaccine_name: str
    dose_number: int


class AgeGroupProgress(CamelModel):
    age_group: str
    nominal_age_in_months: int
    due: bool
    status: GroupStatus
    completed: list[DoseRef] = Field(default_factory=list)
    pending: list[ScheduleEntry] = Field(default_factory=list)
    overdue: list[ScheduleEntry] = Field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.completed) + len(self.pending)


class ProgressReport(CamelModel):
    age_in_months: int
    school_ready: bool
    full_schedule_completed: bool
    overall_status: OverallStatus
    progress: dict[str, AgeGroupProgress]

    def groups(self, max_nominal_age: int | None = None) -> list[AgeGroupProgress]:
        return [
            g for g in self.progress.values()
            if max_nominal_age is None or g.nominal_age_in_months <= max_nominal_age
        ]

    def upcoming(self) -> list[ScheduleEntry]:
        return [e for g in self.progress.values() if not g.due for e in g.pending]

    def overdue(self) -> list[ScheduleEntry]:
        return [e for g in self.progress.values() for e in g.overdue]

    def stats(self, max_nominal_age: int | None = None) -> dict:
        groups = self.groups(max_nominal_age)
        total = sum(g.total for g in groups)
        completed = sum(len(g.completed) for g in groups)
        return {
            "totalDoses": total,
            "completedDoses": completed,
            "completionRate": round(completed / total * 100) if total else 0,
        }

    def to_json(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")


def _group_status(completed: int, total: int, due: bool) -> GroupStatus:
    if completed == total:
        return "completed"
    if completed == 0:
        return "pending"
    return "overdue" if due else "partial"


def evaluate_progress(
    date_of_birth,
    doses: Iterable[AdministeredDose],
    schedule: Iterable[ScheduleEntry],
    reference_date=None,
) -> ProgressReport:
    schedule = tuple(schedule)
    if not schedule:
        raise ScheduleError("Vaccination schedule is empty")

    age = age_in_months(date_of_birth, reference_date)

    given = {dose.key for dose in doses}
    scheduled = {entry.key for entry in schedule}
    unmatched = given - scheduled
    if unmatched:
        logger.debug("Ignoring doses outside the schedule: %s", sorted(unmatched))

    grouped: dict[str, list[ScheduleEntry]] = {}
    for entry in schedule:
        grouped.setdefault(entry.age_group, []).append(entry)

    progress: dict[str, AgeGroupProgress] = {}
    for label, entries in grouped.items():
        nominal = min(entry.nominal_age_months for entry in entries)
        due = nominal <= age
        done = [e for e in entries if e.key in given]
        missing = [e for e in entries if e.key not in given]

        progress[label] = AgeGroupProgress(
            age_group=label,
            nominal_age_in_months=nominal,
            due=due,
            status=_group_status(len(done), len(entries), due),
            completed=[DoseRef(vaccine_name=e.vaccine_name, dose_number=e.dose_number) for e in done],
            pending=missing,
            overdue=missing if due else [],
        )

    school_ready = all(
        g.status == "completed"
        for g in progress.values()
        if g.nominal_age_in_months <= SCHOOL_AGE_MONTHS
    )
    full = all(g.status == "completed" for g in progress.values())

    if full:
        overall: OverallStatus = "completed"
    elif any(g.overdue for g in progress.values()):
        overall = "overdue"
    else:
        overall = "up_to_date"

    return ProgressReport(
        age_in_months=age,
        school_ready=school_ready,
        full_schedule_completed=full,
        overall_status=overall,
        progress=progress,
    )
