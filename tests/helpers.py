from datetime import date

from dateutil.relativedelta import relativedelta

import auth
import store
from vaccinations import AdministeredDose, ScheduleEntry

SMALL_SCHEDULE = (
    ScheduleEntry(age_group="At Birth", vaccine_name="BCG", dose_number=1, total_doses=1),
    ScheduleEntry(age_group="2 Months", vaccine_name="DTaP", dose_number=1, total_doses=3),
)


def doses_for(schedule, max_age=None) -> list[AdministeredDose]:
    return [
        AdministeredDose(vaccine_name=e.vaccine_name, dose_number=e.dose_number)
        for e in schedule
        if max_age is None or e.nominal_age_months <= max_age
    ]


def headers_for(user: dict) -> dict:
    return {"Authorization": f"Bearer {auth.issue_token(user)}"}


def make_child(db, parent: dict, months: int = 0, name: str = "Layla") -> dict:
    born = date.today() - relativedelta(months=months)
    return store.create_child(db, parent["_id"], {
        "fullName": name,
        "dateOfBirth": born,
        "gender": "female",
    })


def record_doses(db, child: dict, provider: dict, entries) -> None:
    born = child["dateOfBirth"].date()
    for entry in entries:
        given = min(born + relativedelta(months=entry.nominal_age_months), date.today())
        store.add_record(db, {
            "childId": child["_id"],
            "vaccineName": entry.vaccine_name,
            "doseNumber": entry.dose_number,
            "dateGiven": given,
            "givenBy": provider["_id"],
            "location": "Riyadh Clinic",
        })
