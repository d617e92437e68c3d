"""FastAPI routes for vaccination records and progress."""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database

import eligibility
import store
from auth import child_for_user, provider_for_user, require_user_type
from progress import ProgressReport, evaluate_progress
from vaccinations import VACCINATION_SCHEDULE, ScheduleEntry, find_entry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/vaccinations", tags=["vaccinations"])

ANY_ROLE = ("parent", "healthcare_provider", "admin")
STAFF = ("healthcare_provider", "admin")


def get_schedule() -> tuple[ScheduleEntry, ...]:
    return VACCINATION_SCHEDULE


def report_for_child(db: Database, child: dict, schedule, reference_date=None) -> ProgressReport:
    doses = store.load_doses(db, child["_id"])
    return evaluate_progress(child["dateOfBirth"], doses, schedule, reference_date)


def entry_json(entries: list[ScheduleEntry]) -> list[dict]:
    return [e.model_dump(by_alias=True, mode="json") for e in entries]


class VaccinationRecordCreate(BaseModel):
    childId: str
    vaccineName: str = Field(min_length=1)
    doseNumber: int = Field(ge=1)
    dateGiven: date
    location: str = Field(min_length=1)
    notes: str | None = None

    @field_validator("vaccineName", "location")
    @classmethod
    def strip_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


@router.get("/schedule")
def get_vaccination_schedule(schedule=Depends(get_schedule)):
    return {"success": True, "data": entry_json(list(schedule))}


@router.post("", status_code=status.HTTP_201_CREATED)
def add_vaccination_record(
    body: VaccinationRecordCreate,
    user: dict = Depends(require_user_type(*STAFF)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, body.childId)

    if body.dateGiven > date.today():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date given cannot be in the future")
    if body.dateGiven < child["dateOfBirth"].date():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Date given is before the child's birth")

    entry = find_entry(schedule, body.vaccineName, body.doseNumber)
    if entry is None:
        logger.warning(
            "Recording %s dose %s for child %s outside the schedule",
            body.vaccineName, body.doseNumber, child["childId"],
        )

    record = store.add_record(db, {
        **body.model_dump(),
        "childId": child["_id"],
        "givenBy": user["_id"],
        "visitAge": entry.age_group if entry else None,
    })
    logger.info(
        "Recorded %s dose %s for child %s by %s",
        body.vaccineName, body.doseNumber, child["childId"], user["_id"],
    )
    return {
        "success": True,
        "message": "Vaccination record added successfully",
        "data": store.serialize(record),
    }


@router.get("/progress/{child_id}")
def get_progress(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    report = report_for_child(db, child, schedule)
    return {"success": True, "data": report.to_json()}


@router.get("/upcoming/{child_id}")
def get_upcoming(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    report = report_for_child(db, child, schedule)
    return {"success": True, "data": entry_json(report.upcoming())}


@router.get("/overdue/{child_id}")
def get_overdue(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    report = report_for_child(db, child, schedule)
    return {"success": True, "data": entry_json(report.overdue())}


@router.get("/history/{child_id}")
def get_history(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
):
    child = child_for_user(db, user, child_id)
    return {"success": True, "data": store.serialize(store.records_for_child(db, child["_id"]))}


@router.get("/stats/{child_id}")
def get_stats(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    records = store.records_for_child(db, child["_id"])
    report = report_for_child(db, child, schedule)
    return {
        "success": True,
        "data": {
            "totalRecords": len(records),
            **report.stats(),
            "overallStatus": report.overall_status,
        },
    }


@router.get("/certificate/eligibility/{child_id}")
def get_certificate_eligibility(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    report = report_for_child(db, child, schedule)
    return {
        "success": True,
        "data": {
            kind: check(report) for kind, check in eligibility.CERTIFICATE_CHECKS.items()
        },
    }


@router.get("/doctor/{doctor_id}/history")
def get_doctor_history(
    doctor_id: str,
    user: dict = Depends(require_user_type(*STAFF)),
    db: Database = Depends(store.get_db),
):
    provider = provider_for_user(db, user, doctor_id)
    records = store.records_by_provider(db, provider["_id"])
    return {"success": True, "data": store.serialize(records)}
