"""FastAPI routes for healthcare provider profiles and activity statistics."""

import logging
import math
from datetime import date, datetime, timedelta
from typing import Literal

from dateutil.relativedelta import relativedelta
from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, field_validator
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import store
from auth import EMAIL_RE, ProviderDetails, provider_for_user, require_user_type
from vaccinations_api import STAFF

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/doctors", tags=["doctors"])

Period = Literal["week", "month", "quarter", "year"]


class DoctorUpdate(BaseModel):
    fullName: str | None = Field(default=None, min_length=1)
    email: str | None = None
    mobile: str | None = None
    healthcareProvider: ProviderDetails | None = None

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip().lower()
        if not EMAIL_RE.match(value):
            raise ValueError("Valid email is required")
        return value


def period_start(period: str, now: datetime) -> datetime:
    if period == "week":
        return now - timedelta(days=7)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if period == "quarter":
        return month_start.replace(month=(now.month - 1) // 3 * 3 + 1)
    if period == "year":
        return month_start.replace(month=1)
    return month_start


def monthly_stats(db: Database, provider_id, today: date | None = None, months: int = 12) -> list[dict]:
    """Dose counts for the last `months` calendar months, oldest first, zero-filled."""
    today = today or date.today()
    first = date(today.year, today.month, 1) - relativedelta(months=months - 1)
    counts = store.monthly_counts(db, provider_id, store.as_datetime(first))

    stats = []
    for i in range(months):
        key = (first + relativedelta(months=i)).strftime("%Y-%m")
        stats.append({"month": key, "count": counts.get(key, 0)})
    return stats


def _with_child_names(db: Database, records: list[dict]) -> list[dict]:
    names = store.child_names(db, [r["childId"] for r in records])
    out = []
    for record in records:
        row = store.serialize(record)
        row["childName"] = names.get(record["childId"])
        out.append(row)
    return out


def _pagination(page: int, limit: int, total: int) -> dict:
    return {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit)}


@router.get("")
def list_doctors(
    search: str | None = Query(default=None),
    specialization: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    admin: dict = Depends(require_user_type("admin")),
    db: Database = Depends(store.get_db),
):
    doctors, total = store.list_providers(db, search, specialization, (page - 1) * limit, limit)
    return {
        "success": True,
        "data": {"doctors": store.serialize(doctors), "pagination": _pagination(page, limit, total)},
    }


@router.get("/{doctor_id}")
def get_doctor(
    doctor_id: str,
    user: dict = Depends(require_user_type(*STAFF)),
    db: Database = Depends(store.get_db),
):
    return {"success": True, "data": store.serialize(provider_for_user(db, user, doctor_id))}


@router.put("/{doctor_id}")
def update_doctor(
    doctor_id: str,
    body: DoctorUpdate,
    user: dict = Depends(require_user_type(*STAFF)),
    db: Database = Depends(store.get_db),
):
    provider = provider_for_user(db, user, doctor_id)
    changes = body.model_dump(exclude_none=True)
    try:
        updated = store.update_user(db, provider["_id"], changes)
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already registered")

    logger.info("Provider profile %s updated by %s", provider["_id"], user["_id"])
    return {"success": True, "data": store.serialize(updated)}


@router.get("/{doctor_id}/stats")
def get_doctor_stats(
    doctor_id: str,
    user: dict = Depends(require_user_type(*STAFF)),
    db: Database = Depends(store.get_db),
):
    provider = provider_for_user(db, user, doctor_id)
    recent = store.records_by_provider(db, provider["_id"], limit=5)
    return {
        "success": True,
        "data": {
            "totalVaccinations": store.count_provider_records(db, provider["_id"]),
            "monthlyStats": monthly_stats(db, provider["_id"]),
            "topVaccines": store.top_vaccines(db, provider["_id"]),
            "recentVaccinations": _with_child_names(db, recent),
        },
    }


@router.get("/{doctor_id}/vaccinations")
def get_doctor_vaccinations(
    doctor_id: str,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    startDate: date | None = Query(default=None),
    endDate: date | None = Query(default=None),
    user: dict = Depends(require_user_type(*STAFF)),
    db: Database = Depends(store.get_db),
):
    provider = provider_for_user(db, user, doctor_id)
    start = store.as_datetime(startDate) if startDate else None
    end = store.as_datetime(endDate) + timedelta(days=1) - timedelta(microseconds=1) if endDate else None

    records = store.records_by_provider(db, provider["_id"], start, end, (page - 1) * limit, limit)
    total = store.count_provider_records(db, provider["_id"], start, end)
    return {
        "success": True,
        "data": {
            "vaccinations": _with_child_names(db, records),
            "pagination": _pagination(page, limit, total),
        },
    }


@router.get("/{doctor_id}/performance")
def get_doctor_performance(
    doctor_id: str,
    period: Period = Query(default="month"),
    user: dict = Depends(require_user_type(*STAFF)),
    db: Database = Depends(store.get_db),
):
    provider = provider_for_user(db, user, doctor_id)
    end = datetime.now()
    start = period_start(period, end)

    total = store.count_provider_records(db, provider["_id"], start, end)
    children = store.children_seen(db, provider["_id"], start, end)
    return {
        "success": True,
        "data": {
            "period": period,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
            "totalVaccinations": total,
            "uniqueChildren": children,
            "averageVaccinationsPerChild": round(total / children, 2) if children else 0,
        },
    }
