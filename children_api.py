"""FastAPI routes for child registration and lookup."""

from datetime import date
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import AfterValidator, BaseModel, Field
from pymongo.database import Database

import store
from auth import child_for_user, require_user_type
from vaccinations_api import ANY_ROLE, STAFF, entry_json, get_schedule, report_for_child

router = APIRouter(prefix="/api/children", tags=["children"])

BloodType = Literal["A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-"]


def _not_in_future(value: date) -> date:
    if value > date.today():
        raise ValueError("Date of birth cannot be in the future")
    return value


BirthDate = Annotated[date, AfterValidator(_not_in_future)]


class ChildCreate(BaseModel):
    fullName: str = Field(min_length=1)
    dateOfBirth: BirthDate
    gender: Literal["male", "female"]
    bloodType: BloodType | None = None


class ChildUpdate(BaseModel):
    fullName: str | None = Field(default=None, min_length=1)
    dateOfBirth: BirthDate | None = None
    gender: Literal["male", "female"] | None = None
    bloodType: BloodType | None = None


@router.get("")
def list_my_children(
    user: dict = Depends(require_user_type("parent")),
    db: Database = Depends(store.get_db),
):
    return {"success": True, "data": store.serialize(store.children_for_parent(db, user["_id"]))}


@router.post("", status_code=status.HTTP_201_CREATED)
def register_child(
    body: ChildCreate,
    user: dict = Depends(require_user_type("parent")),
    db: Database = Depends(store.get_db),
):
    child = store.create_child(db, user["_id"], body.model_dump())
    return {
        "success": True,
        "message": "Child registered successfully",
        "data": store.serialize(child),
    }


@router.get("/search")
def search_children(
    q: str = Query(..., min_length=1),
    user: dict = Depends(require_user_type(*STAFF)),
    db: Database = Depends(store.get_db),
):
    return {"success": True, "data": store.serialize(store.search_children(db, q))}


@router.get("/{child_id}")
def get_child(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
):
    child = child_for_user(db, user, child_id)
    return {"success": True, "data": store.serialize(child)}


@router.put("/{child_id}")
def update_child(
    child_id: str,
    body: ChildUpdate,
    user: dict = Depends(require_user_type("parent")),
    db: Database = Depends(store.get_db),
):
    child = child_for_user(db, user, child_id)
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No changes supplied")

    updated = store.update_child(db, child["_id"], changes)
    return {"success": True, "data": store.serialize(updated)}


@router.delete("/{child_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_child(
    child_id: str,
    user: dict = Depends(require_user_type("parent")),
    db: Database = Depends(store.get_db),
) -> Response:
    child = child_for_user(db, user, child_id)
    store.update_child(db, child["_id"], {"isActive": False})
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{child_id}/vaccinations")
def get_child_vaccinations(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
):
    child = child_for_user(db, user, child_id)
    return {"success": True, "data": store.serialize(store.records_for_child(db, child["_id"]))}


@router.get("/{child_id}/upcoming")
def get_child_upcoming(
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
            "upcoming": entry_json(report.upcoming()),
            "overdue": entry_json(report.overdue()),
        },
    }
