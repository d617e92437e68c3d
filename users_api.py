"""FastAPI routes for user profiles and administration."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from pymongo.database import Database

import store
from auth import USER_TYPES, ProviderDetails, current_user, require_user_type
from rewards_api import WALLET_PATTERN
from vaccinations_api import get_schedule, report_for_child

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])
admin_router = APIRouter(prefix="/api/admin", tags=["admin"])


class ProfileUpdate(BaseModel):
    fullName: str | None = Field(default=None, min_length=1)
    mobile: str | None = None
    walletAddress: str | None = Field(default=None, pattern=WALLET_PATTERN)
    healthcareProvider: ProviderDetails | None = None


class AdminUserUpdate(BaseModel):
    fullName: str | None = Field(default=None, min_length=1)
    userType: str | None = None
    isActive: bool | None = None
    mobile: str | None = None


# ------------------ profile ------------------

@router.get("/profile")
def get_profile(user: dict = Depends(current_user)):
    return {"success": True, "data": store.serialize(user)}


@router.put("/profile")
def update_profile(
    body: ProfileUpdate,
    user: dict = Depends(current_user),
    db: Database = Depends(store.get_db),
):
    changes = body.model_dump(exclude_none=True)
    if "walletAddress" in changes:
        changes["walletAddress"] = changes["walletAddress"].lower()
    updated = store.update_user(db, user["_id"], changes)
    return {"success": True, "message": "Profile updated", "data": store.serialize(updated)}


@router.get("/statistics")
def get_statistics(
    user: dict = Depends(require_user_type("parent")),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    children = []
    for child in store.children_for_parent(db, user["_id"]):
        report = report_for_child(db, child, schedule)
        children.append({
            "id": str(child["_id"]),
            "childId": child["childId"],
            "fullName": child["fullName"],
            "ageInMonths": report.age_in_months,
            "overallStatus": report.overall_status,
            "overdueCount": len(report.overdue()),
            "upcomingCount": len(report.upcoming()),
            **report.stats(),
        })

    return {
        "success": True,
        "data": {
            "totalChildren": len(children),
            "fullyVaccinated": sum(1 for c in children if c["overallStatus"] == "completed"),
            "withOverdueVaccines": sum(1 for c in children if c["overdueCount"]),
            "children": children,
        },
    }


# ------------------ admin ------------------

def _user_or_404(db: Database, user_id: str) -> dict:
    user = store.find_user(db, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _set_active(db: Database, admin: dict, user_id: str, active: bool) -> dict:
    target = _user_or_404(db, user_id)
    if target["_id"] == admin["_id"] and not active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Administrators cannot deactivate themselves")
    updated = store.update_user(db, target["_id"], {"isActive": active})
    logger.info("Admin %s set user %s active=%s", admin["_id"], target["_id"], active)
    return updated


@admin_router.get("/stats")
def get_admin_stats(
    admin: dict = Depends(require_user_type("admin")),
    db: Database = Depends(store.get_db),
):
    return {"success": True, "data": store.collection_counts(db)}


@admin_router.get("/users")
def list_users(
    userType: str | None = Query(default=None),
    active: bool | None = Query(default=None),
    admin: dict = Depends(require_user_type("admin")),
    db: Database = Depends(store.get_db),
):
    return {"success": True, "data": store.serialize(store.list_users(db, userType, active))}


@admin_router.get("/users/{user_id}")
def get_user(
    user_id: str,
    admin: dict = Depends(require_user_type("admin")),
    db: Database = Depends(store.get_db),
):
    return {"success": True, "data": store.serialize(_user_or_404(db, user_id))}


@admin_router.put("/users/{user_id}")
def update_user(
    user_id: str,
    body: AdminUserUpdate,
    admin: dict = Depends(require_user_type("admin")),
    db: Database = Depends(store.get_db),
):
    target = _user_or_404(db, user_id)
    changes = body.model_dump(exclude_none=True)
    if "userType" in changes and changes["userType"] not in USER_TYPES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user type")
    if changes.get("isActive") is False and target["_id"] == admin["_id"]:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Administrators cannot deactivate themselves")

    updated = store.update_user(db, target["_id"], changes)
    return {"success": True, "data": store.serialize(updated)}


@admin_router.delete("/users/{user_id}")
def deactivate_user(
    user_id: str,
    admin: dict = Depends(require_user_type("admin")),
    db: Database = Depends(store.get_db),
):
    updated = _set_active(db, admin, user_id, False)
    return {"success": True, "message": "User deactivated", "data": store.serialize(updated)}


@admin_router.post("/users/{user_id}/reactivate")
def reactivate_user(
    user_id: str,
    admin: dict = Depends(require_user_type("admin")),
    db: Database = Depends(store.get_db),
):
    updated = _set_active(db, admin, user_id, True)
    return {"success": True, "message": "User reactivated", "data": store.serialize(updated)}


@admin_router.get("/vaccination-records")
def list_vaccination_records(
    limit: int = Query(default=100, ge=1, le=1000),
    admin: dict = Depends(require_user_type("admin")),
    db: Database = Depends(store.get_db),
):
    return {"success": True, "data": store.serialize(store.recent_records(db, limit))}
