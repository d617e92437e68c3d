"""FastAPI routes for vaccination certificates."""

import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import eligibility
import store
from auth import child_for_user, require_user_type
from vaccinations_api import ANY_ROLE, get_schedule, report_for_child

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/certificates", tags=["certificates"])


class GenerateRequest(BaseModel):
    childId: str
    certificateType: str


class VerifyRequest(BaseModel):
    certificateId: str = Field(min_length=1)


def new_certificate_code(child: dict, certificate_type: str) -> str:
    stamp = store.now().strftime("%Y%m%d")
    suffix = secrets.token_hex(2).upper()
    return f"CERT-{certificate_type.upper()}-{child['childId']}-{stamp}-{suffix}"


def _check(certificate_type: str, report) -> dict:
    try:
        return eligibility.check_certificate(certificate_type, report)
    except eligibility.UnknownCertificateType as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


def _existing(certificate: dict) -> dict:
    return {
        "success": True,
        "message": "Certificate already exists",
        "data": {**store.serialize(certificate), "isExisting": True},
    }


@router.get("/eligibility/{child_id}/{certificate_type}")
def get_eligibility(
    child_id: str,
    certificate_type: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    report = report_for_child(db, child, schedule)
    return {
        "success": True,
        "data": {
            "certificateType": certificate_type,
            "childId": str(child["_id"]),
            "requirements": _check(certificate_type, report),
        },
    }


@router.post("/generate", status_code=status.HTTP_201_CREATED)
def generate_certificate(
    body: GenerateRequest,
    response: Response,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, body.childId)
    kind = body.certificateType

    existing = store.find_certificate(db, child["_id"], kind)
    if existing:
        response.status_code = status.HTTP_200_OK
        return _existing(existing)

    report = report_for_child(db, child, schedule)
    requirements = _check(kind, report)
    if not requirements["eligible"]:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "success": False,
                "error": "not_eligible",
                "message": "Not eligible for certificate generation",
                "reason": requirements["reason"],
                "requirements": requirements,
            },
        )

    if kind in eligibility.VERIFIABLE_TYPES:
        code = new_certificate_code(child, kind)
        download_url = None
    else:
        code = None
        download_url = f"/api/certificates/download/{child['_id']}/{kind}"

    doc = {
        "certificateId": code,
        "childId": child["_id"],
        "certificateType": kind,
        "status": "generated",
        "requirements": requirements,
        "downloadUrl": download_url,
        "issuedBy": user["_id"],
        "generatedAt": store.now(),
    }
    try:
        certificate = store.insert_certificate(db, doc)
    except DuplicateKeyError:
        response.status_code = status.HTTP_200_OK
        return _existing(store.find_certificate(db, child["_id"], kind))

    logger.info("Issued %s certificate %s for child %s", kind, code or "-", child["childId"])
    return {
        "success": True,
        "message": "Certificate generated successfully",
        "data": {**store.serialize(certificate), "isExisting": False},
    }


@router.get("/history/{child_id}")
def get_history(
    child_id: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
):
    child = child_for_user(db, user, child_id)
    return {"success": True, "data": store.serialize(store.certificates_for_child(db, child["_id"]))}


@router.get("/download/{child_id}/{certificate_type}")
def download_certificate(
    child_id: str,
    certificate_type: str,
    user: dict = Depends(require_user_type(*ANY_ROLE)),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    certificate = store.find_certificate(db, child["_id"], certificate_type)
    if not certificate:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Certificate not found")

    report = report_for_child(db, child, schedule)
    return {
        "success": True,
        "data": {
            "certificate": store.serialize(certificate),
            "child": store.serialize(child),
            "progress": report.to_json(),
        },
    }


@router.post("/verify")
def verify_certificate(body: VerifyRequest, db: Database = Depends(store.get_db)):
    certificate = store.find_certificate_by_code(db, body.certificateId)
    if not certificate:
        return {"success": True, "data": {"valid": False, "certificateId": body.certificateId}}

    child = store.find_child(db, certificate["childId"], include_inactive=True) or {}
    return {
        "success": True,
        "data": {
            "valid": True,
            "certificateId": certificate["certificateId"],
            "certificateType": certificate["certificateType"],
            "childName": child.get("fullName"),
            "generatedAt": certificate["generatedAt"].isoformat(),
        },
    }
