"""FastAPI routes for TAT token rewards on full schedule completion.

Claims are recorded in the store, one per child. Nothing is submitted on
chain, so every claim is reported as simulated.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

import eligibility
import store
from auth import child_for_user, require_user_type
from vaccinations_api import get_schedule, report_for_child

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/token-rewards", tags=["token-rewards"])

WALLET_PATTERN = r"^0x[a-fA-F0-9]{40}$"


class ClaimRequest(BaseModel):
    walletAddress: str = Field(pattern=WALLET_PATTERN)


@router.get("/eligibility/{child_id}")
def get_reward_eligibility(
    child_id: str,
    user: dict = Depends(require_user_type("parent")),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    report = report_for_child(db, child, schedule)
    data = eligibility.token_reward(report)
    data["alreadyClaimed"] = store.find_reward(db, child["_id"]) is not None
    return {"success": True, "data": data}


@router.get("/reward-calculation/{child_id}")
def get_reward_calculation(
    child_id: str,
    user: dict = Depends(require_user_type("parent")),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    report = report_for_child(db, child, schedule)
    stats = report.stats()
    return {
        "success": True,
        "data": eligibility.calculate_reward(stats["totalDoses"], report.full_schedule_completed),
    }


@router.post("/claim/{child_id}")
def claim_reward(
    child_id: str,
    body: ClaimRequest,
    user: dict = Depends(require_user_type("parent")),
    db: Database = Depends(store.get_db),
    schedule=Depends(get_schedule),
):
    child = child_for_user(db, user, child_id)
    report = report_for_child(db, child, schedule)
    decision = eligibility.token_reward(report)

    if not decision["eligible"]:
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "success": False,
                "error": "not_eligible",
                "message": "Child not eligible for token rewards. Must complete 100% of vaccination schedule.",
                "reason": decision["estimatedReward"]["message"],
                "completionRate": decision["completionRate"],
            },
        )

    reward = decision["estimatedReward"]
    try:
        record = store.insert_reward(db, {
            "childId": child["_id"],
            "parent": user["_id"],
            "walletAddress": body.walletAddress.lower(),
            "amount": reward["totalReward"],
            "symbol": reward["symbol"],
            "simulated": True,
            "claimedAt": store.now(),
        })
    except DuplicateKeyError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This child has already been rewarded with tokens. Each child can only receive one reward.",
        )

    logger.info(
        "Recorded %s %s reward for child %s to %s",
        reward["totalReward"], reward["symbol"], child["childId"], body.walletAddress,
    )
    return {
        "success": True,
        "data": {
            "simulated": True,
            "reward": reward,
            "claim": store.serialize(record),
            "message": (
                f"Rewarded {body.walletAddress} with {reward['totalReward']} {reward['symbol']} "
                f"for {child['fullName']}'s vaccination completion"
            ),
        },
    }


@router.get("/contract-stats")
def get_reward_stats(db: Database = Depends(store.get_db)):
    return {"success": True, "data": store.reward_totals(db)}
