"""Certificate and token-reward decisions derived from a ProgressReport."""

from progress import ADULT_AGE_MONTHS, SCHOOL_AGE_MONTHS, ProgressReport

REWARD_FOR_FULL_COMPLETION = 500
TOKEN_SYMBOL = "TAT"


class UnknownCertificateType(ValueError):
    pass


def _missing(report: ProgressReport, max_nominal_age: int | None = None) -> list[dict]:
    return [
        {
            "ageGroup": group.age_group,
            "vaccineName": entry.vaccine_name,
            "doseNumber": entry.dose_number,
        }
        for group in report.groups(max_nominal_age)
        for entry in group.pending
    ]


def _decision(report: ProgressReport, eligible: bool, reason: str, max_nominal_age=None) -> dict:
    stats = report.stats(max_nominal_age)
    return {
        "eligible": eligible,
        "reason": reason,
        "ageInMonths": report.age_in_months,
        "completionRate": stats["completionRate"],
        "completedDoses": stats["completedDoses"],
        "requiredDoses": stats["totalDoses"],
        "missingVaccines": _missing(report, max_nominal_age),
    }


def school_readiness(report: ProgressReport) -> dict:
    if report.age_in_months < SCHOOL_AGE_MONTHS:
        return _decision(report, False, "Child must be at least 6 years old", SCHOOL_AGE_MONTHS)
    if not report.school_ready:
        return _decision(report, False, "Missing required vaccines", SCHOOL_AGE_MONTHS)
    return _decision(report, True, "All required vaccines completed", SCHOOL_AGE_MONTHS)


def completion(report: ProgressReport) -> dict:
    if report.age_in_months < ADULT_AGE_MONTHS:
        return _decision(report, False, "Child must be at least 18 years old")
    if not report.full_schedule_completed:
        return _decision(report, False, "Missing required vaccines")
    return _decision(report, True, "All required vaccines completed")


def progress_certificate(report: ProgressReport) -> dict:
    if report.stats()["completedDoses"] == 0:
        return _decision(report, False, "No vaccinations completed yet")
    return _decision(report, True, "Progress certificate available")


CERTIFICATE_CHECKS = {
    "school_readiness": school_readiness,
    "completion": completion,
    "progress": progress_certificate,
}

# Types that are anchored with a public certificate id.
VERIFIABLE_TYPES = {"school_readiness", "completion"}


def check_certificate(certificate_type: str, report: ProgressReport) -> dict:
    check = CERTIFICATE_CHECKS.get(certificate_type)
    if check is None:
        raise UnknownCertificateType(f"Invalid certificate type: {certificate_type}")
    return check(report)


def calculate_reward(required_doses: int, full_schedule_completed: bool) -> dict:
    if full_schedule_completed:
        return {
            "totalReward": REWARD_FOR_FULL_COMPLETION,
            "symbol": TOKEN_SYMBOL,
            "message": (
                f"Full vaccination schedule completed! "
                f"You earned {REWARD_FOR_FULL_COMPLETION} {TOKEN_SYMBOL} tokens."
            ),
        }
    return {
        "totalReward": 0,
        "symbol": TOKEN_SYMBOL,
        "message": (
            f"Complete all {required_doses} vaccinations to earn "
            f"{REWARD_FOR_FULL_COMPLETION} {TOKEN_SYMBOL} tokens"
        ),
    }


def token_reward(report: ProgressReport) -> dict:
    stats = report.stats()
    full = report.full_schedule_completed
    return {
        "eligible": full,
        "isFullScheduleCompleted": full,
        "completedCount": stats["completedDoses"],
        "requiredCount": stats["totalDoses"],
        "completionRate": stats["completionRate"],
        "estimatedReward": calculate_reward(stats["totalDoses"], full),
    }
