# reminders.py
# WhatsApp replies for parents: greeting, progress summary, overdue doses

import re

from progress import ProgressReport

GREET_KEYWORDS = ["hi", "hello", "hey", "salam"]
THANKS = ["thank", "thanks", "thx", "ty"]
PROGRESS_KEYWORDS = ["progress", "status", "summary"]
OVERDUE_KEYWORDS = ["overdue", "late", "missed"]
UPCOMING_KEYWORDS = ["upcoming", "next", "due"]

GREET_MESSAGE = (
    "👋 Hello {name}! This is Tateematy, your child vaccination assistant.\n\n"
    "Send *progress* for a summary, *overdue* for missed doses, "
    "or *upcoming* for the next vaccines."
)

FALLBACK_MESSAGE = (
    "I couldn't understand that.\n\n"
    "Try sending:\n"
    "• progress\n"
    "• overdue\n"
    "• upcoming"
)

NOT_LINKED_MESSAGE = (
    "This number is not linked to a Tateematy parent account. "
    "Add your mobile number to your profile and try again."
)

NO_CHILDREN_MESSAGE = "No children are registered on your account yet."

STATUS_LABELS = {
    "completed": "✅ fully vaccinated",
    "overdue": "⚠️ has overdue vaccines",
    "up_to_date": "🟢 up to date",
}


def _tokenize(text: str) -> list[str]:
    return re.findall(r"\w+", text.lower())


def _matches(tokens: list[str], words: list[str]) -> bool:
    return any(t in words for t in tokens)


def _dose_lines(entries) -> str:
    return "\n".join(
        f"• {e.vaccine_name} (dose {e.dose_number}) – {e.age_group}" for e in entries
    )


def progress_text(children: list[tuple[dict, ProgressReport]]) -> str:
    lines = []
    for child, report in children:
        stats = report.stats()
        label = STATUS_LABELS.get(report.overall_status, report.overall_status)
        lines.append(
            f"*{child['fullName']}* ({report.age_in_months} months): {label}, "
            f"{stats['completedDoses']}/{stats['totalDoses']} doses ({stats['completionRate']}%)"
        )
    return "\n".join(lines)


def overdue_text(children: list[tuple[dict, ProgressReport]]) -> str:
    blocks = []
    for child, report in children:
        overdue = report.overdue()
        if overdue:
            blocks.append(f"*{child['fullName']}* – overdue:\n{_dose_lines(overdue)}")
        else:
            blocks.append(f"*{child['fullName']}* has no overdue vaccines. 🎉")
    return "\n\n".join(blocks)


def upcoming_text(children: list[tuple[dict, ProgressReport]], limit: int = 5) -> str:
    blocks = []
    for child, report in children:
        upcoming = report.upcoming()[:limit]
        if upcoming:
            blocks.append(f"*{child['fullName']}* – next vaccines:\n{_dose_lines(upcoming)}")
        else:
            blocks.append(f"*{child['fullName']}* has no upcoming vaccines.")
    return "\n\n".join(blocks)


def process_message(text: str, parent: dict | None, children: list[tuple[dict, ProgressReport]]) -> dict:
    text = (text or "").strip()
    tokens = _tokenize(text)

    if parent is None:
        return {"type": "not_linked", "answer": NOT_LINKED_MESSAGE}

    name = parent.get("fullName", "").split(" ")[0] or "there"

    if not tokens or tokens[0] in GREET_KEYWORDS:
        return {"type": "greeting", "answer": GREET_MESSAGE.format(name=name)}

    handlers = [
        (PROGRESS_KEYWORDS, "progress", progress_text),
        (OVERDUE_KEYWORDS, "overdue", overdue_text),
        (UPCOMING_KEYWORDS, "upcoming", upcoming_text),
    ]
    for words, kind, render in handlers:
        if _matches(tokens, words):
            if not children:
                return {"type": kind, "answer": NO_CHILDREN_MESSAGE}
            return {"type": kind, "answer": render(children)}

    if _matches(tokens, THANKS):
        return {
            "type": "thanks",
            "answer": "😊 You're welcome! Keeping vaccines on time keeps your children safe.",
        }

    return {"type": "fallback", "answer": FALLBACK_MESSAGE}
