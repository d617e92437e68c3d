from datetime import date

import pytest

from progress import evaluate_progress
from reminders import (
    FALLBACK_MESSAGE,
    NO_CHILDREN_MESSAGE,
    NOT_LINKED_MESSAGE,
    process_message,
)
from tests.helpers import SMALL_SCHEDULE, doses_for

REF = date(2025, 6, 15)
PARENT = {"fullName": "Sara Alharbi"}


def children(born, max_age=None):
    report = evaluate_progress(born, doses_for(SMALL_SCHEDULE, max_age), SMALL_SCHEDULE, REF)
    return [({"fullName": "Layla"}, report)]


def test_unknown_sender_is_told_to_link():
    assert process_message("progress", None, []) == {"type": "not_linked", "answer": NOT_LINKED_MESSAGE}


@pytest.mark.parametrize("text", ["", "hi", "Hello there", "SALAM"])
def test_greeting_uses_first_name(text):
    result = process_message(text, PARENT, [])
    assert result["type"] == "greeting"
    assert "Sara" in result["answer"]


def test_progress_summary():
    result = process_message("progress", PARENT, children(date(2025, 3, 15), max_age=0))
    assert result["type"] == "progress"
    assert "*Layla* (3 months)" in result["answer"]
    assert "1/2 doses (50%)" in result["answer"]


def test_overdue_lists_missing_doses():
    result = process_message("Overdue", PARENT, children(date(2025, 3, 15), max_age=0))
    assert result["type"] == "overdue"
    assert "DTaP (dose 1)" in result["answer"]


def test_nothing_overdue():
    result = process_message("overdue", PARENT, children(date(2025, 5, 15), max_age=0))
    assert "no overdue vaccines" in result["answer"]


def test_upcoming_for_newborn():
    result = process_message("next", PARENT, children(date(2025, 6, 1)))
    assert result["type"] == "upcoming"
    assert "DTaP (dose 1) – 2 Months" in result["answer"]


def test_commands_without_children():
    assert process_message("progress", PARENT, [])["answer"] == NO_CHILDREN_MESSAGE


def test_thanks_and_fallback():
    assert process_message("thank you!", PARENT, [])["type"] == "thanks"
    assert process_message("ok ty", PARENT, [])["type"] == "thanks"
    assert process_message("what is a vaccine", PARENT, []) == {"type": "fallback", "answer": FALLBACK_MESSAGE}


@pytest.mark.parametrize("text, kind", [
    ("Progress?", "progress"),
    ("status.", "progress"),
    ("overdue!", "overdue"),
    ("What's next?", "upcoming"),
    ("any missed doses?", "overdue"),
])
def test_commands_with_punctuation(text, kind):
    result = process_message(text, PARENT, children(date(2025, 3, 15), max_age=0))
    assert result["type"] == kind


def test_greeting_with_punctuation():
    assert process_message("Hi!", PARENT, [])["type"] == "greeting"


def test_words_containing_keywords_do_not_match():
    assert process_message("see you later", PARENT, [])["type"] == "fallback"
