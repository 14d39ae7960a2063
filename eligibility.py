"""
Eligibility and visibility rules

Pure functions over the store: nothing here mutates an entity.
"""

from datetime import date
from typing import Iterable, List, Optional

from config import settings
from database import EntityStore
from schemas import (
    ACTIVE_APPLICATION_STATUSES,
    CompanyRep,
    FilterPreferences,
    Internship,
    InternshipLevel,
    InternshipStatus,
    Student,
    parse_close_filter,
)


def eligible_level(year: int, level: InternshipLevel) -> bool:
    """Years 1-2 may only take Basic internships; year 3 and up take any level."""
    if year <= 2:
        return level == InternshipLevel.BASIC
    return True


def is_open_on(internship: Internship, today: date) -> bool:
    if internship.open_date is not None and today < internship.open_date:
        return False
    if internship.close_date is not None and today > internship.close_date:
        return False
    return True


def is_visible_to_student(internship: Internship, student: Student, today: date) -> bool:
    return (
        internship.visible
        and internship.status == InternshipStatus.APPROVED
        and is_open_on(internship, today)
        and internship.preferred_major.strip().lower() == student.major.strip().lower()
        and eligible_level(student.year, internship.level)
    )


def active_application_count(store: EntityStore, student_id: str) -> int:
    return sum(
        1
        for a in store.applications_for_student(student_id)
        if a.status in ACTIVE_APPLICATION_STATUSES
    )


def can_apply_more(store: EntityStore, student: Student) -> bool:
    """Under the active-application cap and not already placed."""
    if store.accepted_internship_id(student.id) is not None:
        return False
    return active_application_count(store, student.id) < settings.MAX_ACTIVE_APPLICATIONS


def _by_title(internships: Iterable[Internship]) -> List[Internship]:
    return sorted(internships, key=lambda i: i.title.lower())


def visible_internships_for(store: EntityStore, student: Student, today: date) -> List[Internship]:
    return _by_title(i for i in store.internships() if is_visible_to_student(i, student, today))


def matches(internship: Internship, criteria: FilterPreferences) -> bool:
    """True when the internship satisfies every non-blank criterion."""
    if criteria.status and internship.status.value.lower() != criteria.status.lower():
        return False
    if criteria.major and internship.preferred_major.lower() != criteria.major.lower():
        return False
    if criteria.level and internship.level.value.lower() != criteria.level.lower():
        return False
    if criteria.company and internship.company_name.lower() != criteria.company.lower():
        return False
    if criteria.visibility:
        want_visible = criteria.visibility.lower() == "visible"
        if internship.visible != want_visible:
            return False

    close = parse_close_filter(criteria.close_date)
    if close is not None:
        op, when = close
        if internship.close_date is None:
            return False
        if op == "<":
            return internship.close_date < when
        if op == ">":
            return internship.close_date > when
        return internship.close_date == when
    return True


def filter_internships(
    internships: Iterable[Internship], criteria: Optional[FilterPreferences] = None
) -> List[Internship]:
    criteria = criteria or FilterPreferences()
    return _by_title(i for i in internships if matches(i, criteria))


def merge_preferences(saved: FilterPreferences, update: FilterPreferences) -> FilterPreferences:
    """Overlay the non-blank fields of ``update`` on ``saved``."""
    changes = {k: v for k, v in update.model_dump().items() if v}
    return saved.model_copy(update=changes)


def criteria_for(user, preferences: Optional[FilterPreferences] = None) -> FilterPreferences:
    """Criteria a user actually filters with.

    Students never filter by company and only ever see visible postings.
    A rep with no company filter set filters by their own company.
    """
    preferences = preferences or user.filters
    if isinstance(user, Student):
        return preferences.model_copy(update={"company": "", "visibility": "visible"})
    if isinstance(user, CompanyRep) and not preferences.company:
        return preferences.model_copy(update={"company": user.company_name})
    return preferences
