from datetime import date, timedelta

import pytest
from pydantic import ValidationError

import lifecycle
from eligibility import (
    can_apply_more,
    criteria_for,
    eligible_level,
    filter_internships,
    is_visible_to_student,
    merge_preferences,
    visible_internships_for,
)
from schemas import (
    FilterPreferences,
    Internship,
    InternshipLevel,
    InternshipStatus,
    Student,
)


def posting(**fields):
    values = dict(
        id="I1",
        title="Data Intern",
        preferred_major="CSC",
        company_name="Acme",
        company_rep_id="hr@acme.com",
        status=InternshipStatus.APPROVED,
        visible=True,
    )
    values.update(fields)
    return Internship(**values)


@pytest.mark.parametrize(
    "year,level,expected",
    [
        (1, InternshipLevel.BASIC, True),
        (2, InternshipLevel.INTERMEDIATE, False),
        (2, InternshipLevel.ADVANCED, False),
        (3, InternshipLevel.ADVANCED, True),
        (4, InternshipLevel.INTERMEDIATE, True),
    ],
)
def test_eligible_level(year, level, expected):
    assert eligible_level(year, level) is expected


class TestVisibleToStudent:
    student = Student(id="U1", name="Alice", password="x", year=3, major="csc")

    def test_approved_visible_matching_posting(self, today):
        assert is_visible_to_student(posting(), self.student, today)

    def test_hidden_posting(self, today):
        assert not is_visible_to_student(posting(visible=False), self.student, today)

    @pytest.mark.parametrize(
        "status", [InternshipStatus.PENDING, InternshipStatus.REJECTED, InternshipStatus.FILLED]
    )
    def test_requires_approved(self, today, status):
        assert not is_visible_to_student(posting(status=status), self.student, today)

    def test_date_window_is_inclusive(self, today):
        assert is_visible_to_student(posting(open_date=today, close_date=today), self.student, today)
        assert not is_visible_to_student(
            posting(open_date=today + timedelta(days=1)), self.student, today
        )
        assert not is_visible_to_student(
            posting(close_date=today - timedelta(days=1)), self.student, today
        )

    def test_major_mismatch(self, today):
        assert not is_visible_to_student(posting(preferred_major="EEE"), self.student, today)

    def test_junior_student_sees_only_basic(self, today):
        junior = Student(id="U2", name="Bob", password="x", year=1, major="CSC")
        assert not is_visible_to_student(posting(level=InternshipLevel.ADVANCED), junior, today)
        assert is_visible_to_student(posting(level=InternshipLevel.BASIC), junior, today)


def test_visible_internships_sorted_by_title(store, make_internship, today):
    make_internship(title="zeta")
    make_internship(title="Alpha")
    make_internship(title="beta", approve=False)

    titles = [i.title for i in visible_internships_for(store, store.get_user("U1"), today)]
    assert titles == ["Alpha", "zeta"]


def test_can_apply_more_caps_active_applications(store, make_internship, today):
    student = store.get_user("U1")
    for n in range(3):
        internship = make_internship(title=f"Role {n}")
        assert lifecycle.apply(store, "U1", internship.id, today) is not None
    assert not can_apply_more(store, student)


def test_can_apply_more_false_once_placed(store, make_internship, today):
    internship = make_internship()
    application = lifecycle.apply(store, "U1", internship.id, today)
    lifecycle.decide_application(store, "hr@acme.com", application.id, True)
    lifecycle.accept_placement(store, "U1", application.id)

    assert not can_apply_more(store, store.get_user("U1"))


class TestFilter:
    def internships(self):
        return [
            posting(id="I1", title="web dev", close_date=date(2025, 6, 1), company_name="Acme"),
            posting(
                id="I2",
                title="Analyst",
                close_date=date(2025, 7, 1),
                level=InternshipLevel.ADVANCED,
                visible=False,
                company_name="Globex",
            ),
            posting(id="I3", title="Firmware", close_date=None, preferred_major="EEE"),
        ]

    def ids(self, **criteria):
        return [i.id for i in filter_internships(self.internships(), FilterPreferences(**criteria))]

    def test_no_criteria_returns_all_sorted_case_insensitively(self):
        assert self.ids() == ["I2", "I3", "I1"]

    def test_criteria_are_combined(self):
        assert self.ids(major="csc", visibility="visible") == ["I1"]
        assert self.ids(level="advanced", company="globex") == ["I2"]
        assert self.ids(visibility="hidden") == ["I2"]
        assert self.ids(status="Pending") == []

    def test_close_date_operators(self):
        assert self.ids(close_date="2025-06-01") == ["I1"]
        assert self.ids(close_date="<2025-07-01") == ["I1"]
        assert self.ids(close_date=">2025-06-01") == ["I2"]

    def test_postings_without_close_date_never_match_date_filter(self):
        assert "I3" not in self.ids(close_date=">2000-01-01")

    def test_malformed_filters_are_rejected(self):
        with pytest.raises(ValidationError):
            FilterPreferences(close_date="<next week")
        with pytest.raises(ValidationError):
            FilterPreferences(level="Expert")
        with pytest.raises(ValidationError):
            FilterPreferences(visibility="sometimes")


def test_merge_preferences_keeps_previous_on_blank():
    saved = FilterPreferences(status="Approved", major="CSC")
    merged = merge_preferences(saved, FilterPreferences(major="EEE", level="Basic"))

    assert merged.status == "Approved"
    assert merged.major == "EEE"
    assert merged.level == "Basic"


def test_criteria_for_student_forces_visible_and_drops_company(store):
    student = store.get_user("U1")
    student.filters = FilterPreferences(company="Acme", visibility="hidden", major="CSC")

    criteria = criteria_for(student)
    assert criteria.company == ""
    assert criteria.visibility == "visible"
    assert criteria.major == "CSC"


def test_criteria_for_rep_defaults_to_own_company(store):
    rep = store.get_user("hr@acme.com")
    assert criteria_for(rep).company == "Acme"

    rep.filters = FilterPreferences(company="Globex")
    assert criteria_for(rep).company == "Globex"
