"""
In-memory entity store

Holds users, internships and applications keyed by id. The application table
is the single record of who applied where: applicant lists, applied lists,
created lists and accepted placements are all computed from it on demand.

Internship and application ids are "I<n>" / "A<n>" from per-type counters that
only move forward. Adding a record with a pre-existing id pushes the counter up
to that id, so ids loaded from a snapshot are never reissued.
"""

import re
from typing import Dict, List, Optional, Type

import structlog

from schemas import Application, Internship, Role, Student, CompanyRep, Staff

logger = structlog.get_logger(__name__)

INTERNSHIP_PREFIX = "I"
APPLICATION_PREFIX = "A"

_ROLE_CLASSES: Dict[Role, Type] = {
    Role.STUDENT: Student,
    Role.COMPANY_REP: CompanyRep,
    Role.STAFF: Staff,
}


def _id_number(prefix: str, value: str) -> Optional[int]:
    match = re.fullmatch(rf"{prefix}(\d+)", value or "")
    return int(match.group(1)) if match else None


class EntityStore:
    def __init__(self):
        self.clear()

    def clear(self):
        self._users: Dict[str, object] = {}
        self._internships: Dict[str, Internship] = {}
        self._applications: Dict[str, Application] = {}
        self._internship_counter = 0
        self._application_counter = 0

    # ID generation
    def next_internship_id(self) -> str:
        self._internship_counter += 1
        return f"{INTERNSHIP_PREFIX}{self._internship_counter}"

    def next_application_id(self) -> str:
        self._application_counter += 1
        return f"{APPLICATION_PREFIX}{self._application_counter}"

    def _sync_internship_counter(self, internship_id: str):
        n = _id_number(INTERNSHIP_PREFIX, internship_id)
        if n is not None and n > self._internship_counter:
            self._internship_counter = n

    def _sync_application_counter(self, application_id: str):
        n = _id_number(APPLICATION_PREFIX, application_id)
        if n is not None and n > self._application_counter:
            self._application_counter = n

    # Users
    def add_user(self, user) -> bool:
        if user.id in self._users:
            return False
        self._users[user.id] = user
        return True

    def get_user(self, user_id: str, role: Optional[Role] = None):
        user = self._users.get(user_id)
        if user is None:
            return None
        if role is not None and not isinstance(user, _ROLE_CLASSES[role]):
            return None
        return user

    def users(self, role: Optional[Role] = None) -> List:
        if role is None:
            return list(self._users.values())
        cls = _ROLE_CLASSES[role]
        return [u for u in self._users.values() if isinstance(u, cls)]

    # Internships
    def add_internship(self, internship: Internship) -> Internship:
        self._internships[internship.id] = internship
        self._sync_internship_counter(internship.id)
        return internship

    def get_internship(self, internship_id: str) -> Optional[Internship]:
        return self._internships.get(internship_id)

    def internships(self) -> List[Internship]:
        return list(self._internships.values())

    def remove_internship(self, internship_id: str) -> List[Application]:
        """Drop an internship and every application made to it."""
        self._internships.pop(internship_id, None)
        purged = self.applications_for_internship(internship_id)
        for application in purged:
            del self._applications[application.id]
        return purged

    # Applications
    def add_application(self, application: Application) -> Application:
        self._applications[application.id] = application
        self._sync_application_counter(application.id)
        return application

    def get_application(self, application_id: str) -> Optional[Application]:
        return self._applications.get(application_id)

    def applications(self) -> List[Application]:
        return list(self._applications.values())

    def applications_for_student(self, student_id: str) -> List[Application]:
        return [a for a in self._applications.values() if a.student_id == student_id]

    def applications_for_internship(self, internship_id: str) -> List[Application]:
        return [a for a in self._applications.values() if a.internship_id == internship_id]

    # Derived relations
    def applicant_ids(self, internship_id: str) -> List[str]:
        ids = []
        for application in self.applications_for_internship(internship_id):
            if application.listed and application.student_id not in ids:
                ids.append(application.student_id)
        return ids

    def applied_internship_ids(self, student_id: str) -> List[str]:
        ids = []
        for application in self.applications_for_student(student_id):
            if application.internship_id not in ids:
                ids.append(application.internship_id)
        return ids

    def accepted_internship_id(self, student_id: str) -> Optional[str]:
        for application in self.applications_for_student(student_id):
            if application.confirmed_by_student:
                return application.internship_id
        return None

    def created_internship_ids(self, rep_id: str) -> List[str]:
        return [i.id for i in self._internships.values() if i.company_rep_id == rep_id]

    def internships_for_rep(self, rep_id: str) -> List[Internship]:
        return [i for i in self._internships.values() if i.company_rep_id == rep_id]


db = EntityStore()


def get_db() -> EntityStore:
    return db
