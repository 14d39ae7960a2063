"""
Lifecycle engine

Every state change in the tracker goes through this module: accounts,
internship postings and applications. Operations resolve their ids against the
store, check every guard first and only then write, so a failed call leaves
state exactly as it was. Failure is reported as ``False`` (or ``None`` for
operations that create something); nothing here raises for a rejected
transition.

Internship:  Pending -> Approved | Rejected (staff), Approved -> Filled (when
confirmed placements reach slots, which also hides the posting).

Application: Pending -> Successful | Unsuccessful (owning rep),
Successful -> confirmed (student accepts; every other application of that
student becomes Unsuccessful), unconfirmed Pending | Successful ->
WithdrawRequested (student), WithdrawRequested -> Unsuccessful | Pending (staff).
"""

from datetime import date
from typing import List, Optional

import structlog

from config import settings
from database import EntityStore
from eligibility import can_apply_more, is_visible_to_student
from schemas import (
    Application,
    ApplicationStatus,
    CompanyRep,
    Internship,
    InternshipLevel,
    InternshipStatus,
    Role,
)

logger = structlog.get_logger(__name__)

_OPEN_APPLICATION_STATUSES = (
    ApplicationStatus.PENDING,
    ApplicationStatus.SUCCESSFUL,
    ApplicationStatus.WITHDRAW_REQUESTED,
)
_EDITABLE_FIELDS = (
    "title",
    "description",
    "level",
    "preferred_major",
    "open_date",
    "close_date",
    "slots",
)


def _rejected(event: str, **context) -> bool:
    logger.info(event, **context)
    return False


# Accounts
def authenticate(store: EntityStore, user_id: str, password: str):
    """Return the user when the plaintext password matches, else None."""
    user = store.get_user(user_id)
    if user is None or user.password != password:
        logger.info("login_failed", user_id=user_id)
        return None
    logger.info("login_succeeded", user_id=user_id, role=type(user).__name__)
    return user


def change_password(store: EntityStore, user_id: str, new_password: str) -> bool:
    user = store.get_user(user_id)
    if user is None or not new_password or not new_password.strip():
        return _rejected("password_change_rejected", user_id=user_id)
    user.password = new_password
    logger.info("password_changed", user_id=user_id)
    return True


def register_company_rep(
    store: EntityStore,
    rep_id: str,
    name: str,
    company_name: str,
    department: str = "",
    position: str = "",
) -> Optional[CompanyRep]:
    """Register an unapproved company representative; the id must be unused."""
    if store.get_user(rep_id) is not None:
        logger.info("registration_rejected", user_id=rep_id, reason="id_taken")
        return None
    rep = CompanyRep(
        id=rep_id,
        name=name,
        password=settings.DEFAULT_PASSWORD,
        company_name=company_name,
        department=department,
        position=position,
    )
    store.add_user(rep)
    logger.info("company_rep_registered", user_id=rep_id, company=company_name)
    return rep


def approve_company_rep(store: EntityStore, staff_id: str, rep_id: str, approve: bool) -> bool:
    if store.get_user(staff_id, Role.STAFF) is None:
        return _rejected("rep_decision_rejected", staff_id=staff_id, reason="not_staff")
    rep = store.get_user(rep_id, Role.COMPANY_REP)
    if rep is None:
        return _rejected("rep_decision_rejected", rep_id=rep_id, reason="not_found")
    rep.approved = approve
    logger.info("company_rep_decided", rep_id=rep_id, approved=approve, staff_id=staff_id)
    return True


def pending_company_reps(store: EntityStore) -> List[CompanyRep]:
    return [r for r in store.users(Role.COMPANY_REP) if not r.approved]


# Internships
def create_internship(
    store: EntityStore,
    rep_id: str,
    title: str,
    description: str,
    level: InternshipLevel,
    preferred_major: str,
    open_date: Optional[date],
    close_date: Optional[date],
    slots: int,
) -> Optional[Internship]:
    """Create a Pending, hidden posting for an approved rep under the posting cap."""
    rep = store.get_user(rep_id, Role.COMPANY_REP)
    if rep is None:
        logger.info("internship_create_rejected", rep_id=rep_id, reason="not_company_rep")
        return None
    if not rep.approved:
        logger.info("internship_create_rejected", rep_id=rep_id, reason="rep_not_approved")
        return None
    if len(store.created_internship_ids(rep_id)) >= settings.MAX_INTERNSHIPS_PER_REP:
        logger.info("internship_create_rejected", rep_id=rep_id, reason="limit_reached")
        return None
    if open_date and close_date and close_date < open_date:
        logger.info("internship_create_rejected", rep_id=rep_id, reason="dates_out_of_order")
        return None

    internship = Internship(
        id=store.next_internship_id(),
        title=title,
        description=description,
        level=level,
        preferred_major=preferred_major,
        open_date=open_date,
        close_date=close_date,
        company_name=rep.company_name,
        company_rep_id=rep_id,
        slots=slots,
        status=InternshipStatus.PENDING,
        visible=False,
    )
    store.add_internship(internship)
    logger.info("internship_created", internship_id=internship.id, rep_id=rep_id)
    return internship


def _owned_internship(store: EntityStore, rep_id: str, internship_id: str) -> Optional[Internship]:
    internship = store.get_internship(internship_id)
    if internship is None or internship.company_rep_id != rep_id:
        return None
    if store.get_user(rep_id, Role.COMPANY_REP) is None:
        return None
    return internship


def edit_internship(store: EntityStore, rep_id: str, internship_id: str, **changes) -> bool:
    """Edit a posting's fields; only its owner may, and only while Pending."""
    internship = _owned_internship(store, rep_id, internship_id)
    if internship is None:
        return _rejected("internship_edit_rejected", internship_id=internship_id, reason="not_owner")
    if internship.status != InternshipStatus.PENDING:
        return _rejected("internship_edit_rejected", internship_id=internship_id, reason="not_pending")

    changes = {k: v for k, v in changes.items() if k in _EDITABLE_FIELDS and v is not None}
    open_date = changes.get("open_date", internship.open_date)
    close_date = changes.get("close_date", internship.close_date)
    if open_date and close_date and close_date < open_date:
        return _rejected(
            "internship_edit_rejected", internship_id=internship_id, reason="dates_out_of_order"
        )

    for field, value in changes.items():
        setattr(internship, field, value)
    logger.info("internship_edited", internship_id=internship_id, fields=sorted(changes))
    return True


def decide_internship(store: EntityStore, staff_id: str, internship_id: str, approve: bool) -> bool:
    """Staff decision on a Pending posting. Approval also makes it visible."""
    if store.get_user(staff_id, Role.STAFF) is None:
        return _rejected("internship_decision_rejected", staff_id=staff_id, reason="not_staff")
    internship = store.get_internship(internship_id)
    if internship is None:
        return _rejected("internship_decision_rejected", internship_id=internship_id, reason="not_found")
    if internship.status != InternshipStatus.PENDING:
        return _rejected(
            "internship_decision_rejected", internship_id=internship_id, reason="not_pending"
        )

    if approve:
        internship.status = InternshipStatus.APPROVED
        internship.visible = True
    else:
        internship.status = InternshipStatus.REJECTED
    logger.info("internship_decided", internship_id=internship_id, status=internship.status.value)
    return True


def toggle_visibility(store: EntityStore, rep_id: str, internship_id: str) -> bool:
    """Flip the visible flag of an owned posting. A Filled posting stays hidden."""
    internship = _owned_internship(store, rep_id, internship_id)
    if internship is None:
        return _rejected("visibility_toggle_rejected", internship_id=internship_id, reason="not_owner")
    if internship.status == InternshipStatus.FILLED:
        return _rejected("visibility_toggle_rejected", internship_id=internship_id, reason="filled")
    internship.visible = not internship.visible
    logger.info("visibility_toggled", internship_id=internship_id, visible=internship.visible)
    return True


def delete_internship(store: EntityStore, rep_id: str, internship_id: str) -> bool:
    internship = _owned_internship(store, rep_id, internship_id)
    if internship is None:
        return _rejected("internship_delete_rejected", internship_id=internship_id, reason="not_owner")
    if internship.status == InternshipStatus.FILLED:
        return _rejected("internship_delete_rejected", internship_id=internship_id, reason="filled")
    purged = store.remove_internship(internship_id)
    logger.info("internship_deleted", internship_id=internship_id, applications_purged=len(purged))
    return True


# Applications
def apply(store: EntityStore, student_id: str, internship_id: str, today: date) -> Optional[Application]:
    """Create a Pending application if the student may apply to this posting today."""
    student = store.get_user(student_id, Role.STUDENT)
    internship = store.get_internship(internship_id)
    if student is None or internship is None:
        logger.info("apply_rejected", student_id=student_id, internship_id=internship_id, reason="not_found")
        return None
    if not is_visible_to_student(internship, student, today):
        logger.info("apply_rejected", student_id=student_id, internship_id=internship_id, reason="not_eligible")
        return None
    if not can_apply_more(store, student):
        logger.info("apply_rejected", student_id=student_id, internship_id=internship_id, reason="limit_reached")
        return None
    if any(
        a.internship_id == internship_id and a.status in _OPEN_APPLICATION_STATUSES
        for a in store.applications_for_student(student_id)
    ):
        logger.info("apply_rejected", student_id=student_id, internship_id=internship_id, reason="duplicate")
        return None

    application = store.add_application(
        Application(
            id=store.next_application_id(),
            internship_id=internship_id,
            student_id=student_id,
        )
    )
    logger.info(
        "application_created",
        application_id=application.id,
        student_id=student_id,
        internship_id=internship_id,
    )
    return application


def decide_application(store: EntityStore, rep_id: str, application_id: str, approve: bool) -> bool:
    """Owning rep marks a Pending application Successful or Unsuccessful."""
    application = store.get_application(application_id)
    if application is None:
        return _rejected("application_decision_rejected", application_id=application_id, reason="not_found")
    if _owned_internship(store, rep_id, application.internship_id) is None:
        return _rejected("application_decision_rejected", application_id=application_id, reason="not_owner")
    if application.status != ApplicationStatus.PENDING:
        return _rejected("application_decision_rejected", application_id=application_id, reason="not_pending")

    application.status = ApplicationStatus.SUCCESSFUL if approve else ApplicationStatus.UNSUCCESSFUL
    logger.info("application_decided", application_id=application_id, status=application.status.value)
    return True


def accept_placement(store: EntityStore, student_id: str, application_id: str) -> bool:
    """Student confirms a Successful offer.

    Consumes one slot (filling and hiding the posting when it was the last one)
    and turns every other application of the student Unsuccessful, taking them
    off their postings' applicant lists.
    """
    application = store.get_application(application_id)
    if application is None or application.student_id != student_id:
        return _rejected("accept_rejected", application_id=application_id, reason="not_owner")
    if application.status != ApplicationStatus.SUCCESSFUL or application.confirmed_by_student:
        return _rejected("accept_rejected", application_id=application_id, reason="not_successful")
    if store.accepted_internship_id(student_id) is not None:
        return _rejected("accept_rejected", application_id=application_id, reason="already_placed")
    internship = store.get_internship(application.internship_id)
    if internship is None:
        return _rejected("accept_rejected", application_id=application_id, reason="internship_missing")
    if internship.is_full:
        return _rejected("accept_rejected", application_id=application_id, reason="no_slots")

    application.confirmed_by_student = True
    internship.confirmed_count += 1
    if internship.is_full:
        internship.status = InternshipStatus.FILLED
        internship.visible = False
        logger.info("internship_filled", internship_id=internship.id)

    for other in store.applications_for_student(student_id):
        if other.id != application.id:
            other.status = ApplicationStatus.UNSUCCESSFUL
            other.listed = False

    logger.info(
        "placement_accepted",
        application_id=application_id,
        student_id=student_id,
        internship_id=internship.id,
        confirmed=internship.confirmed_count,
        slots=internship.slots,
    )
    return True


def request_withdrawal(store: EntityStore, student_id: str, application_id: str) -> bool:
    """Student asks to withdraw; the application leaves the applicant list at once.

    A confirmed placement cannot be withdrawn.
    """
    application = store.get_application(application_id)
    if application is None or application.student_id != student_id:
        return _rejected("withdrawal_request_rejected", application_id=application_id, reason="not_owner")
    if application.status not in (ApplicationStatus.PENDING, ApplicationStatus.SUCCESSFUL):
        return _rejected("withdrawal_request_rejected", application_id=application_id, reason="wrong_status")
    if application.confirmed_by_student:
        return _rejected("withdrawal_request_rejected", application_id=application_id, reason="confirmed")

    application.status = ApplicationStatus.WITHDRAW_REQUESTED
    application.listed = False
    logger.info("withdrawal_requested", application_id=application_id, student_id=student_id)
    return True


def decide_withdrawal(store: EntityStore, staff_id: str, application_id: str, approve: bool) -> bool:
    """Staff decision on a withdrawal request.

    Approval makes the application Unsuccessful. Rejection puts it back to
    Pending whatever it was before the request, and back on the applicant
    list. A rejection is refused while the student is placed or already holds
    the maximum number of active applications.
    """
    if store.get_user(staff_id, Role.STAFF) is None:
        return _rejected("withdrawal_decision_rejected", staff_id=staff_id, reason="not_staff")
    application = store.get_application(application_id)
    if application is None:
        return _rejected("withdrawal_decision_rejected", application_id=application_id, reason="not_found")
    if application.status != ApplicationStatus.WITHDRAW_REQUESTED:
        return _rejected("withdrawal_decision_rejected", application_id=application_id, reason="not_requested")

    if approve:
        application.status = ApplicationStatus.UNSUCCESSFUL
        application.listed = False
    else:
        student = store.get_user(application.student_id, Role.STUDENT)
        if student is not None and not can_apply_more(store, student):
            return _rejected(
                "withdrawal_decision_rejected", application_id=application_id, reason="limit_reached"
            )
        application.status = ApplicationStatus.PENDING
        application.listed = True
    logger.info("withdrawal_decided", application_id=application_id, status=application.status.value)
    return True


def withdrawal_requests(store: EntityStore):
    return [a for a in store.applications() if a.status == ApplicationStatus.WITHDRAW_REQUESTED]
