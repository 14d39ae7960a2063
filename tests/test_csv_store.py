from datetime import timedelta

import csv_store
import lifecycle
from database import EntityStore
from eligibility import visible_internships_for
from schemas import ApplicationStatus, InternshipLevel, InternshipStatus


def write(path, text):
    path.write_text(text, encoding="utf-8")


def test_save_then_load_reproduces_student_listing(store, make_internship, today, tmp_path):
    make_internship(title="Backend")
    make_internship(title="Frontend", open_date=None, close_date=None)
    make_internship(title="Hidden", approve=False)
    taken = make_internship(title="Taken", slots=1)
    offer = lifecycle.apply(store, "U2", taken.id, today)
    lifecycle.decide_application(store, "hr@acme.com", offer.id, True)
    lifecycle.accept_placement(store, "U2", offer.id)

    before = [i.model_dump() for i in visible_internships_for(store, store.get_user("U1"), today)]
    csv_store.save_all(store, tmp_path)

    restored = EntityStore()
    assert csv_store.load_all(restored, tmp_path) is True
    after = [i.model_dump() for i in visible_internships_for(restored, restored.get_user("U1"), today)]

    assert after == before
    assert [i["title"] for i in after] == ["Backend", "Frontend"]


def test_round_trip_keeps_relations_and_counters(store, make_internship, today, tmp_path):
    first = make_internship(title="First")
    second = make_internship(title="Second")
    kept = lifecycle.apply(store, "U1", first.id, today)
    withdrawn = lifecycle.apply(store, "U1", second.id, today)
    lifecycle.request_withdrawal(store, "U1", withdrawn.id)
    store.get_user("new@initech.com").password = "changed"

    csv_store.save_all(store, tmp_path)
    restored = EntityStore()
    csv_store.load_all(restored, tmp_path)

    assert restored.applicant_ids(first.id) == ["U1"]
    assert restored.applicant_ids(second.id) == []
    assert restored.applied_internship_ids("U1") == [first.id, second.id]
    assert restored.get_application(kept.id).status == ApplicationStatus.PENDING
    assert restored.get_user("hr@acme.com").approved is True
    assert restored.get_user("new@initech.com").password == "changed"
    assert restored.created_internship_ids("hr@acme.com") == [first.id, second.id]
    assert restored.next_internship_id() == "I3"
    assert restored.next_application_id() == "A3"


def test_missing_snapshot_falls_back_to_seed(tmp_path):
    write(tmp_path / "students.csv", "StudentID,Name,Major,Year,Email\nU10,Dee,CSC,2,dee@uni.edu\n\nbad,row\n")
    write(tmp_path / "staff.csv", "StaffID,Name,Role,Department,Email\nst9,Eve,Career Center Staff,CCDS,eve@uni.edu\n")
    write(tmp_path / "company_reps.csv", "ID,Name,Company,Department,Position,Approved\nx@co.com,Xi,Co,Eng,Lead,true\n")
    write(tmp_path / "users.csv", "role,id,name,password\n")

    store = EntityStore()
    assert csv_store.load_all(store, tmp_path) is False

    student = store.get_user("U10")
    assert (student.major, student.year, student.password) == ("CSC", 2, "password")
    assert store.get_user("st9").department == "CCDS"
    assert store.get_user("x@co.com").approved is True
    assert len(store.users()) == 3


def test_load_time_fallbacks(tmp_path):
    write(tmp_path / "users.csv", "role,id,name,password,year,major,company,department,position,approved\n"
          "Student,U1,Al,pw,x,CSC,,,,\n"
          "Wizard,W1,Merlin,pw,,,,,,\n")
    write(
        tmp_path / "internships.csv",
        ",".join(csv_store.INTERNSHIP_FIELDS) + "\n"
        "I4,Role,Desc,Expert,CSC,,,Acme,hr@acme.com,40,true,Filled,99\n"
        "I5,Broken,Desc,Basic,CSC,not-a-date,,Acme,hr@acme.com,1,true,Approved,0\n",
    )
    write(
        tmp_path / "applications.csv",
        "id,internship_id,student_id,status,confirmed_by_student\n"
        "A2,I4,U1,Mystery,true\n",
    )

    store = EntityStore()
    csv_store.load_all(store, tmp_path)

    assert store.get_user("U1").year == 1
    assert store.get_user("W1") is None

    internship = store.get_internship("I4")
    assert internship.level == InternshipLevel.BASIC
    assert internship.slots == 10
    assert internship.confirmed_count == 10
    assert internship.status == InternshipStatus.FILLED
    assert internship.visible is False
    assert store.get_internship("I5") is None

    application = store.get_application("A2")
    assert application.status == ApplicationStatus.PENDING
    assert application.listed is True
    assert store.accepted_internship_id("U1") == "I4"


def test_dates_survive_round_trip(store, make_internship, today, tmp_path):
    internship = make_internship(open_date=today, close_date=today + timedelta(days=30))
    csv_store.save_all(store, tmp_path)

    restored = EntityStore()
    csv_store.load_all(restored, tmp_path)
    assert restored.get_internship(internship.id).close_date == today + timedelta(days=30)
