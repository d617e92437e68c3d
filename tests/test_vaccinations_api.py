from datetime import date, timedelta

from tests.helpers import SMALL_SCHEDULE, headers_for, make_child, record_doses
from vaccinations import VACCINATION_SCHEDULE
from vaccinations_api import get_schedule
from server import app


def test_schedule_is_public(client):
    resp = client.get("/api/vaccinations/schedule")
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert len(data) == len(VACCINATION_SCHEDULE)
    assert data[0] == {
        "ageGroup": "At Birth",
        "vaccineName": "BCG",
        "doseNumber": 1,
        "totalDoses": 1,
        "ageInMonths": 0,
        "description": VACCINATION_SCHEDULE[0].description,
    }


def test_provider_records_dose(client, db, parent, provider):
    child = make_child(db, parent, months=3)
    resp = client.post("/api/vaccinations", headers=headers_for(provider), json={
        "childId": str(child["_id"]),
        "vaccineName": "DTaP",
        "doseNumber": 1,
        "dateGiven": date.today().isoformat(),
        "location": "King Fahad Clinic",
    })
    assert resp.status_code == 201
    record = resp.json()["data"]
    assert record["visitAge"] == "2 Months"
    assert record["givenBy"] == str(provider["_id"])
    assert db.vaccination_records.count_documents({"childId": child["_id"]}) == 1


def test_parents_cannot_record_doses(client, db, parent):
    child = make_child(db, parent, months=3)
    resp = client.post("/api/vaccinations", headers=headers_for(parent), json={
        "childId": str(child["_id"]),
        "vaccineName": "DTaP",
        "doseNumber": 1,
        "dateGiven": date.today().isoformat(),
        "location": "Home",
    })
    assert resp.status_code == 403


def test_dose_dates_are_checked(client, db, parent, provider):
    child = make_child(db, parent, months=3)
    payload = {
        "childId": str(child["_id"]),
        "vaccineName": "DTaP",
        "doseNumber": 1,
        "location": "Clinic",
    }

    future = client.post("/api/vaccinations", headers=headers_for(provider),
                         json={**payload, "dateGiven": (date.today() + timedelta(days=2)).isoformat()})
    assert future.status_code == 400

    before_birth = client.post("/api/vaccinations", headers=headers_for(provider),
                               json={**payload, "dateGiven": "2000-01-01"})
    assert before_birth.status_code == 400
    assert before_birth.json()["message"] == "Date given is before the child's birth"

    zero = client.post("/api/vaccinations", headers=headers_for(provider),
                       json={**payload, "doseNumber": 0, "dateGiven": date.today().isoformat()})
    assert zero.status_code == 400


def test_unscheduled_vaccine_is_stored_but_ignored(client, db, parent, provider):
    child = make_child(db, parent, months=3)
    resp = client.post("/api/vaccinations", headers=headers_for(provider), json={
        "childId": str(child["_id"]),
        "vaccineName": "Yellow Fever",
        "doseNumber": 1,
        "dateGiven": date.today().isoformat(),
        "location": "Travel Clinic",
    })
    assert resp.status_code == 201
    assert resp.json()["data"]["visitAge"] is None

    progress = client.get(f"/api/vaccinations/progress/{child['_id']}", headers=headers_for(parent)).json()["data"]
    assert all(g["status"] == "pending" for g in progress["progress"].values())

    stats = client.get(f"/api/vaccinations/stats/{child['_id']}", headers=headers_for(parent)).json()["data"]
    assert stats["totalRecords"] == 1
    assert stats["completedDoses"] == 0


def test_progress_endpoint(client, db, parent, provider):
    child = make_child(db, parent, months=3)
    record_doses(db, child, provider, [e for e in VACCINATION_SCHEDULE if e.age_group == "At Birth"])

    resp = client.get(f"/api/vaccinations/progress/{child['_id']}", headers=headers_for(parent))
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["ageInMonths"] == 3
    assert data["overallStatus"] == "overdue"
    assert data["schoolReady"] is False
    assert data["progress"]["At Birth"]["status"] == "completed"
    assert data["progress"]["2 Months"]["status"] == "pending"
    assert data["progress"]["2 Months"]["due"] is True
    assert data["progress"]["4 Months"]["due"] is False


def test_overdue_upcoming_and_history(client, db, parent, provider):
    child = make_child(db, parent, months=3)
    record_doses(db, child, provider, VACCINATION_SCHEDULE[:1])
    headers = headers_for(parent)

    overdue = client.get(f"/api/vaccinations/overdue/{child['_id']}", headers=headers).json()["data"]
    assert ("Hepatitis B", 1) in {(e["vaccineName"], e["doseNumber"]) for e in overdue}

    upcoming = client.get(f"/api/vaccinations/upcoming/{child['_id']}", headers=headers).json()["data"]
    assert all(e["ageInMonths"] > 3 for e in upcoming)

    history = client.get(f"/api/vaccinations/history/{child['_id']}", headers=headers).json()["data"]
    assert [r["vaccineName"] for r in history] == ["BCG"]


def test_certificate_eligibility_summary(client, db, parent, provider):
    child = make_child(db, parent, months=80)
    record_doses(db, child, provider, [e for e in VACCINATION_SCHEDULE if e.nominal_age_months <= 72])

    data = client.get(
        f"/api/vaccinations/certificate/eligibility/{child['_id']}", headers=headers_for(parent)
    ).json()["data"]
    assert data["school_readiness"]["eligible"] is True
    assert data["completion"]["eligible"] is False
    assert data["progress"]["eligible"] is True


def test_schedule_is_injectable(client, db, parent, provider):
    app.dependency_overrides[get_schedule] = lambda: SMALL_SCHEDULE
    child = make_child(db, parent, months=3)
    record_doses(db, child, provider, SMALL_SCHEDULE)

    data = client.get(f"/api/vaccinations/progress/{child['_id']}", headers=headers_for(parent)).json()["data"]
    assert list(data["progress"]) == ["At Birth", "2 Months"]
    assert data["fullScheduleCompleted"] is True


def test_empty_schedule_reports_configuration_error(client, db, parent):
    app.dependency_overrides[get_schedule] = lambda: ()
    child = make_child(db, parent, months=3)

    resp = client.get(f"/api/vaccinations/progress/{child['_id']}", headers=headers_for(parent))
    assert resp.status_code == 500
    assert resp.json() == {"success": False, "message": "Vaccination schedule is not configured"}


def test_doctor_history_scoped_to_self(client, db, parent, provider, make_user, admin):
    child = make_child(db, parent, months=3)
    record_doses(db, child, provider, VACCINATION_SCHEDULE[:2])
    other = make_user("healthcare_provider")

    own = client.get(f"/api/vaccinations/doctor/{provider['_id']}/history", headers=headers_for(provider))
    assert own.status_code == 200
    assert len(own.json()["data"]) == 2

    assert client.get(f"/api/vaccinations/doctor/{provider['_id']}/history", headers=headers_for(other)).status_code == 403
    assert client.get(f"/api/vaccinations/doctor/{provider['_id']}/history", headers=headers_for(admin)).status_code == 200
