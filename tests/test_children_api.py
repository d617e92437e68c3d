from datetime import date, timedelta

from tests.helpers import headers_for, make_child, record_doses
from vaccinations import VACCINATION_SCHEDULE


def test_parent_registers_and_lists_children(client, parent):
    resp = client.post(
        "/api/children",
        headers=headers_for(parent),
        json={"fullName": "Omar", "dateOfBirth": "2023-02-01", "gender": "male", "bloodType": "O+"},
    )
    assert resp.status_code == 201
    child = resp.json()["data"]
    assert child["childId"].startswith("CH")
    assert child["parent"] == str(parent["_id"])

    listed = client.get("/api/children", headers=headers_for(parent)).json()["data"]
    assert [c["fullName"] for c in listed] == ["Omar"]


def test_future_birth_date_rejected(client, parent):
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    resp = client.post(
        "/api/children",
        headers=headers_for(parent),
        json={"fullName": "Omar", "dateOfBirth": tomorrow, "gender": "male"},
    )
    assert resp.status_code == 400
    assert resp.json()["errors"][0]["field"] == "dateOfBirth"


def test_unparseable_birth_date_rejected(client, parent):
    resp = client.post(
        "/api/children",
        headers=headers_for(parent),
        json={"fullName": "Omar", "dateOfBirth": "not-a-date", "gender": "male"},
    )
    assert resp.status_code == 400


def test_providers_cannot_register_children(client, provider):
    resp = client.post(
        "/api/children",
        headers=headers_for(provider),
        json={"fullName": "Omar", "dateOfBirth": "2023-02-01", "gender": "male"},
    )
    assert resp.status_code == 403


def test_parent_cannot_see_other_children(client, db, parent, make_user):
    other = make_user("parent")
    child = make_child(db, other, months=5)
    resp = client.get(f"/api/children/{child['_id']}", headers=headers_for(parent))
    assert resp.status_code == 403
    assert resp.json()["message"] == "Access denied to this child"


def test_provider_can_see_any_child(client, db, parent, provider):
    child = make_child(db, parent, months=5)
    resp = client.get(f"/api/children/{child['_id']}", headers=headers_for(provider))
    assert resp.status_code == 200


def test_bad_and_unknown_ids(client, parent):
    resp = client.get("/api/children/not-an-id", headers=headers_for(parent))
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid ID format"

    resp = client.get("/api/children/64b7f0c2a1b2c3d4e5f60718", headers=headers_for(parent))
    assert resp.status_code == 404


def test_update_and_remove_child(client, db, parent):
    child = make_child(db, parent, months=5)
    resp = client.put(f"/api/children/{child['_id']}", headers=headers_for(parent), json={"fullName": "Layla A."})
    assert resp.status_code == 200
    assert resp.json()["data"]["fullName"] == "Layla A."

    assert client.delete(f"/api/children/{child['_id']}", headers=headers_for(parent)).status_code == 204
    assert client.get(f"/api/children/{child['_id']}", headers=headers_for(parent)).status_code == 404
    assert client.get("/api/children", headers=headers_for(parent)).json()["data"] == []


def test_search_for_staff(client, db, parent, provider):
    make_child(db, parent, months=5, name="Layla Alharbi")
    make_child(db, parent, months=7, name="Omar Alharbi")

    resp = client.get("/api/children/search", params={"q": "layla"}, headers=headers_for(provider))
    assert resp.status_code == 200
    assert [c["fullName"] for c in resp.json()["data"]] == ["Layla Alharbi"]

    assert client.get("/api/children/search", params={"q": "layla"}, headers=headers_for(parent)).status_code == 403


def test_child_upcoming_and_history(client, db, parent, provider):
    child = make_child(db, parent, months=3)
    record_doses(db, child, provider, VACCINATION_SCHEDULE[:2])

    history = client.get(f"/api/children/{child['_id']}/vaccinations", headers=headers_for(parent)).json()["data"]
    assert {r["vaccineName"] for r in history} == {"BCG", "Hepatitis B"}

    data = client.get(f"/api/children/{child['_id']}/upcoming", headers=headers_for(parent)).json()["data"]
    assert {e["ageGroup"] for e in data["overdue"]} == {"2 Months"}
    assert data["upcoming"][0]["ageGroup"] == "4 Months"
