import pytest
from httpx import AsyncClient

from app.auth.models import User

from tests.conftest import auth_headers


def _entry_payload(school, cls=None, teacher=None, slot=None) -> dict:
    return {
        "class_id": str((cls or school.class_a).id),
        "subject_id": str(school.math.id),
        "teacher_id": str((teacher or school.teacher).id),
        "time_slot_id": str((slot or school.slot1).id),
    }


@pytest.mark.asyncio
async def test_create_entry_returns_draft_with_names(client: AsyncClient, school) -> None:
    response = await client.post("/api/v1/timetables", json=_entry_payload(school), headers=auth_headers(school.admin))
    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "draft"
    assert data["start_time"] == "08:00"
    assert data["end_time"] == "08:50"
    assert data["day_of_week"] == 1
    assert data["subject_name"] == "Mathematics"
    assert data["teacher_name"] == "Ravi Kumar"
    assert data["class_name"] == "Grade 5A"


@pytest.mark.asyncio
async def test_rejection_body_carries_reason(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    await client.post("/api/v1/timetables", json=_entry_payload(school), headers=headers)

    response = await client.post(
        "/api/v1/timetables", json=_entry_payload(school, cls=school.class_b), headers=headers
    )
    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["reason"] == "TEACHER_DOUBLE_BOOKED"
    assert "Ravi Kumar" in detail["message"]


@pytest.mark.asyncio
async def test_unqualified_is_bad_request(client: AsyncClient, school) -> None:
    payload = _entry_payload(school)
    payload["subject_id"] = str(school.science.id)
    response = await client.post("/api/v1/timetables", json=payload, headers=auth_headers(school.admin))
    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == "NOT_QUALIFIED"


@pytest.mark.asyncio
async def test_publish_and_discard_flow(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    class_ref = {"class_id": str(school.class_a.id)}
    await client.post("/api/v1/timetables", json=_entry_payload(school), headers=headers)
    await client.post(
        "/api/v1/timetables",
        json=_entry_payload(school, teacher=school.teacher2, slot=school.slot2),
        headers=headers,
    )

    response = await client.post("/api/v1/timetables/publish", json=class_ref, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["entries_activated"] == 2
    assert {e["status"] for e in body["entries"]} == {"active"}

    again = await client.post("/api/v1/timetables/publish", json=class_ref, headers=headers)
    assert again.status_code == 404

    listed = await client.get(
        "/api/v1/timetables", params={"class_id": str(school.class_a.id), "status": "active"}, headers=headers
    )
    assert [e["start_time"] for e in listed.json()] == ["08:00", "08:50"]

    discard = await client.post("/api/v1/timetables/discard", json=class_ref, headers=headers)
    assert discard.status_code == 404


@pytest.mark.asyncio
async def test_discard_reports_count(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    await client.post("/api/v1/timetables", json=_entry_payload(school), headers=headers)

    response = await client.post(
        "/api/v1/timetables/discard", json={"class_id": str(school.class_a.id)}, headers=headers
    )
    assert response.status_code == 200
    assert response.json() == {"class_id": str(school.class_a.id), "entries_discarded": 1}


@pytest.mark.asyncio
async def test_batch_replace_reports_failing_index(client: AsyncClient, school) -> None:
    body = {
        "entries": [
            {"subject_id": str(school.math.id), "teacher_id": str(school.teacher.id), "time_slot_id": str(school.slot1.id)},
            {"subject_id": str(school.math.id), "teacher_id": str(school.teacher.id), "time_slot_id": str(school.break_slot.id)},
        ]
    }
    response = await client.put(
        f"/api/v1/timetables/classes/{school.class_a.id}/draft", json=body, headers=auth_headers(school.admin)
    )
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Entry 1:")

    listed = await client.get(
        "/api/v1/timetables", params={"class_id": str(school.class_a.id)}, headers=auth_headers(school.admin)
    )
    assert listed.json() == []


@pytest.mark.asyncio
async def test_get_update_and_delete_entry(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    created = (await client.post("/api/v1/timetables", json=_entry_payload(school), headers=headers)).json()

    fetched = await client.get(f"/api/v1/timetables/{created['id']}", headers=headers)
    assert fetched.status_code == 200
    assert fetched.json()["slot_name"] == "Period 1"

    updated = await client.put(
        f"/api/v1/timetables/{created['id']}", json={"time_slot_id": str(school.slot2.id)}, headers=headers
    )
    assert updated.status_code == 200
    assert updated.json()["start_time"] == "08:50"

    deleted = await client.delete(f"/api/v1/timetables/{created['id']}", headers=headers)
    assert deleted.status_code == 204
    missing = await client.get(f"/api/v1/timetables/{created['id']}", headers=headers)
    assert missing.status_code == 404


# ----- Authorization -----

@pytest.mark.asyncio
async def test_missing_token_is_unauthorized(client: AsyncClient, school) -> None:
    response = await client.get("/api/v1/timetables")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_parent_can_read_but_not_write(client: AsyncClient, school) -> None:
    headers = auth_headers(school.parent)
    assert (await client.get("/api/v1/timetables", headers=headers)).status_code == 200
    response = await client.post("/api/v1/timetables", json=_entry_payload(school), headers=headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_teacher_cannot_publish(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/timetables/publish",
        json={"class_id": str(school.class_a.id)},
        headers=auth_headers(school.teacher),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(client: AsyncClient, school, db_session) -> None:
    user = User(tenant_id=school.tenant.id, full_name="Ghost", email="ghost@gv.test", role="SCHOOL_ADMIN_LEGACY")
    db_session.add(user)
    await db_session.commit()
    response = await client.get("/api/v1/timetables", headers=auth_headers(user))
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_teacher_deletes_only_own_entries(client: AsyncClient, school) -> None:
    admin = auth_headers(school.admin)
    mine = (await client.post("/api/v1/timetables", json=_entry_payload(school), headers=admin)).json()
    theirs = (
        await client.post(
            "/api/v1/timetables",
            json=_entry_payload(school, teacher=school.teacher2, slot=school.slot2),
            headers=admin,
        )
    ).json()

    teacher = auth_headers(school.teacher)
    assert (await client.delete(f"/api/v1/timetables/{theirs['id']}", headers=teacher)).status_code == 403
    assert (await client.delete(f"/api/v1/timetables/{mine['id']}", headers=teacher)).status_code == 204


@pytest.mark.asyncio
async def test_teacher_sees_own_published_schedule(client: AsyncClient, school) -> None:
    admin = auth_headers(school.admin)
    await client.post("/api/v1/timetables", json=_entry_payload(school), headers=admin)
    await client.post(
        "/api/v1/timetables", json=_entry_payload(school, cls=school.class_b, slot=school.slot2), headers=admin
    )
    await client.post("/api/v1/timetables/publish", json={"class_id": str(school.class_a.id)}, headers=admin)

    response = await client.get("/api/v1/timetables/me", headers=auth_headers(school.teacher))
    assert response.status_code == 200
    data = response.json()
    # Grade 5B is still a draft
    assert data["total_periods"] == 1
    assert list(data["schedule_by_day"].keys()) == ["1"]
    assert data["schedule"][0]["class_name"] == "Grade 5A"


@pytest.mark.asyncio
async def test_other_school_cannot_touch_entries(client: AsyncClient, school, other_school) -> None:
    created = (
        await client.post("/api/v1/timetables", json=_entry_payload(school), headers=auth_headers(school.admin))
    ).json()
    foreign = auth_headers(other_school.admin)

    assert (await client.get(f"/api/v1/timetables/{created['id']}", headers=foreign)).status_code == 403
    assert (await client.delete(f"/api/v1/timetables/{created['id']}", headers=foreign)).status_code == 403
    response = await client.post(
        "/api/v1/timetables/publish", json={"class_id": str(school.class_a.id)}, headers=foreign
    )
    assert response.status_code == 403
    listed = await client.get("/api/v1/timetables", headers=foreign)
    assert listed.json() == []
