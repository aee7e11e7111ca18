import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_template_list_includes_counts(client: AsyncClient, school) -> None:
    response = await client.get("/api/v1/time-slot-templates", headers=auth_headers(school.admin))
    assert response.status_code == 200
    [template] = response.json()
    assert template["name"] == "Regular Week"
    assert template["is_default"] is True
    assert template["slot_count"] == 3
    assert template["class_count"] == 2


@pytest.mark.asyncio
async def test_new_default_template_unsets_previous(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    response = await client.post(
        "/api/v1/time-slot-templates", json={"name": "Winter Week", "is_default": True}, headers=headers
    )
    assert response.status_code == 201

    templates = (await client.get("/api/v1/time-slot-templates", headers=headers)).json()
    defaults = [t["name"] for t in templates if t["is_default"]]
    assert defaults == ["Winter Week"]


@pytest.mark.asyncio
async def test_duplicate_template_name_conflicts(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/time-slot-templates", json={"name": "Regular Week"}, headers=auth_headers(school.admin)
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_slots_grouped_by_day(client: AsyncClient, school) -> None:
    response = await client.get(
        "/api/v1/time-slots", params={"template_id": str(school.template.id)}, headers=auth_headers(school.teacher)
    )
    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 3
    assert data["teaching_slots"] == 2
    assert data["break_slots"] == 1
    assert [s["name"] for s in data["slots_by_day"]["1"]] == ["Period 1", "Period 2", "Break"]


@pytest.mark.asyncio
async def test_create_slot_validates_times_and_overlap(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    base = {"template_id": str(school.template.id), "day_of_week": 1, "name": "Period 3"}

    backwards = await client.post("/api/v1/time-slots", json={**base, "start_time": "11:00", "end_time": "10:00"}, headers=headers)
    assert backwards.status_code == 400

    overlapping = await client.post(
        "/api/v1/time-slots", json={**base, "start_time": "09:30", "end_time": "10:20"}, headers=headers
    )
    assert overlapping.status_code == 409
    assert "Period 2" in overlapping.json()["detail"]

    created = await client.post(
        "/api/v1/time-slots", json={**base, "start_time": "10:00", "end_time": "10:50"}, headers=headers
    )
    assert created.status_code == 201
    assert created.json()["start_time"] == "10:00"


@pytest.mark.asyncio
async def test_teacher_cannot_manage_slots(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/time-slots",
        json={
            "template_id": str(school.template.id), "day_of_week": 2,
            "start_time": "08:00", "end_time": "08:50", "name": "Period 1",
        },
        headers=auth_headers(school.teacher),
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_referenced_slot_cannot_be_deleted(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    await client.post(
        "/api/v1/timetables",
        json={
            "class_id": str(school.class_a.id),
            "subject_id": str(school.math.id),
            "teacher_id": str(school.teacher.id),
            "time_slot_id": str(school.slot1.id),
        },
        headers=headers,
    )
    response = await client.delete(f"/api/v1/time-slots/{school.slot1.id}", headers=headers)
    assert response.status_code == 409

    unused = await client.delete(f"/api/v1/time-slots/{school.slot2.id}", headers=headers)
    assert unused.status_code == 204


@pytest.mark.asyncio
async def test_published_slot_keeps_its_time(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    await client.post(
        "/api/v1/timetables",
        json={
            "class_id": str(school.class_a.id),
            "subject_id": str(school.math.id),
            "teacher_id": str(school.teacher.id),
            "time_slot_id": str(school.slot1.id),
        },
        headers=headers,
    )
    await client.post("/api/v1/timetables/publish", json={"class_id": str(school.class_a.id)}, headers=headers)

    moved = await client.put(f"/api/v1/time-slots/{school.slot1.id}", json={"start_time": "07:30"}, headers=headers)
    assert moved.status_code == 409

    renamed = await client.put(f"/api/v1/time-slots/{school.slot1.id}", json={"name": "First Period"}, headers=headers)
    assert renamed.status_code == 200
    assert renamed.json()["name"] == "First Period"


@pytest.mark.asyncio
async def test_template_in_use_cannot_be_deleted(client: AsyncClient, school) -> None:
    response = await client.delete(f"/api/v1/time-slot-templates/{school.template.id}", headers=auth_headers(school.admin))
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_unused_template_is_deleted_with_its_slots(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    template = (await client.post("/api/v1/time-slot-templates", json={"name": "Saturday Clubs"}, headers=headers)).json()
    await client.post(
        "/api/v1/time-slots",
        json={"template_id": template["id"], "day_of_week": 6, "start_time": "09:00", "end_time": "10:00", "name": "Club"},
        headers=headers,
    )

    response = await client.delete(f"/api/v1/time-slot-templates/{template['id']}", headers=headers)
    assert response.status_code == 204
    slots = (await client.get("/api/v1/time-slots", params={"template_id": template["id"]}, headers=headers)).json()
    assert slots["total"] == 0


@pytest.mark.asyncio
async def test_bind_class_to_template(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    template = (await client.post("/api/v1/time-slot-templates", json={"name": "Half Day"}, headers=headers)).json()

    response = await client.put(
        f"/api/v1/classes/{school.class_b.id}/time-slot-template",
        json={"time_slot_template_id": template["id"]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["time_slot_template_id"] == template["id"]

    # Grade 5B is now on Half Day, so Regular Week slots no longer fit it
    entry = await client.post(
        "/api/v1/timetables",
        json={
            "class_id": str(school.class_b.id),
            "subject_id": str(school.math.id),
            "teacher_id": str(school.teacher.id),
            "time_slot_id": str(school.slot1.id),
        },
        headers=headers,
    )
    assert entry.status_code == 400


@pytest.mark.asyncio
async def test_rebinding_class_with_entries_is_refused(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    await client.post(
        "/api/v1/timetables",
        json={
            "class_id": str(school.class_a.id),
            "subject_id": str(school.math.id),
            "teacher_id": str(school.teacher.id),
            "time_slot_id": str(school.slot1.id),
        },
        headers=headers,
    )
    template = (await client.post("/api/v1/time-slot-templates", json={"name": "Half Day"}, headers=headers)).json()
    response = await client.put(
        f"/api/v1/classes/{school.class_a.id}/time-slot-template",
        json={"time_slot_template_id": template["id"]},
        headers=headers,
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_slot_holding_drafts_keeps_its_time(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    await client.post(
        "/api/v1/timetables",
        json={
            "class_id": str(school.class_b.id),
            "subject_id": str(school.math.id),
            "teacher_id": str(school.teacher.id),
            "time_slot_id": str(school.slot2.id),
        },
        headers=headers,
    )
    moved = await client.put(
        f"/api/v1/time-slots/{school.slot2.id}", json={"start_time": "10:00", "end_time": "10:50"}, headers=headers
    )
    assert moved.status_code == 409

    slot = (await client.get(f"/api/v1/time-slots/{school.slot2.id}", headers=headers)).json()
    assert (slot["start_time"], slot["end_time"]) == ("08:50", "09:40")
