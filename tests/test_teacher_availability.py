import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_teacher_records_own_availability(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/teacher-availability",
        json={"day_of_week": 1, "start_time": "08:00", "end_time": "12:00"},
        headers=auth_headers(school.teacher),
    )
    assert response.status_code == 201
    data = response.json()
    assert data["teacher_id"] == str(school.teacher.id)
    assert data["start_time"] == "08:00"


@pytest.mark.asyncio
async def test_teacher_cannot_edit_colleague_availability(client: AsyncClient, school) -> None:
    created = await client.post(
        "/api/v1/teacher-availability",
        json={"teacher_id": str(school.teacher2.id), "day_of_week": 2, "start_time": "08:00", "end_time": "12:00"},
        headers=auth_headers(school.admin),
    )
    assert created.status_code == 201

    teacher = auth_headers(school.teacher)
    forbidden = await client.post(
        "/api/v1/teacher-availability",
        json={"teacher_id": str(school.teacher2.id), "day_of_week": 3, "start_time": "08:00", "end_time": "12:00"},
        headers=teacher,
    )
    assert forbidden.status_code == 403
    deleted = await client.delete(f"/api/v1/teacher-availability/{created.json()['id']}", headers=teacher)
    assert deleted.status_code == 403


@pytest.mark.asyncio
async def test_invalid_window_is_rejected(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/teacher-availability",
        json={"day_of_week": 1, "start_time": "12:00", "end_time": "08:00"},
        headers=auth_headers(school.teacher),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_bulk_replace_swaps_all_windows(client: AsyncClient, school) -> None:
    headers = auth_headers(school.teacher)
    await client.post(
        "/api/v1/teacher-availability",
        json={"day_of_week": 5, "start_time": "08:00", "end_time": "12:00"},
        headers=headers,
    )

    response = await client.put(
        "/api/v1/teacher-availability/bulk",
        json={
            "windows": [
                {"day_of_week": 2, "start_time": "10:00", "end_time": "14:00"},
                {"day_of_week": 1, "start_time": "08:00", "end_time": "09:00"},
            ]
        },
        headers=headers,
    )
    assert response.status_code == 200
    assert [w["day_of_week"] for w in response.json()] == [1, 2]

    listed = await client.get(
        "/api/v1/teacher-availability", params={"teacher_id": str(school.teacher.id)}, headers=headers
    )
    assert [(w["day_of_week"], w["start_time"]) for w in listed.json()] == [(1, "08:00"), (2, "10:00")]


@pytest.mark.asyncio
async def test_availability_gates_scheduling(client: AsyncClient, school) -> None:
    await client.put(
        "/api/v1/teacher-availability/bulk",
        json={"windows": [{"day_of_week": 1, "start_time": "08:30", "end_time": "12:00"}]},
        headers=auth_headers(school.teacher),
    )
    response = await client.post(
        "/api/v1/timetables",
        json={
            "class_id": str(school.class_a.id),
            "subject_id": str(school.math.id),
            "teacher_id": str(school.teacher.id),
            "time_slot_id": str(school.slot1.id),
        },
        headers=auth_headers(school.admin),
    )
    assert response.status_code == 400
    assert response.json()["detail"]["reason"] == "TEACHER_UNAVAILABLE"


@pytest.mark.asyncio
async def test_admin_update_window(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    created = (
        await client.post(
            "/api/v1/teacher-availability",
            json={"teacher_id": str(school.teacher.id), "day_of_week": 1, "start_time": "08:00", "end_time": "10:00"},
            headers=headers,
        )
    ).json()
    response = await client.put(
        f"/api/v1/teacher-availability/{created['id']}", json={"end_time": "13:00", "notes": "Mornings"}, headers=headers
    )
    assert response.status_code == 200
    assert response.json()["end_time"] == "13:00"
    assert response.json()["notes"] == "Mornings"


@pytest.mark.asyncio
async def test_admin_must_name_the_teacher(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/teacher-availability",
        json={"day_of_week": 1, "start_time": "08:00", "end_time": "12:00"},
        headers=auth_headers(school.admin),
    )
    assert response.status_code == 400
