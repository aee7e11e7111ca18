import pytest
from httpx import AsyncClient

from tests.conftest import auth_headers


@pytest.mark.asyncio
async def test_qualified_teachers_for_subject(client: AsyncClient, school) -> None:
    response = await client.get(
        f"/api/v1/subjects/{school.math.id}/qualified-teachers", headers=auth_headers(school.admin)
    )
    assert response.status_code == 200
    assert response.json() == [
        {"teacher_id": str(school.teacher2.id), "name": "Meera Nair"},
        {"teacher_id": str(school.teacher.id), "name": "Ravi Kumar"},
    ]

    nobody = await client.get(
        f"/api/v1/subjects/{school.science.id}/qualified-teachers", headers=auth_headers(school.admin)
    )
    assert nobody.json() == []


@pytest.mark.asyncio
async def test_adding_qualification_unblocks_assignment(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    entry = {
        "class_id": str(school.class_a.id),
        "subject_id": str(school.science.id),
        "teacher_id": str(school.teacher.id),
        "time_slot_id": str(school.slot1.id),
    }
    assert (await client.post("/api/v1/timetables", json=entry, headers=headers)).status_code == 400

    created = await client.post(
        "/api/v1/teacher-qualifications",
        json={"teacher_id": str(school.teacher.id), "subject_id": str(school.science.id)},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["subject_name"] == "Science"

    assert (await client.post("/api/v1/timetables", json=entry, headers=headers)).status_code == 201


@pytest.mark.asyncio
async def test_duplicate_qualification_conflicts(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/teacher-qualifications",
        json={"teacher_id": str(school.teacher.id), "subject_id": str(school.math.id)},
        headers=auth_headers(school.admin),
    )
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_only_teachers_can_be_qualified(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/teacher-qualifications",
        json={"teacher_id": str(school.parent.id), "subject_id": str(school.math.id)},
        headers=auth_headers(school.admin),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_and_delete_qualification(client: AsyncClient, school) -> None:
    headers = auth_headers(school.admin)
    listed = await client.get(
        "/api/v1/teacher-qualifications", params={"teacher_id": str(school.teacher.id)}, headers=headers
    )
    [qualification] = listed.json()
    assert qualification["teacher_name"] == "Ravi Kumar"

    response = await client.delete(f"/api/v1/teacher-qualifications/{qualification['id']}", headers=headers)
    assert response.status_code == 204
    remaining = await client.get(
        f"/api/v1/subjects/{school.math.id}/qualified-teachers", headers=headers
    )
    assert [t["name"] for t in remaining.json()] == ["Meera Nair"]


@pytest.mark.asyncio
async def test_teacher_cannot_manage_qualifications(client: AsyncClient, school) -> None:
    response = await client.post(
        "/api/v1/teacher-qualifications",
        json={"teacher_id": str(school.teacher.id), "subject_id": str(school.science.id)},
        headers=auth_headers(school.teacher),
    )
    assert response.status_code == 403
