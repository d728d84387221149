import pytest
import uuid
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import settings
from app.models.enums import Role

API = settings.API_V1_STR


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", ["diet", "workout"])
async def test_assign_endpoint_replaces_previous_plan(
    client: AsyncClient, admin_token_headers, make_client, make_package, make_plan, kind
):
    package = await make_package()
    member = await make_client("member@test.com", package)
    legacy = await make_plan(kind, "Legacy", client=member)
    first = await make_plan(kind, "First", is_template=True)
    second = await make_plan(kind, "Second", is_template=True)

    for plan in (first, second, second):
        resp = await client.post(
            f"{API}/plans/{kind}/assign",
            json={"plan_id": str(plan.id), "client_id": str(member.id)},
            headers=admin_token_headers,
        )
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"]["id"] == str(plan.id)
        assert body["data"]["kind"] == kind

    resp = await client.get(f"{API}/clients/{member.id}/plans/{kind}", headers=admin_token_headers)
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()["data"]] == [str(second.id)]

    resp = await client.get(f"{API}/plans/{kind}/{legacy.id}", headers=admin_token_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_assign_endpoint_error_mapping(
    client: AsyncClient, admin_token_headers, make_client, make_package, make_plan
):
    package = await make_package("Workout only", diet=False, workout=True)
    member = await make_client("errors@test.com", package)
    bare = await make_client("bare@test.com")
    plan = await make_plan("diet", "Plan", is_template=True)

    resp = await client.post(
        f"{API}/plans/diet/assign",
        json={"plan_id": "not-a-uuid", "client_id": str(member.id)},
        headers=admin_token_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_IDENTIFIER"
    assert resp.json()["request_id"]

    resp = await client.post(
        f"{API}/plans/diet/assign",
        json={"plan_id": str(uuid.uuid4()), "client_id": str(member.id)},
        headers=admin_token_headers,
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Diet plan not found"

    resp = await client.post(
        f"{API}/plans/diet/assign",
        json={"plan_id": str(plan.id), "client_id": str(uuid.uuid4())},
        headers=admin_token_headers,
    )
    assert resp.status_code == 404
    assert resp.json()["detail"] == "Client not found"

    for target in (member, bare):
        resp = await client.post(
            f"{API}/plans/diet/assign",
            json={"plan_id": str(plan.id), "client_id": str(target.id)},
            headers=admin_token_headers,
        )
        assert resp.status_code == 403
        assert resp.json()["code"] == "PACKAGE_ACCESS_DENIED"


@pytest.mark.asyncio
async def test_malformed_client_id_wins_over_missing_plan(client: AsyncClient, admin_token_headers):
    resp = await client.post(
        f"{API}/plans/workout/assign",
        json={"plan_id": str(uuid.uuid4()), "client_id": "12345"},
        headers=admin_token_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["code"] == "INVALID_IDENTIFIER"


@pytest.mark.asyncio
async def test_trainers_only_manage_their_own_clients(
    client: AsyncClient, db_session: AsyncSession, auth_headers, make_user, make_client, make_package, make_plan
):
    coach = await make_user("coach@test.com", Role.TRAINER)
    rival = await make_user("rival@test.com", Role.TRAINER)
    package = await make_package()
    mine = await make_client("mine@test.com", package)
    theirs = await make_client("theirs@test.com", package)
    unassigned = await make_client("open@test.com", package)
    mine.trainer_id = coach.id
    theirs.trainer_id = rival.id
    await db_session.commit()
    plan = await make_plan("diet", "Plan", is_template=True)
    headers = auth_headers(coach)

    for member in (mine, unassigned):
        resp = await client.post(
            f"{API}/plans/diet/assign",
            json={"plan_id": str(plan.id), "client_id": str(member.id)},
            headers=headers,
        )
        assert resp.status_code == 200

    resp = await client.get(f"{API}/clients", headers=headers)
    assert sorted(c["email"] for c in resp.json()["data"]) == ["mine@test.com", "open@test.com"]

    resp = await client.post(
        f"{API}/plans/diet/assign",
        json={"plan_id": str(plan.id), "client_id": str(theirs.id)},
        headers=headers,
    )
    assert resp.status_code == 403
    resp = await client.post(
        f"{API}/plans/diet/{plan.id}/clone", json={"client_id": str(theirs.id)}, headers=headers
    )
    assert resp.status_code == 403
    resp = await client.get(f"{API}/clients/{theirs.id}", headers=headers)
    assert resp.status_code == 403
    resp = await client.get(f"{API}/clients/{theirs.id}/plans/diet", headers=headers)
    assert resp.status_code == 403
    resp = await client.delete(f"{API}/clients/{theirs.id}/plans/diet", headers=headers)
    assert resp.status_code == 403
    resp = await client.post(f"{API}/clients/{theirs.id}/assignments/cleanup", headers=headers)
    assert resp.status_code == 403
    resp = await client.patch(f"{API}/clients/{theirs.id}/status", json={"status": "inactive"}, headers=headers)
    assert resp.status_code == 403

    resp = await client.get(f"{API}/clients/{theirs.id}/plans/diet", headers=auth_headers(rival))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_assign_endpoint_conflict(
    client: AsyncClient, admin_token_headers, make_client, make_package, make_plan, competing_assignment
):
    member = await make_client("race@test.com", await make_package())
    plan = await make_plan("diet", "Plan", is_template=True)
    theirs = await make_plan("diet", "Theirs", is_template=True)

    competing_assignment("diet", member.id, theirs.id)
    resp = await client.post(
        f"{API}/plans/diet/assign",
        json={"plan_id": str(plan.id), "client_id": str(member.id)},
        headers=admin_token_headers,
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "CONFLICT_RACE"


@pytest.mark.asyncio
async def test_package_gate_can_be_disabled(
    client: AsyncClient, admin_token_headers, make_client, make_plan, monkeypatch
):
    monkeypatch.setattr(settings, "ENFORCE_PACKAGE_PLAN_ACCESS", False)
    member = await make_client("nogate@test.com")
    plan = await make_plan("workout", "Plan", is_template=True)

    resp = await client.post(
        f"{API}/plans/workout/assign",
        json={"plan_id": str(plan.id), "client_id": str(member.id)},
        headers=admin_token_headers,
    )
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_client_reads_only_own_plans(
    client: AsyncClient, admin_token_headers, auth_headers, make_user, make_client, make_package, make_plan
):
    package = await make_package()
    login = await make_user("self@test.com", Role.CLIENT)
    me = await make_client("self@test.com", package, user=login)
    someone = await make_client("someone@test.com", package)
    plan = await make_plan("workout", "Mine", is_template=True)
    await client.post(
        f"{API}/plans/workout/assign",
        json={"plan_id": str(plan.id), "client_id": str(me.id)},
        headers=admin_token_headers,
    )
    headers = auth_headers(login)

    resp = await client.get(f"{API}/clients/{me.id}/plans/workout", headers=headers)
    assert resp.status_code == 200
    assert [p["id"] for p in resp.json()["data"]] == [str(plan.id)]

    resp = await client.get(f"{API}/clients/{someone.id}/plans/workout", headers=headers)
    assert resp.status_code == 403

    resp = await client.post(
        f"{API}/plans/workout/assign",
        json={"plan_id": str(plan.id), "client_id": str(me.id)},
        headers=headers,
    )
    assert resp.status_code == 403

    resp = await client.get(f"{API}/auth/me", headers=headers)
    assert resp.json()["data"]["client_id"] == str(me.id)


@pytest.mark.asyncio
async def test_read_path_rejects_malformed_client_id(client: AsyncClient, admin_token_headers):
    resp = await client.get(f"{API}/clients/xyz/plans/diet", headers=admin_token_headers)
    assert resp.status_code == 400

    resp = await client.get(f"{API}/clients/{uuid.uuid4()}/plans/diet", headers=admin_token_headers)
    assert resp.status_code == 200
    assert resp.json()["data"] == []


@pytest.mark.asyncio
async def test_plan_crud_and_templates(client: AsyncClient, trainer_token_headers):
    resp = await client.post(
        f"{API}/plans/diet",
        json={"name": "Cutting", "target_calories": 1800, "meals": {"monday": []}},
        headers=trainer_token_headers,
    )
    assert resp.status_code == 200
    diet = resp.json()["data"]
    assert diet["is_template"] is True
    assert diet["created_by"] == "trainer@test.com"

    resp = await client.post(f"{API}/plans/diet", json={"name": ""}, headers=trainer_token_headers)
    assert resp.status_code == 422

    resp = await client.post(
        f"{API}/plans/workout",
        json={"name": "Push Pull Legs", "duration_weeks": 8, "difficulty": "intermediate"},
        headers=trainer_token_headers,
    )
    assert resp.status_code == 200

    resp = await client.get(f"{API}/plans/diet/templates", headers=trainer_token_headers)
    assert [p["name"] for p in resp.json()["data"]] == ["Cutting"]

    resp = await client.get(f"{API}/plans/diet/{diet['id']}", headers=trainer_token_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["target_calories"] == 1800

    resp = await client.delete(f"{API}/plans/diet/{diet['id']}", headers=trainer_token_headers)
    assert resp.status_code == 200
    resp = await client.get(f"{API}/plans/diet/{diet['id']}", headers=trainer_token_headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_clone_endpoint(client: AsyncClient, trainer_token_headers, make_client, make_package, make_plan):
    member = await make_client("cloned@test.com", await make_package())
    template = await make_plan("diet", "Keto", is_template=True)

    resp = await client.post(
        f"{API}/plans/diet/{template.id}/clone",
        json={"client_id": str(member.id)},
        headers=trainer_token_headers,
    )
    assert resp.status_code == 200
    clone = resp.json()["data"]
    assert clone["name"] == "Keto"
    assert clone["is_template"] is False
    assert clone["cloned_from_id"] == str(template.id)

    resp = await client.get(f"{API}/clients/{member.id}/plans/diet", headers=trainer_token_headers)
    assert [p["id"] for p in resp.json()["data"]] == [clone["id"]]


@pytest.mark.asyncio
async def test_bulk_assign_is_admin_only(
    client: AsyncClient, admin_token_headers, trainer_token_headers, make_client, make_package, make_plan
):
    full = await make_client("full@test.com", await make_package())
    limited = await make_client("limited@test.com", await make_package("Basic", diet=False, workout=False))
    plan = await make_plan("diet", "Group", is_template=True)
    payload = {"plan_id": str(plan.id), "client_ids": [str(full.id), str(limited.id), "bad-id"]}

    resp = await client.post(f"{API}/plans/diet/bulk-assign", json=payload, headers=trainer_token_headers)
    assert resp.status_code == 403

    resp = await client.post(f"{API}/plans/diet/bulk-assign", json=payload, headers=admin_token_headers)
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["assigned"] == [str(full.id)]
    assert len(data["skipped"]) == 2


@pytest.mark.asyncio
async def test_clear_and_cleanup_endpoints(
    client: AsyncClient, admin_token_headers, make_client, make_package, make_plan
):
    member = await make_client("repair@test.com", await make_package())
    plan = await make_plan("workout", "Plan", is_template=True)
    await client.post(
        f"{API}/plans/workout/assign",
        json={"plan_id": str(plan.id), "client_id": str(member.id)},
        headers=admin_token_headers,
    )
    await make_plan("diet", "Stray", client=member)

    resp = await client.post(f"{API}/clients/{member.id}/assignments/cleanup", headers=admin_token_headers)
    assert resp.status_code == 200
    assert resp.json()["data"]["diet_legacy_plans_removed"] == 1

    resp = await client.delete(f"{API}/clients/{member.id}/plans/workout", headers=admin_token_headers)
    assert resp.status_code == 200
    assert resp.json()["data"] == {"removed": 1}

    resp = await client.get(f"{API}/clients/{member.id}/plans/workout", headers=admin_token_headers)
    assert resp.json()["data"] == []


@pytest.mark.asyncio
async def test_packages_and_clients(client: AsyncClient, admin_token_headers, trainer_token_headers):
    resp = await client.post(
        f"{API}/packages",
        json={"name": "Elite", "price": 120, "diet_plan_access": True, "duration_options": [4, 12]},
        headers=admin_token_headers,
    )
    assert resp.status_code == 200
    package_id = resp.json()["data"]["id"]

    resp = await client.post(f"{API}/packages", json={"name": "Nope", "price": 1}, headers=trainer_token_headers)
    assert resp.status_code == 403

    resp = await client.post(
        f"{API}/clients",
        json={"name": "Dana", "email": "dana@test.com", "package_id": package_id, "package_duration": 6},
        headers=trainer_token_headers,
    )
    assert resp.status_code == 400

    resp = await client.post(
        f"{API}/clients",
        json={
            "name": "Dana",
            "email": "dana@test.com",
            "package_id": package_id,
            "package_duration": 8,
            "subscription_start_date": "2024-01-01T00:00:00Z",
        },
        headers=trainer_token_headers,
    )
    assert resp.status_code == 200
    created = resp.json()["data"]
    assert created["subscription_end_date"].startswith("2024-02-26")

    resp = await client.get(f"{API}/clients", headers=trainer_token_headers)
    assert [c["email"] for c in resp.json()["data"]] == ["dana@test.com"]

    resp = await client.patch(
        f"{API}/clients/{created['id']}/status", json={"status": "inactive"}, headers=trainer_token_headers
    )
    assert resp.json()["data"]["status"] == "inactive"

    resp = await client.post(f"{API}/packages/{package_id}/archive", headers=admin_token_headers)
    assert resp.json()["data"]["archived_at"] is not None
    resp = await client.get(f"{API}/packages", headers=trainer_token_headers)
    assert resp.json()["data"] == []
