"""
Test cases for workout templates, including the all-or-nothing write of a
template and its exercise lines.
"""
import asyncio
import pytest
from sqlalchemy import func, select

from trackle.errors import DatabaseError, NotFoundError, ValidationError
from trackle.templates.models import Template, TemplateExercise
from trackle.templates.service import TemplateService, TemplateCreate, TemplateExerciseIn
from trackle.workouts.models import Workout
from trackle.workouts.service import WorkoutService, WorkoutCreate, WorkoutEntryIn, WorkoutOut


async def _count(session_factory, model):
    async with session_factory() as session:
        return (await session.execute(select(func.count(model.id)))).scalar_one()


@pytest.mark.asyncio
async def test_create_template(client, login_as, make_exercise):
    headers = await login_as()
    bench = await make_exercise(headers, "Bench Press")
    dips = await make_exercise(headers, "Dips", equipment="parallel bars")

    response = await client.post("/api/me/templates", json={
        "name": "Push",
        "description": "Chest and triceps",
        "exercises": [
            {"exercise_id": bench, "sets": 3},
            {"exercise_id": dips, "sets": 4}
        ]
    }, headers=headers)

    assert response.status_code == 201
    body = response.json()
    assert body["message"] == "Template created successfully"
    template = body["data"]
    assert template["name"] == "Push"
    assert template["description"] == "Chest and triceps"
    assert [(e["exercise_id"], e["sets"]) for e in template["exercises"]] == [(bench, 3), (dips, 4)]
    assert template["exercises"][1]["name"] == "Dips"
    assert template["exercises"][1]["equipment"] == "parallel bars"


@pytest.mark.asyncio
async def test_duplicate_exercise_ids_persist_nothing(client, login_as, make_exercise, session_factory):
    headers = await login_as()
    bench = await make_exercise(headers)

    response = await client.post("/api/me/templates", json={
        "name": "Push",
        "exercises": [{"exercise_id": bench, "sets": 3}, {"exercise_id": bench, "sets": 2}]
    }, headers=headers)

    assert response.status_code == 400
    assert response.json()["error"] == "invalid input"
    assert response.json()["message"] == "Duplicate exercise IDs not allowed"
    assert await _count(session_factory, Template) == 0
    assert await _count(session_factory, TemplateExercise) == 0


@pytest.mark.asyncio
async def test_unknown_exercise_id(client, login_as, make_exercise, session_factory):
    headers = await login_as()
    bench = await make_exercise(headers)

    response = await client.post("/api/me/templates", json={
        "name": "Push",
        "exercises": [{"exercise_id": bench, "sets": 3}, {"exercise_id": 999, "sets": 3}]
    }, headers=headers)

    assert response.status_code == 400
    assert response.json()["message"] == "One or more exercise IDs are invalid"
    assert await _count(session_factory, Template) == 0


@pytest.mark.asyncio
async def test_template_payload_validation(client, login_as, make_exercise):
    headers = await login_as()
    bench = await make_exercise(headers)

    empty = await client.post("/api/me/templates", json={"name": "Push", "exercises": []}, headers=headers)
    assert empty.status_code == 400
    assert empty.json()["error"] == "validation error"

    zero_sets = await client.post("/api/me/templates", json={
        "name": "Push", "exercises": [{"exercise_id": bench, "sets": 0}]
    }, headers=headers)
    assert zero_sets.status_code == 400

    nameless = await client.post("/api/me/templates", json={
        "exercises": [{"exercise_id": bench, "sets": 3}]
    }, headers=headers)
    assert nameless.status_code == 400


@pytest.mark.asyncio
async def test_failed_child_insert_rolls_back_parent(client, login_as, make_exercise, session_factory):
    """A line the store rejects leaves neither the template nor any line behind."""
    headers = await login_as()
    bench = await make_exercise(headers, "Bench Press")
    dips = await make_exercise(headers, "Dips")

    # Bypasses request validation so the CHECK constraint on sets fires
    data = TemplateCreate.model_construct(
        name="Push",
        description="",
        exercises=[
            TemplateExerciseIn.model_construct(exercise_id=bench, sets=3),
            TemplateExerciseIn.model_construct(exercise_id=dips, sets=0),
        ],
    )
    async with session_factory() as session:
        with pytest.raises(DatabaseError) as exc_info:
            await TemplateService.create_template(session, 1, data)
    assert exc_info.value.message == "Failed to create template"

    assert await _count(session_factory, Template) == 0
    assert await _count(session_factory, TemplateExercise) == 0


@pytest.mark.asyncio
async def test_templates_are_owner_scoped(client, login_as, make_exercise, make_template):
    alice = await login_as()
    bob = await login_as("bob", "b@x.com")
    bench = await make_exercise(alice)
    template_id = await make_template(alice, [bench])

    replacement = {"name": "Mine", "exercises": [{"exercise_id": bench, "sets": 1}]}
    responses = [
        await client.get(f"/api/me/templates/{template_id}", headers=bob),
        await client.put(f"/api/me/templates/{template_id}", json=replacement, headers=bob),
        await client.delete(f"/api/me/templates/{template_id}", headers=bob),
    ]
    for response in responses:
        assert response.status_code == 404
        assert response.json()["message"] == "Template not found"

    missing = await client.get("/api/me/templates/999", headers=alice)
    assert missing.json() == responses[0].json()

    bob_list = await client.get("/api/me/templates", headers=bob)
    assert bob_list.json()["total"] == 0

    still_there = await client.get(f"/api/me/templates/{template_id}", headers=alice)
    assert still_there.status_code == 200
    assert still_there.json()["data"]["name"] == "Push"


@pytest.mark.asyncio
async def test_update_template_replaces_exercises(client, login_as, make_exercise, make_template):
    headers = await login_as()
    bench = await make_exercise(headers, "Bench Press")
    dips = await make_exercise(headers, "Dips")
    press = await make_exercise(headers, "Overhead Press")
    template_id = await make_template(headers, [bench, dips])

    response = await client.put(f"/api/me/templates/{template_id}", json={
        "name": "Push v2",
        "description": "Shoulders",
        "exercises": [{"exercise_id": press, "sets": 5}]
    }, headers=headers)

    assert response.status_code == 200
    assert response.json()["message"] == "Template updated successfully"
    updated = response.json()["data"]
    assert updated["name"] == "Push v2"
    assert [(e["exercise_id"], e["sets"]) for e in updated["exercises"]] == [(press, 5)]

    fetched = await client.get(f"/api/me/templates/{template_id}", headers=headers)
    assert fetched.json()["data"] == updated


@pytest.mark.asyncio
async def test_failed_update_keeps_previous_exercises(client, login_as, make_exercise, make_template):
    headers = await login_as()
    bench = await make_exercise(headers)
    template_id = await make_template(headers, [bench])

    response = await client.put(f"/api/me/templates/{template_id}", json={
        "name": "Broken",
        "exercises": [{"exercise_id": 999, "sets": 3}]
    }, headers=headers)
    assert response.status_code == 400

    fetched = (await client.get(f"/api/me/templates/{template_id}", headers=headers)).json()["data"]
    assert fetched["name"] == "Push"
    assert [e["exercise_id"] for e in fetched["exercises"]] == [bench]


@pytest.mark.asyncio
async def test_delete_template(client, login_as, make_exercise, make_template, session_factory):
    headers = await login_as()
    bench = await make_exercise(headers)
    template_id = await make_template(headers, [bench])

    response = await client.delete(f"/api/me/templates/{template_id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Template deleted successfully"

    gone = await client.get(f"/api/me/templates/{template_id}", headers=headers)
    assert gone.status_code == 404

    again = await client.delete(f"/api/me/templates/{template_id}", headers=headers)
    assert again.status_code == 404

    async with session_factory() as session:
        live_lines = (await session.execute(
            select(func.count(TemplateExercise.id)).where(TemplateExercise.live())
        )).scalar_one()
    assert live_lines == 0


@pytest.mark.asyncio
async def test_delete_template_with_workouts_is_refused(client, login_as, make_exercise, make_template):
    headers = await login_as()
    bench = await make_exercise(headers)
    template_id = await make_template(headers, [bench])
    workout = await client.post("/api/me/workouts", json={
        "name": "Monday",
        "template_id": template_id,
        "entries": [{"exercise_id": bench, "set_number": 1, "reps": 5, "weight": 60}]
    }, headers=headers)
    assert workout.status_code == 201

    response = await client.delete(f"/api/me/templates/{template_id}", headers=headers)
    assert response.status_code == 400
    assert response.json()["error"] == "validation error"
    assert response.json()["message"] == "Template is used by existing workouts"

    # Both aggregates are untouched
    template = await client.get(f"/api/me/templates/{template_id}", headers=headers)
    assert len(template.json()["data"]["exercises"]) == 1
    logged = await client.get(f"/api/me/workouts/{workout.json()['data']['id']}", headers=headers)
    assert logged.json()["data"]["template_name"] == "Push"

    # Once the workout is gone the template can be deleted
    await client.delete(f"/api/me/workouts/{workout.json()['data']['id']}", headers=headers)
    response = await client.delete(f"/api/me/templates/{template_id}", headers=headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_list_templates(client, login_as, make_exercise, make_template):
    headers = await login_as()
    bench = await make_exercise(headers)
    for name in ("A", "B", "C"):
        await make_template(headers, [bench], name=name)

    response = await client.get("/api/me/templates", params={"limit": 2}, headers=headers)
    body = response.json()
    assert body["message"] == "Templates retrieved successfully"
    assert body["total"] == 3
    assert body["total_pages"] == 2
    assert body["has_next"] is True
    assert len(body["data"]) == 2
    assert {"id", "name", "description", "created_at", "updated_at"} <= set(body["data"][0])


@pytest.mark.asyncio
async def test_concurrent_workout_and_template_delete(client, login_as, make_exercise, make_template, session_factory):
    """Racing a workout log against a template delete never leaves an orphaned workout."""
    headers = await login_as()
    bench = await make_exercise(headers)
    template_id = await make_template(headers, [bench])
    owner_id = (await client.get("/api/me", headers=headers)).json()["data"]["id"]
    data = WorkoutCreate(
        name="Monday",
        template_id=template_id,
        entries=[WorkoutEntryIn(exercise_id=bench, set_number=1, reps=5, weight=60)],
    )

    async with session_factory() as first, session_factory() as second:
        logged, deleted = await asyncio.gather(
            WorkoutService.create_workout(first, owner_id, data),
            TemplateService.delete_template(second, owner_id, template_id),
            return_exceptions=True,
        )

    # Exactly one side wins
    if isinstance(logged, WorkoutOut):
        assert isinstance(deleted, ValidationError)
    else:
        assert isinstance(logged, NotFoundError)
        assert deleted is None

    async with session_factory() as session:
        orphaned = (await session.execute(
            select(func.count(Workout.id))
            .join(Template, Template.id == Workout.template_id)
            .where(Workout.live(), Template.deleted_at.is_not(None))
        )).scalar_one()
    assert orphaned == 0
