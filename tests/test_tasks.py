from __future__ import annotations

import uuid

import pytest

from conftest import add_to_project, login, make_project, make_task, make_team, signup, task_rows


async def _project(client) -> tuple[str, str, list[str]]:
  await signup(client, "admin@example.com", "Admin")
  team_id = await make_team(client)
  project_id, cols = await make_project(client, team_id)
  return team_id, project_id, cols


@pytest.mark.anyio
async def test_new_project_has_default_columns(client) -> None:
  _, project_id, _ = await _project(client)
  res = await client.get(f"/projects/{project_id}/columns")
  assert res.status_code == 200
  cols = res.json()
  assert [c["name"] for c in cols] == ["To Do", "In Progress", "Review", "Done"]
  assert [c["sortOrder"] for c in cols] == [100, 200, 300, 400]


@pytest.mark.anyio
async def test_create_and_rename_column(client) -> None:
  _, project_id, _ = await _project(client)
  res = await client.post(f"/projects/{project_id}/columns", json={"name": "  Blocked  "})
  assert res.status_code == 200, res.text
  col = res.json()
  assert col["name"] == "Blocked"
  assert col["sortOrder"] == 500

  res = await client.patch(f"/projects/{project_id}/columns/{col['id']}", json={"name": "Waiting"})
  assert res.status_code == 200
  assert res.json()["name"] == "Waiting"

  res = await client.patch(f"/projects/{project_id}/columns/{uuid.uuid4()}", json={"name": "X"})
  assert res.status_code == 404
  assert res.json()["detail"] == "Column not found"


@pytest.mark.anyio
async def test_create_task_appends_to_column(client) -> None:
  _, project_id, cols = await _project(client)
  res = await client.post("/tasks", json={"projectId": project_id, "columnId": cols[2], "title": "  Ship it "})
  assert res.status_code == 200, res.text
  body = res.json()
  assert body["title"] == "Ship it"
  assert body["sortOrder"] == 100
  assert body["priority"] == "medium"
  assert body["status"] == "todo"
  assert body["columnId"] == cols[2]

  second = await make_task(client, project_id, cols[2], "Then this")
  assert (await task_rows(project_id))[second] == (cols[2], 200)


@pytest.mark.anyio
async def test_create_task_rejects_column_of_other_project(client) -> None:
  team_id, project_id, _ = await _project(client)
  _, other_cols = await make_project(client, team_id, "Other")
  res = await client.post("/tasks", json={"projectId": project_id, "columnId": other_cols[0], "title": "Nope"})
  assert res.status_code == 400
  assert res.json()["detail"] == "Invalid columnId"


@pytest.mark.anyio
async def test_create_task_requires_board_access(client) -> None:
  _, project_id, cols = await _project(client)
  await signup(client, "stranger@example.com", "Stranger")
  res = await client.post("/tasks", json={"projectId": project_id, "columnId": cols[0], "title": "Sneaky"})
  assert res.status_code == 403


@pytest.mark.anyio
async def test_patch_task_fields(client) -> None:
  _, project_id, cols = await _project(client)
  task_id = await make_task(client, project_id, cols[0], "Draft")

  res = await client.patch(f"/tasks/{task_id}", json={"title": "Final", "priority": "high", "status": "review", "description": "notes"})
  assert res.status_code == 200, res.text
  body = res.json()
  assert (body["title"], body["priority"], body["status"], body["description"]) == ("Final", "high", "review", "notes")

  res = await client.patch(f"/tasks/{task_id}", json={"description": None})
  assert res.status_code == 200
  assert res.json()["description"] is None

  res = await client.patch(f"/tasks/{task_id}", json={})
  assert res.status_code == 400
  assert res.json()["detail"] == "No updates"

  res = await client.patch(f"/tasks/{task_id}", json={"title": None})
  assert res.status_code == 400
  assert res.json()["detail"] == "title cannot be null"

  res = await client.patch(f"/tasks/{task_id}", json={"priority": "urgent"})
  assert res.status_code == 422


@pytest.mark.anyio
async def test_assignment_rules_and_notification(client) -> None:
  team_id, project_id, cols = await _project(client)
  task_id = await make_task(client, project_id, cols[0], "Review PR")

  dev = await signup(client, "dev@example.com", "Dev")
  outsider = await signup(client, "outsider@example.com", "Outsider")
  await login(client, "admin@example.com")
  await add_to_project(client, team_id, project_id, "dev@example.com", dev["id"])

  res = await client.patch(f"/tasks/{task_id}", json={"assigneeId": outsider["id"]})
  assert res.status_code == 400
  assert res.json()["detail"] == "Assignee must be a project member"

  res = await client.patch(f"/tasks/{task_id}", json={"assigneeId": dev["id"]})
  assert res.status_code == 200
  assert res.json()["assigneeId"] == dev["id"]

  detail = (await client.get(f"/tasks/{task_id}")).json()
  assert {c["id"] for c in detail["assigneeCandidates"]} >= {dev["id"]}

  await login(client, "dev@example.com")
  res = await client.get("/notifications")
  notes = res.json()
  assert [n["type"] for n in notes] == ["assignment"]
  assert notes[0]["taskId"] == task_id
  assert notes[0]["body"] == "Review PR"

  # assigning yourself does not notify
  res = await client.patch(f"/tasks/{task_id}", json={"assigneeId": None})
  assert res.status_code == 200
  res = await client.patch(f"/tasks/{task_id}", json={"assigneeId": dev["id"]})
  assert res.status_code == 200
  assert len((await client.get("/notifications")).json()) == 1


@pytest.mark.anyio
async def test_milestone_must_belong_to_task_project(client) -> None:
  team_id, project_id, cols = await _project(client)
  other_project, _ = await make_project(client, team_id, "Other")
  task_id = await make_task(client, project_id, cols[0], "Plan")
  res = await client.post(f"/projects/{other_project}/milestones", json={"name": "Elsewhere", "dueDate": "2026-12-01"})
  foreign = res.json()["id"]

  res = await client.patch(f"/tasks/{task_id}", json={"milestoneId": foreign})
  assert res.status_code == 400
  assert res.json()["detail"] == "Invalid milestoneId"


@pytest.mark.anyio
async def test_get_and_delete_task(client) -> None:
  _, project_id, cols = await _project(client)
  task_id = await make_task(client, project_id, cols[0], "Temporary")

  res = await client.get(f"/tasks/{task_id}")
  assert res.status_code == 200
  assert res.json()["task"]["title"] == "Temporary"

  res = await client.delete(f"/tasks/{task_id}")
  assert res.json() == {"ok": True}
  assert (await client.get(f"/tasks/{task_id}")).status_code == 404
  assert await task_rows(project_id) == {}


@pytest.mark.anyio
async def test_subtasks_crud(client) -> None:
  _, project_id, cols = await _project(client)
  task_id = await make_task(client, project_id, cols[0], "Parent")

  a = (await client.post(f"/tasks/{task_id}/subtasks", json={"title": "Write"})).json()
  b = (await client.post(f"/tasks/{task_id}/subtasks", json={"title": "Test"})).json()
  assert (a["sortOrder"], b["sortOrder"]) == (100, 200)
  assert a["isDone"] is False

  res = await client.patch(f"/tasks/{task_id}/subtasks/{a['id']}", json={"isDone": True})
  assert res.status_code == 200
  assert res.json()["isDone"] is True

  res = await client.patch(f"/tasks/{task_id}/subtasks/{a['id']}", json={})
  assert res.status_code == 422

  res = await client.delete(f"/tasks/{task_id}/subtasks/{b['id']}")
  assert res.status_code == 200
  res = await client.delete(f"/tasks/{task_id}/subtasks/{b['id']}")
  assert res.status_code == 404
  assert res.json()["detail"] == "Subtask not found"

  listed = (await client.get(f"/tasks/{task_id}/subtasks")).json()
  assert [(s["title"], s["isDone"]) for s in listed] == [("Write", True)]
