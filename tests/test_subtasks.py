import pytest


@pytest.fixture
def task(client, headers):
    board = client.post("/board", json={"name": "Home"}, headers=headers).json()["board"]
    r = client.post(f"/task/{board['id']}", json={"title": "Task", "status": "Todo"}, headers=headers)
    return r.json()["task"]


def create_subtask(client, headers, task_id, title="Sub", **fields):
    r = client.post(f"/subtask/{task_id}", json={"title": title, **fields}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["subtask"]


def subtask_ids_of(client, headers, task):
    tasks = client.get(f"/task/{task['boardId']}", headers=headers).json()["tasks"]
    return next(t for t in tasks if t["id"] == task["id"])["subtasks"]


def test_create_subtask_links_into_task(client, headers, task):
    subtask = create_subtask(client, headers, task["id"])
    assert subtask["taskId"] == task["id"]
    assert subtask["isCompleted"] is False
    assert subtask_ids_of(client, headers, task) == [subtask["id"]]


def test_create_subtask_on_missing_task(client, headers):
    r = client.post("/subtask/nope", json={"title": "Sub"}, headers=headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Task not found"


def test_list_subtasks(client, headers, task):
    ids = [create_subtask(client, headers, task["id"], title=t)["id"] for t in ("a", "b")]
    r = client.get(f"/subtask/{task['id']}", headers=headers)
    assert r.status_code == 200
    assert [s["id"] for s in r.json()["subtasks"]] == ids
    assert client.get("/subtask/nope", headers=headers).json()["subtasks"] == []


def test_explicit_false_is_applied(client, headers, task):
    subtask = create_subtask(client, headers, task["id"], isCompleted=True)
    assert subtask["isCompleted"] is True

    r = client.patch(f"/subtask/{subtask['id']}", json={"isCompleted": False}, headers=headers)
    assert r.status_code == 200
    assert r.json()["subtask"]["isCompleted"] is False
    assert r.json()["subtask"]["title"] == "Sub"


def test_absent_fields_are_left_alone(client, headers, task):
    subtask = create_subtask(client, headers, task["id"], isCompleted=True)

    r = client.patch(f"/subtask/{subtask['id']}", json={"title": "Renamed"}, headers=headers)
    assert r.json()["subtask"]["title"] == "Renamed"
    assert r.json()["subtask"]["isCompleted"] is True

    r = client.patch(f"/subtask/{subtask['id']}", json={"isCompleted": None}, headers=headers)
    assert r.json()["subtask"]["isCompleted"] is True


def test_update_missing_subtask(client, headers):
    assert client.patch("/subtask/nope", json={"title": "x"}, headers=headers).status_code == 404


def test_delete_subtask_unlinks_it(client, headers, task):
    ids = [create_subtask(client, headers, task["id"], title=t)["id"] for t in ("a", "b", "c")]

    r = client.delete(f"/subtask/{ids[0]}", headers=headers)
    assert r.status_code == 200
    assert subtask_ids_of(client, headers, task) == ids[1:]
    assert client.delete(f"/subtask/{ids[0]}", headers=headers).status_code == 404


def test_foreign_subtask_is_not_found(client, signup):
    alice = signup("alice@x.com")
    bob = signup("bob@x.com")
    board = client.post("/board", json={"name": "Alice"}, headers=alice).json()["board"]
    task = client.post(f"/task/{board['id']}", json={"title": "T", "status": "Todo"}, headers=alice).json()["task"]
    subtask = create_subtask(client, alice, task["id"])

    assert client.post(f"/subtask/{task['id']}", json={"title": "x"}, headers=bob).status_code == 404
    assert client.get(f"/subtask/{task['id']}", headers=bob).json()["subtasks"] == []
    assert client.patch(f"/subtask/{subtask['id']}", json={"isCompleted": True}, headers=bob).status_code == 404
    assert client.delete(f"/subtask/{subtask['id']}", headers=bob).status_code == 404
    assert client.get(f"/subtask/{task['id']}", headers=alice).json()["subtasks"][0]["isCompleted"] is False
