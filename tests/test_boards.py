def create_board(client, headers, name="Home"):
    r = client.post("/board", json={"name": name}, headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["board"]


def test_board_lifecycle_scenario(client):
    r = client.post("/user/register", json={"name": "A", "email": "a@x.com", "password": "p"})
    assert r.status_code == 200
    r = client.post("/user/login", json={"email": "a@x.com", "password": "p"})
    assert r.status_code == 200
    headers = {"Authorization": f"Bearer {r.json()['token']}"}

    r = client.post("/board", json={"name": "Home"}, headers=headers)
    assert r.status_code == 200
    board = r.json()["board"]
    assert board["name"] == "Home"
    assert board["tasks"] == []

    r = client.get(f"/board/{board['id']}", headers=headers)
    assert r.status_code == 200
    assert r.json()["tasks"] == []

    assert client.delete(f"/board/{board['id']}", headers=headers).status_code == 200
    assert client.get(f"/board/{board['id']}", headers=headers).status_code == 404


def test_create_board_requires_name(client, headers):
    assert client.post("/board", json={}, headers=headers).status_code == 400
    assert client.post("/board", json={"name": ""}, headers=headers).status_code == 400


def test_list_boards_is_owner_scoped(client, signup):
    alice = signup("alice@x.com")
    bob = signup("bob@x.com")
    create_board(client, alice, "Alice 1")
    create_board(client, alice, "Alice 2")
    create_board(client, bob, "Bob")

    names = [b["name"] for b in client.get("/board", headers=alice).json()["boards"]]
    assert sorted(names) == ["Alice 1", "Alice 2"]
    assert [b["name"] for b in client.get("/board", headers=bob).json()["boards"]] == ["Bob"]


def test_other_users_board_is_not_found(client, signup):
    alice = signup("alice@x.com")
    bob = signup("bob@x.com")
    board = create_board(client, alice)

    assert client.get(f"/board/{board['id']}", headers=bob).status_code == 404
    assert client.patch(f"/board/{board['id']}", json={"name": "Mine"}, headers=bob).status_code == 404
    assert client.delete(f"/board/{board['id']}", headers=bob).status_code == 404
    assert client.get(f"/board/{board['id']}", headers=alice).json()["name"] == "Home"


def test_update_board_is_partial(client, headers):
    board = create_board(client, headers)

    r = client.patch(f"/board/{board['id']}", json={"name": "Work"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["board"]["name"] == "Work"

    r = client.patch(f"/board/{board['id']}", json={}, headers=headers)
    assert r.json()["board"]["name"] == "Work"

    r = client.patch(f"/board/{board['id']}", json={"name": None}, headers=headers)
    assert r.json()["board"]["name"] == "Work"


def test_update_board_ignores_owner_and_task_list(client, headers):
    board = create_board(client, headers)
    r = client.patch(
        f"/board/{board['id']}",
        json={"userId": "someone", "tasks": ["x"]},
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["board"]["userId"] == board["userId"]
    assert r.json()["board"]["tasks"] == []


def test_missing_board_is_not_found(client, headers):
    assert client.get("/board/nope", headers=headers).status_code == 404
    assert client.patch("/board/nope", json={"name": "x"}, headers=headers).status_code == 404
    r = client.delete("/board/nope", headers=headers)
    assert r.status_code == 404
    assert r.json()["message"] == "Board not found"


def test_board_detail_nests_tasks_and_subtasks(client, headers):
    board = create_board(client, headers)
    first = client.post(f"/task/{board['id']}", json={"title": "First", "status": "Todo"}, headers=headers).json()["task"]
    second = client.post(f"/task/{board['id']}", json={"title": "Second", "status": "Doing"}, headers=headers).json()["task"]
    client.post(f"/subtask/{first['id']}", json={"title": "a"}, headers=headers)
    client.post(f"/subtask/{first['id']}", json={"title": "b", "isCompleted": True}, headers=headers)

    detail = client.get(f"/board/{board['id']}", headers=headers).json()
    assert [t["id"] for t in detail["tasks"]] == [first["id"], second["id"]]
    assert [s["title"] for s in detail["tasks"][0]["subtasks"]] == ["a", "b"]
    assert detail["tasks"][0]["subtasks"][1]["isCompleted"] is True
    assert detail["tasks"][1]["subtasks"] == []


def test_delete_board_cascades(client, headers):
    board = create_board(client, headers)
    task_ids = []
    subtask_ids = []
    for title in ("one", "two"):
        task = client.post(f"/task/{board['id']}", json={"title": title, "status": "Todo"}, headers=headers).json()["task"]
        task_ids.append(task["id"])
        for n in range(2):
            r = client.post(f"/subtask/{task['id']}", json={"title": f"{title}-{n}"}, headers=headers)
            subtask_ids.append(r.json()["subtask"]["id"])

    r = client.delete(f"/board/{board['id']}", headers=headers)
    assert r.status_code == 200

    assert client.get(f"/task/{board['id']}", headers=headers).json()["tasks"] == []
    for task_id in task_ids:
        assert client.get(f"/subtask/{task_id}", headers=headers).json()["subtasks"] == []
        assert client.delete(f"/task/{task_id}", headers=headers).status_code == 404
    for subtask_id in subtask_ids:
        assert client.delete(f"/subtask/{subtask_id}", headers=headers).status_code == 404


def test_blank_names_are_rejected(client, headers):
    assert client.post("/board", json={"name": "   "}, headers=headers).status_code == 400
    board = create_board(client, headers, "  Padded  ")
    assert board["name"] == "Padded"
    assert client.patch(f"/board/{board['id']}", json={"name": " "}, headers=headers).status_code == 400
