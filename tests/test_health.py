def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_root(client):
    assert client.get("/").json() == {"message": "server is running"}


def test_api_docs_list_every_resource(client):
    assert client.get("/api-docs").status_code == 200
    paths = client.get("/openapi.json").json()["paths"]
    for path in ("/user/register", "/user/login", "/user/logout", "/board/{board_id}", "/task/{task_id}", "/subtask/{subtask_id}"):
        assert path in paths
