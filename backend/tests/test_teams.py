from fastapi.testclient import TestClient


def test_team_crud(client: TestClient):
    response = client.post("/api/teams", json={"team_name": "Falcons", "manager_name": "Sam"})
    assert response.status_code == 201
    team_id = response.json()["id"]

    client.post("/api/teams", json={"team_name": "Bears"})
    names = [t["team_name"] for t in client.get("/api/teams").json()]
    assert names == ["Bears", "Falcons"]

    response = client.patch(f"/api/teams/{team_id}", json={"email": "sam@example.com"})
    assert response.status_code == 200
    assert response.json()["email"] == "sam@example.com"
    assert response.json()["team_name"] == "Falcons"

    assert client.delete(f"/api/teams/{team_id}").status_code == 204
    assert client.patch(f"/api/teams/{team_id}", json={"email": "x"}).status_code == 404


def test_duplicate_team_name_conflict(client: TestClient):
    client.post("/api/teams", json={"team_name": "Falcons"})
    assert client.post("/api/teams", json={"team_name": "Falcons"}).status_code == 409
    assert client.post("/api/teams", json={"team_name": ""}).status_code == 422


def test_team_with_matches_cannot_be_deleted(client: TestClient, league):
    client.post(f"/api/tournaments/{league['tournament_id']}/schedule/generate")
    assert client.delete(f"/api/teams/{league['team_ids'][0]}").status_code == 409
