import pytest


@pytest.mark.asyncio
async def test_register_lookup_and_edit(api_client):
	created = await api_client.post(
		"/profiles",
		json={"username": "Alice", "display_name": "Alice A"},
		headers={"X-User-Id": "u1"},
	)
	assert created.status_code == 201

	taken = await api_client.post("/profiles", json={"username": "alice"}, headers={"X-User-Id": "u2"})
	assert taken.status_code == 409
	assert taken.json()["detail"] == "username_taken"

	found = await api_client.get("/profiles/by-username/ALICE", headers={"X-User-Id": "u2"})
	assert found.json()["uid"] == "u1"

	patched = await api_client.patch("/profiles/me", json={"bio": "hello"}, headers={"X-User-Id": "u1"})
	assert patched.json()["bio"] == "hello"
	assert patched.json()["display_name"] == "Alice A"


@pytest.mark.asyncio
async def test_unknown_profile_is_404(api_client):
	response = await api_client.get("/profiles/me", headers={"X-User-Id": "ghost"})
	assert response.status_code == 404


@pytest.mark.asyncio
async def test_health_and_metrics(api_client):
	assert (await api_client.get("/health/live")).json() == {"status": "ok"}
	metrics = await api_client.get("/metrics")
	assert metrics.status_code == 200
	assert "linkup_http_requests_total" in metrics.text
