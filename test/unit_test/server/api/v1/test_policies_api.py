import pytest
from httpx import AsyncClient

from trustgate_ai.trust_core.service import TrustService

# Mark all tests in this module as async
pytestmark = pytest.mark.asyncio

BASE_URL = "/api/v1/policies"


async def _current(client: AsyncClient) -> dict:
    response = await client.get(f"{BASE_URL}/current")
    assert response.status_code == 200
    return response.json()


async def test_get_current_policy(client: AsyncClient):
    data = await _current(client)

    assert data["version"] == "1.0"
    assert "status" in data["autoApprove"]["gitOperations"]
    assert data["autoApprove"]["scriptExecution"]["allowedPaths"] == ["scripts/", "tools/", "bin/"]
    assert data["security"]["maxAutoApprovalPerHour"] == 1000


async def test_replace_policy(client: AsyncClient, api_trust_service: TrustService):
    policy = await _current(client)
    policy["version"] = "1.1"
    policy["autoApprove"]["gitOperations"].append("rebase")

    response = await client.put(f"{BASE_URL}/current", params={"generated_by": "admin"}, json=policy)

    assert response.status_code == 200
    report = response.json()
    assert report["generated_by"] == "admin"
    assert report["changes"][0]["field"] == "gitOperations"
    assert report["changes"][0]["new_value"] == ["rebase"]
    assert report["impact_analysis"]["is_estimate"] is True
    assert report["new_policy"]["version"] == "1.1"
    assert api_trust_service.current_policy().version == "1.1"

    decision = await client.post("/api/v1/decisions", json={"command": "git", "args": ["rebase", "main"]})
    assert decision.json()["decision"]["outcome"] == "auto"


async def test_conflicting_policy_is_rejected(client: AsyncClient, api_trust_service: TrustService):
    policy = await _current(client)
    policy["manualApprove"]["forceOperations"].append("status")

    response = await client.put(f"{BASE_URL}/current", json=policy)

    assert response.status_code == 409
    data = response.json()
    assert data["pattern"] == "status"
    assert data["fields"] == ["autoApprove.gitOperations", "manualApprove.forceOperations"]
    assert api_trust_service.current_policy().version == "1.0"
    assert api_trust_service.store.revision == 0


async def test_malformed_policy_is_rejected(client: AsyncClient):
    response = await client.put(f"{BASE_URL}/current", json={"autoApprove": {"gitOperations": [""]}})
    assert response.status_code == 422


async def test_preview_does_not_install(client: AsyncClient, api_trust_service: TrustService):
    policy = await _current(client)
    policy["security"]["suspiciousPatternDetection"] = False

    response = await client.post(f"{BASE_URL}/diff", json=policy)

    assert response.status_code == 200
    report = response.json()
    assert report["impact_analysis"]["security_risk"] == "high"
    assert api_trust_service.store.revision == 0


async def test_preview_conflict(client: AsyncClient):
    policy = await _current(client)
    policy["autoApprove"]["fileOperations"].append("rm")

    response = await client.post(f"{BASE_URL}/diff", json=policy)

    assert response.status_code == 409
