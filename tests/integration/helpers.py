"""HTTP helpers shared by the integration flows."""

import random

from httpx import AsyncClient

ADMIN_REF = "ops-integration@example.com"


def actor(ref: str) -> dict[str, str]:
    return {"X-Actor-Ref": ref}


ADMIN = actor(ADMIN_REF)


async def ensure_active_phase(client: AsyncClient) -> dict:
    """Return the active phase, starting or resuming the schedule if needed."""
    resp = await client.get("/api/v1/phases/current")
    if resp.status_code == 409:
        resp = await client.post("/api/v1/phases/advance", headers=ADMIN)
        assert resp.status_code == 200, resp.text
        resp = await client.get("/api/v1/phases/current")
    phase = resp.json()["data"]
    if phase["is_paused"]:
        resp = await client.post("/api/v1/phases/resume", headers=ADMIN)
        phase = resp.json()["data"]
    return phase


async def fresh_item(client: AsyncClient) -> dict:
    """Pick an unsold seeded item; reruns against the same DB skip sold ones."""
    for _ in range(50):
        item_id = f"CX-{random.randint(1, 20000):05d}"
        data = (await client.get(f"/api/v1/items/{item_id}")).json()["data"]
        if data and data["status"] == "AVAILABLE":
            return data
    raise AssertionError("no AVAILABLE item found")
