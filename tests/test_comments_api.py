"""Tests for comment endpoints and the internal-note partition."""

import pytest


@pytest.mark.asyncio
class TestComments:

    async def test_client_comment_is_always_public(self, client, acme_client, create_incident, auth):
        incident = await create_incident(acme_client)
        resp = await client.post("/api/comments", headers=auth(acme_client), json={
            "incidentId": incident["id"],
            "content": "Still broken",
            "isInternal": True,
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["isInternal"] is False
        assert body["author"]["name"] == "Alice Johnson"

    async def test_internal_comments_hidden_from_clients(
        self, client, operator, acme_client, create_incident, auth
    ):
        incident = await create_incident(acme_client)
        for content, internal in (("Public update", False), ("Staff only", True)):
            await client.post("/api/comments", headers=auth(operator), json={
                "incidentId": incident["id"], "content": content, "isInternal": internal,
            })

        as_client = await client.get(
            f"/api/comments/incident/{incident['id']}", headers=auth(acme_client)
        )
        assert [c["content"] for c in as_client.json()] == ["Public update"]

        as_operator = await client.get(
            f"/api/comments/incident/{incident['id']}", headers=auth(operator)
        )
        assert [c["content"] for c in as_operator.json()] == ["Staff only", "Public update"]

    async def test_comment_is_audited(self, client, operator, acme_client, create_incident, auth):
        incident = await create_incident(acme_client)
        await client.post("/api/comments", headers=auth(operator), json={
            "incidentId": incident["id"], "content": "Checking logs", "isInternal": True,
        })
        entries = (await client.get(
            f"/api/incidents/{incident['id']}/activity", headers=auth(operator)
        )).json()
        assert entries[0]["action"] == "commented"
        assert entries[0]["description"] == "Added an internal comment"

    async def test_only_public_comments_are_broadcast(
        self, client, hub, operator, acme_client, create_incident, auth, make_connection
    ):
        incident = await create_incident(acme_client)
        watcher = make_connection()
        hub.join(watcher, f"incident:{incident['id']}")

        await client.post("/api/comments", headers=auth(operator), json={
            "incidentId": incident["id"], "content": "Staff only", "isInternal": True,
        })
        await hub.flush()
        assert watcher.sent == []

        resp = await client.post("/api/comments", headers=auth(operator), json={
            "incidentId": incident["id"], "content": "Technician dispatched",
        })
        await hub.flush()
        assert watcher.events() == ["incident:commented"]
        assert watcher.sent[0]["data"]["commentId"] == resp.json()["id"]

    async def test_cross_tenant_comment_denied(self, client, globex_client, acme_client, create_incident, auth):
        incident = await create_incident(acme_client)
        resp = await client.post("/api/comments", headers=auth(globex_client), json={
            "incidentId": incident["id"], "content": "Hello from Globex",
        })
        assert resp.status_code == 403

        listing = await client.get(
            f"/api/comments/incident/{incident['id']}", headers=auth(globex_client)
        )
        assert listing.status_code == 403

    async def test_empty_comment_rejected(self, client, operator, acme_client, create_incident, auth):
        incident = await create_incident(acme_client)
        resp = await client.post("/api/comments", headers=auth(operator), json={
            "incidentId": incident["id"], "content": "   ",
        })
        assert resp.status_code == 400

    async def test_comment_on_missing_incident(self, client, operator, auth):
        resp = await client.post("/api/comments", headers=auth(operator), json={
            "incidentId": "nope", "content": "Anyone there?",
        })
        assert resp.status_code == 404
