"""Tests for the real-time gateway: room control frames and the handshake."""

import asyncio
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool
from starlette.websockets import WebSocketDisconnect

from incidentdesk.api.deps import get_session_factory
from incidentdesk.api.routes.realtime import handle_control_message
from incidentdesk.core.errors import AccessDenied, NotFound, ValidationError
from incidentdesk.db.engine import Base, get_db
from incidentdesk.db.models import IncidentType, Tenant, User
from incidentdesk.main import create_app
from incidentdesk.services.auth import create_access_token


@pytest.mark.asyncio
class TestControlMessages:

    async def test_client_joins_own_tenant_room(self, db_session, hub, acme, acme_client, actor_of, make_connection):
        conn = make_connection()
        reply = await handle_control_message(
            db_session, actor_of(acme_client), conn, {"event": "join-client", "data": acme.id}, hub
        )
        assert reply == {"event": "joined", "data": {"room": f"tenant:{acme.id}"}}
        assert hub.rooms_of(conn) == frozenset({f"tenant:{acme.id}"})

    async def test_client_refused_other_tenant_room(
        self, db_session, hub, globex, acme_client, actor_of, make_connection
    ):
        conn = make_connection()
        with pytest.raises(AccessDenied):
            await handle_control_message(
                db_session, actor_of(acme_client), conn, {"event": "join-client", "data": globex.id}, hub
            )
        assert hub.rooms_of(conn) == frozenset()

    async def test_incident_room_requires_scope(
        self, db_session, hub, acme_client, globex_client, create_incident, actor_of, make_connection
    ):
        incident = await create_incident(acme_client)
        owner, stranger = make_connection(), make_connection()
        message = {"event": "join-incident", "data": incident["id"]}

        await handle_control_message(db_session, actor_of(acme_client), owner, message, hub)
        with pytest.raises(AccessDenied):
            await handle_control_message(db_session, actor_of(globex_client), stranger, message, hub)

        assert hub.members(f"incident:{incident['id']}") == frozenset({owner})

    async def test_operator_joins_any_room(self, db_session, hub, operator, globex, actor_of, make_connection):
        conn = make_connection()
        await handle_control_message(
            db_session, actor_of(operator), conn, {"event": "join-client", "data": globex.id}, hub
        )
        assert hub.rooms_of(conn) == frozenset({f"tenant:{globex.id}"})

    async def test_missing_incident(self, db_session, hub, operator, actor_of, make_connection):
        with pytest.raises(NotFound):
            await handle_control_message(
                db_session, actor_of(operator), make_connection(),
                {"event": "join-incident", "data": "nope"}, hub,
            )

    async def test_leave(self, db_session, hub, acme, acme_client, actor_of, make_connection):
        conn = make_connection()
        actor = actor_of(acme_client)
        await handle_control_message(db_session, actor, conn, {"event": "join-client", "data": acme.id}, hub)
        reply = await handle_control_message(
            db_session, actor, conn, {"event": "leave-client", "data": acme.id}, hub
        )
        assert reply["event"] == "left"
        assert hub.rooms_of(conn) == frozenset()

    async def test_ping(self, db_session, hub, operator, actor_of, make_connection):
        reply = await handle_control_message(db_session, actor_of(operator), make_connection(), {"event": "ping"}, hub)
        assert reply["event"] == "pong"

    @pytest.mark.parametrize("message", [
        {"event": "subscribe", "data": "x"},
        {"event": "join-client"},
        {"event": "join-client", "data": 42},
    ])
    async def test_malformed(self, db_session, hub, operator, actor_of, make_connection, message):
        with pytest.raises(ValidationError):
            await handle_control_message(db_session, actor_of(operator), make_connection(), message, hub)


@pytest.fixture
def live_app(tmp_path):
    """App on a file database, seeded up front.

    TestClient drives the app from its own event loop, so every session opens
    a fresh connection instead of sharing the per-test in-memory one.
    """
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'realtime.db'}", poolclass=NullPool)
    factory = async_sessionmaker(engine, expire_on_commit=False)

    async def _seed():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with factory() as db:
            acme = Tenant(name="ACME Corporation", slug="acme", config={})
            globex = Tenant(name="Globex", slug="globex", config={})
            db.add_all([acme, globex])
            await db.flush()
            operator = User(
                email="operator@example.com", hashed_password="-", name="John Operator", role="operator",
            )
            alice = User(
                email="client@acme.example.com", hashed_password="-", name="Alice Johnson",
                role="client", tenant_id=acme.id,
            )
            outage = IncidentType(tenant_id=acme.id, name="System Outage", priority=5, fields=[])
            db.add_all([operator, alice, outage])
            await db.commit()
            return SimpleNamespace(
                acme_id=acme.id, globex_id=globex.id, outage_id=outage.id,
                operator=create_access_token(operator.id, "operator"),
                alice_id=alice.id, alice=create_access_token(alice.id, "client"),
            )

    seeded = asyncio.run(_seed())

    application = create_app()

    async def _get_db():
        async with factory() as session:
            yield session

    application.dependency_overrides[get_db] = _get_db
    application.dependency_overrides[get_session_factory] = lambda: factory
    yield application, seeded
    asyncio.run(engine.dispose())


class TestHandshake:

    @pytest.mark.parametrize("frame", [{"token": "garbage"}, {}, {"token": ""}])
    def test_rejects_bad_credentials(self, frame):
        client = TestClient(create_app())
        with client.websocket_connect("/api/realtime/ws") as ws:
            ws.send_json(frame)
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
        assert exc.value.code == 1008

    def test_rejects_non_json_first_frame(self):
        client = TestClient(create_app())
        with client.websocket_connect("/api/realtime/ws") as ws:
            ws.send_text("hello")
            with pytest.raises(WebSocketDisconnect) as exc:
                ws.receive_json()
        assert exc.value.code == 1008

    def test_connected_subscriber_gets_updates_for_joined_rooms(self, live_app):
        app, seeded = live_app
        alice = {"Authorization": f"Bearer {seeded.alice}"}
        operator = {"Authorization": f"Bearer {seeded.operator}"}

        with TestClient(app) as client:
            created = client.post("/api/incidents", headers=alice, json={
                "tenantId": seeded.acme_id,
                "incidentTypeId": seeded.outage_id,
                "title": "Email service down",
                "priority": 5,
            })
            assert created.status_code == 201
            incident_id = created.json()["id"]

            with client.websocket_connect("/api/realtime/ws") as ws:
                ws.send_json({"token": seeded.alice})
                assert ws.receive_json() == {"event": "connected", "data": {"actorId": seeded.alice_id}}

                ws.send_json({"event": "join-incident", "data": incident_id})
                assert ws.receive_json() == {"event": "joined", "data": {"room": f"incident:{incident_id}"}}

                ws.send_json({"event": "join-client", "data": seeded.globex_id})
                refused = ws.receive_json()
                assert refused["event"] == "error"
                assert refused["data"]["code"] == "ACCESS_DENIED"

                resp = client.patch(
                    f"/api/incidents/{incident_id}", json={"status": "in_progress"}, headers=operator
                )
                assert resp.status_code == 200

                assert ws.receive_json() == {
                    "event": "incident:updated",
                    "room": f"incident:{incident_id}",
                    "data": {"id": incident_id, "tenantId": seeded.acme_id},
                }
