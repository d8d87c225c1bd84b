"""Populate a development database with demo tenants, users and incidents.

Incidents are created and advanced through the regular services so their
activity history looks exactly like one produced through the API.

Usage::

    python -m scripts.seed            # add demo data to an empty database
    python -m scripts.seed --reset    # drop everything first
"""

import argparse
import asyncio
import logging

from sqlalchemy import func, select

from incidentdesk.db import async_session_factory, dispose_db, engine, init_db
from incidentdesk.db.engine import Base
from incidentdesk.db.models import User
from incidentdesk.services.auth import actor_from_user, hash_password
from incidentdesk.services.broadcast import BroadcastRouter
from incidentdesk.services.comments import CommentService
from incidentdesk.services.incidents import IncidentService
from incidentdesk.services.tenants import TenantService

logger = logging.getLogger("seed")

DEMO_PASSWORD = "password123"

TENANTS = [
    {
        "name": "ACME Corporation",
        "slug": "acme",
        "description": "Leading manufacturing company",
        "config": {"notifications": {"email": True, "sms": False}},
        "types": [
            {
                "name": "Hardware Failure",
                "description": "Equipment malfunction or breakdown",
                "priority": 4,
                "fields": [
                    {"name": "equipment_id", "type": "text", "label": "Equipment ID", "required": True},
                    {"name": "location", "type": "text", "label": "Location", "required": True},
                    {"name": "error_code", "type": "text", "label": "Error Code"},
                ],
            },
            {
                "name": "Software Bug",
                "description": "Application or system software issues",
                "priority": 2,
                "fields": [
                    {"name": "application", "type": "text", "label": "Application", "required": True},
                    {"name": "steps_to_reproduce", "type": "textarea", "label": "Steps to Reproduce", "required": True},
                    {"name": "browser", "type": "text", "label": "Browser"},
                ],
            },
            {
                "name": "Network Issue",
                "description": "Connectivity and network problems",
                "priority": 3,
                "fields": [
                    {"name": "affected_area", "type": "text", "label": "Affected Area", "required": True},
                    {
                        "name": "connection_type", "type": "select", "label": "Connection Type",
                        "options": ["WiFi", "Ethernet", "VPN"], "required": True,
                    },
                ],
            },
        ],
    },
    {
        "name": "TechCorp Solutions",
        "slug": "techcorp",
        "description": "Technology consulting firm",
        "config": {"notifications": {"email": True, "sms": True}},
        "types": [
            {
                "name": "System Outage",
                "description": "Complete or partial system unavailability",
                "priority": 5,
                "fields": [
                    {"name": "affected_systems", "type": "textarea", "label": "Affected Systems", "required": True},
                    {
                        "name": "impact_level", "type": "select", "label": "Impact Level",
                        "options": ["Low", "Medium", "High", "Critical"], "required": True,
                    },
                ],
            },
            {
                "name": "Security Breach",
                "description": "Potential or confirmed security incidents",
                "priority": 5,
                "fields": [
                    {
                        "name": "breach_kind", "type": "select", "label": "Incident Type",
                        "options": ["Malware", "Phishing", "Data Breach", "Unauthorized Access"],
                        "required": True,
                    },
                    {"name": "affected_data", "type": "textarea", "label": "Affected Data", "required": True},
                ],
            },
        ],
    },
    {
        "name": "Global Solutions Inc",
        "slug": "global-solutions",
        "description": "Enterprise software provider",
        "config": {"notifications": {"email": True, "sms": False}},
        "types": [
            {
                "name": "Performance Issue",
                "description": "System or application performance problems",
                "priority": 2,
                "fields": [
                    {"name": "response_time", "type": "number", "label": "Response Time (ms)", "required": True},
                    {"name": "user_count", "type": "number", "label": "Affected Users", "required": True},
                ],
            },
        ],
    },
]

CLIENT_USERS = {
    "acme": ("client@acme.com", "Alice Johnson"),
    "techcorp": ("admin@techcorp.com", "Bob Smith"),
    "global-solutions": ("support@globalsolutions.com", "Carol Williams"),
}

# (tenant slug, type name, title, description, priority, data, status path)
INCIDENTS = [
    (
        "acme", "Hardware Failure", "Production Line 3 Equipment Malfunction",
        "Main conveyor belt motor stopped working during peak production hours", 4,
        {"equipment_id": "CONV-003-A", "location": "Factory Floor 3", "error_code": "E001"},
        [],
    ),
    (
        "acme", "Software Bug", "Inventory System Login Error",
        "Users unable to log into inventory management system", 3,
        {
            "application": "Inventory Management System",
            "steps_to_reproduce": "1. Open login page\n2. Enter valid credentials\n3. Error appears",
            "browser": "Chrome 120.0",
        },
        ["in_progress"],
    ),
    (
        "techcorp", "System Outage", "Email Service Down",
        "Complete email system outage affecting all departments", 5,
        {"affected_systems": "Exchange Server, Outlook Web App", "impact_level": "Critical"},
        ["in_progress", "escalated"],
    ),
    (
        "global-solutions", "Performance Issue", "Customer Portal Slow Response",
        "Customer portal experiencing slow response times during business hours", 2,
        {"response_time": 8500, "user_count": 150},
        ["in_progress", "completed"],
    ),
]


async def reset_schema() -> None:
    from incidentdesk.db import models as _models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Dropped all tables")


async def seed() -> None:
    hub = BroadcastRouter()
    async with async_session_factory() as db:
        existing = await db.scalar(select(func.count()).select_from(User))
        if existing:
            logger.info("Database already has %d users; nothing to do", existing)
            return

        password = hash_password(DEMO_PASSWORD)
        operator_user = User(
            email="operator@example.com", hashed_password=password,
            name="John Operator", role="operator",
        )
        db.add(operator_user)
        await db.commit()
        operator = actor_from_user(operator_user)

        tenants = TenantService(db)
        tenant_ids: dict[str, str] = {}
        type_ids: dict[tuple[str, str], str] = {}
        clients = {}
        for entry in TENANTS:
            tenant = await tenants.create(
                operator, name=entry["name"], slug=entry["slug"],
                description=entry["description"], config=entry["config"],
            )
            tenant_ids[entry["slug"]] = tenant.id
            for type_def in entry["types"]:
                itype = await tenants.create_incident_type(operator, tenant.id, **type_def)
                type_ids[(entry["slug"], itype.name)] = itype.id

            email, name = CLIENT_USERS[entry["slug"]]
            client_user = User(
                email=email, hashed_password=password, name=name,
                role="client", tenant_id=tenant.id,
            )
            db.add(client_user)
            await db.commit()
            clients[entry["slug"]] = actor_from_user(client_user)

        incidents = IncidentService(db, hub)
        comments = CommentService(db, hub)
        for slug, type_name, title, description, priority, data, path in INCIDENTS:
            incident = await incidents.create(
                clients[slug], tenant_id=tenant_ids[slug],
                incident_type_id=type_ids[(slug, type_name)],
                title=title, description=description, priority=priority, data=data,
            )
            await incidents.update(operator, incident.id, {"assigned_to": operator.id})
            for status in path:
                await incidents.update(operator, incident.id, {"status": status})
            await comments.create(operator, incident.id, "Looking into this now.")

        logger.info(
            "Seeded %d tenants, %d incidents; demo password is %r",
            len(tenant_ids), len(INCIDENTS), DEMO_PASSWORD,
        )


async def main(reset: bool) -> None:
    if reset:
        await reset_schema()
    await init_db()
    try:
        await seed()
    finally:
        await dispose_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed Incident Desk demo data")
    parser.add_argument("--reset", action="store_true", help="drop all tables first")
    args = parser.parse_args()
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    asyncio.run(main(args.reset))
