"""Static seed dataset for a fresh CRM database.

Records carry stable ``external_id`` values so that re-running the
migration upserts rather than duplicates. Cross-references (a project's
client, a task's project) are expressed through those external ids and
resolved in SQL at insert time.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

SeedRecord = dict[str, Any]

CLIENTS: list[SeedRecord] = [
    {
        "external_id": "cl1",
        "name": "Upstate Community Health Alliance",
        "contact_person": "Dr. Evelyn Morrison",
        "email": "emorrison@upstatehealth.org",
        "phone": "864-555-0101",
        "location": "Greenville, SC",
    },
    {
        "external_id": "cl2",
        "name": "Upcountry Arts Alliance",
        "contact_person": "James Whitfield",
        "email": "jwhitfield@ucaa.org",
        "phone": "864-555-0142",
        "location": "Spartanburg, SC",
    },
    {
        "external_id": "cl3",
        "name": "Youth Futures Foundation",
        "contact_person": "Maria Gonzalez",
        "email": "maria@youthfutures.org",
        "phone": "864-555-0177",
        "location": "Greenville, SC",
    },
    {
        "external_id": "cl4",
        "name": "Blue Ridge Conservation Society",
        "contact_person": "Patricia Chen",
        "email": "pchen@blueridgeconserve.org",
        "phone": "828-555-0199",
        "location": "Asheville, NC",
    },
]

PROJECTS: list[SeedRecord] = [
    {
        "external_id": "p1",
        "name": "Annual Impact Gala 2025",
        "description": "Plan and run the spring fundraising gala.",
        "client_external_id": "cl2",
        "status": "In Progress",
        "start_date": date(2024, 9, 1),
        "end_date": date(2025, 3, 31),
    },
    {
        "external_id": "p2",
        "name": "Department of Education Grant",
        "description": "Federal grant application for after-school programs.",
        "client_external_id": "cl3",
        "status": "In Progress",
        "start_date": date(2024, 10, 1),
        "end_date": date(2025, 1, 15),
    },
    {
        "external_id": "p3",
        "name": "Strategic Plan 2025-2028",
        "description": "Facilitate board retreats and draft the three-year plan.",
        "client_external_id": "cl1",
        "status": "In Progress",
        "start_date": date(2024, 8, 15),
        "end_date": date(2024, 12, 20),
    },
    {
        "external_id": "p4",
        "name": "Earth Month Campaign",
        "description": "April awareness and volunteer recruitment campaign.",
        "client_external_id": "cl4",
        "status": "Planning",
        "start_date": date(2025, 2, 1),
        "end_date": date(2025, 4, 30),
    },
]

TASKS: list[SeedRecord] = [
    {
        "external_id": "t1",
        "project_external_id": "p1",
        "description": "Confirm venue contract and deposit",
        "status": "Done",
        "priority": "High",
        "phase": "Planning",
        "due_date": date(2024, 10, 18),
        "shared_with_client": True,
    },
    {
        "external_id": "t2",
        "project_external_id": "p1",
        "description": "Send sponsorship packets to top 20 prospects",
        "status": "In Progress",
        "priority": "High",
        "phase": "Outreach",
        "due_date": date(2024, 12, 6),
        "shared_with_client": True,
    },
    {
        "external_id": "t3",
        "project_external_id": "p2",
        "description": "Collect partner letters of support",
        "status": "In Progress",
        "priority": "High",
        "phase": "Drafting",
        "due_date": date(2024, 12, 2),
        "shared_with_client": False,
    },
    {
        "external_id": "t4",
        "project_external_id": "p2",
        "description": "Finalize budget narrative",
        "status": "To Do",
        "priority": "Medium",
        "phase": "Drafting",
        "due_date": date(2024, 12, 13),
        "shared_with_client": False,
    },
    {
        "external_id": "t5",
        "project_external_id": "p3",
        "description": "Compile board feedback on draft priorities",
        "status": "In Progress",
        "priority": "Medium",
        "phase": "Review",
        "due_date": date(2024, 12, 5),
        "shared_with_client": True,
    },
    {
        "external_id": "t6",
        "project_external_id": "p4",
        "description": "Draft campaign content calendar",
        "status": "To Do",
        "priority": "Low",
        "phase": "Planning",
        "due_date": date(2025, 2, 20),
        "shared_with_client": True,
    },
]

CASES: list[SeedRecord] = [
    {
        "external_id": "case1",
        "title": "Grant application additional documentation needed",
        "description": (
            "Department of Education requested a detailed budget narrative, three more "
            "partner letters and the program evaluation methodology."
        ),
        "client_external_id": "cl3",
        "status": "In Progress",
        "priority": "High",
    },
    {
        "external_id": "case2",
        "title": "Gala venue double-booking concern",
        "description": "Venue received another inquiry for the same date; finalize the contract.",
        "client_external_id": "cl2",
        "status": "Resolved",
        "priority": "High",
    },
    {
        "external_id": "case3",
        "title": "Strategic plan board feedback compilation",
        "description": "Incorporate feedback from 12 board members before the final version.",
        "client_external_id": "cl1",
        "status": "In Progress",
        "priority": "Medium",
    },
]

DONATIONS: list[SeedRecord] = [
    {
        "external_id": "d1",
        "donor_name": "Thomas Reynolds",
        "client_external_id": "cl2",
        "amount": Decimal("2500"),
        "donation_date": date(2024, 11, 25),
        "campaign": "Annual Impact Gala 2025 - Early Sponsorship",
    },
    {
        "external_id": "d3",
        "donor_name": "Anonymous Donor",
        "client_external_id": None,
        "amount": Decimal("5000"),
        "donation_date": date(2024, 11, 20),
        "campaign": "General Operating Fund",
    },
    {
        "external_id": "d4",
        "donor_name": "Upstate Foundation",
        "client_external_id": "cl1",
        "amount": Decimal("25000"),
        "donation_date": date(2024, 9, 30),
        "campaign": "Strategic Planning Support",
    },
    {
        "external_id": "d5",
        "donor_name": "Maria Gonzalez",
        "client_external_id": "cl3",
        "amount": Decimal("500"),
        "donation_date": date(2024, 11, 28),
        "campaign": "Youth Programs - Personal Contribution",
    },
    {
        "external_id": "d6",
        "donor_name": "Blue Ridge Conservation Society",
        "client_external_id": "cl4",
        "amount": Decimal("10000"),
        "donation_date": date(2024, 8, 15),
        "campaign": "Earth Month Campaign Seed Funding",
    },
]
