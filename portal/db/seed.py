"""
Demo data for development.

Dates are relative to the "today" passed in so that the seeded portal
always shows a mix of expired, expiring and distant registrations and
deadlines.
"""

from datetime import date, timedelta

from ..core.service import PortalService
from ..schemas import ComplianceCreate, InitiativeCreate, LocationCreate


def seed_demo(service: PortalService, today: date) -> dict[str, int]:
    """
    Insert demo locations, initiatives and compliance items.

    Returns:
        Number of documents inserted per collection
    """
    def days(n: int) -> str:
        return (today + timedelta(days=n)).isoformat()

    depot = service.create_location(LocationCreate(
        name="Pune Metro Depot",
        address="Survey No. 12, Hill Road",
        city="Pune",
        state="Maharashtra",
        zip_code="411001",
        description="Rolling stock depot and batching plant",
    ))
    quarry = service.create_location(LocationCreate(
        name="Nashik Stone Quarry",
        address="Gat No. 221, Sinnar Road",
        city="Nashik",
        state="Maharashtra",
        zip_code="422101",
    ))
    yard = service.create_location(LocationCreate(
        name="Surat Casting Yard",
        address="Plot 7, Hazira Industrial Area",
        city="Surat",
        state="Gujarat",
        zip_code="394270",
        is_active=False,
    ))

    initiatives = [
        InitiativeCreate.model_validate({
            "title": "Consent to Operate - batching plant",
            "description": "SPCB consent for the depot batching plant",
            "location": depot["id"],
            "category": "Environmental",
            "status": "Active",
            "startDate": days(-330),
            "endDate": days(20),
            "budget": 150000,
            "typeOfPermission": "Consent to Operate",
            "agency": "State Pollution Control Board",
            "applicable": "Yes",
            "registrationInfo": {
                "registered": "Yes",
                "licenseNumber": "SPCB/CTO/2231",
                "validity": days(5),
            },
        }),
        InitiativeCreate.model_validate({
            "title": "Explosives storage license",
            "description": "Magazine license for quarry blasting material",
            "location": quarry["id"],
            "category": "Safety",
            "status": "Active",
            "startDate": days(-700),
            "endDate": days(-3),
            "typeOfPermission": "Permission",
            "agency": "Chief Controller of Explosives",
            "applicable": "Yes",
            "registrationInfo": {
                "registered": "Yes",
                "licenseNumber": "PESO/E/HQ/MH/21/4410",
                "validity": days(-10),
            },
        }),
        InitiativeCreate.model_validate({
            "title": "Labour license renewal",
            "description": "Contract labour license for depot works",
            "location": depot["id"],
            "category": "Legal",
            "status": "Planning",
            "startDate": days(-30),
            "endDate": days(12),
            "agency": "Labour Department Authority",
            "registrationInfo": {
                "registered": "Yes",
                "licenseNumber": "CLRA/PN/0973",
                "validity": days(14),
            },
        }),
        InitiativeCreate.model_validate({
            "title": "Tree felling permission",
            "description": "Forest department permission for access road",
            "location": quarry["id"],
            "category": "Environmental",
            "status": "Completed",
            "startDate": days(-200),
            "endDate": days(-20),
            "agency": "Forest Department",
        }),
        InitiativeCreate.model_validate({
            "title": "Groundwater abstraction NOC",
            "description": "State water department NOC for borewells",
            "location": yard["id"],
            "category": "Environmental",
            "status": "On Hold",
            "startDate": days(-60),
            "endDate": days(120),
            "typeOfPermission": "NOC",
            "agency": "State Water Department",
            "registrationInfo": {
                "registered": "Yes",
                "licenseNumber": "SWD/NOC/118",
                "validity": days(28),
            },
        }),
    ]
    for body in initiatives:
        service.create_initiative(body)

    compliance = [
        ComplianceCreate.model_validate({
            "title": "Quarterly air quality monitoring",
            "location": depot["id"],
            "category": "Environmental",
            "status": "In Progress",
            "priority": "High",
            "dueDate": days(10),
            "requirements": [
                {"title": "Stack emission report", "priority": "High"},
                {"title": "Ambient air sampling", "status": "Compliant"},
            ],
        }),
        ComplianceCreate.model_validate({
            "title": "Fire safety audit",
            "location": quarry["id"],
            "category": "Safety",
            "status": "Non-Compliant",
            "priority": "Critical",
            "dueDate": days(-5),
        }),
        ComplianceCreate.model_validate({
            "title": "Annual factory return",
            "location": depot["id"],
            "category": "Legal",
            "status": "Compliant",
            "priority": "Medium",
            "dueDate": days(90),
        }),
    ]
    for body in compliance:
        service.create_compliance(body, today)

    return {
        "locations": 3,
        "initiatives": len(initiatives),
        "compliance": len(compliance),
    }
