"""
HTTP API tests against an in-memory store.

Every test gets a fresh store and a fixed "today" so that expiry
arithmetic is deterministic.
"""

import csv
import io

import pytest
from datetime import date, timedelta
from fastapi.testclient import TestClient

from portal.db.store import InMemoryDocumentStore
from portal.main import app


TODAY = date(2026, 3, 1)


def day(offset: int) -> str:
    return (TODAY + timedelta(days=offset)).isoformat()


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setenv("PORTAL_SESSION_SECRET", "test-secret-that-is-long-enough")
    monkeypatch.setenv("PORTAL_TIMEZONE", "UTC")
    monkeypatch.delenv("ENABLE_AUTO_SEED", raising=False)
    monkeypatch.setattr("portal.web.deps.today", lambda: TODAY)

    with TestClient(app) as c:
        app.state.store = InMemoryDocumentStore()
        yield c


@pytest.fixture
def location(client):
    resp = client.post("/api/locations", json={
        "name": "Pune Metro Depot",
        "address": "Survey No. 12, Hill Road",
        "city": "Pune",
        "state": "Maharashtra",
        "zipCode": "411001",
    })
    assert resp.status_code == 201
    return resp.json()["data"]


def make_initiative(client, location_id, **overrides):
    body = {
        "title": "Consent to Operate",
        "description": "SPCB consent for the batching plant",
        "location": location_id,
        "category": "Environmental",
        "status": "Active",
        "startDate": day(-100),
        "endDate": day(60),
    }
    body.update(overrides)
    resp = client.post("/api/initiatives", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]


class TestSystem:

    def test_schema_package_exports_what_the_service_uses(self):
        import portal.schemas as schemas

        assert "ComplianceFields" in schemas.__all__
        assert all(hasattr(schemas, name) for name in schemas.__all__)

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"

    def test_detailed_health(self, client):
        body = client.get("/health/detailed").json()
        assert body["status"] == "healthy"
        assert body["checks"]["document_store"]["backend"] == "InMemoryDocumentStore"

    def test_api_info(self, client):
        body = client.get("/api").json()
        assert body["endpoints"]["notifications"] == "/api/notifications"

    def test_metrics(self, client):
        client.get("/health")
        assert client.get("/metrics").json()["requests_total"] >= 1

    def test_request_id_header(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "abc12345"})
        assert resp.headers["X-Request-ID"] == "abc12345"

    def test_unknown_route_uses_error_envelope(self, client):
        resp = client.get("/api/nope")
        assert resp.status_code == 404
        assert resp.json()["success"] is False


class TestLocations:

    def test_create_uses_envelope_and_camel_case(self, client, location):
        assert location["id"]
        assert location["zipCode"] == "411001"
        assert location["isActive"] is True
        assert "createdAt" in location

    def test_validation_error_envelope(self, client):
        resp = client.post("/api/locations", json={"name": "x" * 101})
        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert "name" in body["error"]

    def test_list_paginates_and_searches(self, client):
        for i in range(12):
            client.post("/api/locations", json={
                "name": f"Site {i}", "address": "a", "city": "Nashik" if i % 2 else "Surat",
                "state": "s", "zipCode": "1",
            })

        page2 = client.get("/api/locations", params={"page": 2, "limit": 5}).json()["data"]
        assert page2["total"] == 12
        assert page2["page"] == 2
        assert page2["totalPages"] == 3
        assert len(page2["items"]) == 5

        found = client.get("/api/locations", params={"search": "nashik", "limit": 100}).json()["data"]
        assert found["total"] == 6

    def test_filter_active(self, client, location):
        client.put(f"/api/locations/{location['id']}", json={"isActive": False})
        data = client.get("/api/locations", params={"isActive": "true"}).json()["data"]
        assert data["total"] == 0

    def test_get_includes_initiatives(self, client, location):
        make_initiative(client, location["id"])
        data = client.get(f"/api/locations/{location['id']}").json()["data"]
        assert data["name"] == "Pune Metro Depot"
        assert [i["title"] for i in data["initiatives"]] == ["Consent to Operate"]

    def test_update(self, client, location):
        resp = client.put(f"/api/locations/{location['id']}", json={"city": "Mumbai"})
        assert resp.status_code == 200
        assert resp.json()["data"]["city"] == "Mumbai"
        assert resp.json()["data"]["name"] == "Pune Metro Depot"

    def test_missing(self, client):
        resp = client.get("/api/locations/does-not-exist")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Location not found"}

    def test_delete_refused_while_referenced(self, client, location):
        initiative = make_initiative(client, location["id"])

        resp = client.delete(f"/api/locations/{location['id']}")
        assert resp.status_code == 409
        assert "associated initiatives" in resp.json()["error"]

        client.delete(f"/api/initiatives/{initiative['id']}")
        assert client.delete(f"/api/locations/{location['id']}").status_code == 200
        assert client.get(f"/api/locations/{location['id']}").status_code == 404


class TestInitiatives:

    def test_create_embeds_location_summary(self, client, location):
        item = make_initiative(client, location["id"])
        assert item["location"] == location["id"]
        assert item["locationSummary"]["name"] == "Pune Metro Depot"
        assert item["locationSummary"]["city"] == "Pune"

    def test_unknown_location_rejected(self, client):
        resp = client.post("/api/initiatives", json={
            "title": "Orphan", "description": "d", "location": "nowhere",
            "startDate": day(0),
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid location ID"

    def test_end_before_start_rejected(self, client, location):
        resp = client.post("/api/initiatives", json={
            "title": "Backwards", "description": "d", "location": location["id"],
            "startDate": day(10), "endDate": day(5),
        })
        assert resp.status_code == 422
        assert "End date must be after start date" in resp.json()["error"]

    def test_update_revalidates_merged_dates(self, client, location):
        item = make_initiative(client, location["id"])
        resp = client.put(f"/api/initiatives/{item['id']}", json={"endDate": day(-200)})
        assert resp.status_code == 400
        assert "End date must be after start date" in resp.json()["error"]

    def test_update(self, client, location):
        item = make_initiative(client, location["id"])
        resp = client.put(f"/api/initiatives/{item['id']}", json={
            "status": "Completed",
            "registrationInfo": {"registered": "Yes", "licenseNumber": "L-9", "validity": ""},
        })
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["status"] == "Completed"
        assert data["title"] == "Consent to Operate"
        assert data["registrationInfo"]["licenseNumber"] == "L-9"
        assert data["registrationInfo"]["validity"] is None

    def test_update_clears_blank_form_fields(self, client, location):
        item = make_initiative(client, location["id"], typeOfPermission="Consent to Operate")

        resp = client.put(f"/api/initiatives/{item['id']}", json={"endDate": ""})
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["endDate"] is None

        resp = client.put(f"/api/initiatives/{item['id']}", json={"typeOfPermission": ""})
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["typeOfPermission"] is None

    def test_update_to_unknown_location(self, client, location):
        item = make_initiative(client, location["id"])
        resp = client.put(f"/api/initiatives/{item['id']}", json={"location": "nowhere"})
        assert resp.status_code == 400

    def test_filters(self, client, location):
        make_initiative(client, location["id"], title="Water NOC", status="Planning")
        make_initiative(client, location["id"], title="Fire NOC", status="Active")

        planning = client.get("/api/initiatives", params={"status": "Planning"}).json()["data"]
        assert [i["title"] for i in planning["items"]] == ["Water NOC"]

        search = client.get("/api/initiatives", params={"search": "fire"}).json()["data"]
        assert [i["title"] for i in search["items"]] == ["Fire NOC"]

        by_location = client.get(f"/api/initiatives/location/{location['id']}").json()["data"]
        assert len(by_location) == 2

    def test_delete(self, client, location):
        item = make_initiative(client, location["id"])
        assert client.delete(f"/api/initiatives/{item['id']}").status_code == 200
        assert client.get(f"/api/initiatives/{item['id']}").status_code == 404
        assert client.delete(f"/api/initiatives/{item['id']}").status_code == 404


class TestCompliance:

    @pytest.fixture
    def item(self, client, location):
        resp = client.post("/api/compliance", json={
            "title": "Air quality monitoring",
            "location": location["id"],
            "category": "Environmental",
            "status": "In Progress",
            "priority": "High",
            "dueDate": day(10),
            "requirements": [{"title": "Stack emission report"}],
        })
        assert resp.status_code == 201, resp.text
        return resp.json()["data"]

    def test_create(self, item):
        assert item["isExpiring"] is True
        assert item["locationSummary"]["name"] == "Pune Metro Depot"
        assert item["requirements"][0]["id"]
        assert item["requirements"][0]["status"] == "Pending Review"

    def test_unknown_location_rejected(self, client):
        resp = client.post("/api/compliance", json={"title": "x", "location": "nowhere"})
        assert resp.status_code == 400

    def test_expiring(self, client, location, item):
        client.post("/api/compliance", json={
            "title": "Done", "location": location["id"], "status": "Compliant", "dueDate": day(3),
        })
        client.post("/api/compliance", json={
            "title": "Far", "location": location["id"], "dueDate": day(90),
        })
        client.post("/api/compliance", json={
            "title": "Overdue", "location": location["id"], "dueDate": day(-2),
        })

        soon = client.get("/api/compliance/expiring/30").json()["data"]
        assert [c["title"] for c in soon] == ["Overdue", "Air quality monitoring"]

        listed = client.get("/api/compliance", params={"expiring": "true"}).json()["data"]
        assert listed["total"] == 2

    def test_stats(self, client, item):
        stats = client.get("/api/compliance/stats/overview").json()["data"]
        assert stats["total"] == 1
        assert stats["inProgress"] == 1
        assert stats["expiring"] == 1
        assert stats["complianceRate"] == 0

    def test_update_requirement(self, client, item):
        req_id = item["requirements"][0]["id"]
        resp = client.put(
            f"/api/compliance/{item['id']}/requirements/{req_id}",
            json={"status": "Compliant", "notes": "Filed"},
        )
        assert resp.status_code == 200
        req = resp.json()["data"]["requirements"][0]
        assert req["id"] == req_id
        assert req["status"] == "Compliant"
        assert req["notes"] == "Filed"
        assert req["title"] == "Stack emission report"

    def test_requirement_documents_get_portal_upload_date(self, client, item):
        req_id = item["requirements"][0]["id"]
        resp = client.put(
            f"/api/compliance/{item['id']}/requirements/{req_id}",
            json={"documents": [
                {"name": "report.pdf", "url": "https://files.example.com/report.pdf"},
                {"name": "old.pdf", "url": "https://files.example.com/old.pdf", "uploadDate": day(-40)},
            ]},
        )
        assert resp.status_code == 200, resp.text
        documents = resp.json()["data"]["requirements"][0]["documents"]
        assert [d["uploadDate"] for d in documents] == [TODAY.isoformat(), day(-40)]

    def test_update_missing_requirement(self, client, item):
        resp = client.put(f"/api/compliance/{item['id']}/requirements/nope", json={"notes": "x"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "Requirement not found"

    def test_update_clears_blank_due_date(self, client, item):
        resp = client.put(f"/api/compliance/{item['id']}", json={"dueDate": "", "nextReviewDate": " "})
        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["dueDate"] is None
        assert data["nextReviewDate"] is None
        assert data["isExpiring"] is False

    def test_update_and_delete(self, client, item):
        resp = client.put(f"/api/compliance/{item['id']}", json={"status": "Compliant"})
        assert resp.json()["data"]["isExpiring"] is False

        assert client.delete(f"/api/compliance/{item['id']}").status_code == 200
        assert client.get(f"/api/compliance/{item['id']}").status_code == 404


class TestUsers:

    PROFILE = {
        "uid": "firebase-uid-1",
        "name": "Asha Rao",
        "email": "Asha.Rao@Example.com",
        "imageURL": "https://example.com/a.png",
    }

    def test_login_creates_then_updates(self, client):
        first = client.post("/api/users/login", json=self.PROFILE)
        assert first.status_code == 201
        user = first.json()["data"]
        assert user["email"] == "asha.rao@example.com"
        assert user["imageURL"] == "https://example.com/a.png"
        assert user["role"] == "user"

        again = client.post("/api/users/login", json={**self.PROFILE, "name": "Asha R."})
        assert again.status_code == 200
        assert again.json()["data"]["id"] == user["id"]
        assert again.json()["data"]["name"] == "Asha R."

    def test_me_requires_session(self, client):
        resp = client.get("/api/users/me")
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    def test_me_after_login(self, client):
        client.post("/api/users/login", json=self.PROFILE)
        assert client.get("/api/users/me").json()["data"]["uid"] == "firebase-uid-1"

        client.post("/api/users/logout")
        assert client.get("/api/users/me").status_code == 401

    def test_update_and_soft_delete(self, client):
        client.post("/api/users/login", json=self.PROFILE)

        resp = client.put("/api/users/firebase-uid-1", json={"role": "manager"})
        assert resp.json()["data"]["role"] == "manager"

        resp = client.delete("/api/users/firebase-uid-1")
        assert resp.status_code == 200
        assert resp.json()["data"]["isActive"] is False
        assert client.get("/api/users/firebase-uid-1").json()["data"]["isActive"] is False

    def test_invalid_role(self, client):
        client.post("/api/users/login", json=self.PROFILE)
        assert client.put("/api/users/firebase-uid-1", json={"role": "root"}).status_code == 422

    def test_missing_user(self, client):
        assert client.get("/api/users/nobody").status_code == 404

    def test_list_and_stats(self, client):
        client.post("/api/users/login", json=self.PROFILE)
        client.post("/api/users/login", json={**self.PROFILE, "uid": "u2", "email": "b@example.com"})
        client.delete("/api/users/u2")

        listed = client.get("/api/users", params={"isActive": "true"}).json()["data"]
        assert [u["uid"] for u in listed["items"]] == ["firebase-uid-1"]

        stats = client.get("/api/users/stats/overview").json()["data"]
        assert stats["totalUsers"] == 2
        assert stats["inactiveUsers"] == 1
        assert stats["recentUsers"] == 2
        assert stats["usersByRole"] == {"user": 2}


class TestDashboard:

    def test_stats(self, client, location):
        make_initiative(client, location["id"], budget=1000)
        make_initiative(client, location["id"], status="Completed", budget=500)

        data = client.get("/api/dashboard/stats").json()["data"]
        assert data["overview"]["totalInitiatives"] == 2
        assert data["overview"]["totalBudget"] == 1500
        assert data["completionRates"]["initiatives"] == 50
        assert data["locationStats"] == [
            {"id": location["id"], "name": "Pune Metro Depot", "initiativeCount": 2}
        ]


class TestNotifications:

    @pytest.fixture
    def seeded(self, client, location):
        make_initiative(
            client, location["id"], title="Deadline soon", endDate=day(20),
        )
        make_initiative(
            client, location["id"], title="License lapsing", endDate=day(200),
            registrationInfo={"registered": "Yes", "licenseNumber": "L-1", "validity": day(10)},
        )
        make_initiative(
            client, location["id"], title="Finished", status="Completed", endDate=day(2),
        )
        make_initiative(
            client, location["id"], title="Far away", endDate=day(45),
        )

    def test_ranked_feed(self, client, seeded):
        data = client.get("/api/notifications").json()["data"]

        assert data["today"] == TODAY.isoformat()
        titles = [n["title"] for n in data["notifications"]]
        assert titles == ["License lapsing", "Deadline soon"]

        lapsing, deadline = data["notifications"]
        assert lapsing["severity"] == "high"
        assert lapsing["ruleType"] == "expiry"
        assert lapsing["message"] == "Registration expires in 10 days"
        assert lapsing["locationName"] == "Pune Metro Depot"
        assert lapsing["licenseNumber"] == "L-1"
        assert lapsing["id"].endswith("-validity")
        assert deadline["severity"] == "low"
        assert deadline["message"] == "Initiative deadline in 20 days"
        assert deadline["daysRemaining"] == 20

        assert data["badgeCount"] == 1
        assert data["counts"] == {"critical": 0, "high": 1, "medium": 0, "low": 1}

    def test_dismissed_ids(self, client, seeded):
        first = client.get("/api/notifications").json()["data"]
        high_id = first["notifications"][0]["id"]

        data = client.get("/api/notifications", params={"dismissed": [high_id, "unknown"]}).json()["data"]
        assert [n["title"] for n in data["notifications"]] == ["Deadline soon"]
        assert data["badgeCount"] == 0
        assert data["dismissedCount"] == 1

    def test_ids_stable_across_requests(self, client, seeded):
        first = [n["id"] for n in client.get("/api/notifications").json()["data"]["notifications"]]
        second = [n["id"] for n in client.get("/api/notifications").json()["data"]["notifications"]]
        assert first == second

    def test_empty_store(self, client):
        data = client.get("/api/notifications").json()["data"]
        assert data["notifications"] == []
        assert data["badgeCount"] == 0


class TestExport:

    def test_initiatives_csv(self, client, location):
        make_initiative(client, location["id"])

        resp = client.get("/api/export/initiatives.csv")
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "attachment" in resp.headers["content-disposition"]

        rows = list(csv.reader(io.StringIO(resp.text)))
        assert rows[0][:3] == ["Title", "Description", "Location"]
        assert rows[1][:3] == [
            "Consent to Operate", "SPCB consent for the batching plant", "Pune Metro Depot",
        ]

    def test_notifications_csv(self, client, location):
        make_initiative(client, location["id"], endDate=day(3))
        rows = list(csv.reader(io.StringIO(client.get("/api/export/notifications.csv").text)))
        assert len(rows) == 2
        assert rows[1][2] == "medium"

    def test_unknown_resource(self, client):
        resp = client.get("/api/export/claims.csv")
        assert resp.status_code == 404
        assert resp.json()["success"] is False
