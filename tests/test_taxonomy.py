"""Reference data: seeding, the read endpoints and RC meeting scheduling."""

from research_portal.models import db
from research_portal.models.auth import UserRole
from research_portal.models.taxonomy import RCMeeting, SpecialArea, Vertical
from research_portal.services.auth_service import get_user_by_email
from research_portal.services.taxonomy_service import seed_reference_data


def test_seed_is_idempotent(app):
    first = seed_reference_data()
    assert first["verticals"] == 6
    assert first["special_areas"] == 6
    assert first["admin"] == 0

    second = seed_reference_data()
    assert second == {"verticals": 0, "special_areas": 0, "admin": 0}
    assert db.session.query(Vertical).count() == 6
    assert db.session.query(SpecialArea).count() == 6


def test_seed_creates_bootstrap_admin(app):
    app.config["BOOTSTRAP_ADMIN_EMAIL"] = "root@portal.example.org"
    app.config["BOOTSTRAP_ADMIN_PASSWORD"] = "Bootstrap-Pass-1"
    try:
        assert seed_reference_data()["admin"] == 1
        assert seed_reference_data()["admin"] == 0
    finally:
        app.config["BOOTSTRAP_ADMIN_EMAIL"] = None
        app.config["BOOTSTRAP_ADMIN_PASSWORD"] = None
    assert get_user_by_email("root@portal.example.org").role == UserRole.ADMIN


def test_cli_command(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["seed-reference-data"])
    assert result.exit_code == 0
    assert "Seeded 6 verticals" in result.output


def test_reference_endpoints(client, employee, auth_headers):
    seed_reference_data()
    h = auth_headers(employee)

    verticals = client.get("/api/v1/verticals", headers=h).get_json()
    assert [v["code"] for v in verticals] == ["AMSS", "DM", "EI", "OS", "SHMLE", "SMFS"]

    areas = client.get("/api/v1/special-areas", headers=h).get_json()
    assert len(areas) == 6

    categories = client.get("/api/v1/project-categories", headers=h).get_json()
    assert {"code": "GAP", "label": "Grant-in-Aid"} in categories


def test_reference_endpoints_require_auth(client):
    assert client.get("/api/v1/verticals").status_code == 401


def test_health_and_request_headers(client):
    r = client.get("/api/v1/health", headers={"X-Request-ID": "abc123"})
    assert r.status_code == 200
    assert r.get_json()["status"] == "ok"
    assert r.headers["X-Request-ID"] == "abc123"
    assert float(r.headers["X-Request-Duration-Ms"]) >= 0


class TestRCMeetings:

    def test_director_schedules_meeting(self, client, director, employee, auth_headers):
        r = client.post("/api/v1/rc-meetings", headers=auth_headers(director),
                        json={"title": "43rd Research Council", "date": "2025-06-20"})
        assert r.status_code == 201
        meeting = r.get_json()
        assert meeting["meetingNumber"] == 1
        assert meeting["date"] == "2025-06-20"

        fetched = client.get(f"/api/v1/rc-meetings/{meeting['id']}", headers=auth_headers(employee))
        assert fetched.status_code == 200
        assert fetched.get_json() == meeting

    def test_number_follows_highest(self, client, rc_meeting, admin, auth_headers):
        r = client.post("/api/v1/rc-meetings", headers=auth_headers(admin),
                        json={"title": "Next council", "date": "2025-09-01"})
        assert r.get_json()["meetingNumber"] == 43

    def test_duplicate_number_is_409(self, client, rc_meeting, director, auth_headers):
        r = client.post("/api/v1/rc-meetings", headers=auth_headers(director),
                        json={"title": "Again", "date": "2025-09-01", "meetingNumber": 42})
        assert r.status_code == 409

    def test_missing_fields(self, client, director, auth_headers):
        r = client.post("/api/v1/rc-meetings", headers=auth_headers(director), json={})
        assert r.status_code == 400
        body = r.get_json()
        assert body["code"] == "ERR_VALIDATION_REQUIRED"
        assert body["details"] == {"title": "required", "date": "required"}

    def test_bad_meeting_number(self, client, director, auth_headers):
        r = client.post("/api/v1/rc-meetings", headers=auth_headers(director),
                        json={"title": "T", "date": "2025-09-01", "meetingNumber": "forty"})
        assert r.status_code == 400
        assert r.get_json()["code"] == "ERR_VALIDATION_INVALID"

    def test_roles_without_create_are_403(self, client, make_user, auth_headers):
        for role in ("EMPLOYEE", "SUPERVISOR", "BKMD"):
            r = client.post("/api/v1/rc-meetings", headers=auth_headers(make_user(role)),
                            json={"title": "T", "date": "2025-09-01"})
            assert r.status_code == 403, role
        assert db.session.query(RCMeeting).count() == 0

    def test_unknown_meeting_is_404(self, client, employee, auth_headers):
        r = client.get("/api/v1/rc-meetings/nope", headers=auth_headers(employee))
        assert r.status_code == 404
        assert r.get_json()["error"] == "RC meeting not found"

    def test_scheduled_meeting_can_be_used_in_rc_review(self, client, vertical, employee, bkmd, director,
                                                        auth_headers, make_payload):
        he, hb, hd = auth_headers(employee), auth_headers(bkmd), auth_headers(director)
        meeting_id = client.post("/api/v1/rc-meetings", headers=hd,
                                 json={"title": "Council", "date": "2025-06-20"}).get_json()["id"]
        pid = client.post("/api/v1/proposals", headers=he, json=make_payload()).get_json()["id"]
        client.post(f"/api/v1/proposals/{pid}/submit", headers=he)
        client.post(f"/api/v1/proposals/{pid}/bkmd-review", headers=hb, json={"action": "forward"})
        client.post(f"/api/v1/proposals/{pid}/director-review", headers=hd, json={"action": "approve"})

        r = client.post(f"/api/v1/proposals/{pid}/rc-review", headers=hd,
                        json={"action": "approve", "rcMeetingId": meeting_id})
        assert r.status_code == 200
        assert r.get_json()["proposal"]["rcMeeting"]["id"] == meeting_id
