from fastapi.testclient import TestClient

from appraisal.main import app
from appraisal.models.audit_event import AuditEvent
from tests.helpers import (
    EMPLOYEE_EMAIL,
    HR_EMAIL,
    MANAGER_EMAIL,
    activate,
    create_cycle,
    create_template,
    cycle_payload,
    hdr,
    manager_payload,
    seed_org,
)

client = TestClient(app)


def test_create_cycle_defaults_type_from_template(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr, appraisal_type="MID_YEAR")

    r = client.post("/cycles", headers=hdr(HR_EMAIL), json=cycle_payload(t.id))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["status"] == "DRAFT"
    assert body["appraisal_type"] == "MID_YEAR"
    assert body["created_by_user_id"] == str(org.hr.id)
    assert body["total_employees"] == 0

    r = client.post("/cycles", headers=hdr(HR_EMAIL), json=cycle_payload(t.id))
    assert r.status_code == 409


def test_create_cycle_validates_template_and_timeline(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)

    r = client.post("/cycles", headers=hdr(HR_EMAIL), json=cycle_payload(org.hr.id))
    assert r.status_code == 404

    r = client.post(
        "/cycles",
        headers=hdr(HR_EMAIL),
        json=cycle_payload(t.id, end_date="2025-12-31", dispute_deadline="2025-06-01"),
    )
    assert r.status_code == 422
    fields = {e["field"] for e in r.json()["detail"]["errors"]}
    assert fields == {"end_date", "dispute_deadline"}


def test_create_cycle_requires_hr(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)

    r = client.post("/cycles", headers=hdr(MANAGER_EMAIL), json=cycle_payload(t.id))
    assert r.status_code == 403


def test_activate_resolves_reviewers(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    c = create_cycle(db_session, t, org.hr)

    body = activate(client, c.id)
    assert body["status"] == "ACTIVE"
    # the department head has nobody above them and is skipped
    assert body["total_employees"] == 2
    assert body["completion_percentage"] == 0.0

    r = client.get(f"/cycles/{c.id}/assignments", headers=hdr(HR_EMAIL))
    pairs = {(a["employee_id"], a["reviewer_id"]) for a in r.json()}
    assert pairs == {
        (str(org.manager.id), str(org.head.id)),
        (str(org.employee.id), str(org.manager.id)),
    }
    assert {a["status"] for a in r.json()} == {"NOT_STARTED"}

    r = client.post(f"/cycles/{c.id}/activate", headers=hdr(HR_EMAIL))
    assert r.status_code == 400
    assert r.json()["detail"] == "Only DRAFT cycles can be activated (current: ACTIVE)"

    actions = {e.action for e in db_session.query(AuditEvent).filter(AuditEvent.entity_id == c.id)}
    assert {"CYCLE_ACTIVATED", "CYCLE_ASSIGNMENTS_CREATED"} <= actions


def test_activate_honours_scope_and_exclusions(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)

    scoped = create_cycle(
        db_session, t, org.hr, code="SCOPED", target_employee_ids=[str(org.employee.id)]
    )
    assert activate(client, scoped.id)["total_employees"] == 1

    excluded = create_cycle(
        db_session, t, org.hr, code="EXCLUDED", exclude_employee_ids=[str(org.employee.id)]
    )
    r = client.get(f"/cycles/{excluded.id}", headers=hdr(HR_EMAIL))
    assert r.json()["exclude_employee_ids"] == [str(org.employee.id)]
    assert activate(client, excluded.id)["total_employees"] == 1


def test_activate_with_inactive_template(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr, is_active=False)
    c = create_cycle(db_session, t, org.hr)

    r = client.post(f"/cycles/{c.id}/activate", headers=hdr(HR_EMAIL))
    assert r.status_code == 400


def test_update_cycle(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    c = create_cycle(db_session, t, org.hr)
    version = c.version

    r = client.patch(f"/cycles/{c.id}", headers=hdr(HR_EMAIL, **{"If-Match": '"42"'}), json={"name": "x"})
    assert r.status_code == 409

    r = client.patch(f"/cycles/{c.id}", headers=hdr(HR_EMAIL), json={"name": None})
    assert r.status_code == 422

    r = client.patch(
        f"/cycles/{c.id}",
        headers=hdr(HR_EMAIL, **{"If-Match": f'"{version}"'}),
        json={"name": "Annual 2026 (revised)", "target_department_ids": [str(org.department.id)]},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["name"] == "Annual 2026 (revised)"
    assert body["target_department_ids"] == [str(org.department.id)]
    assert body["version"] == version + 1


def test_update_cycle_template_and_type(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    other = create_template(db_session, org.hr, code="MID-STD", appraisal_type="MID_YEAR")
    c = create_cycle(db_session, t, org.hr)

    r = client.patch(
        f"/cycles/{c.id}",
        headers=hdr(HR_EMAIL),
        json={"template_id": str(other.id), "appraisal_type": "MID_YEAR"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["template_id"] == str(other.id)
    assert r.json()["appraisal_type"] == "MID_YEAR"

    r = client.patch(f"/cycles/{c.id}", headers=hdr(HR_EMAIL), json={"template_id": str(org.hr.id)})
    assert r.status_code == 404
    assert r.json()["detail"] == "Template not found"

    r = client.patch(f"/cycles/{c.id}", headers=hdr(HR_EMAIL), json={"template_id": None})
    assert r.status_code == 422


def test_delete_cycle(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    draft = create_cycle(db_session, t, org.hr, code="A")
    running = create_cycle(db_session, t, org.hr, code="B")
    draft_id, running_id = draft.id, running.id
    activate(client, running_id)

    assert client.delete(f"/cycles/{draft_id}", headers=hdr(MANAGER_EMAIL)).status_code == 403

    r = client.delete(f"/cycles/{running_id}", headers=hdr(HR_EMAIL))
    assert r.status_code == 400
    assert r.json()["detail"] == "Only DRAFT cycles can be deleted (current: ACTIVE)"

    r = client.delete(f"/cycles/{draft_id}", headers=hdr(HR_EMAIL))
    assert r.status_code == 204
    assert client.get(f"/cycles/{draft_id}", headers=hdr(HR_EMAIL)).status_code == 404

    actions = [e.action for e in db_session.query(AuditEvent).filter(AuditEvent.entity_id == draft_id)]
    assert "CYCLE_DELETED" in actions


def test_cancel_and_archive(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    draft = create_cycle(db_session, t, org.hr, code="A")
    running = create_cycle(db_session, t, org.hr, code="B")

    r = client.post(f"/cycles/{draft.id}/cancel", headers=hdr(HR_EMAIL))
    assert r.status_code == 200
    assert r.json()["status"] == "CANCELLED"
    r = client.post(f"/cycles/{draft.id}/cancel", headers=hdr(HR_EMAIL))
    assert r.status_code == 400
    assert r.json()["detail"] == "Illegal cycle status transition: CANCELLED -> CANCELLED"

    r = client.post(f"/cycles/{running.id}/archive", headers=hdr(HR_EMAIL))
    assert r.status_code == 400

    activate(client, running.id)
    assert client.post(f"/cycles/{running.id}/close", headers=hdr(HR_EMAIL)).json()["status"] == "COMPLETED"
    assert client.post(f"/cycles/{running.id}/archive", headers=hdr(HR_EMAIL)).json()["status"] == "ARCHIVED"


def test_progress_and_publish(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    c = create_cycle(db_session, t, org.hr)
    activate(client, c.id)

    r = client.get(f"/cycles/{c.id}/progress", headers=hdr(MANAGER_EMAIL))
    assert r.status_code == 200
    body = r.json()
    assert body["total"] == 2
    assert body["by_status"]["NOT_STARTED"] == 2
    assert body["by_status"]["COMPLETED"] == 0

    assert client.get(f"/cycles/{c.id}/progress", headers=hdr(EMPLOYEE_EMAIL)).status_code == 403

    r = client.put(
        f"/cycles/{c.id}/employees/{org.employee.id}/evaluation",
        headers=hdr(MANAGER_EMAIL),
        json=manager_payload(),
    )
    assert r.status_code == 200, r.text
    assert client.get(f"/cycles/{c.id}", headers=hdr(HR_EMAIL)).json()["status"] == "IN_PROGRESS"

    r = client.post(f"/cycles/{c.id}/publish", headers=hdr(HR_EMAIL))
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["results_published"] is True
    assert body["published_by_user_id"] == str(org.hr.id)
    assert body["completed_evaluations"] == 1
    assert body["completion_percentage"] == 50.0

    r = client.get(f"/cycles/{c.id}/progress", headers=hdr(HR_EMAIL))
    assert r.json()["by_status"]["COMPLETED"] == 1
    assert r.json()["completion_rate"] == 50.0

    # the unreviewed assignment is untouched and a later publish is allowed
    r = client.post(f"/cycles/{c.id}/publish", headers=hdr(HR_EMAIL))
    assert r.status_code == 200
    assert r.json()["completed_evaluations"] == 1


def test_publish_requires_open_cycle(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    c = create_cycle(db_session, t, org.hr)

    r = client.post(f"/cycles/{c.id}/publish", headers=hdr(HR_EMAIL))
    assert r.status_code == 400


def test_list_cycles_with_filters(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    create_cycle(db_session, t, org.hr, code="ANNUAL-2025", name="Annual 2025")
    create_cycle(db_session, t, org.hr, code="MID-2026", name="Mid-year 2026", status="ACTIVE")

    r = client.get("/cycles?include_pagination=true&limit=1", headers=hdr(EMPLOYEE_EMAIL))
    body = r.json()
    assert body["pagination"] == {"total": 2, "limit": 1, "offset": 0, "has_more": True}

    r = client.get("/cycles?status=ACTIVE", headers=hdr(EMPLOYEE_EMAIL))
    assert [c["code"] for c in r.json()] == ["MID-2026"]

    r = client.get("/cycles?search=annual", headers=hdr(EMPLOYEE_EMAIL))
    assert [c["code"] for c in r.json()] == ["ANNUAL-2025"]
