from datetime import date, timedelta

from fastapi.testclient import TestClient

from appraisal.core.clock import today
from appraisal.main import app
from tests.helpers import (
    EMPLOYEE_EMAIL,
    HR_EMAIL,
    MANAGER_EMAIL,
    activate,
    create_cycle,
    create_template,
    create_user,
    hdr,
    manager_payload,
    published_evaluation,
    seed_org,
)

client = TestClient(app)


def _dispute(ev, **extra):
    payload = {
        "evaluation_id": ev["id"],
        "reason": "Project delivery was not taken into account",
        "disputed_section_ids": ["s1"],
        "proposed_rating": 80,
    }
    payload.update(extra)
    return payload


def _open_dispute(db_session):
    org, c, ev = published_evaluation(db_session, client)
    r = client.post("/disputes", headers=hdr(EMPLOYEE_EMAIL), json=_dispute(ev))
    assert r.status_code == 201, r.text
    return org, c, ev, r.json()


def _evaluation(ev):
    return client.get(f"/evaluations/{ev['id']}", headers=hdr(HR_EMAIL)).json()


def _assignment_status(org):
    r = client.get(f"/employees/{org.employee.id}/assignments", headers=hdr(HR_EMAIL))
    return r.json()[0]["status"]


def test_create_dispute(db_session):
    org, c, ev, d = _open_dispute(db_session)

    assert d["status"] == "SUBMITTED"
    assert d["employee_id"] == str(org.employee.id)
    assert d["deadline"] == (today() + timedelta(days=7)).isoformat()
    assert _evaluation(ev)["status"] == "DISPUTED"
    assert _assignment_status(org) == "DISPUTED"


def test_second_open_dispute_conflicts(db_session):
    org, c, ev, d = _open_dispute(db_session)

    r = client.post("/disputes", headers=hdr(EMPLOYEE_EMAIL), json=_dispute(ev))
    assert r.status_code == 409
    assert r.json()["detail"] == "An open dispute already exists for this evaluation"


def test_cycle_dispute_deadline_wins(db_session):
    org, c, ev = published_evaluation(db_session, client)
    c.dispute_deadline = date(2026, 12, 15)
    db_session.commit()

    r = client.post("/disputes", headers=hdr(EMPLOYEE_EMAIL), json=_dispute(ev))
    assert r.json()["deadline"] == "2026-12-15"


def test_only_owner_can_dispute(db_session):
    org, c, ev = published_evaluation(db_session, client)

    r = client.post("/disputes", headers=hdr(MANAGER_EMAIL), json=_dispute(ev))
    assert r.status_code == 400
    assert r.json()["detail"] == "Evaluation does not belong to this employee"

    # HR has no employee record
    assert client.post("/disputes", headers=hdr(HR_EMAIL), json=_dispute(ev)).status_code == 403


def test_unpublished_evaluation_cannot_be_disputed(db_session):
    org = seed_org(db_session)
    t = create_template(db_session, org.hr)
    c = create_cycle(db_session, t, org.hr)
    activate(client, c.id)
    ev = client.put(
        f"/cycles/{c.id}/employees/{org.employee.id}/evaluation",
        headers=hdr(MANAGER_EMAIL),
        json=manager_payload(),
    ).json()

    r = client.post("/disputes", headers=hdr(EMPLOYEE_EMAIL), json=_dispute(ev))
    assert r.status_code == 400


def test_rating_adjusted_recomputes_category(db_session):
    org, c, ev, d = _open_dispute(db_session)
    assert _evaluation(ev)["performance_category"] == "MEETS_EXPECTATIONS"

    r = client.post(f"/disputes/{d['id']}/review", headers=hdr(HR_EMAIL), json={"comments": "Looking into it"})
    assert r.status_code == 200
    assert r.json()["status"] == "UNDER_REVIEW"
    assert r.json()["reviewer_user_id"] == str(org.hr.id)

    r = client.post(
        f"/disputes/{d['id']}/resolve",
        headers=hdr(HR_EMAIL),
        json={"status": "RESOLVED", "resolution_type": "RATING_ADJUSTED", "adjusted_rating": 82, "resolution_notes": "Agreed"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["status"] == "RESOLVED"
    assert r.json()["resolved_at"] is not None

    body = _evaluation(ev)
    assert body["final_rating"] == 82.0
    assert body["performance_category"] == "EXCEEDS_EXPECTATIONS"
    assert body["status"] == "FINALIZED"
    assert _assignment_status(org) == "COMPLETED"

    r = client.post(
        f"/disputes/{d['id']}/resolve",
        headers=hdr(HR_EMAIL),
        json={"status": "REJECTED", "resolution_type": "UPHELD_ORIGINAL"},
    )
    assert r.status_code == 400


def test_rejected_dispute_keeps_rating(db_session):
    org, c, ev, d = _open_dispute(db_session)

    r = client.post(
        f"/disputes/{d['id']}/resolve",
        headers=hdr(HR_EMAIL),
        json={"status": "REJECTED", "resolution_type": "UPHELD_ORIGINAL"},
    )
    assert r.json()["status"] == "REJECTED"

    body = _evaluation(ev)
    assert body["final_rating"] == 60.0
    assert body["status"] == "FINALIZED"


def test_reevaluation_sends_evaluation_back_to_manager(db_session):
    org, c, ev, d = _open_dispute(db_session)

    r = client.post(
        f"/disputes/{d['id']}/resolve",
        headers=hdr(HR_EMAIL),
        json={"status": "RESOLVED", "resolution_type": "REEVALUATION_ORDERED"},
    )
    assert r.status_code == 200

    body = _evaluation(ev)
    assert body["status"] == "DRAFT"
    assert body["published_at"] is None
    assert _assignment_status(org) == "MANAGER_REVIEW_PENDING"

    r = client.put(
        f"/cycles/{c.id}/employees/{org.employee.id}/evaluation",
        headers=hdr(MANAGER_EMAIL),
        json=manager_payload(s1=(4, 4), s2=(4, 4)),
    )
    assert r.status_code == 200, r.text
    assert r.json()["final_rating"] == 80.0
    assert r.json()["status"] == "MANAGER_REVIEW_SUBMITTED"


def test_resolve_requires_hr(db_session):
    org, c, ev, d = _open_dispute(db_session)
    r = client.post(
        f"/disputes/{d['id']}/resolve",
        headers=hdr(MANAGER_EMAIL),
        json={"status": "REJECTED", "resolution_type": "UPHELD_ORIGINAL"},
    )
    assert r.status_code == 403


def test_withdraw(db_session):
    org, c, ev, d = _open_dispute(db_session)

    assert client.post(f"/disputes/{d['id']}/withdraw", headers=hdr(MANAGER_EMAIL)).status_code == 400

    r = client.post(f"/disputes/{d['id']}/withdraw", headers=hdr(EMPLOYEE_EMAIL))
    assert r.status_code == 200
    assert r.json()["status"] == "WITHDRAWN"
    assert r.json()["withdrawn_at"] is not None
    assert _evaluation(ev)["status"] == "PUBLISHED"
    assert _assignment_status(org) == "COMPLETED"

    assert client.post(f"/disputes/{d['id']}/withdraw", headers=hdr(EMPLOYEE_EMAIL)).status_code == 400

    # a new dispute may be raised once the previous one is closed
    assert client.post("/disputes", headers=hdr(EMPLOYEE_EMAIL), json=_dispute(ev)).status_code == 201


def test_withdraw_after_acknowledge_restores_acknowledged(db_session):
    org, c, ev = published_evaluation(db_session, client)
    client.post(f"/evaluations/{ev['id']}/acknowledge", headers=hdr(EMPLOYEE_EMAIL))

    d = client.post("/disputes", headers=hdr(EMPLOYEE_EMAIL), json=_dispute(ev)).json()
    client.post(f"/disputes/{d['id']}/withdraw", headers=hdr(EMPLOYEE_EMAIL))

    assert _evaluation(ev)["status"] == "ACKNOWLEDGED"


def test_escalate(db_session):
    org, c, ev, d = _open_dispute(db_session)
    director = create_user(db_session, "director@local.test", "Director")

    r = client.post(
        f"/disputes/{d['id']}/escalate",
        headers=hdr(HR_EMAIL),
        json={"escalated_to_user_id": str(org.employee.id)},
    )
    assert r.status_code == 404

    r = client.post(
        f"/disputes/{d['id']}/escalate",
        headers=hdr(HR_EMAIL, **{"If-Match": f'"{d["version"]}"'}),
        json={"escalated_to_user_id": str(director.id)},
    )
    assert r.status_code == 200, r.text
    assert r.json()["is_escalated"] is True
    assert r.json()["escalated_to_user_id"] == str(director.id)
    assert r.json()["status"] == "SUBMITTED"

    client.post(f"/disputes/{d['id']}/withdraw", headers=hdr(EMPLOYEE_EMAIL))
    r = client.post(
        f"/disputes/{d['id']}/escalate",
        headers=hdr(HR_EMAIL),
        json={"escalated_to_user_id": str(director.id)},
    )
    assert r.status_code == 400


def test_dispute_visibility_and_listing(db_session):
    org, c, ev, d = _open_dispute(db_session)

    assert client.get(f"/disputes/{d['id']}", headers=hdr(EMPLOYEE_EMAIL)).status_code == 200
    assert client.get(f"/disputes/{d['id']}", headers=hdr(MANAGER_EMAIL)).status_code == 404

    r = client.get(f"/employees/{org.employee.id}/disputes", headers=hdr(EMPLOYEE_EMAIL))
    assert [x["id"] for x in r.json()] == [d["id"]]

    r = client.get(f"/disputes?status=SUBMITTED&cycle_id={c.id}&include_pagination=true", headers=hdr(HR_EMAIL))
    body = r.json()
    assert body["pagination"]["total"] == 1
    assert body["items"][0]["id"] == d["id"]

    assert client.get("/disputes", headers=hdr(EMPLOYEE_EMAIL)).status_code == 403


def test_reevaluation_clears_acknowledgment(db_session):
    org, c, ev = published_evaluation(db_session, client)
    client.post(f"/evaluations/{ev['id']}/acknowledge", headers=hdr(EMPLOYEE_EMAIL), json={"comments": "Fine"})

    d = client.post("/disputes", headers=hdr(EMPLOYEE_EMAIL), json=_dispute(ev)).json()
    r = client.post(
        f"/disputes/{d['id']}/resolve",
        headers=hdr(HR_EMAIL),
        json={"status": "RESOLVED", "resolution_type": "REEVALUATION_ORDERED"},
    )
    assert r.status_code == 200, r.text

    body = _evaluation(ev)
    assert body["acknowledged_at"] is None
    assert body["acknowledged_by_user_id"] is None
    assert body["employee_comments"] is None

    r = client.put(
        f"/cycles/{c.id}/employees/{org.employee.id}/evaluation",
        headers=hdr(MANAGER_EMAIL),
        json=manager_payload(s1=(4, 4), s2=(4, 4)),
    )
    assert r.status_code == 200, r.text
    assert client.post(f"/cycles/{c.id}/publish", headers=hdr(HR_EMAIL)).status_code == 200

    # second round is never acknowledged, so withdrawing lands on PUBLISHED
    d = client.post("/disputes", headers=hdr(EMPLOYEE_EMAIL), json=_dispute(ev)).json()
    r = client.post(f"/disputes/{d['id']}/withdraw", headers=hdr(EMPLOYEE_EMAIL))
    assert r.status_code == 200, r.text

    body = _evaluation(ev)
    assert body["status"] == "PUBLISHED"
    assert body["final_rating"] == 80.0


def test_reevaluation_needs_open_cycle(db_session):
    org, c, ev, d = _open_dispute(db_session)
    assert client.post(f"/cycles/{c.id}/close", headers=hdr(HR_EMAIL)).status_code == 200

    r = client.post(
        f"/disputes/{d['id']}/resolve",
        headers=hdr(HR_EMAIL),
        json={"status": "RESOLVED", "resolution_type": "REEVALUATION_ORDERED"},
    )
    assert r.status_code == 400
    assert r.json()["detail"] == "Re-evaluation needs an open cycle (status: COMPLETED)"

    assert client.get(f"/disputes/{d['id']}", headers=hdr(HR_EMAIL)).json()["status"] == "SUBMITTED"
    assert _evaluation(ev)["status"] == "DISPUTED"

    # other outcomes still close the dispute
    r = client.post(
        f"/disputes/{d['id']}/resolve",
        headers=hdr(HR_EMAIL),
        json={"status": "REJECTED", "resolution_type": "UPHELD_ORIGINAL"},
    )
    assert r.status_code == 200, r.text
    assert _evaluation(ev)["status"] == "FINALIZED"
