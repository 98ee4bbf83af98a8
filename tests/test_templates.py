from fastapi.testclient import TestClient

from appraisal.main import app
from tests.helpers import (
    HR_EMAIL,
    MANAGER_EMAIL,
    create_cycle,
    create_template,
    create_user,
    grant_role,
    hdr,
    template_payload,
    template_sections,
)

client = TestClient(app)


def _hr(db_session):
    hr = create_user(db_session, HR_EMAIL, "HR")
    grant_role(db_session, hr, "HR")
    return hr


def test_create_template_normalizes_code_and_defaults(db_session):
    _hr(db_session)

    r = client.post("/templates", headers=hdr(HR_EMAIL), json=template_payload(code=" annual-std "))
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["code"] == "ANNUAL-STD"
    assert body["dispute_period_days"] == 7
    assert body["is_active"] is True
    assert body["version"] == 1
    assert r.headers["ETag"] == '"1"'


def test_create_template_rejects_bad_weights(db_session):
    _hr(db_session)

    payload = template_payload(sections=template_sections(section_weights=(60, 30)))
    r = client.post("/templates", headers=hdr(HR_EMAIL), json=payload)
    assert r.status_code == 422
    detail = r.json()["detail"]
    assert detail["message"] == "Template validation failed"
    assert {"field": "sections", "code": "weight_sum"}.items() <= detail["errors"][0].items()


def test_create_template_duplicate_code_is_conflict(db_session):
    _hr(db_session)

    assert client.post("/templates", headers=hdr(HR_EMAIL), json=template_payload()).status_code == 201
    r = client.post("/templates", headers=hdr(HR_EMAIL), json=template_payload(code="annual-std"))
    assert r.status_code == 409


def test_template_mutations_require_hr(db_session):
    create_user(db_session, MANAGER_EMAIL, "Manager")

    r = client.post("/templates", headers=hdr(MANAGER_EMAIL), json=template_payload())
    assert r.status_code == 403

    r = client.post("/templates", json=template_payload())
    assert r.status_code == 401


def test_any_user_can_read_templates(db_session):
    hr = _hr(db_session)
    create_user(db_session, MANAGER_EMAIL, "Manager")
    t = create_template(db_session, hr)
    create_template(db_session, hr, code="PROBATION", is_active=False)

    r = client.get("/templates", headers=hdr(MANAGER_EMAIL))
    assert r.status_code == 200
    assert len(r.json()) == 2

    r = client.get("/templates?active_only=true&include_pagination=true", headers=hdr(MANAGER_EMAIL))
    body = r.json()
    assert [x["code"] for x in body["items"]] == ["ANNUAL-STD"]
    assert body["pagination"]["total"] == 1

    r = client.get(f"/templates/{t.id}", headers=hdr(MANAGER_EMAIL))
    assert r.status_code == 200
    assert r.headers["ETag"] == f'"{t.version}"'


def test_update_template_revalidates_and_checks_version(db_session):
    hr = _hr(db_session)
    t = create_template(db_session, hr)

    r = client.patch(
        f"/templates/{t.id}",
        headers=hdr(HR_EMAIL),
        json={"rating_scale": {"min_value": 5, "max_value": 1}},
    )
    assert r.status_code == 422

    r = client.patch(f"/templates/{t.id}", headers=hdr(HR_EMAIL, **{"If-Match": '"99"'}), json={"name": "New"})
    assert r.status_code == 409
    assert r.json()["detail"]["message"] == "Stale version"

    r = client.patch(
        f"/templates/{t.id}",
        headers=hdr(HR_EMAIL, **{"If-Match": f'"{t.version}"'}),
        json={"name": "Renamed", "passing_score": 70},
    )
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["name"] == "Renamed"
    assert body["passing_score"] == 70
    assert body["version"] == 2


def test_update_template_rejects_clearing_required_fields(db_session):
    hr = _hr(db_session)
    t = create_template(db_session, hr)

    r = client.patch(f"/templates/{t.id}", headers=hdr(HR_EMAIL), json={"rating_scale": None})
    assert r.status_code == 422
    assert r.json()["detail"]["errors"][0]["field"] == "rating_scale"

    r = client.patch(f"/templates/{t.id}", headers=hdr(HR_EMAIL), json={"name": None, "is_active": None})
    assert r.status_code == 422
    assert sorted(e["field"] for e in r.json()["detail"]["errors"]) == ["is_active", "name"]

    # nullable fields may still be cleared
    r = client.patch(
        f"/templates/{t.id}",
        headers=hdr(HR_EMAIL),
        json={"description": None, "passing_score": None, "applicable_department_ids": None},
    )
    assert r.status_code == 200, r.text
    assert r.json()["passing_score"] is None
    assert r.json()["applicable_department_ids"] == []


def test_soft_and_hard_delete(db_session):
    hr = _hr(db_session)
    used = create_template(db_session, hr)
    create_cycle(db_session, used, hr)
    unused = create_template(db_session, hr, code="UNUSED")

    r = client.delete(f"/templates/{used.id}?hard=true", headers=hdr(HR_EMAIL))
    assert r.status_code == 409

    r = client.delete(f"/templates/{used.id}", headers=hdr(HR_EMAIL))
    assert r.status_code == 204
    assert client.get(f"/templates/{used.id}", headers=hdr(HR_EMAIL)).json()["is_active"] is False

    r = client.delete(f"/templates/{unused.id}?hard=true", headers=hdr(HR_EMAIL))
    assert r.status_code == 204
    assert client.get(f"/templates/{unused.id}", headers=hdr(HR_EMAIL)).status_code == 404
