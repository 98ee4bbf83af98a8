from fastapi.testclient import TestClient

from appraisal.core.rbac import RoleName, has_role
from appraisal.main import app
from tests.helpers import HR_EMAIL, MANAGER_EMAIL, create_user, grant_role, hdr

client = TestClient(app)


def test_has_role(db_session):
    u = create_user(db_session, HR_EMAIL, "HR")
    assert has_role(db_session, u, RoleName.HR) is False

    grant_role(db_session, u, "HR")
    assert has_role(db_session, u, RoleName.HR) is True
    assert has_role(db_session, u, RoleName.MANAGER) is False


def test_hr_only_endpoint_forbidden_for_manager(db_session):
    u = create_user(db_session, MANAGER_EMAIL, "Manager")
    grant_role(db_session, u, "MANAGER")

    r = client.get("/audit", headers=hdr(MANAGER_EMAIL))
    assert r.status_code == 403
    assert "HR" in r.json()["detail"]


def test_dev_auth_email_is_case_insensitive(db_session):
    u = create_user(db_session, HR_EMAIL, "HR")
    grant_role(db_session, u, "HR")

    r = client.get("/audit", headers=hdr("HR@Local.Test"))
    assert r.status_code == 200


def test_unknown_or_inactive_user_is_unauthorized(db_session):
    u = create_user(db_session, HR_EMAIL, "HR")
    grant_role(db_session, u, "HR")
    u.is_active = False
    db_session.commit()

    assert client.get("/audit", headers=hdr(HR_EMAIL)).status_code == 401
    assert client.get("/audit", headers=hdr("nobody@local.test")).status_code == 401
    assert client.get("/audit").status_code == 401
