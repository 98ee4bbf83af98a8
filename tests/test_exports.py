import csv
import io

from fastapi.testclient import TestClient

from appraisal.main import app
from tests.helpers import (
    EMPLOYEE_EMAIL,
    HR_EMAIL,
    MANAGER_EMAIL,
    hdr,
    published_evaluation,
)

client = TestClient(app)


def _rows(r):
    return list(csv.DictReader(io.StringIO(r.text)))


def test_export_appraisal_summaries(db_session):
    org, c, ev = published_evaluation(db_session, client)

    r = client.get(f"/exports/appraisal-summaries?cycle_id={c.id}", headers=hdr(HR_EMAIL))
    assert r.status_code == 200, r.text
    assert r.headers["content-type"].startswith("text/csv")
    assert "attachment; filename=appraisal_summaries_" in r.headers["content-disposition"]

    rows = {row["employee_number"]: row for row in _rows(r)}
    # E300 was scored and published; E200 is still waiting on the head
    assert set(rows) == {"E200", "E300"}

    scored = rows["E300"]
    assert scored["department_code"] == "ENG"
    assert scored["cycle_code"] == "ANNUAL-2026"
    assert scored["template_code"] == "ANNUAL-STD"
    assert scored["reviewer_number"] == "E200"
    assert scored["assignment_status"] == "COMPLETED"
    assert scored["evaluation_status"] == "PUBLISHED"
    assert float(scored["final_rating"]) == 60.0
    assert scored["performance_category"] == "MEETS_EXPECTATIONS"
    assert scored["published_at"] != ""

    pending = rows["E200"]
    assert pending["evaluation_status"] == ""
    assert pending["final_rating"] == ""


def test_export_filters(db_session):
    org, c, ev = published_evaluation(db_session, client)

    r = client.get("/exports/appraisal-summaries?status=COMPLETED", headers=hdr(HR_EMAIL))
    assert [row["employee_number"] for row in _rows(r)] == ["E300"]

    r = client.get(f"/exports/appraisal-summaries?employee_id={org.manager.id}", headers=hdr(HR_EMAIL))
    assert [row["employee_number"] for row in _rows(r)] == ["E200"]

    r = client.get(f"/exports/appraisal-summaries?department_id={org.department.id}", headers=hdr(HR_EMAIL))
    assert len(_rows(r)) == 2

    # header only
    r = client.get("/exports/appraisal-summaries?status=DISPUTED", headers=hdr(HR_EMAIL))
    assert _rows(r) == []
    assert r.text.startswith("employee_number,employee_name,")


def test_export_requires_hr(db_session):
    published_evaluation(db_session, client)

    assert client.get("/exports/appraisal-summaries", headers=hdr(MANAGER_EMAIL)).status_code == 403
    assert client.get("/exports/appraisal-summaries", headers=hdr(EMPLOYEE_EMAIL)).status_code == 403
