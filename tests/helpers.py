from datetime import date
from types import SimpleNamespace

from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.appraisal_template import AppraisalTemplate
from appraisal.models.employee import Employee
from appraisal.models.organization import Department, Position
from appraisal.models.rbac import Role, UserRole
from appraisal.models.user import User

HR_EMAIL = "hr@local.test"
MANAGER_EMAIL = "manager@local.test"
EMPLOYEE_EMAIL = "employee@local.test"


def hdr(email: str, **extra) -> dict:
    return {"X-User-Email": email, **extra}


def ensure_role(db, name: str) -> Role:
    r = db.query(Role).filter(Role.name == name).one_or_none()
    if r:
        return r
    r = Role(name=name)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r

def create_user(db, email: str, full_name="User") -> User:
    u = User(email=email, full_name=full_name, is_active=True)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u

def grant_role(db, user: User, role_name: str):
    role = ensure_role(db, role_name)
    exists = db.query(UserRole).filter(UserRole.user_id == user.id, UserRole.role_id == role.id).one_or_none()
    if not exists:
        db.add(UserRole(user_id=user.id, role_id=role.id))
        db.commit()

def create_department(db, code: str, name: str | None = None) -> Department:
    d = Department(code=code, name=name or code)
    db.add(d)
    db.commit()
    db.refresh(d)
    return d

def create_position(db, code: str, department: Department | None = None, reports_to: Position | None = None) -> Position:
    p = Position(
        code=code,
        title=code.title(),
        department_id=department.id if department else None,
        reports_to_position_id=reports_to.id if reports_to else None,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p

def create_employee(
    db,
    employee_number: str,
    display_name: str,
    user: User | None = None,
    *,
    department: Department | None = None,
    position: Position | None = None,
    supervisor_position: Position | None = None,
    status: str = "ACTIVE",
) -> Employee:
    e = Employee(
        employee_number=employee_number,
        display_name=display_name,
        user_id=(user.id if user else None),
        status=status,
        primary_department_id=department.id if department else None,
        primary_position_id=position.id if position else None,
        supervisor_position_id=supervisor_position.id if supervisor_position else None,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def template_sections(section_weights=(60, 40), criterion_weights=(50, 50)) -> list[dict]:
    """Two sections "s1"/"s2", each with criteria "s1c1", "s1c2", ..."""
    sections = []
    for i, sw in enumerate(section_weights, start=1):
        sections.append(
            {
                "id": f"s{i}",
                "name": f"Section {i}",
                "weight": sw,
                "order": i,
                "criteria": [
                    {"id": f"s{i}c{j}", "name": f"Criterion {i}.{j}", "weight": cw}
                    for j, cw in enumerate(criterion_weights, start=1)
                ],
            }
        )
    return sections


def rating_scale(min_value=1, max_value=5) -> dict:
    return {
        "type": "NUMERIC",
        "min_value": min_value,
        "max_value": max_value,
        "labels": [
            {"value": 1, "label": "Poor"},
            {"value": 3, "label": "Good"},
            {"value": 5, "label": "Outstanding"},
        ],
    }


def template_payload(code="ANNUAL-STD", **overrides) -> dict:
    payload = {
        "code": code,
        "name": "Annual Standard",
        "appraisal_type": "ANNUAL",
        "rating_scale": rating_scale(),
        "sections": template_sections(),
    }
    payload.update(overrides)
    return payload


def create_template(db, created_by: User | None = None, *, code="ANNUAL-STD", **overrides) -> AppraisalTemplate:
    values = dict(
        code=code,
        name="Annual Standard",
        appraisal_type="ANNUAL",
        applicable_department_ids=[],
        applicable_position_ids=[],
        rating_scale=rating_scale(),
        sections=template_sections(),
        calculation_method="WEIGHTED_AVERAGE",
        requires_self_assessment=False,
        dispute_period_days=7,
        is_active=True,
        created_by_user_id=created_by.id if created_by else None,
    )
    values.update(overrides)
    t = AppraisalTemplate(**values)
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def cycle_payload(template_id, code="ANNUAL-2026", **overrides) -> dict:
    payload = {
        "code": code,
        "name": "Annual 2026",
        "template_id": str(template_id),
        "start_date": "2026-01-01",
        "end_date": "2026-12-31",
        "manager_review_deadline": "2026-11-30",
    }
    payload.update(overrides)
    return payload


def create_cycle(db, template: AppraisalTemplate, created_by: User | None = None, *, code="ANNUAL-2026", status="DRAFT", **overrides) -> AppraisalCycle:
    values = dict(
        code=code,
        name="Annual 2026",
        appraisal_type=template.appraisal_type,
        template_id=template.id,
        start_date=date(2026, 1, 1),
        end_date=date(2026, 12, 31),
        manager_review_deadline=date(2026, 11, 30),
        status=status,
        created_by_user_id=created_by.id if created_by else None,
    )
    values.update(overrides)
    c = AppraisalCycle(**values)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def seed_org(db) -> SimpleNamespace:
    """
    ENG department:
      HEAD (E100, no login) <- LEAD (E200, manager@) <- DEV (E300, employee@)
    plus an HR user with no employee record.
    """
    hr = create_user(db, HR_EMAIL, "HR")
    grant_role(db, hr, "HR")

    manager_user = create_user(db, MANAGER_EMAIL, "Manager")
    grant_role(db, manager_user, "MANAGER")
    employee_user = create_user(db, EMPLOYEE_EMAIL, "Employee")
    grant_role(db, employee_user, "EMPLOYEE")

    eng = create_department(db, "ENG", "Engineering")
    head_pos = create_position(db, "HEAD", eng)
    lead_pos = create_position(db, "LEAD", eng, reports_to=head_pos)
    dev_pos = create_position(db, "DEV", eng, reports_to=lead_pos)
    eng.head_position_id = head_pos.id
    db.commit()

    head = create_employee(db, "E100", "Head", department=eng, position=head_pos)
    manager = create_employee(db, "E200", "Manager", manager_user, department=eng, position=lead_pos)
    employee = create_employee(db, "E300", "Employee", employee_user, department=eng, position=dev_pos)

    return SimpleNamespace(
        hr=hr,
        manager_user=manager_user,
        employee_user=employee_user,
        department=eng,
        head_position=head_pos,
        lead_position=lead_pos,
        dev_position=dev_pos,
        head=head,
        manager=manager,
        employee=employee,
    )


def manager_payload(s1=(5, 5), s2=(5, 5), **extra) -> dict:
    """Ratings per criterion for the two-section template; None = not rated."""
    payload = {
        "sections": [
            {
                "section_id": "s1",
                "criteria": [{"criterion_id": f"s1c{j}", "rating": r} for j, r in enumerate(s1, start=1)],
            },
            {
                "section_id": "s2",
                "criteria": [{"criterion_id": f"s2c{j}", "rating": r} for j, r in enumerate(s2, start=1)],
            },
        ],
        "strengths": "Consistent delivery",
    }
    payload.update(extra)
    return payload


def activate(client, cycle_id) -> dict:
    r = client.post(f"/cycles/{cycle_id}/activate", headers=hdr(HR_EMAIL))
    assert r.status_code == 200, r.text
    return r.json()


def published_evaluation(db, client, **template_overrides) -> tuple[SimpleNamespace, AppraisalCycle, dict]:
    """Org + active cycle + manager evaluation for E300 (all 3/5 = 60.0), published by HR."""
    org = seed_org(db)
    template = create_template(db, org.hr, **template_overrides)
    cycle = create_cycle(db, template, org.hr)
    activate(client, cycle.id)

    r = client.put(
        f"/cycles/{cycle.id}/employees/{org.employee.id}/evaluation",
        headers=hdr(MANAGER_EMAIL),
        json=manager_payload(s1=(3, 3), s2=(3, 3)),
    )
    assert r.status_code == 200, r.text

    r = client.post(f"/cycles/{cycle.id}/publish", headers=hdr(HR_EMAIL))
    assert r.status_code == 200, r.text

    r = client.get(f"/cycles/{cycle.id}/employees/{org.employee.id}/evaluation", headers=hdr(HR_EMAIL))
    assert r.status_code == 200, r.text
    return org, cycle, r.json()
