"""
Seed a small org hierarchy, HR / manager / employee users and a demo
template + DRAFT cycle.

    python -m scripts.seed_demo
"""
from datetime import date

from sqlalchemy.orm import Session

from appraisal.core.rbac import RoleName
from appraisal.db.session import SessionLocal
from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.appraisal_template import AppraisalTemplate
from appraisal.models.employee import Employee
from appraisal.models.organization import Department, Position
from appraisal.models.rbac import Role, UserRole
from appraisal.models.user import User

DEMO_SECTIONS = [
    {
        "id": "delivery",
        "name": "Delivery",
        "description": "Quality and timeliness of work",
        "weight": 60,
        "order": 1,
        "criteria": [
            {"id": "quality", "name": "Quality", "weight": 50, "is_required": True, "allow_comments": True},
            {"id": "timeliness", "name": "Timeliness", "weight": 50, "is_required": True, "allow_comments": True},
        ],
    },
    {
        "id": "behaviour",
        "name": "Behaviour",
        "description": "Collaboration and attendance",
        "weight": 40,
        "order": 2,
        "criteria": [
            {"id": "teamwork", "name": "Teamwork", "weight": 50, "is_required": True, "allow_comments": True},
            {"id": "punctuality", "name": "Punctuality", "weight": 50, "is_required": False, "allow_comments": True},
        ],
    },
]

DEMO_SCALE = {
    "type": "NUMERIC",
    "min_value": 1,
    "max_value": 5,
    "labels": [
        {"value": 1, "label": "Poor"},
        {"value": 2, "label": "Fair"},
        {"value": 3, "label": "Good"},
        {"value": 4, "label": "Very Good"},
        {"value": 5, "label": "Outstanding"},
    ],
}


def get_or_create_user(db: Session, email: str, full_name: str) -> User:
    u = db.query(User).filter(User.email == email).one_or_none()
    if u:
        return u
    u = User(email=email, full_name=full_name, is_active=True)
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def get_or_create_role(db: Session, name: str) -> Role:
    r = db.query(Role).filter(Role.name == name).one_or_none()
    if r:
        return r
    r = Role(name=name)
    db.add(r)
    db.commit()
    db.refresh(r)
    return r


def ensure_user_role(db: Session, user_id, role_id):
    ur = (
        db.query(UserRole)
        .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
        .one_or_none()
    )
    if ur:
        return ur
    ur = UserRole(user_id=user_id, role_id=role_id)
    db.add(ur)
    db.commit()
    db.refresh(ur)
    return ur


def get_or_create_department(db: Session, code: str, name: str) -> Department:
    d = db.query(Department).filter(Department.code == code).one_or_none()
    if d:
        return d
    d = Department(code=code, name=name)
    db.add(d)
    db.commit()
    db.refresh(d)
    return d


def get_or_create_position(db: Session, code: str, title: str, department_id, reports_to_position_id=None) -> Position:
    p = db.query(Position).filter(Position.code == code).one_or_none()
    if p:
        return p
    p = Position(
        code=code,
        title=title,
        department_id=department_id,
        reports_to_position_id=reports_to_position_id,
    )
    db.add(p)
    db.commit()
    db.refresh(p)
    return p


def get_or_create_employee(
    db: Session,
    employee_number: str,
    display_name: str,
    *,
    department_id,
    position_id,
    user_id=None,
) -> Employee:
    e = db.query(Employee).filter(Employee.employee_number == employee_number).one_or_none()
    if e:
        return e
    e = Employee(
        employee_number=employee_number,
        display_name=display_name,
        status="ACTIVE",
        primary_department_id=department_id,
        primary_position_id=position_id,
        user_id=user_id,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def get_or_create_template(db: Session, created_by_user_id) -> AppraisalTemplate:
    t = db.query(AppraisalTemplate).filter(AppraisalTemplate.code == "ANNUAL-STD").one_or_none()
    if t:
        return t
    t = AppraisalTemplate(
        code="ANNUAL-STD",
        name="Annual Standard Appraisal",
        appraisal_type="ANNUAL",
        applicable_department_ids=[],
        applicable_position_ids=[],
        rating_scale=DEMO_SCALE,
        sections=DEMO_SECTIONS,
        calculation_method="WEIGHTED_AVERAGE",
        passing_score=60,
        requires_self_assessment=True,
        dispute_period_days=7,
        is_active=True,
        created_by_user_id=created_by_user_id,
        updated_by_user_id=created_by_user_id,
    )
    db.add(t)
    db.commit()
    db.refresh(t)
    return t


def get_or_create_cycle(db: Session, template_id, created_by_user_id) -> AppraisalCycle:
    c = db.query(AppraisalCycle).filter(AppraisalCycle.code == "ANNUAL-2026").one_or_none()
    if c:
        return c
    c = AppraisalCycle(
        code="ANNUAL-2026",
        name="Annual Appraisal 2026",
        appraisal_type="ANNUAL",
        template_id=template_id,
        start_date=date(2026, 10, 1),
        end_date=date(2026, 12, 31),
        self_assessment_deadline=date(2026, 10, 31),
        manager_review_deadline=date(2026, 11, 30),
        status="DRAFT",
        created_by_user_id=created_by_user_id,
        updated_by_user_id=created_by_user_id,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def main():
    db = SessionLocal()
    try:
        # ---- Roles ----
        hr_role = get_or_create_role(db, RoleName.HR.value)
        manager_role = get_or_create_role(db, RoleName.MANAGER.value)
        employee_role = get_or_create_role(db, RoleName.EMPLOYEE.value)

        # ---- Users ----
        hr_user = get_or_create_user(db, "hr@local.test", "HR Local")
        manager_user = get_or_create_user(db, "manager@local.test", "Manager Local")
        employee_user = get_or_create_user(db, "employee@local.test", "Employee Local")

        ensure_user_role(db, hr_user.id, hr_role.id)
        ensure_user_role(db, manager_user.id, manager_role.id)
        ensure_user_role(db, employee_user.id, employee_role.id)

        # ---- Org ----
        eng = get_or_create_department(db, "ENG", "Engineering")
        head = get_or_create_position(db, "ENG-HEAD", "Head of Engineering", eng.id)
        lead = get_or_create_position(db, "ENG-LEAD", "Engineering Lead", eng.id, reports_to_position_id=head.id)
        dev = get_or_create_position(db, "ENG-DEV", "Software Engineer", eng.id, reports_to_position_id=lead.id)
        if eng.head_position_id != head.id:
            eng.head_position_id = head.id
            db.commit()

        # ---- Employees ----
        get_or_create_employee(db, "E100", "Head Local", department_id=eng.id, position_id=head.id)
        manager_emp = get_or_create_employee(
            db, "E200", "Manager Local", department_id=eng.id, position_id=lead.id, user_id=manager_user.id
        )
        employee_emp = get_or_create_employee(
            db, "E300", "Employee Local", department_id=eng.id, position_id=dev.id, user_id=employee_user.id
        )

        # ---- Template + cycle (DRAFT) ----
        template = get_or_create_template(db, created_by_user_id=hr_user.id)
        cycle = get_or_create_cycle(db, template.id, created_by_user_id=hr_user.id)

        print("\n=== Demo Seed Complete ===")
        print("Users (use as X-User-Email header):")
        print(f"  hr:       {hr_user.email}")
        print(f"  manager:  {manager_user.email}")
        print(f"  employee: {employee_user.email}")

        print("\nTemplate:")
        print(f"  template_id: {template.id}  ({template.code})")

        print("\nCycle:")
        print(f"  cycle_id: {cycle.id}")
        print(f"  status:   {cycle.status}")

        print("\nEmployees:")
        print(f"  manager_employee_id:  {manager_emp.id}")
        print(f"  employee_employee_id: {employee_emp.id}")

        print("\nNext actions:")
        print("  1) (HR) Activate: POST /cycles/{cycle_id}/activate")
        print("  2) (Employee) Self-assess: POST /cycles/{cycle_id}/employees/{employee_id}/self-assessment")
        print("  3) (Manager) Evaluate: PUT /cycles/{cycle_id}/employees/{employee_id}/evaluation")
        print("  4) (HR) Publish: POST /cycles/{cycle_id}/publish")
        print("  5) (Employee) Acknowledge: POST /evaluations/{evaluation_id}/acknowledge")
        print()

    finally:
        db.close()


if __name__ == "__main__":
    main()
