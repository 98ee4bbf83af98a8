import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from appraisal.core.audit import log_event
from appraisal.core.config import settings
from appraisal.core.errors import ConflictError, ValidationFailedError
from appraisal.core.loaders import get_template_or_404
from appraisal.core.optimistic_lock import check_if_match, commit_or_409, set_etag
from appraisal.core.rbac import require_hr
from appraisal.core.security import get_current_user
from appraisal.core.template_rules import validate_template
from appraisal.db.session import get_db
from appraisal.models.appraisal_cycle import AppraisalCycle
from appraisal.models.appraisal_template import AppraisalTemplate
from appraisal.models.user import User
from appraisal.schemas.appraisal_template import TemplateCreate, TemplateOut, TemplateUpdate
from appraisal.schemas.pagination import paginated

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["appraisal-templates"])

REQUIRED_FIELDS = (
    "code",
    "name",
    "appraisal_type",
    "rating_scale",
    "sections",
    "calculation_method",
    "requires_self_assessment",
    "dispute_period_days",
    "is_active",
)


def to_out(t: AppraisalTemplate) -> TemplateOut:
    return TemplateOut(
        id=str(t.id),
        code=t.code,
        name=t.name,
        description=t.description,
        appraisal_type=t.appraisal_type,
        applicable_department_ids=list(t.applicable_department_ids or []),
        applicable_position_ids=list(t.applicable_position_ids or []),
        rating_scale=t.rating_scale,
        sections=t.sections,
        calculation_method=t.calculation_method,
        passing_score=t.passing_score,
        requires_self_assessment=t.requires_self_assessment,
        dispute_period_days=t.dispute_period_days,
        is_active=t.is_active,
        version=t.version,
        created_by_user_id=str(t.created_by_user_id) if t.created_by_user_id else None,
        updated_by_user_id=str(t.updated_by_user_id) if t.updated_by_user_id else None,
        created_at=t.created_at,
        updated_at=t.updated_at,
    )


def _assert_code_free(db: Session, code: str, exclude_id: UUID | None = None) -> None:
    q = db.query(AppraisalTemplate.id).filter(AppraisalTemplate.code == code)
    if exclude_id is not None:
        q = q.filter(AppraisalTemplate.id != exclude_id)
    if q.first():
        raise ConflictError(f"Template code '{code}' already exists")


@router.get("")
def list_templates(
    active_only: bool = Query(default=False, description="Only return active templates"),
    search: str | None = Query(default=None, description="Search by code or name"),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    query = db.query(AppraisalTemplate)

    if active_only:
        query = query.filter(AppraisalTemplate.is_active.is_(True))
    if search:
        term = f"%{search.lower()}%"
        query = query.filter(
            AppraisalTemplate.name.ilike(term) | AppraisalTemplate.code.ilike(term)
        )

    total = query.count()
    rows = query.order_by(AppraisalTemplate.created_at.desc()).offset(offset).limit(limit).all()
    items = [to_out(t) for t in rows]

    return paginated(items, total=total, limit=limit, offset=offset, include_pagination=include_pagination)


@router.get("/{template_id}", response_model=TemplateOut)
def get_template(
    template_id: UUID,
    response: Response,
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    t = get_template_or_404(db, template_id)
    set_etag(response, t.version)
    return to_out(t)


@router.post("", response_model=TemplateOut, status_code=status.HTTP_201_CREATED)
def create_template(
    payload: TemplateCreate,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    sections = [s.model_dump(mode="json") for s in payload.sections]
    rating_scale = payload.rating_scale.model_dump(mode="json")
    validate_template(sections, rating_scale)

    code = payload.code.strip().upper()
    _assert_code_free(db, code)

    t = AppraisalTemplate(
        code=code,
        name=payload.name,
        description=payload.description,
        appraisal_type=payload.appraisal_type.value,
        applicable_department_ids=[str(i) for i in payload.applicable_department_ids],
        applicable_position_ids=[str(i) for i in payload.applicable_position_ids],
        rating_scale=rating_scale,
        sections=sections,
        calculation_method=payload.calculation_method.value,
        passing_score=payload.passing_score,
        requires_self_assessment=payload.requires_self_assessment,
        dispute_period_days=(
            payload.dispute_period_days
            if payload.dispute_period_days is not None
            else settings.DEFAULT_DISPUTE_WINDOW_DAYS
        ),
        is_active=True,
        created_by_user_id=current_user.id,
        updated_by_user_id=current_user.id,
    )
    db.add(t)
    db.flush()

    log_event(
        db=db,
        actor=current_user,
        action="TEMPLATE_CREATED",
        entity_type="appraisal_template",
        entity_id=t.id,
        metadata={"code": code, "sections": len(sections)},
    )

    commit_or_409(db, integrity_detail=f"Template code '{code}' already exists")
    db.refresh(t)
    logger.info("Template %s created by %s", t.code, current_user.email)
    set_etag(response, t.version)
    return to_out(t)


@router.patch("/{template_id}", response_model=TemplateOut)
def update_template(
    template_id: UUID,
    payload: TemplateUpdate,
    response: Response,
    if_match: str | None = Header(default=None, alias="If-Match"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    t = get_template_or_404(db, template_id)
    check_if_match(if_match, t.version)

    data = payload.model_dump(exclude_unset=True, mode="json")

    cleared = [f for f, v in data.items() if v is None and f in REQUIRED_FIELDS]
    if cleared:
        raise ValidationFailedError(
            "Template update is invalid",
            errors=[{"field": f, "code": "required", "message": f"{f} cannot be cleared"} for f in cleared],
        )
    for field in ("applicable_department_ids", "applicable_position_ids"):
        if field in data and data[field] is None:
            data[field] = []

    # Any structural change is checked against the merged template
    if "sections" in data or "rating_scale" in data:
        validate_template(
            data.get("sections", t.sections),
            data.get("rating_scale", t.rating_scale),
        )

    if "code" in data:
        data["code"] = data["code"].strip().upper()
        _assert_code_free(db, data["code"], exclude_id=t.id)

    for field, value in data.items():
        setattr(t, field, value)
    t.updated_by_user_id = current_user.id

    log_event(
        db=db,
        actor=current_user,
        action="TEMPLATE_UPDATED",
        entity_type="appraisal_template",
        entity_id=t.id,
        metadata={"fields": sorted(data.keys()), "from_version": t.version},
    )

    commit_or_409(db, integrity_detail="Template code already exists")
    db.refresh(t)
    set_etag(response, t.version)
    return to_out(t)


@router.delete("/{template_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_template(
    template_id: UUID,
    hard: bool = Query(default=False, description="Remove the row instead of deactivating"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_hr),
):
    t = get_template_or_404(db, template_id)

    if hard:
        in_use = db.query(AppraisalCycle.id).filter(AppraisalCycle.template_id == t.id).first()
        if in_use:
            raise ConflictError("Template is referenced by a cycle and cannot be deleted")

        log_event(
            db=db,
            actor=current_user,
            action="TEMPLATE_DELETED",
            entity_type="appraisal_template",
            entity_id=t.id,
            metadata={"code": t.code},
        )
        db.delete(t)
    else:
        t.is_active = False
        t.updated_by_user_id = current_user.id
        log_event(
            db=db,
            actor=current_user,
            action="TEMPLATE_DEACTIVATED",
            entity_type="appraisal_template",
            entity_id=t.id,
            metadata={"code": t.code},
        )

    commit_or_409(db)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
