"""Design templates shared across a team."""

import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from app.db.postgres import get_db
from app.dependencies import get_team_resolver, team_ids_or_404
from app.models.design import DEFAULT_DESIGN
from app.models.template import Template
from app.models.user import User
from app.schemas.template import TemplateCreate, TemplateUpdate, TemplateResponse
from app.security import require_permission
from app.services.team import TeamResolver
from app.utils.tenant import team_filter, set_owner

router = APIRouter()
logger = logging.getLogger(__name__)


def build_template_response(template: Template, owner_email: str, current_user: User) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        name=template.name,
        description=template.description,
        owner=owner_email,
        is_owner=template.owner_id == current_user.id,
        design_options=template.design_options(),
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


async def get_owned_template(db: AsyncSession, template_id: str, user: User) -> Template:
    result = await db.execute(
        select(Template).where(Template.id == template_id, Template.owner_id == user.id)
    )
    template = result.scalar_one_or_none()
    if not template:
        raise HTTPException(status_code=404, detail="Template not found")
    return template


@router.get("", response_model=list[TemplateResponse])
async def list_templates(
    current_user: User = Depends(require_permission("view_templates")),
    team_resolver: TeamResolver = Depends(get_team_resolver),
    db: AsyncSession = Depends(get_db),
):
    """List templates owned by anyone on the caller's team."""
    try:
        team_ids = await team_resolver.team_ids_for(current_user.id)
        result = await db.execute(
            select(Template, User.email)
            .join(User, Template.owner_id == User.id)
            .where(team_filter(Template, team_ids))
            .order_by(Template.created_at.desc())
        )
        rows = result.all()
    except Exception:
        logger.exception("Failed to fetch templates for user %s", current_user.id)
        raise HTTPException(status_code=500, detail="Failed to fetch templates")

    return [build_template_response(t, email, current_user) for t, email in rows]


@router.post("", response_model=TemplateResponse, status_code=status.HTTP_201_CREATED)
async def create_template(
    data: TemplateCreate,
    current_user: User = Depends(require_permission("manage_templates")),
    db: AsyncSession = Depends(get_db),
):
    template = Template(name=data.name, description=data.description)
    template.apply_design({**DEFAULT_DESIGN, **data.design_options.model_dump(exclude_none=True)})
    set_owner(template, current_user)

    db.add(template)
    await db.commit()
    await db.refresh(template)
    return build_template_response(template, current_user.email, current_user)


@router.get("/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: str,
    current_user: User = Depends(require_permission("view_templates")),
    team_resolver: TeamResolver = Depends(get_team_resolver),
    db: AsyncSession = Depends(get_db),
):
    team_ids = await team_ids_or_404(team_resolver, current_user.id)
    result = await db.execute(
        select(Template, User.email)
        .join(User, Template.owner_id == User.id)
        .where(Template.id == template_id, team_filter(Template, team_ids))
    )
    row = result.first()
    if not row:
        raise HTTPException(status_code=404, detail="Template not found")

    template, owner_email = row
    return build_template_response(template, owner_email, current_user)


@router.put("/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: str,
    data: TemplateUpdate,
    current_user: User = Depends(require_permission("manage_templates")),
    db: AsyncSession = Depends(get_db),
):
    template = await get_owned_template(db, template_id, current_user)

    if data.name is not None:
        template.name = data.name
    if data.description is not None:
        template.description = data.description
    if data.design_options:
        template.apply_design(data.design_options.model_dump())

    await db.commit()
    await db.refresh(template)
    return build_template_response(template, current_user.email, current_user)


@router.delete("/{template_id}")
async def delete_template(
    template_id: str,
    current_user: User = Depends(require_permission("manage_templates")),
    db: AsyncSession = Depends(get_db),
):
    template = await get_owned_template(db, template_id, current_user)
    await db.delete(template)
    await db.commit()
    return {"status": "deleted", "template_id": template_id}
