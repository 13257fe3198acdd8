from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trackle.base_microservice import BaseMicroservice, get_db_session, parse_pagination
from trackle.auth.jwt import TokenData
from trackle.auth.middleware import get_current_user
from trackle.templates.service import TemplateService, TemplateCreate

router = APIRouter(tags=["templates"])
base_service = BaseMicroservice("trackle.templates")


@router.post("")
async def create_template(
    template_data: TemplateCreate,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """Create a template with its exercises for the current user."""
    template = await TemplateService.create_template(db, token_data.user_id, template_data)
    base_service.log_event("template.created", {
        "id": template.id,
        "user_id": token_data.user_id,
        "exercises": len(template.exercises)
    })
    return base_service.api_response(data=template, message="Template created successfully", status_code=201)


@router.get("")
async def list_templates(
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    page_num, limit_num = parse_pagination(page, limit)
    templates, total = await TemplateService.list_templates(db, token_data.user_id, page_num, limit_num)
    return base_service.paginated_response(
        templates, page_num, limit_num, total, message="Templates retrieved successfully"
    )


@router.get("/{template_id}")
async def get_template(
    template_id: int,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    template = await TemplateService.get_template(db, token_data.user_id, template_id)
    return base_service.api_response(data=template, message="Template retrieved successfully")


@router.put("/{template_id}")
async def update_template(
    template_id: int,
    template_data: TemplateCreate,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    """Replace a template and its whole exercise list."""
    template = await TemplateService.update_template(db, token_data.user_id, template_id, template_data)
    base_service.log_event("template.updated", {"id": template_id, "user_id": token_data.user_id})
    return base_service.api_response(data=template, message="Template updated successfully")


@router.delete("/{template_id}")
async def delete_template(
    template_id: int,
    token_data: TokenData = Depends(get_current_user),
    db: AsyncSession = Depends(get_db_session)
):
    await TemplateService.delete_template(db, token_data.user_id, template_id)
    base_service.log_event("template.deleted", {"id": template_id, "user_id": token_data.user_id})
    return base_service.api_response(message="Template deleted successfully")
