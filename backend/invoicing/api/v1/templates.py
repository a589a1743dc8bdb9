"""
Router FastAPI per i Template di fattura
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Preset di sistema in sola lettura e template custom del tenant.
"""

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.database import get_db
from invoicing.core.deps import CurrentTenant
from invoicing.schemas.template import (
    TemplateCreate,
    TemplateDuplicate,
    TemplateRead,
    TemplateType,
    TemplateUpdate,
)
from invoicing.services.template_service import TemplateService

template_service = TemplateService()

router = APIRouter(
    prefix="/templates",
    tags=["Template"],
)


@router.get(
    "/",
    name="template_lista",
    summary="Lista template",
    description="Preset pubblici e template custom del tenant, il default per primo.",
    response_model=list[TemplateRead],
    status_code=status.HTTP_200_OK,
)
async def get_templates(
    ctx: CurrentTenant,
    type_filter: Optional[TemplateType] = Query(None, alias="type", description="preset o custom"),
    db: AsyncSession = Depends(get_db),
) -> list[TemplateRead]:
    return await template_service.get_all(db=db, tenant_id=ctx.tenant_id, type_filter=type_filter)


@router.post(
    "/",
    name="crea_template",
    summary="Crea template",
    response_model=TemplateRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_template(
    data: TemplateCreate,
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> TemplateRead:
    return await template_service.create(db=db, tenant_id=ctx.tenant_id, user_id=ctx.user_id, data=data)


@router.get(
    "/{template_id}",
    name="template_dettaglio",
    summary="Dettaglio template",
    response_model=TemplateRead,
    status_code=status.HTTP_200_OK,
)
async def get_template(
    ctx: CurrentTenant,
    template_id: uuid.UUID = Path(..., description="UUID del template"),
    db: AsyncSession = Depends(get_db),
) -> TemplateRead:
    return await template_service.get_by_id(db=db, tenant_id=ctx.tenant_id, template_id=template_id)


@router.put(
    "/{template_id}",
    name="aggiorna_template",
    summary="Aggiorna template",
    description="Aggiorna un template custom; la config viene fusa con quella esistente.",
    response_model=TemplateRead,
    status_code=status.HTTP_200_OK,
)
async def update_template(
    ctx: CurrentTenant,
    template_id: uuid.UUID = Path(..., description="UUID del template"),
    data: TemplateUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> TemplateRead:
    return await template_service.update(db=db, tenant_id=ctx.tenant_id, template_id=template_id, data=data)


@router.delete(
    "/{template_id}",
    name="elimina_template",
    summary="Elimina template",
    description="Elimina un template custom. I preset non sono eliminabili.",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_template(
    ctx: CurrentTenant,
    template_id: uuid.UUID = Path(..., description="UUID del template"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await template_service.delete(db=db, tenant_id=ctx.tenant_id, template_id=template_id)


@router.post(
    "/{template_id}/duplicate",
    name="duplica_template",
    summary="Duplica template",
    description="Copia un preset o un template custom applicando eventuali modifiche.",
    response_model=TemplateRead,
    status_code=status.HTTP_201_CREATED,
)
async def duplicate_template(
    ctx: CurrentTenant,
    template_id: uuid.UUID = Path(..., description="UUID del template"),
    data: TemplateDuplicate = TemplateDuplicate(),
    db: AsyncSession = Depends(get_db),
) -> TemplateRead:
    return await template_service.duplicate(
        db=db,
        tenant_id=ctx.tenant_id,
        user_id=ctx.user_id,
        template_id=template_id,
        data=data,
    )


@router.post(
    "/{template_id}/set-default",
    name="template_default",
    summary="Imposta template di default",
    response_model=TemplateRead,
    status_code=status.HTTP_200_OK,
)
async def set_default_template(
    ctx: CurrentTenant,
    template_id: uuid.UUID = Path(..., description="UUID del template"),
    db: AsyncSession = Depends(get_db),
) -> TemplateRead:
    return await template_service.set_default(db=db, tenant_id=ctx.tenant_id, template_id=template_id)
