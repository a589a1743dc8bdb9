"""
Router FastAPI per il Catalogo Servizi
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""

import math
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.database import get_db
from invoicing.core.deps import CurrentTenant
from invoicing.schemas.service import ServiceCreate, ServiceList, ServiceRead, ServiceUpdate
from invoicing.services.catalog_service import CatalogService

catalog_service = CatalogService()

router = APIRouter(
    prefix="/services",
    tags=["Catalogo Servizi"],
)


@router.get(
    "/",
    name="servizi_lista",
    summary="Lista servizi",
    description="Servizi del catalogo ordinati per nome, con filtri per categoria, stato e testo.",
    response_model=ServiceList,
    status_code=status.HTTP_200_OK,
)
async def get_services(
    ctx: CurrentTenant,
    category: Optional[str] = Query(None, max_length=100, description="Filtro per categoria"),
    is_active: Optional[bool] = Query(None, alias="isActive", description="Solo attivi/disattivati"),
    search: Optional[str] = Query(None, max_length=100, description="Ricerca su nome e descrizione"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(100, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> ServiceList:
    services, total = await catalog_service.get_all(
        db=db,
        tenant_id=ctx.tenant_id,
        category=category,
        is_active=is_active,
        search=search,
        page=page,
        per_page=per_page,
    )

    return ServiceList(
        items=[ServiceRead.model_validate(s) for s in services],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=math.ceil(total / per_page) if total > 0 else 1,
    )


@router.get(
    "/categories",
    name="categorie_servizi",
    summary="Categorie in uso",
    response_model=list[str],
    status_code=status.HTTP_200_OK,
)
async def get_service_categories(
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> list[str]:
    return await catalog_service.get_categories(db, ctx.tenant_id)


@router.post(
    "/",
    name="crea_servizio",
    summary="Crea servizio",
    response_model=ServiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_service(
    data: ServiceCreate,
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> ServiceRead:
    service = await catalog_service.create(db, ctx.tenant_id, ctx.user_id, data)
    return ServiceRead.model_validate(service)


@router.get(
    "/{service_id}",
    name="servizio_dettaglio",
    summary="Dettaglio servizio",
    response_model=ServiceRead,
    status_code=status.HTTP_200_OK,
)
async def get_service(
    ctx: CurrentTenant,
    service_id: uuid.UUID = Path(..., description="UUID del servizio"),
    db: AsyncSession = Depends(get_db),
) -> ServiceRead:
    service = await catalog_service.get_by_id(db, ctx.tenant_id, service_id)
    return ServiceRead.model_validate(service)


@router.put(
    "/{service_id}",
    name="aggiorna_servizio",
    summary="Aggiorna servizio",
    description="Aggiornamento parziale; le fatture già emesse non cambiano.",
    response_model=ServiceRead,
    status_code=status.HTTP_200_OK,
)
async def update_service(
    ctx: CurrentTenant,
    service_id: uuid.UUID = Path(..., description="UUID del servizio"),
    data: ServiceUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> ServiceRead:
    service = await catalog_service.update(db, ctx.tenant_id, service_id, data)
    return ServiceRead.model_validate(service)


@router.delete(
    "/{service_id}",
    name="elimina_servizio",
    summary="Elimina servizio",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_service(
    ctx: CurrentTenant,
    service_id: uuid.UUID = Path(..., description="UUID del servizio"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await catalog_service.delete(db, ctx.tenant_id, service_id)
