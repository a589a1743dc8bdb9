"""
Router FastAPI per il Tenant
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Registrazione di un nuovo tenant e gestione di impostazioni e branding
del tenant corrente.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.database import get_db
from invoicing.core.deps import CurrentTenant
from invoicing.schemas.tenant import TenantBrandingUpdate, TenantCreate, TenantRead, TenantSettingsUpdate
from invoicing.services.tenant_service import TenantService

tenant_service = TenantService()

router = APIRouter(
    prefix="/tenants",
    tags=["Tenant"],
)


@router.post(
    "/",
    name="registra_tenant",
    summary="Registra tenant",
    description="Registra un nuovo tenant con le impostazioni di fatturazione iniziali.",
    response_model=TenantRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_tenant(
    data: TenantCreate,
    db: AsyncSession = Depends(get_db),
) -> TenantRead:
    return await tenant_service.create(db=db, data=data)


@router.get(
    "/me",
    name="tenant_corrente",
    summary="Tenant corrente",
    response_model=TenantRead,
    status_code=status.HTTP_200_OK,
)
async def get_current_tenant(
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> TenantRead:
    return await tenant_service.get_by_id(db=db, tenant_id=ctx.tenant_id)


@router.put(
    "/me/settings",
    name="impostazioni_tenant",
    summary="Aggiorna impostazioni",
    description="Valuta, prefisso e partenza della numerazione, termini di pagamento.",
    response_model=TenantRead,
    status_code=status.HTTP_200_OK,
)
async def update_tenant_settings(
    data: TenantSettingsUpdate,
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> TenantRead:
    """
    Aggiorna le impostazioni di fatturazione del tenant.

    NOTA: Il nuovo prefisso vale solo per le fatture create dopo la modifica.
    """
    return await tenant_service.update_settings(db=db, tenant_id=ctx.tenant_id, data=data)


@router.put(
    "/me/branding",
    name="branding_tenant",
    summary="Aggiorna branding",
    response_model=TenantRead,
    status_code=status.HTTP_200_OK,
)
async def update_tenant_branding(
    data: TenantBrandingUpdate,
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> TenantRead:
    return await tenant_service.update_branding(db=db, tenant_id=ctx.tenant_id, data=data)
