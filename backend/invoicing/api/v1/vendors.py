"""
Router FastAPI per i Vendor
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Definisce gli endpoint API per la gestione dei destinatari delle fatture.
"""

import math
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.database import get_db
from invoicing.core.deps import CurrentTenant
from invoicing.schemas.invoice import InvoiceList
from invoicing.schemas.service import (
    VendorServiceAssign,
    VendorServiceRead,
    VendorServices,
    VendorServiceUpdate,
)
from invoicing.schemas.vendor import VendorCreate, VendorList, VendorRead, VendorUpdate
from invoicing.services.catalog_service import CatalogService
from invoicing.services.invoice_service import InvoiceService
from invoicing.services.vendor_service import VendorService

# Istanze dei service
vendor_service = VendorService()
invoice_service = InvoiceService()
catalog_service = CatalogService()

# Router con prefix e tag
router = APIRouter(
    prefix="/vendors",
    tags=["Vendor"],
)


@router.get(
    "/",
    name="vendor_lista",
    summary="Lista vendor",
    description="Recupera la lista paginata dei vendor con ricerca opzionale.",
    response_model=VendorList,
    status_code=status.HTTP_200_OK,
)
async def get_vendors(
    ctx: CurrentTenant,
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
    search: Optional[str] = Query(None, max_length=100, description="Ricerca su nome, referente ed email"),
    db: AsyncSession = Depends(get_db),
) -> VendorList:
    """
    Recupera la lista paginata dei vendor.

    - **page**: Numero pagina (default: 1)
    - **per_page**: Elementi per pagina (default: 20, max: 100)
    - **search**: Termine di ricerca
    """
    vendors, total = await vendor_service.get_all(
        db=db,
        tenant_id=ctx.tenant_id,
        page=page,
        per_page=per_page,
        search=search,
    )

    total_pages = math.ceil(total / per_page) if total > 0 else 1

    return VendorList(
        items=[VendorRead.model_validate(v) for v in vendors],
        total=total,
        page=page,
        per_page=per_page,
        total_pages=total_pages,
    )


@router.post(
    "/",
    name="crea_vendor",
    summary="Crea vendor",
    description="Crea un nuovo vendor (email unica nel tenant).",
    response_model=VendorRead,
    status_code=status.HTTP_201_CREATED,
)
async def create_vendor(
    vendor_data: VendorCreate,
    ctx: CurrentTenant,
    db: AsyncSession = Depends(get_db),
) -> VendorRead:
    return await vendor_service.create(
        db=db,
        tenant_id=ctx.tenant_id,
        user_id=ctx.user_id,
        vendor_data=vendor_data,
    )


@router.get(
    "/{vendor_id}",
    name="vendor_dettaglio",
    summary="Dettaglio vendor",
    response_model=VendorRead,
    status_code=status.HTTP_200_OK,
)
async def get_vendor(
    ctx: CurrentTenant,
    vendor_id: uuid.UUID = Path(..., description="UUID del vendor"),
    db: AsyncSession = Depends(get_db),
) -> VendorRead:
    return await vendor_service.get_by_id(db=db, tenant_id=ctx.tenant_id, vendor_id=vendor_id)


@router.put(
    "/{vendor_id}",
    name="aggiorna_vendor",
    summary="Aggiorna vendor",
    description="Aggiorna un vendor. Le fatture già emesse mantengono il loro snapshot.",
    response_model=VendorRead,
    status_code=status.HTTP_200_OK,
)
async def update_vendor(
    ctx: CurrentTenant,
    vendor_id: uuid.UUID = Path(..., description="UUID del vendor"),
    vendor_data: VendorUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> VendorRead:
    return await vendor_service.update(
        db=db,
        tenant_id=ctx.tenant_id,
        vendor_id=vendor_id,
        vendor_data=vendor_data,
    )


@router.delete(
    "/{vendor_id}",
    name="elimina_vendor",
    summary="Elimina vendor",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def delete_vendor(
    ctx: CurrentTenant,
    vendor_id: uuid.UUID = Path(..., description="UUID del vendor"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await vendor_service.delete(db=db, tenant_id=ctx.tenant_id, vendor_id=vendor_id)


@router.get(
    "/{vendor_id}/invoices",
    name="fatture_vendor",
    summary="Fatture del vendor",
    description="Fatture intestate al vendor, dalla più recente.",
    response_model=InvoiceList,
    status_code=status.HTTP_200_OK,
)
async def get_vendor_invoices(
    ctx: CurrentTenant,
    vendor_id: uuid.UUID = Path(..., description="UUID del vendor"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(50, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceList:
    # Verifica esistenza vendor nel tenant
    await vendor_service.get_by_id(db=db, tenant_id=ctx.tenant_id, vendor_id=vendor_id)

    return await invoice_service.get_all(
        db=db,
        tenant_id=ctx.tenant_id,
        vendor_id=vendor_id,
        page=page,
        per_page=per_page,
    )


# -------------------------------------------------------------------
# Servizi assegnati al vendor
# -------------------------------------------------------------------

@router.get(
    "/{vendor_id}/services",
    name="servizi_vendor",
    summary="Servizi del vendor",
    description="Servizi attivi assegnati al vendor con prezzo e imposta effettivi.",
    response_model=VendorServices,
    status_code=status.HTTP_200_OK,
)
async def get_vendor_services(
    ctx: CurrentTenant,
    vendor_id: uuid.UUID = Path(..., description="UUID del vendor"),
    db: AsyncSession = Depends(get_db),
) -> VendorServices:
    return await catalog_service.list_vendor_services(db, ctx.tenant_id, vendor_id)


@router.post(
    "/{vendor_id}/services",
    name="assegna_servizio",
    summary="Assegna servizio",
    description="Assegna un servizio del catalogo al vendor con override opzionali.",
    response_model=VendorServiceRead,
    status_code=status.HTTP_201_CREATED,
)
async def assign_vendor_service(
    ctx: CurrentTenant,
    vendor_id: uuid.UUID = Path(..., description="UUID del vendor"),
    data: VendorServiceAssign = ...,
    db: AsyncSession = Depends(get_db),
) -> VendorServiceRead:
    """
    Errori:
    - 404 VENDOR_NOT_FOUND / SERVICE_NOT_FOUND
    - 409 DUPLICATE_ASSIGNMENT: servizio già assegnato
    """
    return await catalog_service.assign_service(db, ctx.tenant_id, vendor_id, ctx.user_id, data)


@router.patch(
    "/{vendor_id}/services/{vendor_service_id}",
    name="aggiorna_servizio_vendor",
    summary="Aggiorna assegnazione",
    response_model=VendorServiceRead,
    status_code=status.HTTP_200_OK,
)
async def update_vendor_service(
    ctx: CurrentTenant,
    vendor_id: uuid.UUID = Path(..., description="UUID del vendor"),
    vendor_service_id: uuid.UUID = Path(..., description="UUID dell'assegnazione"),
    data: VendorServiceUpdate = ...,
    db: AsyncSession = Depends(get_db),
) -> VendorServiceRead:
    return await catalog_service.update_assignment(db, ctx.tenant_id, vendor_id, vendor_service_id, data)


@router.delete(
    "/{vendor_id}/services/{vendor_service_id}",
    name="rimuovi_servizio_vendor",
    summary="Rimuovi assegnazione",
    status_code=status.HTTP_204_NO_CONTENT,
)
async def remove_vendor_service(
    ctx: CurrentTenant,
    vendor_id: uuid.UUID = Path(..., description="UUID del vendor"),
    vendor_service_id: uuid.UUID = Path(..., description="UUID dell'assegnazione"),
    db: AsyncSession = Depends(get_db),
) -> None:
    await catalog_service.remove_assignment(db, ctx.tenant_id, vendor_id, vendor_service_id)
