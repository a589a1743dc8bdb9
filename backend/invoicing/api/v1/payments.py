"""
Router FastAPI per i Pagamenti
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Endpoint a livello di tenant: elenco filtrato e storno.
La registrazione avviene su /invoices/{id}/payments.
"""

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.database import get_db
from invoicing.core.deps import CurrentTenant
from invoicing.schemas.payment import InvoiceBalance, PaymentMethod, TenantPaymentList
from invoicing.services.payment_service import PaymentService

payment_service = PaymentService()

router = APIRouter(
    prefix="/payments",
    tags=["Pagamenti"],
)


@router.get(
    "/",
    name="pagamenti_lista",
    summary="Lista pagamenti",
    description="Pagamenti del tenant con filtri, paginazione e statistiche.",
    response_model=TenantPaymentList,
    status_code=status.HTTP_200_OK,
)
async def get_payments(
    ctx: CurrentTenant,
    payment_method: Optional[PaymentMethod] = Query(None, description="Filtro per metodo"),
    from_date: Optional[date] = Query(None, description="Data pagamento da"),
    to_date: Optional[date] = Query(None, description="Data pagamento a"),
    min_amount: Optional[Decimal] = Query(None, ge=0, description="Importo minimo"),
    max_amount: Optional[Decimal] = Query(None, ge=0, description="Importo massimo"),
    page: int = Query(1, ge=1, description="Numero pagina"),
    per_page: int = Query(20, ge=1, le=100, description="Elementi per pagina"),
    db: AsyncSession = Depends(get_db),
) -> TenantPaymentList:
    return await payment_service.list_tenant_payments(
        db=db,
        tenant_id=ctx.tenant_id,
        payment_method=payment_method.value if payment_method else None,
        from_date=from_date,
        to_date=to_date,
        min_amount=min_amount,
        max_amount=max_amount,
        page=page,
        per_page=per_page,
    )


@router.delete(
    "/{payment_id}",
    name="elimina_pagamento",
    summary="Elimina pagamento",
    description="Elimina un pagamento stornandolo dalla fattura.",
    response_model=InvoiceBalance,
    status_code=status.HTTP_200_OK,
)
async def delete_payment(
    ctx: CurrentTenant,
    payment_id: uuid.UUID = Path(..., description="UUID del pagamento"),
    db: AsyncSession = Depends(get_db),
) -> InvoiceBalance:
    """
    Elimina un pagamento.

    La fattura torna da 'paid' a 'sent' se rimane un residuo.
    Restituisce lo stato finanziario aggiornato della fattura.
    """
    return await payment_service.delete_payment(db=db, tenant_id=ctx.tenant_id, payment_id=payment_id)
