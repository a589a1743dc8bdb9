"""
Service Layer per il Tenant
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)
"""

import logging
import uuid

from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.config import settings
from invoicing.core.exceptions import NotFoundError
from invoicing.models import Tenant
from invoicing.schemas.tenant import TenantBrandingUpdate, TenantCreate, TenantSettingsUpdate

logger = logging.getLogger(__name__)


class TenantService:
    """Registrazione del tenant e gestione di impostazioni e branding."""

    async def create(self, db: AsyncSession, data: TenantCreate) -> Tenant:
        """
        Registra un nuovo tenant.

        I valori di numerazione e valuta non forniti prendono
        i default dell'applicazione.
        """
        tenant = Tenant(
            company_name=data.company_name,
            owner_email=str(data.owner_email).lower(),
            subscription_tier=data.subscription_tier.value,
            default_currency=data.default_currency or settings.default_currency,
            invoice_number_prefix=data.invoice_number_prefix or settings.default_invoice_prefix,
            invoice_number_start=(
                data.invoice_number_start
                if data.invoice_number_start is not None
                else settings.default_invoice_start
            ),
        )
        db.add(tenant)
        await db.commit()
        await db.refresh(tenant)

        logger.info(f"Tenant registrato: {tenant.company_name} ({tenant.id}, piano {tenant.subscription_tier})")
        return tenant

    async def get_by_id(self, db: AsyncSession, tenant_id: uuid.UUID) -> Tenant:
        """
        Raises:
            NotFoundError: tenant inesistente
        """
        tenant = await db.get(Tenant, tenant_id)
        if tenant is None or tenant.is_deleted:
            raise NotFoundError(f"Tenant {tenant_id} non trovato")
        return tenant

    async def update_settings(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        data: TenantSettingsUpdate,
    ) -> Tenant:
        """
        Aggiorna le impostazioni di fatturazione.

        Un cambio di prefisso fa ripartire la numerazione da
        invoice_number_start, perché i numeri precedenti non sono
        più interpretabili con il nuovo prefisso.
        """
        tenant = await self.get_by_id(db, tenant_id)
        update_data = data.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if value is None and field != "max_due_date_days":
                continue
            setattr(tenant, field, value)

        await db.commit()
        await db.refresh(tenant)
        logger.info(f"Impostazioni aggiornate per tenant {tenant.company_name}: {sorted(update_data)}")
        return tenant

    async def update_branding(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        data: TenantBrandingUpdate,
    ) -> Tenant:
        """Fonde i dati di branding con quelli esistenti."""
        tenant = await self.get_by_id(db, tenant_id)
        update_data = data.model_dump(exclude_unset=True)

        payment_details = update_data.pop("payment_details", None)
        if payment_details is not None:
            tenant.payment_details = dict(payment_details)

        # Riassegna un nuovo dict: la colonna JSON non traccia le mutazioni in place
        tenant.branding = {**(tenant.branding or {}), **update_data}

        await db.commit()
        await db.refresh(tenant)
        logger.info(f"Branding aggiornato per tenant {tenant.company_name}")
        return tenant
