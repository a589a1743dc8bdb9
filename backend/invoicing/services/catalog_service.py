"""
Service Layer per il Catalogo Servizi
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Gestisce:
- CRUD dei servizi del tenant (soft delete)
- Elenco delle categorie in uso
- Assegnazione dei servizi ai vendor con prezzo/imposta personalizzati
"""

import logging
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.exceptions import ConflictError, NotFoundError
from invoicing.models import Service, Vendor, VendorServiceAssignment
from invoicing.models.mixins import utcnow
from invoicing.schemas.service import (
    ServiceCreate,
    ServicePricing,
    ServiceUpdate,
    VendorRef,
    VendorServiceAssign,
    VendorServiceRead,
    VendorServices,
    VendorServiceUpdate,
)

# Logger per questo modulo
logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _pricing_columns(pricing: ServicePricing, prefix: str = "") -> dict[str, Any]:
    """Mappa ServicePricing sulle colonne (pricing_type, price, currency)."""
    return {
        f"{prefix}pricing_type": pricing.type.value,
        f"{prefix}price": pricing.amount.quantize(CENT, rounding=ROUND_HALF_UP),
        f"{prefix}currency": pricing.currency,
    }


class CatalogService:
    """
    Service per il catalogo servizi e le assegnazioni ai vendor.

    Ogni query è filtrata per tenant: un servizio o un vendor di un
    altro tenant risulta semplicemente inesistente.
    """

    # ------------------------------------------------------------
    # Servizi
    # ------------------------------------------------------------

    async def get_all(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        category: Optional[str] = None,
        is_active: Optional[bool] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 100,
    ) -> tuple[list[Service], int]:
        """
        Lista paginata dei servizi non eliminati, ordinata per nome.

        Args:
            db: Sessione database
            tenant_id: UUID del tenant
            category: Filtro esatto sulla categoria
            is_active: Filtro su servizi attivi/disattivati
            search: Ricerca su nome e descrizione
            page: Numero pagina
            per_page: Elementi per pagina

        Returns:
            Tuple di (lista servizi, totale count)
        """
        conditions = [Service.tenant_id == tenant_id, Service.deleted_at.is_(None)]
        if category:
            conditions.append(Service.category == category)
        if is_active is not None:
            conditions.append(Service.is_active.is_(is_active))
        if search:
            search_term = f"%{search}%"
            conditions.append(
                or_(Service.name.ilike(search_term), Service.description.ilike(search_term))
            )

        query = (
            select(Service)
            .where(*conditions)
            .order_by(Service.name.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        services = list((await db.execute(query)).scalars().all())

        count_query = select(func.count()).select_from(Service).where(*conditions)
        total = (await db.execute(count_query)).scalar() or 0

        logger.debug("Recuperati %s servizi su %s totali (tenant %s)", len(services), total, tenant_id)
        return services, total

    async def get_by_id(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        service_id: uuid.UUID,
        error_code: Optional[str] = None,
    ) -> Service:
        """
        Recupera un servizio non eliminato del tenant.

        Raises:
            NotFoundError: servizio inesistente, eliminato o di altro tenant
        """
        query = select(Service).where(
            Service.id == service_id,
            Service.tenant_id == tenant_id,
            Service.deleted_at.is_(None),
        )
        service = (await db.execute(query)).scalar_one_or_none()
        if service is None:
            raise NotFoundError(f"Servizio con ID {service_id} non trovato", error_code=error_code)
        return service

    async def create(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        data: ServiceCreate,
    ) -> Service:
        service = Service(
            tenant_id=tenant_id,
            name=data.name,
            description=data.description,
            category=data.category,
            taxable=data.taxable,
            tax_rate=data.tax_rate,
            is_active=True,
            times_used=0,
            created_by=user_id,
            **_pricing_columns(data.pricing),
        )
        db.add(service)
        await db.commit()
        await db.refresh(service)

        logger.info("Creato servizio %s - %s (tenant %s)", service.id, service.name, tenant_id)
        return service

    async def update(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        service_id: uuid.UUID,
        data: ServiceUpdate,
    ) -> Service:
        """
        Aggiornamento parziale. I campi obbligatori a null vengono ignorati.

        Raises:
            NotFoundError: servizio non trovato
        """
        service = await self.get_by_id(db, tenant_id, service_id)
        update_data = data.model_dump(exclude_unset=True, exclude={"pricing"})

        for field, value in update_data.items():
            if value is None and field in ("name", "category", "taxable", "is_active"):
                continue
            setattr(service, field, value)
        if data.pricing is not None:
            for field, value in _pricing_columns(data.pricing).items():
                setattr(service, field, value)

        await db.commit()
        await db.refresh(service)
        logger.info("Aggiornato servizio %s: %s", service.id, sorted(data.model_fields_set))
        return service

    async def delete(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        service_id: uuid.UUID,
    ) -> None:
        """Soft delete: le assegnazioni restano ma non compaiono più nel vendor."""
        service = await self.get_by_id(db, tenant_id, service_id)
        service.deleted_at = utcnow()
        await db.commit()
        logger.info("Servizio %s eliminato (soft delete)", service_id)

    async def get_categories(self, db: AsyncSession, tenant_id: uuid.UUID) -> list[str]:
        """Categorie distinte dei servizi non eliminati, in ordine alfabetico."""
        query = (
            select(Service.category)
            .where(Service.tenant_id == tenant_id, Service.deleted_at.is_(None))
            .distinct()
            .order_by(Service.category.asc())
        )
        return list((await db.execute(query)).scalars().all())

    # ------------------------------------------------------------
    # Assegnazioni ai vendor
    # ------------------------------------------------------------

    async def _get_vendor(self, db: AsyncSession, tenant_id: uuid.UUID, vendor_id: uuid.UUID) -> Vendor:
        query = select(Vendor).where(
            Vendor.id == vendor_id,
            Vendor.tenant_id == tenant_id,
            Vendor.deleted_at.is_(None),
        )
        vendor = (await db.execute(query)).scalar_one_or_none()
        if vendor is None:
            raise NotFoundError(f"Vendor con ID {vendor_id} non trovato", error_code="VENDOR_NOT_FOUND")
        return vendor

    async def _get_assignment(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
        assignment_id: uuid.UUID,
    ) -> VendorServiceAssignment:
        query = (
            select(VendorServiceAssignment)
            .where(
                VendorServiceAssignment.id == assignment_id,
                VendorServiceAssignment.vendor_id == vendor_id,
                VendorServiceAssignment.tenant_id == tenant_id,
            )
            .execution_options(populate_existing=True)
        )
        assignment = (await db.execute(query)).scalar_one_or_none()
        if assignment is None:
            raise NotFoundError(f"Assegnazione {assignment_id} non trovata")
        return assignment

    @staticmethod
    def _to_read(assignment: VendorServiceAssignment) -> VendorServiceRead:
        service = assignment.service
        return VendorServiceRead(
            id=service.id,
            vendor_service_id=assignment.id,
            name=service.name,
            description=service.description,
            category=service.category,
            pricing=ServicePricing(**assignment.effective_pricing()),
            taxable=assignment.effective_taxable(),
            tax_rate=assignment.effective_tax_rate(),
            is_custom_pricing=assignment.custom_price is not None,
            is_active=assignment.is_active,
            times_used=assignment.times_used,
        )

    async def list_vendor_services(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
    ) -> VendorServices:
        """
        Servizi attivi assegnati al vendor con prezzo e imposta effettivi.

        I servizi eliminati dal catalogo vengono esclusi.

        Raises:
            NotFoundError: vendor non trovato (VENDOR_NOT_FOUND)
        """
        vendor = await self._get_vendor(db, tenant_id, vendor_id)

        query = (
            select(VendorServiceAssignment)
            .join(Service, Service.id == VendorServiceAssignment.service_id)
            .where(
                VendorServiceAssignment.tenant_id == tenant_id,
                VendorServiceAssignment.vendor_id == vendor_id,
                VendorServiceAssignment.is_active.is_(True),
                Service.deleted_at.is_(None),
            )
            .order_by(Service.name.asc())
        )
        assignments = (await db.execute(query)).unique().scalars().all()

        return VendorServices(
            vendor=VendorRef(id=vendor.id, company_name=vendor.company_name),
            services=[self._to_read(a) for a in assignments],
        )

    async def assign_service(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
        user_id: uuid.UUID,
        data: VendorServiceAssign,
    ) -> VendorServiceRead:
        """
        Assegna un servizio del catalogo al vendor.

        Raises:
            NotFoundError: vendor (VENDOR_NOT_FOUND) o servizio (SERVICE_NOT_FOUND) inesistenti
            ConflictError: servizio già assegnato al vendor (DUPLICATE_ASSIGNMENT)
        """
        vendor = await self._get_vendor(db, tenant_id, vendor_id)
        service = await self.get_by_id(db, tenant_id, data.service_id, error_code="SERVICE_NOT_FOUND")

        existing = await db.execute(
            select(VendorServiceAssignment.id).where(
                VendorServiceAssignment.vendor_id == vendor_id,
                VendorServiceAssignment.service_id == data.service_id,
            )
        )
        if existing.scalar_one_or_none() is not None:
            raise ConflictError(
                "Servizio già assegnato a questo vendor",
                error_code="DUPLICATE_ASSIGNMENT",
            )

        values: dict[str, Any] = {
            "custom_tax_rate": data.custom_tax_rate,
            "custom_taxable": data.custom_taxable,
        }
        if data.custom_pricing is not None:
            values.update(_pricing_columns(data.custom_pricing, prefix="custom_"))

        assignment = VendorServiceAssignment(
            tenant_id=tenant_id,
            vendor_id=vendor_id,
            service_id=service.id,
            assigned_by=user_id,
            is_active=True,
            times_used=0,
            **values,
        )
        try:
            db.add(assignment)
            await db.commit()
        except IntegrityError as e:
            logger.error("Errore IntegrityError assegnazione servizio: %s", e.orig)
            await db.rollback()
            raise ConflictError(
                "Servizio già assegnato a questo vendor",
                error_code="DUPLICATE_ASSIGNMENT",
            )

        logger.info("Servizio %s assegnato al vendor %s", service.name, vendor.company_name)
        return self._to_read(await self._get_assignment(db, tenant_id, vendor_id, assignment.id))

    async def update_assignment(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
        assignment_id: uuid.UUID,
        data: VendorServiceUpdate,
    ) -> VendorServiceRead:
        """
        Aggiorna gli override di un'assegnazione.

        Raises:
            NotFoundError: assegnazione inesistente per il vendor
        """
        assignment = await self._get_assignment(db, tenant_id, vendor_id, assignment_id)
        fields = data.model_fields_set

        if "custom_pricing" in fields:
            if data.custom_pricing is None:
                assignment.custom_pricing_type = None
                assignment.custom_price = None
                assignment.custom_currency = None
            else:
                for field, value in _pricing_columns(data.custom_pricing, prefix="custom_").items():
                    setattr(assignment, field, value)
        if "custom_tax_rate" in fields:
            assignment.custom_tax_rate = data.custom_tax_rate
        if "custom_taxable" in fields:
            assignment.custom_taxable = data.custom_taxable
        if data.is_active is not None:
            assignment.is_active = data.is_active

        await db.commit()
        logger.info("Assegnazione %s aggiornata: %s", assignment_id, sorted(fields))

        return self._to_read(await self._get_assignment(db, tenant_id, vendor_id, assignment_id))

    async def remove_assignment(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
        assignment_id: uuid.UUID,
    ) -> None:
        """Rimuove l'assegnazione (eliminazione fisica)."""
        assignment = await self._get_assignment(db, tenant_id, vendor_id, assignment_id)
        await db.delete(assignment)
        await db.commit()
        logger.info("Assegnazione %s rimossa dal vendor %s", assignment_id, vendor_id)
