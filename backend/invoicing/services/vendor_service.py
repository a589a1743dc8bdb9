"""
Service Layer per l'entità Vendor
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Definisce la logica di business per la gestione dei vendor/clienti:
- Soft delete (deleted_at)
- Email unica per tenant tra i vendor attivi
- Isolamento per tenant su ogni query
"""

import logging
import uuid
from typing import Optional

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.exceptions import ConflictError, NotFoundError
from invoicing.models import Vendor
from invoicing.models.mixins import utcnow
from invoicing.schemas.vendor import VendorCreate, VendorUpdate

# Logger per questo modulo
logger = logging.getLogger(__name__)


class VendorService:
    """
    Service per la gestione delle operazioni CRUD sui vendor.

    Le modifiche a un vendor non toccano le fatture già emesse,
    che conservano il proprio snapshot.
    """

    async def get_all(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        page: int = 1,
        per_page: int = 20,
        search: Optional[str] = None,
    ) -> tuple[list[Vendor], int]:
        """
        Recupera la lista paginata dei vendor attivi del tenant.

        Args:
            db: Sessione database
            tenant_id: UUID del tenant
            page: Numero pagina (default 1)
            per_page: Elementi per pagina (default 20)
            search: Ricerca su ragione sociale, referente ed email

        Returns:
            Tuple di (lista vendor, totale count)
        """
        conditions = [Vendor.tenant_id == tenant_id, Vendor.deleted_at.is_(None)]

        if search:
            search_term = f"%{search}%"
            conditions.append(
                or_(
                    Vendor.company_name.ilike(search_term),
                    Vendor.contact_person.ilike(search_term),
                    Vendor.email.ilike(search_term),
                )
            )

        query = (
            select(Vendor)
            .where(*conditions)
            .order_by(Vendor.company_name.asc())
            .offset((page - 1) * per_page)
            .limit(per_page)
        )
        vendors = list((await db.execute(query)).scalars().all())

        count_query = select(func.count()).select_from(Vendor).where(*conditions)
        total = (await db.execute(count_query)).scalar() or 0

        logger.debug("Recuperati %s vendor su %s totali (tenant %s)", len(vendors), total, tenant_id)
        return vendors, total

    async def get_by_id(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
    ) -> Vendor:
        """
        Recupera un vendor attivo del tenant.

        Raises:
            NotFoundError: vendor inesistente, eliminato o di altro tenant
        """
        query = select(Vendor).where(
            Vendor.id == vendor_id,
            Vendor.tenant_id == tenant_id,
            Vendor.deleted_at.is_(None),
        )
        vendor = (await db.execute(query)).scalar_one_or_none()

        if vendor is None:
            raise NotFoundError(f"Vendor con ID {vendor_id} non trovato")
        return vendor

    async def create(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        vendor_data: VendorCreate,
    ) -> Vendor:
        """
        Crea un nuovo vendor.

        Raises:
            ConflictError: email già usata da un altro vendor attivo del tenant
        """
        existing = await self._find_by_email(db, tenant_id, vendor_data.email)
        if existing:
            logger.warning(
                "Tentativo di creare vendor con email duplicata: %s (esistente: %s)",
                vendor_data.email, existing.id,
            )
            raise ConflictError(
                f"Esiste già un vendor con email '{vendor_data.email}'",
                error_code="DUPLICATE_VENDOR_EMAIL",
            )

        vendor_dict = vendor_data.model_dump()
        vendor = Vendor(tenant_id=tenant_id, created_by=user_id, **vendor_dict)

        try:
            db.add(vendor)
            await db.commit()
        except IntegrityError as e:
            logger.error("Errore IntegrityError creazione vendor: %s", e.orig)
            await db.rollback()
            raise ConflictError("Errore durante la creazione del vendor")

        await db.refresh(vendor)
        logger.info("Creato vendor %s - %s (tenant %s)", vendor.id, vendor.company_name, tenant_id)
        return vendor

    async def update(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
        vendor_data: VendorUpdate,
    ) -> Vendor:
        """
        Aggiorna un vendor esistente.

        Raises:
            NotFoundError: vendor non trovato
            ConflictError: nuova email già in uso nel tenant
        """
        vendor = await self.get_by_id(db, tenant_id, vendor_id)
        update_data = vendor_data.model_dump(exclude_unset=True)

        new_email = update_data.get("email")
        if new_email and new_email != vendor.email:
            existing = await self._find_by_email(db, tenant_id, new_email, exclude_id=vendor_id)
            if existing:
                raise ConflictError(
                    f"Esiste già un vendor con email '{new_email}'",
                    error_code="DUPLICATE_VENDOR_EMAIL",
                )

        for field, value in update_data.items():
            if value is None and field in ("company_name", "email", "header", "footer", "address",
                                           "payment_details", "tags"):
                continue
            setattr(vendor, field, value)

        await db.commit()
        await db.refresh(vendor)
        logger.info("Aggiornato vendor %s: %s", vendor.id, sorted(update_data))
        return vendor

    async def delete(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        vendor_id: uuid.UUID,
    ) -> None:
        """Soft delete: le fatture esistenti mantengono lo snapshot."""
        vendor = await self.get_by_id(db, tenant_id, vendor_id)
        vendor.deleted_at = utcnow()
        await db.commit()
        logger.info("Vendor %s eliminato (soft delete)", vendor_id)

    async def _find_by_email(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        email: str,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> Optional[Vendor]:
        query = select(Vendor).where(
            Vendor.tenant_id == tenant_id,
            func.lower(Vendor.email) == email.lower(),
            Vendor.deleted_at.is_(None),
        )
        if exclude_id:
            query = query.where(Vendor.id != exclude_id)
        return (await db.execute(query.limit(1))).scalar_one_or_none()
