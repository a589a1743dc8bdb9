"""
Service per la numerazione fatture
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Numerazione progressiva per tenant nel formato PREFISSO + NNNN
(es. INV-1000, INV-1001, ...). Non è una sequenza senza buchi:
la garanzia di unicità è data dal vincolo (tenant_id, invoice_number)
e dal singolo retry gestito da InvoiceService.
"""

import logging
import re
import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.config import settings
from invoicing.core.exceptions import NotFoundError
from invoicing.models import Invoice, Tenant

logger = logging.getLogger(__name__)

_LEADING_DIGITS = re.compile(r"\s*(\d+)")


def format_invoice_number(prefix: str, number: int, padding: Optional[int] = None) -> str:
    """Formatta il numero con zero-padding (default da settings)."""
    width = settings.invoice_number_padding if padding is None else padding
    return f"{prefix}{number:0{width}d}"


def parse_invoice_number(invoice_number: str, prefix: str) -> Optional[int]:
    """
    Estrae il progressivo da un numero fattura.

    Rimuove il prefisso e legge le cifre iniziali; restituisce None
    se non c'è un intero leggibile (es. prefisso cambiato nel frattempo).
    """
    rest = invoice_number
    if prefix and rest.startswith(prefix):
        rest = rest[len(prefix):]
    match = _LEADING_DIGITS.match(rest)
    if not match:
        return None
    return int(match.group(1))


class InvoiceNumberService:
    """
    Allocatore dei numeri fattura.

    Legge l'ultima fattura creata dal tenant (per data di creazione, non
    per numero: i numeri non sono ordinabili lessicograficamente se cambia
    il prefisso) e incrementa il progressivo. Nessun lock: due creazioni
    concorrenti possono ottenere lo stesso numero e la seconda fallisce
    sul vincolo di unicità.
    """

    async def allocate(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
    ) -> str:
        """
        Calcola il prossimo numero fattura del tenant.

        Args:
            db: Sessione database
            tenant_id: UUID del tenant

        Returns:
            str: Numero fattura formattato

        Raises:
            NotFoundError: tenant inesistente
        """
        tenant = await db.get(Tenant, tenant_id)
        if tenant is None:
            raise NotFoundError(f"Tenant {tenant_id} non trovato")

        prefix = tenant.invoice_number_prefix or settings.default_invoice_prefix
        start = tenant.invoice_number_start
        if start is None:
            start = settings.default_invoice_start

        # Include anche le fatture eliminate: i numeri non vengono mai riusati
        stmt = (
            select(Invoice.invoice_number)
            .where(Invoice.tenant_id == tenant_id)
            .order_by(Invoice.created_at.desc(), Invoice.invoice_number.desc())
            .limit(1)
        )
        result = await db.execute(stmt)
        last_number = result.scalar_one_or_none()

        next_number = start
        if last_number:
            parsed = parse_invoice_number(last_number, prefix)
            if parsed is not None:
                next_number = parsed + 1
            else:
                logger.debug(
                    f"Numero fattura {last_number} non interpretabile con prefisso "
                    f"'{prefix}': riparto da {start}"
                )

        return format_invoice_number(prefix, next_number)
