"""
Dependency Injection per il contesto di richiesta
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Estrae tenant e utente corrente dagli header della richiesta.
L'autenticazione vera e propria (JWT, ruoli) è delegata al gateway
a monte: qui arrivano solo identificativi già verificati.
"""

import uuid
from dataclasses import dataclass
from typing import Annotated, Optional

from fastapi import Depends, Header

from invoicing.core.exceptions import AuthenticationError


@dataclass(frozen=True)
class TenantContext:
    """
    Contesto della richiesta corrente.

    Attributes:
        tenant_id: UUID del tenant su cui operare (unità di isolamento dati)
        user_id: UUID dell'utente che esegue l'operazione
    """

    tenant_id: uuid.UUID
    user_id: uuid.UUID


def _parse_uuid(value: Optional[str], header_name: str) -> uuid.UUID:
    if not value:
        raise AuthenticationError(f"Header {header_name} non fornito")
    try:
        return uuid.UUID(value)
    except ValueError:
        raise AuthenticationError(f"Header {header_name} non valido")


async def get_tenant_context(
    x_tenant_id: Optional[str] = Header(None, alias="X-Tenant-ID"),
    x_user_id: Optional[str] = Header(None, alias="X-User-ID"),
) -> TenantContext:
    """
    Dependency per ottenere il contesto tenant/utente dagli header.

    Args:
        x_tenant_id: Header X-Tenant-ID
        x_user_id: Header X-User-ID

    Returns:
        TenantContext con gli identificativi validati

    Raises:
        AuthenticationError: header mancanti o non in formato UUID
    """
    return TenantContext(
        tenant_id=_parse_uuid(x_tenant_id, "X-Tenant-ID"),
        user_id=_parse_uuid(x_user_id, "X-User-ID"),
    )


# Type alias per uso comune
CurrentTenant = Annotated[TenantContext, Depends(get_tenant_context)]


# Export
__all__ = [
    "TenantContext",
    "get_tenant_context",
    "CurrentTenant",
]
