"""
API Routes
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Modulo per l'aggregazione dei router versionati.
"""

from invoicing.api.v1 import api_v1_router

# Esportazione router
__all__ = ["api_v1_router"]
