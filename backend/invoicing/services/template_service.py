"""
Service Layer per i template di fattura
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Gestisce i preset di sistema e i template custom dei tenant.
Vincolo: al massimo un template custom per tenant con is_default=True,
applicato in scrittura nella stessa transazione che imposta il nuovo default.
"""

import copy
import logging
import uuid
from typing import Any, Optional

from sqlalchemy import and_, or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from invoicing.core.exceptions import NotFoundError
from invoicing.models import InvoiceTemplate
from invoicing.models.mixins import utcnow
from invoicing.schemas.template import TemplateCreate, TemplateDuplicate, TemplateType, TemplateUpdate

# Logger per questo modulo
logger = logging.getLogger(__name__)


# -------------------------------------------------------------------
# Preset di sistema
# -------------------------------------------------------------------

def _preset(
    heading_font: str,
    body_font: str,
    primary: str,
    secondary: str,
    header_layout: str,
    table_style: str,
) -> dict[str, Any]:
    return {
        "fonts": {
            "heading": {"family": heading_font, "weight": 700, "size": 28},
            "body": {"family": body_font, "weight": 400, "size": 13},
        },
        "colors": {
            "primary": primary,
            "secondary": secondary,
            "text": "#1f2937",
            "text_muted": "#6b7280",
            "border": "#d1d5db",
            "table_header_bg": "#f3f4f6",
            "table_header_text": "#374151",
        },
        "layout": {"page_size": "A4", "page_margin": 40},
        "header": {"layout": header_layout, "show_logo": True},
        "table": {"style": table_style, "show_tax_column": True},
        "footer": {"show_amount_in_words": True, "amount_format": "legal", "text": ""},
    }


PRESET_TEMPLATES: dict[str, dict[str, Any]] = {
    "Classic Professional": _preset("Georgia", "Arial", "#1e3a8a", "#3b82f6", "split", "bordered"),
    "Modern Corporate": _preset("Helvetica", "Helvetica", "#0f172a", "#0ea5e9", "stacked", "striped"),
    "Designer Bold": _preset("Futura", "Helvetica", "#7c3aed", "#f59e0b", "centered", "minimal"),
    "Tech Startup": _preset("Inter", "Inter", "#059669", "#10b981", "split", "striped"),
}

DEFAULT_TEMPLATE_CONFIG: dict[str, Any] = PRESET_TEMPLATES["Classic Professional"]


def merge_config(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Fusione ricorsiva delle config: le chiavi di overrides vincono."""
    merged = copy.deepcopy(base)
    for key, value in (overrides or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


class TemplateService:
    """
    Service per i template di fattura.

    I preset (tenant_id NULL, type='preset') sono in sola lettura e
    visibili a tutti; i template custom appartengono a un solo tenant.
    """

    @staticmethod
    def _visible_to(tenant_id: uuid.UUID):
        return or_(
            and_(InvoiceTemplate.type == TemplateType.PRESET.value, InvoiceTemplate.is_public.is_(True)),
            and_(InvoiceTemplate.tenant_id == tenant_id, InvoiceTemplate.type == TemplateType.CUSTOM.value),
        )

    async def seed_presets(self, db: AsyncSession) -> int:
        """
        Inserisce i preset mancanti (idempotente).

        Returns:
            int: numero di preset creati
        """
        existing = set(
            (
                await db.execute(
                    select(InvoiceTemplate.name).where(InvoiceTemplate.type == TemplateType.PRESET.value)
                )
            ).scalars().all()
        )
        created = 0
        for name, config in PRESET_TEMPLATES.items():
            if name in existing:
                continue
            db.add(
                InvoiceTemplate(
                    tenant_id=None,
                    name=name,
                    type=TemplateType.PRESET.value,
                    is_public=True,
                    config=copy.deepcopy(config),
                )
            )
            created += 1
        await db.commit()
        if created:
            logger.info(f"Creati {created} template preset")
        return created

    async def get_all(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        type_filter: Optional[TemplateType] = None,
    ) -> list[InvoiceTemplate]:
        """Preset pubblici + template custom del tenant, default per primo."""
        stmt = select(InvoiceTemplate).where(self._visible_to(tenant_id))
        if type_filter:
            stmt = stmt.where(InvoiceTemplate.type == type_filter.value)
        stmt = stmt.order_by(
            InvoiceTemplate.is_default.desc(),
            InvoiceTemplate.usage_count.desc(),
            InvoiceTemplate.created_at.desc(),
        )
        return list((await db.execute(stmt)).scalars().all())

    async def get_by_id(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        template_id: uuid.UUID,
    ) -> InvoiceTemplate:
        """
        Raises:
            NotFoundError: template inesistente o non visibile al tenant
        """
        stmt = select(InvoiceTemplate).where(
            InvoiceTemplate.id == template_id,
            self._visible_to(tenant_id),
        )
        template = (await db.execute(stmt)).scalar_one_or_none()
        if not template:
            raise NotFoundError(f"Template {template_id} non trovato")
        return template

    async def get_default(self, db: AsyncSession, tenant_id: uuid.UUID) -> Optional[InvoiceTemplate]:
        """Template custom di default del tenant, se impostato."""
        stmt = select(InvoiceTemplate).where(
            InvoiceTemplate.tenant_id == tenant_id,
            InvoiceTemplate.type == TemplateType.CUSTOM.value,
            InvoiceTemplate.is_default.is_(True),
        )
        return (await db.execute(stmt.limit(1))).scalar_one_or_none()

    async def _get_custom(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        template_id: uuid.UUID,
    ) -> InvoiceTemplate:
        stmt = select(InvoiceTemplate).where(
            InvoiceTemplate.id == template_id,
            InvoiceTemplate.tenant_id == tenant_id,
            InvoiceTemplate.type == TemplateType.CUSTOM.value,
        )
        template = (await db.execute(stmt)).scalar_one_or_none()
        if not template:
            raise NotFoundError(f"Template {template_id} non trovato o non modificabile")
        return template

    async def _clear_other_defaults(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        keep_id: uuid.UUID,
    ) -> None:
        await db.execute(
            update(InvoiceTemplate)
            .where(
                InvoiceTemplate.tenant_id == tenant_id,
                InvoiceTemplate.type == TemplateType.CUSTOM.value,
                InvoiceTemplate.id != keep_id,
                InvoiceTemplate.is_default.is_(True),
            )
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )

    async def create(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        data: TemplateCreate,
    ) -> InvoiceTemplate:
        """Crea un template custom; se is_default, azzera gli altri default."""
        template = InvoiceTemplate(
            tenant_id=tenant_id,
            name=data.name,
            type=TemplateType.CUSTOM.value,
            config=copy.deepcopy(data.config),
            is_default=data.is_default,
            is_public=data.is_public,
            created_by=user_id,
            usage_count=0,
        )
        db.add(template)
        await db.flush()

        if template.is_default:
            await self._clear_other_defaults(db, tenant_id, template.id)

        await db.commit()
        await db.refresh(template)
        logger.info(f"Template '{template.name}' creato (tenant={tenant_id}, default={template.is_default})")
        return template

    async def update(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        template_id: uuid.UUID,
        data: TemplateUpdate,
    ) -> InvoiceTemplate:
        """Aggiorna un template custom fondendo la config con quella esistente."""
        template = await self._get_custom(db, tenant_id, template_id)

        if data.name is not None:
            template.name = data.name
        if data.config is not None:
            template.config = merge_config(template.config or {}, data.config)
        if data.is_public is not None:
            template.is_public = data.is_public
        if data.is_default is not None:
            template.is_default = data.is_default
            if data.is_default:
                await self._clear_other_defaults(db, tenant_id, template.id)

        await db.commit()
        await db.refresh(template)
        return template

    async def delete(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        template_id: uuid.UUID,
    ) -> None:
        """Elimina un template custom (i preset non sono eliminabili)."""
        template = await self._get_custom(db, tenant_id, template_id)
        await db.delete(template)
        await db.commit()
        logger.info(f"Template {template_id} eliminato (tenant={tenant_id})")

    async def duplicate(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        user_id: uuid.UUID,
        template_id: uuid.UUID,
        data: TemplateDuplicate,
    ) -> InvoiceTemplate:
        """Copia un preset o un custom del tenant come nuovo template custom."""
        original = await self.get_by_id(db, tenant_id, template_id)

        duplicate = InvoiceTemplate(
            tenant_id=tenant_id,
            name=data.name or f"{original.name} (Copy)",
            type=TemplateType.CUSTOM.value,
            config=merge_config(original.config or {}, data.modifications),
            is_default=False,
            is_public=False,
            created_by=user_id,
            usage_count=0,
        )
        db.add(duplicate)
        await db.commit()
        await db.refresh(duplicate)
        return duplicate

    async def set_default(
        self,
        db: AsyncSession,
        tenant_id: uuid.UUID,
        template_id: uuid.UUID,
    ) -> InvoiceTemplate:
        """Imposta il template come default, azzerando gli altri nella stessa transazione."""
        template = await self._get_custom(db, tenant_id, template_id)

        await self._clear_other_defaults(db, tenant_id, template.id)
        template.is_default = True

        await db.commit()
        await db.refresh(template)
        logger.info(f"Template di default del tenant {tenant_id}: {template.name}")
        return template

    async def track_usage(self, db: AsyncSession, template_id: uuid.UUID) -> None:
        """
        Incrementa usage_count e aggiorna last_used_at.

        Operazione non critica: un errore viene loggato e ignorato.
        """
        try:
            async with db.begin_nested():
                await db.execute(
                    update(InvoiceTemplate)
                    .where(InvoiceTemplate.id == template_id)
                    .values(
                        usage_count=InvoiceTemplate.usage_count + 1,
                        last_used_at=utcnow(),
                    )
                    .execution_options(synchronize_session=False)
                )
            await db.commit()
        except SQLAlchemyError as e:
            await db.rollback()
            logger.warning(f"Tracciamento utilizzo template {template_id} fallito: {e}")
