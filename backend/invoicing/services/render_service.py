"""
Service per il rendering delle fatture (HTML con Jinja2, PDF con WeasyPrint).
Progetto: Invoicing SaaS (Fatturazione Multi-Tenant)

Il renderer legge uno snapshot della fattura, i dati del tenant e la
config del template; non modifica mai i campi finanziari della fattura.
"""

import logging
import os
import threading
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date
from typing import Any, Hashable, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from invoicing.core.config import settings
from invoicing.core.exceptions import UnsupportedCurrencyError
from invoicing.models import Invoice, InvoiceTemplate, Tenant
from invoicing.services.amount_in_words import to_words
from invoicing.services.template_service import DEFAULT_TEMPLATE_CONFIG, merge_config

logger = logging.getLogger(__name__)

# Path alla cartella templates
BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
TEMPLATES_DIR = os.path.join(BASE_DIR, "templates")


# Lazy import of weasyprint to avoid startup errors if GTK/Pango libraries aren't available
def _get_weasyprint():
    """Lazy import of weasyprint to handle missing system libraries gracefully."""
    try:
        from weasyprint import CSS, HTML
        return HTML, CSS
    except OSError as e:
        raise RuntimeError(
            "WeasyPrint dependencies not found. Please install Pango/GTK libraries "
            "(apt install libpango-1.0-0 libpangoft2-1.0-0)"
        ) from e


# ------------------------------------------------------------
# Cache LRU
# ------------------------------------------------------------

@dataclass
class CacheStats:
    """Statistiche della cache."""
    hits: int = 0
    misses: int = 0
    evictions: int = 0


class LRUCache:
    """
    Cache in memoria a dimensione limitata.

    Alla saturazione elimina la voce usata meno di recente.
    Thread-safe: il rendering PDF può girare in un threadpool.
    """

    def __init__(self, maxsize: int) -> None:
        if maxsize < 1:
            raise ValueError("maxsize deve essere >= 1")
        self.maxsize = maxsize
        self.stats = CacheStats()
        self._data: "OrderedDict[Hashable, Any]" = OrderedDict()
        self._lock = threading.RLock()

    def get(self, key: Hashable) -> Optional[Any]:
        with self._lock:
            if key not in self._data:
                self.stats.misses += 1
                return None
            self._data.move_to_end(key)
            self.stats.hits += 1
            return self._data[key]

    def put(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            self._data[key] = value
            while len(self._data) > self.maxsize:
                self._data.popitem(last=False)
                self.stats.evictions += 1

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


# ------------------------------------------------------------
# Renderer
# ------------------------------------------------------------

class InvoiceRenderer:
    """
    Genera HTML e PDF da template Jinja2.

    Il foglio di stile dipende solo dalla config del template ed è
    messo in cache per (id template, updated_at): una modifica al
    template produce una chiave nuova.
    """

    def __init__(self, cache_size: Optional[int] = None) -> None:
        self.env = Environment(
            loader=FileSystemLoader(TEMPLATES_DIR),
            autoescape=select_autoescape(["html"]),
        )
        self.env.filters["money"] = _format_money
        self.styles = LRUCache(cache_size or settings.template_cache_size)

    @staticmethod
    def resolve_config(template: Optional[InvoiceTemplate]) -> dict[str, Any]:
        """Config del template fusa con i default (chiavi mancanti = default)."""
        if template is None:
            return merge_config(DEFAULT_TEMPLATE_CONFIG, {})
        return merge_config(DEFAULT_TEMPLATE_CONFIG, template.config or {})

    def stylesheet(self, template: Optional[InvoiceTemplate]) -> str:
        """CSS generato dalla config, servito dalla cache quando possibile."""
        key = ("default",) if template is None else (template.id, template.updated_at)
        css = self.styles.get(key)
        if css is None:
            config = self.resolve_config(template)
            css = self.env.get_template("invoice_style.css").render(config=config)
            self.styles.put(key, css)
        return css

    def build_context(
        self,
        invoice: Invoice,
        tenant: Tenant,
        template: Optional[InvoiceTemplate] = None,
    ) -> dict[str, Any]:
        """Contesto in sola lettura per il template HTML."""
        config = self.resolve_config(template)
        footer = config.get("footer", {})

        amount_in_words = None
        if footer.get("show_amount_in_words", True):
            try:
                amount_in_words = to_words(
                    invoice.total,
                    invoice.currency,
                    footer.get("amount_format", "legal"),
                )
            except UnsupportedCurrencyError:
                logger.debug(f"Importo in lettere non disponibile per valuta {invoice.currency}")

        vendor = dict(invoice.vendor_snapshot or {})

        return {
            "invoice": invoice,
            "items": list(invoice.items),
            "vendor": vendor,
            "vendor_address": _format_address(vendor.get("address")),
            "tenant": tenant,
            "branding": dict(tenant.branding or {}),
            "payment_terms": tenant.default_payment_terms,
            "config": config,
            "amount_in_words": amount_in_words,
            "watermark": settings.watermark_text if needs_watermark(tenant) else None,
            "oggi": date.today().strftime("%d/%m/%Y"),
        }

    def render_html(
        self,
        invoice: Invoice,
        tenant: Tenant,
        template: Optional[InvoiceTemplate] = None,
        inline_styles: bool = True,
    ) -> str:
        """HTML della fattura; con inline_styles il CSS è incluso in un tag <style> (anteprima)."""
        context = self.build_context(invoice, tenant, template)
        context["stylesheet"] = self.stylesheet(template) if inline_styles else None
        return self.env.get_template("invoice_template.html").render(context)

    def render_pdf(
        self,
        invoice: Invoice,
        tenant: Tenant,
        template: Optional[InvoiceTemplate] = None,
    ) -> bytes:
        """
        Genera il PDF di una fattura.

        Args:
            invoice: Fattura con righe caricate
            tenant: Tenant proprietario (branding, piano)
            template: Template da applicare (None = default di sistema)

        Returns:
            bytes: PDF binario pronto per il download
        """
        HTML, CSS = _get_weasyprint()

        html_out = self.render_html(invoice, tenant, template, inline_styles=False)
        css = CSS(string=self.stylesheet(template))
        return HTML(string=html_out, base_url=TEMPLATES_DIR).write_pdf(stylesheets=[css])


def needs_watermark(tenant: Tenant) -> bool:
    """I PDF dei tenant free hanno il watermark."""
    return tenant.subscription_tier == "free"


def _format_money(value: Any) -> str:
    try:
        return f"{value:,.2f}"
    except (TypeError, ValueError):
        return str(value)


def _format_address(address: Any) -> str:
    if not address:
        return ""
    if isinstance(address, str):
        return address
    parts = [
        address.get("street"),
        address.get("city"),
        " ".join(p for p in (address.get("state"), address.get("postal_code")) if p),
        address.get("country"),
    ]
    return ", ".join(p for p in parts if p)
