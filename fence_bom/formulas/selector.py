"""
Picks exactly one formula template per component for a product type/style.

Style-specific templates beat generic ones (product_style_id NULL), higher
priority beats lower, and on a priority tie the style-specific template
wins. Resolved sets are cached per (product type, style) for the lifetime
of the selector.
"""

import logging
import threading
from typing import Dict, List, Optional, Protocol

from .templates import FormulaTemplate

logger = logging.getLogger(__name__)


class TemplateSource(Protocol):
    def fetch_active_templates(self, product_type_id: str) -> List[FormulaTemplate]:
        """Active templates for a product type, highest priority first."""
        ...


def cache_key(product_type_id: str, product_style_id: Optional[str]) -> str:
    return f"{product_type_id}:{product_style_id or 'all'}"


def select_templates(rows: List[FormulaTemplate], product_style_id: Optional[str]) -> List[FormulaTemplate]:
    """
    Resolve one template per component from rows already sorted by
    descending priority.
    """
    candidates = []
    locked = set()  # Components that already have a style-specific template

    for row in rows:
        if not row.component_code:
            continue
        if row.component_code in locked:
            continue
        if row.product_style_id is not None and row.product_style_id != product_style_id:
            continue
        if row.product_style_id is not None:
            locked.add(row.component_code)
        candidates.append(row)

    chosen: Dict[str, FormulaTemplate] = {}
    for template in candidates:
        existing = chosen.get(template.component_code)
        if (existing is None
                or template.priority > existing.priority
                or (template.priority == existing.priority and not template.is_generic)):
            chosen[template.component_code] = template

    return list(chosen.values())


class TemplateSelector:

    def __init__(self, source: TemplateSource):
        self.source = source
        self._cache: Dict[str, List[FormulaTemplate]] = {}
        self._lock = threading.Lock()

    def load_formulas(self, product_type_id: str, product_style_id: Optional[str] = None) -> List[FormulaTemplate]:
        """
        Resolved template set for a product type/style. A cache hit returns
        the same list object without touching the source. A failed fetch
        logs and returns an empty list, which is not cached.
        """
        key = cache_key(product_type_id, product_style_id)
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        try:
            rows = self.source.fetch_active_templates(product_type_id)
        except Exception as e:
            logger.error("Error loading formulas for %s: %s", key, e)
            return []

        resolved = select_templates(rows, product_style_id)
        with self._lock:
            # Another thread may have filled the slot while we were fetching
            cached = self._cache.setdefault(key, resolved)
        logger.info("Cached %d formulas for %s", len(cached), key)
        return cached

    def clear_cache(self) -> None:
        with self._lock:
            self._cache.clear()

    def cached_keys(self) -> List[str]:
        return list(self._cache.keys())
