"""Run report: counts, classified outcomes and the JSON artifact."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from catalog_sync.normalize.processor import ReconciliationOutcome

logger = logging.getLogger(__name__)


def _number(value: Optional[Decimal]) -> Optional[float]:
    return float(value) if value is not None else None


def outcome_record(outcome: ReconciliationOutcome) -> Dict[str, Any]:
    """Serialize one outcome for the JSON report."""
    product = outcome.product
    record: Dict[str, Any] = {
        "product": {
            "id": product.id,
            "sku": product.sku,
            "name": product.name,
            "slug": product.slug,
            "price": _number(product.price),
            "inventory_quantity": product.stock_quantity,
            "brand_name": product.brand_name,
        },
        "found": outcome.found,
        "url": outcome.url,
        "found_via": outcome.found_via,
    }

    if outcome.database is not None:
        record["database"] = {
            "price": _number(outcome.database.price),
            "stock": outcome.database.stock,
        }
    if outcome.live is not None:
        record["live"] = {
            "price": _number(outcome.live.price),
            "stock": outcome.live.stock,
            "in_stock": outcome.live.in_stock,
            "stock_is_exact": outcome.live.stock_is_exact,
        }

    updates: Dict[str, Any] = {}
    if outcome.proposed_updates.price is not None:
        updates["price"] = _number(outcome.proposed_updates.price)
    if outcome.proposed_updates.stock is not None:
        updates["stock"] = outcome.proposed_updates.stock
    record["updates"] = updates
    record["applied_to_storage"] = outcome.applied_to_storage

    if outcome.not_found_reason:
        record["reason"] = outcome.not_found_reason
    if outcome.error:
        record["error"] = outcome.error
    return record


@dataclass
class Report:
    """Aggregate of one run's outcomes, in processing order."""

    outcomes: List[ReconciliationOutcome]
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    cancelled: bool = False

    @property
    def needing_updates(self) -> List[ReconciliationOutcome]:
        return [o for o in self.outcomes if o.found and o.proposed_updates]

    @property
    def not_found(self) -> List[ReconciliationOutcome]:
        return [o for o in self.outcomes if not o.found and o.error is None]

    @property
    def no_changes(self) -> List[ReconciliationOutcome]:
        return [
            o for o in self.outcomes
            if o.found and not o.proposed_updates and o.error is None
        ]

    @property
    def errors(self) -> List[ReconciliationOutcome]:
        return [o for o in self.outcomes if o.error is not None]

    @property
    def summary(self) -> Dict[str, int]:
        found = sum(1 for o in self.outcomes if o.found)
        not_found = sum(1 for o in self.outcomes if not o.found)
        return {
            "total_checked": found + not_found,
            "found": found,
            "needs_update": len(self.needing_updates),
            "updated": sum(1 for o in self.outcomes if o.applied_to_storage),
            "no_changes": len(self.no_changes),
            "not_found": len(self.not_found),
            "errors": len(self.errors),
        }

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready report document."""
        return {
            "generated_at": self.generated_at.isoformat(),
            "summary": self.summary,
            "products_needing_updates": [outcome_record(o) for o in self.needing_updates],
            "products_not_found": [outcome_record(o) for o in self.not_found],
            "products_no_changes": [outcome_record(o) for o in self.no_changes],
            "errors": [outcome_record(o) for o in self.errors],
            "cancelled": self.cancelled,
        }


def generate_report(outcomes: List[ReconciliationOutcome], cancelled: bool = False) -> Report:
    """Build a report over a run's outcomes."""
    return Report(outcomes=list(outcomes), cancelled=cancelled)


def write_report(report: Report, path: Union[str, Path]) -> Path:
    """
    Write the report as JSON.

    Args:
        report: Report to write
        path: Destination file; parent directories are created

    Returns:
        Path written
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(report.to_dict(), f, indent=2)
    logger.info(f"Detailed report saved to: {path}")
    return path


def format_summary(report: Report) -> str:
    """Human-readable run summary for the console."""
    summary = report.summary
    lines = [
        "=" * 80,
        "SUMMARY REPORT" + (" (cancelled)" if report.cancelled else ""),
        "=" * 80,
        f"Total products checked: {summary['total_checked']}",
        f"Products needing updates: {summary['needs_update']}",
        f"Products updated: {summary['updated']}",
        f"Products with no changes needed: {summary['no_changes']}",
        f"Products not found on website: {summary['not_found']}",
        f"Errors: {summary['errors']}",
    ]

    if report.needing_updates:
        lines.append("")
        lines.append("Products needing updates:")
        for outcome in report.needing_updates:
            product = outcome.product
            lines.append(f"  * {product.name} (SKU: {product.sku})")
            updates = outcome.proposed_updates
            if updates.price is not None and outcome.database is not None:
                lines.append(f"    Price: ${outcome.database.price:.2f} -> ${updates.price:.2f}")
            if updates.stock is not None and outcome.database is not None:
                lines.append(f"    Stock: {outcome.database.stock} -> {updates.stock}")
            lines.append(f"    URL: {outcome.url}")

    if report.not_found:
        lines.append("")
        lines.append("Products not found on website:")
        for outcome in report.not_found:
            product = outcome.product
            lines.append(f"  * {product.name} (SKU: {product.sku}) - {outcome.not_found_reason}")

    if report.errors:
        lines.append("")
        lines.append("Errors:")
        for outcome in report.errors:
            product = outcome.product
            lines.append(f"  * {product.name} (SKU: {product.sku}) - {outcome.error}")

    return "\n".join(lines)
