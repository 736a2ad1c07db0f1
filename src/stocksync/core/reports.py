"""Sales figures shown on the dashboard."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from .timestamp_utils import DISPLAY_DATE_FORMAT, timestamp_ms_to_date


def _sale_day(sale: Dict[str, Any]) -> str:
    created_at = sale.get("created_at")
    if created_at:
        return timestamp_ms_to_date(created_at)
    # "DD/MM/YYYY HH:MM:SS" from the remote
    return str(sale.get("date") or "").split(" ")[0]


def sales_summary(
    sales: List[Dict[str, Any]], now: Optional[datetime] = None
) -> Dict[str, float]:
    """Total of all sales and of today's sales.

    Args:
        sales: Local sale records
        now: Reference time (default: current local time)

    Returns:
        Dict with "all_time_total", "today_total" and "count"
    """
    today = (now or datetime.now()).strftime(DISPLAY_DATE_FORMAT)
    all_time = 0.0
    today_total = 0.0
    for sale in sales:
        try:
            total = float(sale.get("total") or 0)
        except (TypeError, ValueError):
            total = 0.0
        all_time += total
        if _sale_day(sale) == today:
            today_total += total
    return {
        "all_time_total": round(all_time, 2),
        "today_total": round(today_total, 2),
        "count": len(sales),
    }
