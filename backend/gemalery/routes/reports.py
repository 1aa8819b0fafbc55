# Overview: Flask API routes for reports; read-only aggregates.

# backend/gemalery/routes/reports.py
"""
Reporting routes (admin/staff).

Dates are ISO-8601; a malformed value falls back to the report's default
window instead of failing.
"""

from flask import Blueprint, request

from ..decorators import require_auth, require_role
from ..models.auth import ROLE_ADMIN, ROLE_STAFF
from ..services import reporting_service

reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _window_args() -> tuple[str | None, str | None]:
    """from/to, with start/end accepted as aliases."""
    args = request.args
    return args.get("from") or args.get("start"), args.get("to") or args.get("end")


@reports_bp.get("/sales")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def sales_report_route():
    """
    Query params:
    - from, to: optional (default last 30 days); start, end also accepted
    - channel: web | tokopedia | shopee | tiktok | offline (optional)
    """
    start, end = _window_args()
    return reporting_service.sales_by_day(
        start=start,
        end=end,
        channel=request.args.get("channel"),
    )


@reports_bp.get("/profit-loss")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def profit_loss_route():
    """Query params: from, to (default: first of the month to now)."""
    start, end = _window_args()
    return reporting_service.profit_loss(
        start=start,
        end=end,
    )
