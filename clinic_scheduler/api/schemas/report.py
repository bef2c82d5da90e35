from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class ReportSummaryResponse(BaseModel):
    from_date: date
    to_date: date
    total: int
    by_status: dict[str, int]
    by_kind: dict[str, int]
    completed_revenue: Decimal
