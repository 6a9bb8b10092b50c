"""
Pydantic AdminDailyStats Model

Derived per-day counters for the admin dashboard. Always recomputable from
the transactions table.
"""
from pydantic import BaseModel, Field


class AdminDailyStats(BaseModel):
    date: str = Field(pattern=r"^\d{4}-\d{2}-\d{2}$")
    transaction_count: int = Field(0, ge=0, serialization_alias="todayTransactions")
    revenue: int = Field(0, ge=0, serialization_alias="todayRevenue")
    pending_count: int = Field(0, ge=0, serialization_alias="pendingTransactions")
    failed_count: int = Field(0, ge=0, serialization_alias="failedTransactions")
