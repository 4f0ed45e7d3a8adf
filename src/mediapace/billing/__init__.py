"""Billing: monthly allocation, schedule building, finance extraction and accruals."""

from .accrual import AccrualRow, AccrualVersion, compute_accrual_rows, normalize_month_key
from .allocation import MonthlyAllocation, allocate_bursts_monthly, build_monthly_inputs, validate_overrides
from .finance import (
    FinanceLineItem,
    ServiceAmounts,
    extract_line_items,
    extract_service_amounts,
    match_month_year,
    merge_finance_line_items,
)
from .headers import schedule_headers
from .schedule import BillingLineInput, BillingMonthInput, build_billing_schedule, media_type_label

__all__ = [
    "AccrualRow",
    "AccrualVersion",
    "compute_accrual_rows",
    "normalize_month_key",
    "MonthlyAllocation",
    "allocate_bursts_monthly",
    "build_monthly_inputs",
    "validate_overrides",
    "FinanceLineItem",
    "ServiceAmounts",
    "extract_line_items",
    "extract_service_amounts",
    "match_month_year",
    "merge_finance_line_items",
    "schedule_headers",
    "BillingLineInput",
    "BillingMonthInput",
    "build_billing_schedule",
    "media_type_label",
]
