from order_billing.reports.reference_sheet import (
    ReferenceSheet,
    VariableChargeInputs,
    build_reference_sheet,
    reference_sheet_filename,
)
from order_billing.reports.xlsx import XLSX_CONTENT_TYPE, write_xlsx

__all__ = [
    "ReferenceSheet",
    "VariableChargeInputs",
    "XLSX_CONTENT_TYPE",
    "build_reference_sheet",
    "reference_sheet_filename",
    "write_xlsx",
]
