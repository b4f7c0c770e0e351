"""Core (UI-agnostic) PS control dashboard logic.

This package contains:
- sheet loading and CSV parsing (text -> ServiceOrder records)
- filter normalization
- aggregations and the overview payload (JSON-serializable)
- chart helpers (Altair -> Vega-Lite spec dict)
- budget-request dispatch and PDF report export
"""
