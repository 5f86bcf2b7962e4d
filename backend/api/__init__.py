# MERIDIAN Payee API
"""
REST API over the meridian payee engines.

Endpoints:
- POST /api/v1/payees/standardize - Standardize raw payee names
- POST /api/v1/payees/mapping - Collapse rows onto unique payees
- POST /api/v1/payees/chunks - Oracle submission plan
- POST /api/v1/payees/reconcile - Put classification results back onto rows
- POST /api/v1/payees/classify - Full classification pipeline
- POST /api/v1/duplicates/detect - Tiered duplicate detection
"""
