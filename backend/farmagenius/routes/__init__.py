# Routes package init
"""
FarmaGenius Backend — API Routes Package
=========================================

Route Inventory:
    - auth.py:          POST /signup, POST /auth/login
    - user.py:          /user/profile, /user/password, /user/stats,
                        /user/activity, /user/settings
    - mappings.py:      /mappings, /mappings/{id}, /mappings/{id}/default
    - reports.py:       POST /save-report, /history, /history/{id}
    - audit.py:         GET /audit
    - payment.py:       /payment, /payment/public
    - spreadsheets.py:  POST /preview-excel, POST /export-report
    - health.py:        GET /health

Routes stay thin: decode the request, validate it into a schema, call a
service, wrap the result in a response model.
"""
