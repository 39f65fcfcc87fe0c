# Services package init
"""
FarmaGenius Backend — Services Layer
=====================================

Service Inventory:
    - FixedWindowRateLimiter: per-key request counters (instance on app.state)
    - PrincipalResolver:      session token ↔ Principal (instance on app.state)
    - PaymentGateway (abstract) / KiwifyGateway: checkout provider
    - UserService:            signup, login, profile, password, stats, activity
    - MappingService:         owner-scoped mappings and the default switch
    - ReportService:          saved reports and history
    - SettingsService:        per-user preference sections
    - SpreadsheetService:     Excel preview, CSV/XLSX export
    - AuditService:           audit trail writer and reader

Services take the request's AsyncSession as an argument and never commit
it themselves (the login-failure audit entry is the one exception).
"""
