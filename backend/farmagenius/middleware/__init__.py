# Middleware package init
"""
FarmaGenius Backend — Middleware Package
=========================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (outermost first):
    Request → [Request ID] → [Logging] → [Rate Limit] → [GZip] → [CORS] → Route Handler

    - Request ID runs first so every later log line and error body carries it.
    - Logging sits outside the rate limiter so rejected (429) requests are logged.
    - The rate limiter here applies the general per-IP limit; stricter
      per-route limits (login, sensitive, stats) are route dependencies.
"""
