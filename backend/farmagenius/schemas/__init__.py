"""
FarmaGenius Backend — Pydantic Schemas Package
===============================================

Request models are the typed validation boundary: untyped JSON becomes one
of these records before any service or database call. Response models fix
the success envelope `{success: true, ...payload}` with camelCase keys.
"""
