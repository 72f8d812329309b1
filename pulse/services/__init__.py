"""
Services layer for business logic.

Separates activity rules and reporting from persistence and transport.
"""
