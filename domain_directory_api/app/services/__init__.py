"""
Service layer.

``domain_service`` holds the three domain operations; it relies on
``permissions`` for the role gate, ``domain_payload`` to pick fields
out of a request body and ``domain_fields`` to validate and stage
each field.  ``domain_store``, ``place_service``, ``account_service``
and ``audit_service`` talk to SQLite.
"""
