"""Core helpers for the SCIM suite.

Module Structure:
    - endpoints.py  : Endpoint path builder (scim vs apiserver routing)
    - filters.py    : Institution-scoped filter expressions
    - oauth.py      : OAuth2 client-credentials token provider
    - client.py     : SCIM HTTP client with token injection
    - payloads.py   : Request body builders
    - validators.py : Response validators
    - database.py   : Optional SQL Server helper (pyodbc)
    - exceptions.py : Error taxonomy

These modules are not auto-imported; import them explicitly, e.g.:
    from scim_suite.core.validators import validate_status
"""
