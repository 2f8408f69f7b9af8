"""
Persistence.

`stores` defines the collaborator protocols; `memory` and `sql_store`
implement every one of them.
"""
