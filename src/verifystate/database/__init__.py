"""
Database package for verifystate.

Public API:
    - db_connection: Shared ConnectionManager instance
    - TableStore: Generic table access used by the verification store
    - StorageFailure: Raised when the database rejects an operation
"""
