"""
Configuration management for verifystate.

- **app_configuration.py**: YAML configuration loader with file locking.
  Exposes the database settings (SQLite path and verification table name)
  and writes defaults back to disk when the section is missing.
"""
