"""
Backend — HTTP API and the external-service adapters (PostgreSQL store,
Google Sheets client) used by the directory runtime.
"""
