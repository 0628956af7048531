"""
Database package for Honeyguard.

SQLite (aiosqlite) storage for temporary bans with a single shared
connection and serialised writes.
"""
