"""Tasks API: CRUD over a PostgreSQL ``tasks`` table with remote log shipping."""

__version__ = "1.0.0"
