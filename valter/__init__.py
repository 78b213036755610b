"""Valter console: schema-driven entity tables and conflict resolution over the Valter core."""
