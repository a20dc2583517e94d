"""Persistence adapter: query functions over an open SQLAlchemy session.

Functions flush but never commit; the calling use case owns the unit of work.
"""
