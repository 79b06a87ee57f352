"""
Database Models

Key Models:
- base.py: Base SQLAlchemy model with common type definitions
- character.py: Characters, corporations, alliances and character locations
- user.py: Users and the characters linked to them
- store.py: Repository used by the login flow

EVE entities are keyed by their EVE ids and written with PostgreSQL upserts.
"""
