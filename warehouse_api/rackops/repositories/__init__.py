"""
Repository layer for data access.

Repositories encapsulate SQLAlchemy queries for each domain area. They stage
writes on the provided AsyncSession; services decide when to commit.
"""
