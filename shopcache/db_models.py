"""
Database models for the catalog cache.
"""

from sqlalchemy import Column, String, Integer, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CacheEntry(Base):
    """
    One cached storefront document.

    ``timestamp`` is the last write time in epoch seconds; a row is replaced
    wholesale on every write.
    """
    __tablename__ = "catalog_cache"

    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)
    timestamp = Column(Integer, nullable=False)
