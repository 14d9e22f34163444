"""
Declarative base classes shared by all models.
"""
from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base
from crowdqr.core.utils import utcnow

Base = declarative_base()


class BaseModel(Base):
    """Abstract base with surrogate key and creation timestamp."""
    __abstract__ = True

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
