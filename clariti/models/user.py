"""
User model - owned by the auth layer, referenced by tasks and integrations
"""
from sqlalchemy import Column, Integer, String, DateTime
from clariti.database import Base
from clariti.utils.helpers import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    created_at = Column(DateTime, default=utcnow)
