"""
User Module - User Model
=========================
Minimal account record; credentials and profile management live with the
identity provider. Only what is needed to resolve a Principal.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime, true
from sqlalchemy.sql import func
from config.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    role = Column(String(20), default=UserRole.USER.value, server_default=UserRole.USER.value, nullable=False)
    is_active = Column(Boolean, default=True, server_default=true(), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    def __repr__(self):
        return f"<User {self.email}>"
