# app/models/user.py
"""
Users table: drivers and administrators.
The scan pipeline only reads it: tag ownership and the is_active flag.
Account management lives outside this service.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime
from app.database import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    email = Column(String(200), unique=True, nullable=False)
    role = Column(String(20), default="driver", nullable=False)   # admin | superadmin | driver
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime)

    def __repr__(self):
        return f"<User {self.id} name={self.name} active={self.is_active}>"
