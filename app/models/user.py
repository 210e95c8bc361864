"""Tracker user model"""
from sqlalchemy import Column, Integer, String, DateTime
from datetime import datetime
from app.models.base import Base


class TrackerUser(Base):
    """Tracker account that review remarks are authored by"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    login = Column(String, unique=True, nullable=False, index=True)
    mail = Column(String, nullable=True, index=True)
    name = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    def __str__(self):
        return self.name or self.login

    def __repr__(self):
        return f"<TrackerUser(login='{self.login}')>"
