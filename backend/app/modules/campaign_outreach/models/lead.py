"""
Lead ORM Model
SQLAlchemy model representing the 'leads' table.

Leads are owned by the broader CRM; the campaign state machine only needs
their identity, name fields for template rendering, email and LinkedIn URL.
"""
from sqlalchemy import Column, BigInteger, Text, DateTime
from sqlalchemy.sql import func
from app.shared.db.base import Base


class Lead(Base):
    __tablename__ = "leads"

    id = Column(BigInteger, primary_key=True)

    # ============================================
    # IDENTITY
    # ============================================
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    full_name = Column(Text, nullable=True)
    company = Column(Text, nullable=True)
    title = Column(Text, nullable=True)

    # ============================================
    # CONTACT
    # ============================================
    email = Column(Text, nullable=True)
    linkedin_url = Column(Text, unique=True, nullable=True)  # Profile URL (dedup key)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    def __repr__(self):
        return f"<Lead(id={self.id}, name='{self.full_name}', company='{self.company}')>"
