from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class Workspace(Base):
    """One named ledger partition; the whole ledger is stored as one JSON blob."""

    __tablename__ = "workspaces"

    code = Column(String, primary_key=True, index=True)
    data = Column(Text, nullable=False, default='{"employees": [], "transactions": []}')
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
