"""
Database models for UCC filing mirrors.

Only "database" sources read this table; the rest of the pipeline keeps its
state in memory.
"""
from datetime import date
from typing import Optional

from sqlalchemy import Date, Float, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from lienscout.core.database import Base


class FilingRecordModel(Base):
    """One row per UCC filing as mirrored from a state registry."""
    __tablename__ = "ucc_filings"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    filing_date: Mapped[date] = mapped_column(Date, nullable=False)
    debtor_name: Mapped[str] = mapped_column(String(255), nullable=False)
    secured_party_name: Mapped[Optional[str]] = mapped_column(String(255))
    jurisdiction: Mapped[str] = mapped_column(String(8), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="lapsed")
    filing_type: Mapped[str] = mapped_column(String(10), default="UCC-1")
    lien_amount: Mapped[Optional[float]] = mapped_column(Float)

    __table_args__ = (
        Index("ix_ucc_filings_jurisdiction_status", "jurisdiction", "status"),
    )

    def __repr__(self):
        return f"<FilingRecordModel(id={self.id}, debtor='{self.debtor_name}', state={self.jurisdiction})>"
