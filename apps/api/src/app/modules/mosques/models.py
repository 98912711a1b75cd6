"""
Mosque Models

A mosque carries exactly one verification code at a time. Prospective
admins must present it to register; regenerating it invalidates every
binding made under the previous code.
"""

from datetime import datetime

from sqlalchemy import DateTime, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.modules.shared import BaseModel


class Mosque(BaseModel):
    __tablename__ = "mosques"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    location: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    contact_phone: Mapped[str | None] = mapped_column(String(20), nullable=True)
    contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    # 16 upper-case hex chars
    verification_code: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    verification_code_expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )

    __table_args__ = (
        Index("ix_mosques_verification_code_expires_at", "verification_code_expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Mosque {self.name} ({self.location})>"
