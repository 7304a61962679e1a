from sqlalchemy import Column, String, Text, DateTime
from sqlalchemy.sql import func

from config.database import Base


class RegistrationRecord(Base):
    """One accumulating JSON record per registration id."""
    __tablename__ = "registration_records"

    reg_id = Column(String(200), primary_key=True)
    data = Column(Text, nullable=False, default="{}")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"<RegistrationRecord {self.reg_id}>"
