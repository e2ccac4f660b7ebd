# itasks/db/models/system_config.py
from sqlalchemy import Column, Integer, String, Boolean, DateTime, func

from itasks.db.models.base import Base

SYSTEM_CONFIG_ID = "system"


class SystemConfig(Base):
    """Single-row runtime configuration edited by administrators"""
    __tablename__ = "system_config"

    id = Column(String(32), primary_key=True, default=SYSTEM_CONFIG_ID)

    # SLA hours per priority; null or <= 0 disables the deadline for that priority
    sla_critical_hours = Column(Integer, nullable=True, default=4)
    sla_high_hours = Column(Integer, nullable=True, default=24)
    sla_medium_hours = Column(Integer, nullable=True, default=48)
    sla_low_hours = Column(Integer, nullable=True, default=120)

    # SMTP
    smtp_enabled = Column(Boolean, nullable=False, default=False)
    smtp_host = Column(String(255), nullable=True)
    smtp_port = Column(Integer, nullable=True)
    smtp_user = Column(String(255), nullable=True)
    smtp_password = Column(String(255), nullable=True)
    smtp_from = Column(String(255), nullable=True)
    smtp_use_tls = Column(Boolean, nullable=False, default=False)

    # Branding and locale
    app_name = Column(String(255), nullable=True)
    support_email = Column(String(255), nullable=True)
    timezone = Column(String(64), nullable=True)

    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), default=func.now(), nullable=False)

    def __repr__(self):
        return f"<SystemConfig id={self.id}>"
