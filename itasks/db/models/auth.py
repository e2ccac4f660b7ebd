# itasks/db/models/auth.py
"""User, team, and token models"""
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Enum, Text, func, ForeignKey, Index
from sqlalchemy.orm import relationship

from itasks.db.models.base import Base, TimestampMixin, UUIDMixin
from itasks.db.models.enums import UserRole


class Team(Base, UUIDMixin, TimestampMixin):
    """Group of technicians, usually one per branch or discipline"""
    __tablename__ = "teams"

    name = Column(String(255), unique=True, nullable=False)
    description = Column(Text, nullable=True)

    members = relationship("User", back_populates="team")

    def __repr__(self):
        return f"<Team name={self.name}>"


class User(Base, UUIDMixin, TimestampMixin):
    """Helpdesk user; the role drives every authorization decision"""
    __tablename__ = "users"

    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.TECHNICIAN)
    is_active = Column(Boolean, default=True, nullable=False)
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True)

    team = relationship("Team", back_populates="members")

    __table_args__ = (
        Index('idx_user_email_active', 'email', 'is_active'),
        Index('idx_user_role', 'role'),
    )

    def __repr__(self):
        return f"<User email={self.email} role={self.role}>"


class BlacklistedToken(Base):
    """Access token ids revoked by logout"""
    __tablename__ = "blacklisted_tokens"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(255), unique=True, nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    blacklisted_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index('idx_blacklisted_expires', 'expires_at'),
    )

    def __repr__(self):
        return f"<BlacklistedToken jti={self.jti}>"
