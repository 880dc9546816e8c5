from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    JSON,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import relationship

from jobmatch.database import Base


class User(Base):
    """
    Account record with the notification preferences the core reads.
    """

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    email = Column(String, nullable=True, index=True)
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    status = Column(String, nullable=False, default="ACTIVE")  # ACTIVE, SUSPENDED
    is_email_verified = Column(Boolean, nullable=False, default=False)

    # Standard recommendation alerts
    job_alerts = Column(Boolean, nullable=False, default=True)
    email_notifications = Column(Boolean, nullable=False, default=True)

    # Urgent job alert preferences
    urgent_job_notifications_enabled = Column(Boolean, nullable=False, default=True)
    urgent_job_max_distance = Column(Float, nullable=True)  # km, default 10
    urgent_job_min_payment = Column(Numeric(12, 2), nullable=True)
    urgent_job_preferred_categories = Column(JSON, nullable=True)  # ["PLUMBING", ...]
    urgent_job_quiet_hours_start = Column(String, nullable=True)  # "22:00"
    urgent_job_quiet_hours_end = Column(String, nullable=True)  # "06:00"
    urgent_job_notification_frequency = Column(String, nullable=True)  # instant, batched

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    profile = relationship("IndividualProfile", back_populates="user", uselist=False)


class IndividualProfile(Base):
    """
    Verified job-seeker profile (skills, experience and home location).
    """

    __tablename__ = "individual_kyc"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), unique=True, nullable=False)
    status = Column(String, nullable=False, default="PENDING")  # PENDING, APPROVED, REJECTED

    technical_skills = Column(JSON, nullable=True)  # {"react": 4, "sql": 3}
    experience = Column(JSON, nullable=True)  # [{"title": ..., "years": 2}]

    province = Column(String, nullable=True, index=True)
    district = Column(String, nullable=True, index=True)
    city = Column(String, nullable=True)
    latitude = Column(Float, nullable=True, index=True)
    longitude = Column(Float, nullable=True, index=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="profile")
