from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from jobmatch.database import Base


class Employer(Base):
    __tablename__ = "employers"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    company_name = Column(String, nullable=True)


class JobPosting(Base):
    """
    Standard job posting.
    """

    __tablename__ = "job_postings"

    id = Column(String, primary_key=True)
    employer_id = Column(String, ForeignKey("employers.id"), nullable=False)

    title = Column(String, nullable=False, index=True)
    job_type = Column(String, nullable=True, index=True)  # FULL_TIME, PART_TIME, ...
    required_skills = Column(JSON, nullable=True)  # {"react": 3}
    experience_years = Column(Integer, nullable=True)

    # Location
    province = Column(String, nullable=True)
    district = Column(String, nullable=True)
    city = Column(String, nullable=True)
    latitude = Column(Float, nullable=True, index=True)
    longitude = Column(Float, nullable=True, index=True)
    is_remote = Column(Boolean, nullable=False, default=False)

    salary_min = Column(Numeric(12, 2), nullable=True)
    salary_max = Column(Numeric(12, 2), nullable=True)

    # Lifecycle
    is_active = Column(Boolean, nullable=False, default=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    employer = relationship("Employer", lazy="joined")


class JobApplication(Base):
    __tablename__ = "job_applications"

    id = Column(String, primary_key=True)
    job_id = Column(String, ForeignKey("job_postings.id"), nullable=False, index=True)
    applicant_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(String, nullable=False, default="PENDING")
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UrgentJob(Base):
    """
    Time-critical gig announced to people nearby.
    """

    __tablename__ = "urgent_jobs"

    id = Column(String, primary_key=True)
    poster_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String, nullable=True, index=True)
    payment_amount = Column(Numeric(12, 2), nullable=False)
    payment_type = Column(String, nullable=False, default="FIXED")  # FIXED, HOURLY, DAILY
    urgency_level = Column(String, nullable=False, default="HIGH")

    province = Column(String, nullable=True)
    district = Column(String, nullable=True)
    city = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    start_time = Column(DateTime(timezone=True), nullable=True)
    contact_phone = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    poster = relationship("User", lazy="joined")
