from sqlalchemy import Column, Integer, String, DateTime, Date, JSON, Float, Text, Boolean
from datetime import datetime
from fraudshield.database import Base


class Advisor(Base):
    __tablename__ = "advisors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), index=True, nullable=False)
    registration_number = Column(String(64), unique=True, index=True, nullable=False)
    status = Column(String(20), index=True, default="active")  # active | suspended | cancelled
    firm = Column(String(255), index=True, nullable=False)

    # Contact
    email = Column(String(255))
    phone = Column(String(50))
    street = Column(String(255))
    city = Column(String(100))
    state = Column(String(100))
    pincode = Column(String(20))

    certifications = Column(JSON, default=list)
    specializations = Column(JSON, default=list)
    registration_date = Column(Date, nullable=False)

    last_updated = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    created_at = Column(DateTime, default=datetime.utcnow)


class Scan(Base):
    __tablename__ = "scans"

    id = Column(Integer, primary_key=True, index=True)
    scan_id = Column(String(36), unique=True, index=True)

    # Input
    input_type = Column(String(10))  # text | url | image
    source_url = Column(String(2048), nullable=True)
    raw_text = Column(Text, nullable=False)
    language = Column(String(5), default="en")

    # Analysis Results
    extracted_meta = Column(JSON)
    red_flags = Column(JSON)
    llm_labels = Column(JSON)
    risk_score = Column(Integer, default=0, index=True)
    risk_band = Column(String(10), index=True)
    breakdown = Column(JSON, default=dict)
    explanation = Column(Text)
    recommendations = Column(JSON)
    advisor_matches = Column(JSON)

    # Processing metadata
    llm_used = Column(Boolean, default=False)
    processing_time = Column(Float)  # milliseconds

    created_at = Column(DateTime, default=datetime.utcnow, index=True)


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    report_id = Column(String(36), unique=True, index=True, nullable=False)

    type = Column(String(20), index=True, nullable=False)  # fraud | false_positive | feedback | advisor_issue
    scan_id = Column(String(36), index=True, nullable=True)
    subject = Column(Text, nullable=False)  # HTML-escaped, may exceed the 200 input characters
    description = Column(Text, nullable=False)
    evidence = Column(JSON, default=dict)  # {"urls": [...], "screenshots": [...], "documents": [...]}

    # Reporter
    reporter_email = Column(String(255), nullable=True)
    user_agent = Column(String(512), nullable=True)

    # Workflow
    priority = Column(String(10), index=True, default="medium")  # low | medium | high | critical
    status = Column(String(12), index=True, default="pending")  # pending | reviewing | resolved | dismissed
    resolution = Column(Text, nullable=True)
    assigned_to = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
