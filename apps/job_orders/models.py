from core.database import Base
from sqlalchemy import Column, Integer, String, Float, DateTime, Text, Boolean, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import enum


class JobOrderStatus(str, enum.Enum):
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    QUEUED = "queued"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    RESOLVED = "resolved"
    CLOSED = "closed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class JobOrderPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class JobOrder(Base):
    __tablename__ = "it_job_orders"

    id = Column(Integer, primary_key=True, index=True)
    work_order_no = Column(String(20), unique=True, index=True, nullable=False)

    # Classification
    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String(100), nullable=True)
    type = Column(String(100), nullable=True)
    priority = Column(
        SQLEnum(JobOrderPriority, values_callable=_enum_values, native_enum=False, length=20),
        default=JobOrderPriority.MEDIUM,
        nullable=False,
    )
    department = Column(String(100), nullable=False, index=True)
    location = Column(String(255), nullable=True)
    asset_id = Column(String(100), nullable=True)
    tags = Column(String(500), nullable=True)

    # Status and tracking
    status = Column(
        SQLEnum(JobOrderStatus, values_callable=_enum_values, native_enum=False, length=30),
        default=JobOrderStatus.PENDING_APPROVAL,
        nullable=False,
        index=True,
    )
    held_from_status = Column(String(30), nullable=True)

    # Effort
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)

    # Resolution / rejection detail
    action_taken = Column(Text, nullable=True)
    resolution_notes = Column(Text, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    due_date = Column(DateTime, nullable=True)
    approved_at = Column(DateTime, nullable=True)
    assigned_at = Column(DateTime, nullable=True)
    started_at = Column(DateTime, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    closed_at = Column(DateTime, nullable=True)

    # Actors
    requester_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    requester = relationship("UserModel", foreign_keys=[requester_id])
    tech_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    tech = relationship("UserModel", foreign_keys=[tech_id])
    approved_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_by = relationship("UserModel", foreign_keys=[approved_by_id])
    closed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    closed_by = relationship("UserModel", foreign_keys=[closed_by_id])

    attachments = relationship(
        "JobOrderAttachment", back_populates="job_order", order_by="JobOrderAttachment.id"
    )
    comments = relationship(
        "JobOrderComment", back_populates="job_order", order_by="JobOrderComment.created_at.desc()"
    )
    history = relationship(
        "JobOrderHistory", back_populates="job_order", order_by="JobOrderHistory.id.desc()"
    )


class JobOrderAttachment(Base):
    __tablename__ = "it_job_order_attachments"

    id = Column(Integer, primary_key=True, index=True)
    job_order_id = Column(Integer, ForeignKey("it_job_orders.id"), nullable=False, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_url = Column(String(500), nullable=False)
    file_size = Column(Integer, default=0)
    mime_type = Column(String(100), nullable=True)
    uploaded_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    uploaded_at = Column(DateTime, default=datetime.utcnow)

    job_order = relationship("JobOrder", back_populates="attachments")
    uploader = relationship("UserModel", foreign_keys=[uploaded_by])


class JobOrderComment(Base):
    __tablename__ = "it_job_order_comments"

    id = Column(Integer, primary_key=True, index=True)
    job_order_id = Column(Integer, ForeignKey("it_job_orders.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    comment = Column(Text, nullable=False)
    is_internal = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    job_order = relationship("JobOrder", back_populates="comments")
    author = relationship("UserModel", foreign_keys=[user_id])


class JobOrderHistory(Base):
    __tablename__ = "it_job_order_history"

    id = Column(Integer, primary_key=True, index=True)
    job_order_id = Column(Integer, ForeignKey("it_job_orders.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    action = Column(String(50), nullable=False)
    field_changed = Column(String(100), nullable=True)
    old_value = Column(Text, nullable=True)
    new_value = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    job_order = relationship("JobOrder", back_populates="history")
    user = relationship("UserModel", foreign_keys=[user_id])
