"""SQLAlchemy ORM database models."""
from datetime import datetime
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Organization(Base):
    """Organization table - one row per registered school."""
    __tablename__ = "organizations"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    users = relationship("User", back_populates="organization")


class User(Base):
    """User table - students, teachers and organization admins."""
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    organization_id = Column(String, ForeignKey("organizations.id"), nullable=True)
    role = Column(String, nullable=False, default="STUDENT")  # 'STUDENT', 'TEACHER', 'ORGANIZATION_ADMIN'
    name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    organization = relationship("Organization", back_populates="users")
    progress = relationship("StudentProgress", back_populates="user", uselist=False)

    __table_args__ = (
        Index("idx_user_org_role", "organization_id", "role"),
    )


class StudentProgress(Base):
    """Per-student progress record: points, streak, hints, last activity."""
    __tablename__ = "student_progress"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    points = Column(Integer, nullable=False, default=0)
    last_activity_at = Column(DateTime, nullable=True)
    streak = Column(Integer, nullable=False, default=0)  # consecutive active days
    hints_used = Column(Integer, nullable=False, default=0)  # cumulative
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    user = relationship("User", back_populates="progress")


class LearningSummary(Base):
    """Append-only learning summaries. Each row counts as one completed session."""
    __tablename__ = "learning_summaries"

    id = Column(String, primary_key=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    content = Column(Text, nullable=False)
    source_type = Column(String, nullable=False, default="chat")
    source_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    user = relationship("User")

    __table_args__ = (
        Index("idx_summary_user_created", "user_id", "created_at"),
    )


class LearningEvent(Base):
    """Fine-grained learning event log (hint_used, error_tag)."""
    __tablename__ = "learning_events"

    id = Column(String, primary_key=True)
    student_id = Column(String, ForeignKey("users.id"), nullable=False)
    type = Column(String, nullable=False)
    meta_json = Column(Text, nullable=True)  # JSON: e.g. {"tag": "Fracciones"}
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("idx_event_student_type_created", "student_id", "type", "created_at"),
    )


class StudentTeacherGuidelines(Base):
    """Teacher mini-prompt and private notes for one student."""
    __tablename__ = "student_teacher_guidelines"

    student_id = Column(String, ForeignKey("users.id"), primary_key=True)
    teacher_prompt = Column(Text, nullable=True)
    private_notes = Column(Text, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class Conversation(Base):
    """Guided chat conversation - phase, context and message log."""
    __tablename__ = "conversations"

    id = Column(String, primary_key=True)
    student_id = Column(String, ForeignKey("users.id"), nullable=True)
    subject = Column(String, nullable=True)
    phase = Column(String, nullable=False, default="idle")
    context_json = Column(Text, nullable=False, default="{}")
    messages_json = Column(Text, nullable=False, default="[]")
    turn_seq = Column(Integer, nullable=False, default=0)
    resume_phase = Column(String, nullable=True)  # phase to return to after giving_hint
    state_version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_conversation_student", "student_id"),
    )
