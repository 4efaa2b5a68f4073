"""Student and teacher-guidelines data access layer."""
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session as DBSession, joinedload

from shared.models.entities import StudentTeacherGuidelines, User

STUDENT_ROLE = "STUDENT"


class StudentRepository:
    """Repository for students of an organization and their teacher guidelines."""

    def __init__(self, db: DBSession):
        self.db = db

    def list_students(self, organization_id: str) -> List[User]:
        """Students of an organization with their progress record loaded."""
        return (
            self.db.query(User)
            .options(joinedload(User.progress))
            .filter(User.organization_id == organization_id, User.role == STUDENT_ROLE)
            .order_by(User.name)
            .all()
        )

    def get_student(self, organization_id: str, student_id: str) -> Optional[User]:
        return (
            self.db.query(User)
            .options(joinedload(User.progress))
            .filter(
                User.id == student_id,
                User.organization_id == organization_id,
                User.role == STUDENT_ROLE,
            )
            .first()
        )

    def get_guidelines(self, student_id: str) -> Optional[StudentTeacherGuidelines]:
        return (
            self.db.query(StudentTeacherGuidelines)
            .filter(StudentTeacherGuidelines.student_id == student_id)
            .first()
        )

    def get_teacher_prompt(self, student_id: str) -> Optional[str]:
        guidelines = self.get_guidelines(student_id)
        if guidelines is None or not guidelines.teacher_prompt:
            return None
        return guidelines.teacher_prompt

    def upsert_guidelines(self, student_id: str, changes: dict) -> StudentTeacherGuidelines:
        """
        Apply `changes` (keys: teacher_prompt, private_notes) to the student's
        guidelines, creating the record if needed. Absent keys are untouched.
        """
        guidelines = self.get_guidelines(student_id)
        if guidelines is None:
            guidelines = StudentTeacherGuidelines(student_id=student_id)
            self.db.add(guidelines)
        if "teacher_prompt" in changes:
            guidelines.teacher_prompt = changes["teacher_prompt"]
        if "private_notes" in changes:
            guidelines.private_notes = changes["private_notes"]
        guidelines.updated_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(guidelines)
        return guidelines
