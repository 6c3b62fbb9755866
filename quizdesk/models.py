from datetime import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped

from .database import Base


class QuizRecord(Base):
    __tablename__ = "quizzes"

    id: Mapped[int] = Column(Integer, primary_key=True, index=True, autoincrement=True)
    title: Mapped[str] = Column(String, nullable=False)
    description: Mapped[Optional[str]] = Column(Text, nullable=True)
    # ISO-8601 string, kept as the client sent it
    created_at: Mapped[Optional[str]] = Column(String, nullable=True)

    # questions + options as one JSON document
    questions: Mapped[Optional[str]] = Column(Text, nullable=True)
    # lowest question/option id not yet handed out in this quiz
    next_item_id: Mapped[int] = Column(Integer, nullable=False, default=1, server_default="1")


class SubmissionRecord(Base):
    __tablename__ = "submissions"

    id: Mapped[int] = Column(Integer, primary_key=True, index=True, autoincrement=True)
    # informal reference, no FK: rows are removed by the repository on quiz delete
    quiz_id: Mapped[int] = Column(Integer, nullable=False, index=True)
    total_score: Mapped[int] = Column(Integer, nullable=False, default=0)
    submitted_at: Mapped[Optional[str]] = Column(String, nullable=True)

    # list of {question_id, option_id} as JSON
    answers: Mapped[Optional[str]] = Column(Text, nullable=True)


class AdminUser(Base):
    __tablename__ = "admins"

    id: Mapped[int] = Column(Integer, primary_key=True, index=True)
    email: Mapped[str] = Column(String, unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = Column(String, nullable=False)
    created_at: Mapped[datetime] = Column(DateTime, default=datetime.utcnow)
