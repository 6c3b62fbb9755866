from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from quizdesk import repository
from quizdesk.analytics import quiz_report
from quizdesk.database import get_db
from quizdesk.deps import require_admin
from quizdesk.schemas import MessageOut, Quiz, QuizReport, SaveResult

router = APIRouter(prefix="/api/quizzes", tags=["quizzes"])


@router.get("", response_model=List[Quiz])
def list_quizzes(db: Session = Depends(get_db), admin=Depends(require_admin)):
    return repository.list_quizzes(db)


@router.get("/{quiz_id}", response_model=Quiz)
def get_quiz(quiz_id: int, db: Session = Depends(get_db)):
    """Public: the shareable take link loads the quiz through here."""
    return repository.get_quiz(db, quiz_id)


@router.post("", response_model=SaveResult)
def save_quiz(payload: Quiz, db: Session = Depends(get_db), admin=Depends(require_admin)):
    created = not payload.id
    stored = repository.save_quiz(db, payload)
    return SaveResult(message="Created" if created else "Updated", id=stored.id)


@router.delete("/{quiz_id}", response_model=MessageOut)
def delete_quiz(quiz_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    repository.delete_quiz(db, quiz_id)
    return MessageOut(message="Deleted")


@router.get("/{quiz_id}/analytics", response_model=QuizReport)
def quiz_analytics(quiz_id: int, db: Session = Depends(get_db), admin=Depends(require_admin)):
    quiz = repository.get_quiz(db, quiz_id)
    return quiz_report(quiz, repository.list_submissions(db, quiz_id=quiz_id))
