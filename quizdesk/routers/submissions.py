from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from quizdesk import repository
from quizdesk.database import get_db
from quizdesk.deps import require_admin
from quizdesk.schemas import MessageOut, Submission, SubmissionCreate, SubmitResult

router = APIRouter(prefix="/api/submissions", tags=["submissions"])


@router.get("", response_model=List[Submission])
def list_submissions(
    quiz_id: Optional[int] = Query(default=None),
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    return repository.list_submissions(db, quiz_id=quiz_id)


@router.post("", response_model=SubmitResult)
def submit(payload: SubmissionCreate, db: Session = Depends(get_db)):
    """
    Public: anyone holding the quiz link can submit. The score is computed
    here from the stored quiz; a client-sent total_score is ignored.
    """
    saved, result = repository.submit(db, payload.quiz_id, payload.answers)
    return SubmitResult(id=saved.id, total_score=result.achieved, max_score=result.max_score)


@router.delete("/{submission_id}", response_model=MessageOut)
def delete_submission(
    submission_id: int,
    db: Session = Depends(get_db),
    admin=Depends(require_admin),
):
    repository.delete_submission(db, submission_id)
    return MessageOut(message="Deleted")
