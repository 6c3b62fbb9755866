"""
Persistence gateway for quizzes and submissions.

Each quizzes row keeps its question/option tree as one JSON text column,
each submissions row keeps its answers the same way. Everything that
crosses the row boundary goes through the _decode_* / _encode_* helpers,
so a corrupt blob surfaces as ParseError for a single read and is skipped
(with a warning) when listing.
"""

import json
import logging
from typing import List, Optional, Sequence, Set, Tuple

from pydantic import ValidationError as SchemaError
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from quizdesk.errors import NotFound, ParseError, UpstreamError, ValidationError
from quizdesk.models import QuizRecord, SubmissionRecord
from quizdesk.schemas import Answer, Question, Quiz, Submission, now_iso
from quizdesk.scoring import ScoreResult, score, selections_from_answers

logger = logging.getLogger(__name__)


# ---------- ENCODE / DECODE ----------


def _decode_quiz(row: QuizRecord) -> Quiz:
    try:
        raw = json.loads(row.questions) if row.questions else []
        return Quiz(
            id=row.id,
            title=row.title or "",
            description=row.description or "",
            created_at=row.created_at or "",
            questions=raw,
        )
    except (ValueError, TypeError, SchemaError) as e:
        # json.JSONDecodeError is a ValueError
        raise ParseError(f"Failed to parse quiz data for quiz {row.id}: {e}") from e


def _encode_questions(questions: List[Question]) -> str:
    return json.dumps([q.model_dump() for q in questions])


def _decode_submission(row: SubmissionRecord) -> Submission:
    try:
        raw = json.loads(row.answers) if row.answers else []
        return Submission(
            id=row.id,
            quiz_id=row.quiz_id,
            total_score=row.total_score or 0,
            submitted_at=row.submitted_at or "",
            answers=raw,
        )
    except (ValueError, TypeError, SchemaError) as e:
        raise ParseError(
            f"Failed to parse submission data for submission {row.id}: {e}"
        ) from e


def _encode_answers(answers: List[Answer]) -> str:
    return json.dumps([a.model_dump() for a in answers])


def _commit(db: Session) -> None:
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("database write failed: %s", e)
        raise UpstreamError("Database write failed") from e


# ---------- IDENTITIES ----------


def _item_ids(quiz: Quiz) -> Set[int]:
    return {q.id for q in quiz.questions} | {
        o.id for q in quiz.questions for o in q.options
    }


def assign_ids(
    quiz: Quiz,
    next_free: int = 1,
    keep: Optional[Set[int]] = None,
) -> Tuple[Quiz, int]:
    """
    Gives every new question/option the next id of this quiz's counter and
    rewrites the back-references. Returns the stamped quiz and the advanced
    counter, which the caller stores.

    An item is new when its id is 0, or, if ``keep`` is given, when its id
    is not in ``keep``. Ids are never reused: answers stored by earlier
    submissions keep pointing at the item they were given for.
    """
    if keep is None:
        keep = {i for i in _item_ids(quiz) if i}
    next_id = max([next_free, 1] + [i + 1 for i in keep])

    def take(current: int) -> int:
        nonlocal next_id
        if current and current in keep:
            return current
        assigned = next_id
        next_id += 1
        return assigned

    questions: List[Question] = []
    for q in quiz.questions:
        q_id = take(q.id)
        options = [
            o.model_copy(update={"id": take(o.id), "question_id": q_id})
            for o in q.options
        ]
        questions.append(
            q.model_copy(update={"id": q_id, "quiz_id": quiz.id, "options": options})
        )
    return quiz.model_copy(update={"questions": questions}), next_id


# ---------- QUIZZES ----------


def _get_quiz_row(db: Session, quiz_id: int) -> QuizRecord:
    row = db.get(QuizRecord, quiz_id)
    if row is None:
        raise NotFound(f"Quiz {quiz_id} not found")
    return row


def list_quizzes(db: Session) -> List[Quiz]:
    rows = db.scalars(select(QuizRecord).order_by(QuizRecord.id.desc())).all()
    out: List[Quiz] = []
    for row in rows:
        try:
            out.append(_decode_quiz(row))
        except ParseError as e:
            logger.warning("skipping quiz row: %s", e.message)
    return out


def get_quiz(db: Session, quiz_id: int) -> Quiz:
    return _decode_quiz(_get_quiz_row(db, quiz_id))


def save_quiz(db: Session, quiz: Quiz) -> Quiz:
    """
    id 0 creates a row, any other id replaces the whole stored document.
    Returns the quiz as stored, with every id filled in.
    """
    title = (quiz.title or "").strip()
    if not title:
        raise ValidationError("Title is required")

    if quiz.id:
        row = _get_quiz_row(db, quiz.id)
        created = False
        try:
            keep = _item_ids(_decode_quiz(row))
        except ParseError as e:
            logger.warning("replacing unreadable quiz document: %s", e.message)
            keep = set()
    else:
        row = QuizRecord(created_at=quiz.created_at or now_iso(), next_item_id=1)
        db.add(row)
        created = True
        keep = set()

    row.title = title
    row.description = quiz.description
    try:
        db.flush()  # so a new row has its id before the tree is stamped
    except SQLAlchemyError as e:
        db.rollback()
        raise UpstreamError("Database write failed") from e

    stored, row.next_item_id = assign_ids(
        quiz.model_copy(
            update={"id": row.id, "title": title, "created_at": row.created_at or ""}
        ),
        next_free=row.next_item_id or 1,
        keep=keep,
    )
    row.questions = _encode_questions(stored.questions)
    _commit(db)

    logger.info("%s quiz %s (%d questions)", "created" if created else "updated",
                row.id, len(stored.questions))
    return stored


def delete_quiz(db: Session, quiz_id: int) -> None:
    """Removes the quiz and every submission that answers it."""
    row = _get_quiz_row(db, quiz_id)
    db.execute(delete(SubmissionRecord).where(SubmissionRecord.quiz_id == quiz_id))
    db.delete(row)
    _commit(db)
    logger.info("deleted quiz %s", quiz_id)


# ---------- SUBMISSIONS ----------


def list_submissions(db: Session, quiz_id: Optional[int] = None) -> List[Submission]:
    stmt = select(SubmissionRecord).order_by(SubmissionRecord.id.desc())
    if quiz_id is not None:
        stmt = stmt.where(SubmissionRecord.quiz_id == quiz_id)
    out: List[Submission] = []
    for row in db.scalars(stmt).all():
        try:
            out.append(_decode_submission(row))
        except ParseError as e:
            logger.warning("skipping submission row: %s", e.message)
    return out


def save_submission(db: Session, submission: Submission) -> Submission:
    """Inserts a new row; whatever id the caller set is ignored."""
    row = SubmissionRecord(
        quiz_id=submission.quiz_id,
        total_score=submission.total_score,
        submitted_at=submission.submitted_at or now_iso(),
        answers=_encode_answers(submission.answers),
    )
    db.add(row)
    _commit(db)
    logger.info("saved submission %s for quiz %s", row.id, row.quiz_id)
    return submission.model_copy(update={"id": row.id, "submitted_at": row.submitted_at})


def delete_submission(db: Session, submission_id: int) -> None:
    row = db.get(SubmissionRecord, submission_id)
    if row is None:
        raise NotFound(f"Submission {submission_id} not found")
    db.delete(row)
    _commit(db)
    logger.info("deleted submission %s", submission_id)


def validate_answers(quiz: Quiz, answers: Sequence[Answer]) -> None:
    """
    Every answer must name a question of this quiz and one of that
    question's options; a single-choice question takes one distinct option.
    """
    options_by_question = {q.id: {o.id for o in q.options} for q in quiz.questions}
    for a in answers:
        if a.question_id not in options_by_question:
            raise ValidationError(
                f"Question {a.question_id} does not belong to quiz {quiz.id}"
            )
        if a.option_id not in options_by_question[a.question_id]:
            raise ValidationError(
                f"Option {a.option_id} does not belong to question {a.question_id}"
            )

    picked = selections_from_answers(answers)
    for q in quiz.questions:
        if q.type == "single" and len(picked.get(q.id, ())) > 1:
            raise ValidationError(f"Question {q.id} accepts a single option")


def submit(db: Session, quiz_id: int, answers: List[Answer]) -> Tuple[Submission, ScoreResult]:
    """
    Draft -> Submitted: load the quiz, check the answers, score and store.
    Duplicate answers are stored once.
    """
    quiz = get_quiz(db, quiz_id)
    validate_answers(quiz, answers)

    unique: List[Answer] = []
    seen = set()
    for a in answers:
        key = (a.question_id, a.option_id)
        if key not in seen:
            seen.add(key)
            unique.append(a)

    result = score(quiz, selections_from_answers(unique))
    saved = save_submission(
        db,
        Submission(quiz_id=quiz.id, total_score=result.achieved, answers=unique),
    )
    return saved, result
