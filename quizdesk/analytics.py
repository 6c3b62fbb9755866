import csv
import io
import math
from typing import Dict, List, Sequence, Set, Tuple

from quizdesk.schemas import (
    OptionAnalysis,
    QuestionAnalysis,
    Quiz,
    QuizReport,
    QuizSummary,
    Submission,
)
from quizdesk.scoring import max_score


def round_half_up(value: float, digits: int = 0) -> float:
    """
    Rounds .5 away from zero for positive values, like the dashboard always
    has (Python's round() would send 12.5 to 12).
    """
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _picked_pairs(submission: Submission) -> Set[Tuple[int, int]]:
    return {(a.question_id, a.option_id) for a in submission.answers}


def aggregate(quiz: Quiz, submissions: Sequence[Submission]) -> List[QuestionAnalysis]:
    """
    Per-question, per-option selection counts.

    The caller passes only the submissions that belong to ``quiz``. A
    submission counts at most once per option, even when it recorded the
    same answer twice.
    """
    total = len(submissions)
    counts: Dict[Tuple[int, int], int] = {}
    for sub in submissions:
        for pair in _picked_pairs(sub):
            counts[pair] = counts.get(pair, 0) + 1

    out: List[QuestionAnalysis] = []
    for q in quiz.questions:
        options = []
        for opt in q.options:
            count = counts.get((q.id, opt.id), 0)
            percentage = int(round_half_up(count / total * 100)) if total else 0
            options.append(
                OptionAnalysis(
                    option_id=opt.id,
                    text=opt.text,
                    score=opt.score,
                    count=count,
                    percentage=percentage,
                )
            )
        out.append(
            QuestionAnalysis(
                question_id=q.id,
                text=q.text,
                type=q.type,
                position=q.position,
                options=options,
            )
        )
    return out


def summarize(submissions: Sequence[Submission]) -> QuizSummary:
    count = len(submissions)
    if not count:
        return QuizSummary(count=0, average_score=0)
    avg = sum(s.total_score for s in submissions) / count
    return QuizSummary(count=count, average_score=round_half_up(avg, 1))


def quiz_report(quiz: Quiz, submissions: Sequence[Submission]) -> QuizReport:
    return QuizReport(
        quiz_id=quiz.id,
        title=quiz.title,
        max_score=max_score(quiz),
        summary=summarize(submissions),
        questions=aggregate(quiz, submissions),
    )


def export_csv(quiz: Quiz, submissions: Sequence[Submission]) -> str:
    """
    One row per submission: id, date, score, max, percent of max, then the
    option texts picked for every question (joined with "; ").
    """
    ceiling = max_score(quiz)
    option_text: Dict[Tuple[int, int], str] = {
        (q.id, o.id): o.text for q in quiz.questions for o in q.options
    }

    output = io.StringIO()
    writer = csv.writer(output)
    header = ["Submission", "Submitted at", "Score", "Max score", "Percent"]
    for idx, q in enumerate(quiz.questions, 1):
        header.append(f"Q{idx}: {q.text}")
    writer.writerow(header)

    for sub in submissions:
        percent = round_half_up(sub.total_score / ceiling * 100, 1) if ceiling else ""
        picked = _picked_pairs(sub)
        line = [sub.id, sub.submitted_at, sub.total_score, ceiling, percent]
        for q in quiz.questions:
            texts = [
                option_text[(q.id, o.id)]
                for o in q.options
                if (q.id, o.id) in picked
            ]
            line.append("; ".join(texts))
        writer.writerow(line)

    return output.getvalue()
