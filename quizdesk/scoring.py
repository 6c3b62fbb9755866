"""Score a completed attempt against its quiz.

Question contributions are independent and additive:

* achieved: sum of the scores of the selected options, whatever the
  question type. Two picks on a ``single`` question are summed as recorded;
  rejecting them is the submit path's job, not this module's.
* max, ``single``: highest option score, floored at 0.
* max, ``multi``: sum of the strictly positive option scores. Negative
  options are penalties, never part of the ceiling.

Nothing here raises. Unknown question or option ids contribute 0, and the
ceiling only looks at the quiz definition.
"""

from typing import Dict, Iterable, Mapping, NamedTuple, Set

from quizdesk.schemas import Answer, Question, Quiz


class ScoreResult(NamedTuple):
    achieved: int
    max_score: int


def question_max_score(question: Question) -> int:
    scores = [o.score for o in question.options]
    if question.type == "multi":
        return sum(s for s in scores if s > 0)
    return max(scores + [0])


def max_score(quiz: Quiz) -> int:
    return sum(question_max_score(q) for q in quiz.questions)


def selections_from_answers(answers: Iterable[Answer]) -> Dict[int, Set[int]]:
    """
    Folds an answer list into {question_id: {option_id, ...}}.
    Duplicate answers collapse into one selection.
    """
    selected: Dict[int, Set[int]] = {}
    for a in answers:
        selected.setdefault(a.question_id, set()).add(a.option_id)
    return selected


def score(quiz: Quiz, selected: Mapping[int, Iterable[int]]) -> ScoreResult:
    achieved = 0
    for q in quiz.questions:
        picked = set(selected.get(q.id) or ())
        if not picked:
            continue
        achieved += sum(o.score for o in q.options if o.id in picked)
    return ScoreResult(achieved=achieved, max_score=max_score(quiz))
