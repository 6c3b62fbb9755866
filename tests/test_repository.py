import pytest

from quizdesk import repository
from quizdesk.analytics import aggregate
from quizdesk.errors import NotFound, ParseError, ValidationError
from quizdesk.models import QuizRecord, SubmissionRecord
from quizdesk.schemas import Answer, Option, Question


def _ids(quiz):
    return [(q.id, [o.id for o in q.options]) for q in quiz.questions]


def test_save_assigns_ids_and_back_references(db, draft_quiz):
    stored = repository.save_quiz(db, draft_quiz)

    assert stored.id > 0
    assert _ids(stored) == [(1, [2, 3, 4]), (5, [6, 7, 8])]
    for q in stored.questions:
        assert q.quiz_id == stored.id
        for o in q.options:
            assert o.question_id == q.id

    assert repository.get_quiz(db, stored.id) == stored


def test_update_keeps_existing_ids(db, draft_quiz):
    stored = repository.save_quiz(db, draft_quiz)

    first = stored.questions[0]
    edited = first.model_copy(update={
        "text": "Reworded",
        "options": first.options + [Option(text="Added", score=1)],
    })
    extra = Question(text="Another", options=[Option(text="x")])
    updated = repository.save_quiz(
        db,
        stored.model_copy(update={"questions": [edited, stored.questions[1], extra]}),
    )

    assert updated.id == stored.id
    assert _ids(updated) == [(1, [2, 3, 4, 9]), (5, [6, 7, 8]), (10, [11])]
    assert updated.questions[0].text == "Reworded"
    assert updated.created_at == stored.created_at


def test_blank_title_is_rejected(db, draft_quiz):
    with pytest.raises(ValidationError, match="Title is required"):
        repository.save_quiz(db, draft_quiz.model_copy(update={"title": "   "}))
    assert repository.list_quizzes(db) == []


def test_title_is_trimmed(db, draft_quiz):
    stored = repository.save_quiz(db, draft_quiz.model_copy(update={"title": "  Padded  "}))
    assert repository.get_quiz(db, stored.id).title == "Padded"


def test_save_with_unknown_id_is_not_found(db, draft_quiz):
    with pytest.raises(NotFound):
        repository.save_quiz(db, draft_quiz.model_copy(update={"id": 404}))


def test_get_missing_quiz(db):
    with pytest.raises(NotFound):
        repository.get_quiz(db, 1)


def test_list_is_newest_first(db, draft_quiz):
    a = repository.save_quiz(db, draft_quiz.model_copy(update={"title": "A"}))
    b = repository.save_quiz(db, draft_quiz.model_copy(update={"title": "B"}))
    assert [q.id for q in repository.list_quizzes(db)] == [b.id, a.id]


def test_corrupt_quiz_row_is_skipped_in_list(db, draft_quiz):
    good = repository.save_quiz(db, draft_quiz)
    bad = QuizRecord(title="Broken", description="", created_at="x", questions="{not json")
    db.add(bad)
    db.commit()

    assert [q.id for q in repository.list_quizzes(db)] == [good.id]
    with pytest.raises(ParseError):
        repository.get_quiz(db, bad.id)


def test_schema_invalid_quiz_row_is_parse_error(db):
    row = QuizRecord(title="Odd", created_at="x", questions='[{"type": "essay"}]')
    db.add(row)
    db.commit()
    with pytest.raises(ParseError):
        repository.get_quiz(db, row.id)


def test_corrupt_submission_row_is_skipped(db, draft_quiz):
    quiz = repository.save_quiz(db, draft_quiz)
    repository.submit(db, quiz.id, [Answer(question_id=1, option_id=2)])
    db.add(SubmissionRecord(quiz_id=quiz.id, total_score=0, submitted_at="x", answers="oops"))
    db.commit()

    subs = repository.list_submissions(db, quiz_id=quiz.id)
    assert len(subs) == 1
    assert subs[0].total_score == 10


def test_submit_scores_against_stored_quiz(db, draft_quiz):
    quiz = repository.save_quiz(db, draft_quiz)
    answers = [
        Answer(question_id=1, option_id=3),
        Answer(question_id=5, option_id=6),
        Answer(question_id=5, option_id=8),
    ]
    saved, result = repository.submit(db, quiz.id, answers)

    assert result.achieved == 10  # 5 + 10 - 5
    assert result.max_score == 25
    assert saved.id > 0
    assert saved.total_score == 10
    assert repository.list_submissions(db) == [saved]


def test_submit_stores_duplicate_answers_once(db, draft_quiz):
    quiz = repository.save_quiz(db, draft_quiz)
    saved, result = repository.submit(db, quiz.id, [
        Answer(question_id=5, option_id=6),
        Answer(question_id=5, option_id=6),
    ])
    assert result.achieved == 10
    assert len(saved.answers) == 1


@pytest.mark.parametrize("answers, message", [
    ([Answer(question_id=99, option_id=2)], "does not belong to quiz"),
    ([Answer(question_id=1, option_id=6)], "does not belong to question"),
    ([Answer(question_id=1, option_id=2), Answer(question_id=1, option_id=3)], "single option"),
])
def test_submit_rejects_invalid_answers(db, draft_quiz, answers, message):
    quiz = repository.save_quiz(db, draft_quiz)
    with pytest.raises(ValidationError, match=message):
        repository.submit(db, quiz.id, answers)
    assert repository.list_submissions(db) == []


def test_submit_to_missing_quiz(db):
    with pytest.raises(NotFound):
        repository.submit(db, 12, [])


def test_empty_submission_is_accepted(db, draft_quiz):
    quiz = repository.save_quiz(db, draft_quiz)
    saved, result = repository.submit(db, quiz.id, [])
    assert result.achieved == 0
    assert saved.answers == []


def test_list_submissions_filters_by_quiz(db, draft_quiz):
    a = repository.save_quiz(db, draft_quiz)
    b = repository.save_quiz(db, draft_quiz)
    repository.submit(db, a.id, [])
    repository.submit(db, b.id, [])
    repository.submit(db, b.id, [])

    assert len(repository.list_submissions(db)) == 3
    assert {s.quiz_id for s in repository.list_submissions(db, quiz_id=b.id)} == {b.id}
    assert len(repository.list_submissions(db, quiz_id=b.id)) == 2


def test_delete_submission_removes_only_that_one(db, draft_quiz):
    quiz = repository.save_quiz(db, draft_quiz)
    first, _ = repository.submit(db, quiz.id, [Answer(question_id=1, option_id=2)])
    second, _ = repository.submit(db, quiz.id, [Answer(question_id=1, option_id=3)])

    repository.delete_submission(db, first.id)

    assert repository.list_submissions(db) == [second]
    with pytest.raises(NotFound):
        repository.delete_submission(db, first.id)


def test_delete_quiz_cascades_to_submissions(db, draft_quiz):
    doomed = repository.save_quiz(db, draft_quiz)
    kept = repository.save_quiz(db, draft_quiz)
    repository.submit(db, doomed.id, [])
    repository.submit(db, kept.id, [])

    repository.delete_quiz(db, doomed.id)

    with pytest.raises(NotFound):
        repository.get_quiz(db, doomed.id)
    assert [s.quiz_id for s in repository.list_submissions(db)] == [kept.id]
    with pytest.raises(NotFound):
        repository.delete_quiz(db, doomed.id)


def test_ids_of_removed_items_are_never_reused(db, draft_quiz):
    quiz = repository.save_quiz(db, draft_quiz)
    repository.submit(db, quiz.id, [Answer(question_id=5, option_id=6)])
    earlier = {q.id for q in quiz.questions} | {o.id for q in quiz.questions for o in q.options}

    replacement = Question(text="Fresh question", type="single", options=[
        Option(text="new A", score=1),
        Option(text="new B", score=0),
    ])
    trimmed = repository.save_quiz(
        db, quiz.model_copy(update={"questions": [quiz.questions[0]]})
    )
    updated = repository.save_quiz(
        db, trimmed.model_copy(update={"questions": trimmed.questions + [replacement]})
    )

    fresh = updated.questions[1]
    assert fresh.id > max(earlier)
    assert all(o.id > max(earlier) for o in fresh.options)

    report = aggregate(updated, repository.list_submissions(db, quiz_id=quiz.id))
    assert [(o.text, o.count) for o in report[1].options] == [("new A", 0), ("new B", 0)]


def test_replacing_the_last_question_in_one_save_gets_new_ids(db, draft_quiz):
    quiz = repository.save_quiz(db, draft_quiz)
    replacement = Question(text="Fresh question", options=[Option(text="x"), Option(text="y")])

    updated = repository.save_quiz(
        db, quiz.model_copy(update={"questions": [quiz.questions[0], replacement]})
    )
    assert _ids(updated) == [(1, [2, 3, 4]), (9, [10, 11])]


def test_ids_unknown_to_the_stored_quiz_are_reassigned(db, draft_quiz):
    quiz = repository.save_quiz(db, draft_quiz)
    trimmed = repository.save_quiz(
        db, quiz.model_copy(update={"questions": [quiz.questions[0]]})
    )

    # the client sends back the id of the question removed above
    revived = Question(id=5, text="Revived", options=[Option(id=6, text="x")])
    updated = repository.save_quiz(
        db, trimmed.model_copy(update={"questions": trimmed.questions + [revived]})
    )
    assert _ids(updated) == [(1, [2, 3, 4]), (9, [10])]
