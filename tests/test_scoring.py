import pytest

from quizdesk.schemas import Answer, Option, Question, Quiz
from quizdesk.scoring import max_score, question_max_score, score, selections_from_answers


def _question(qid, qtype, scores):
    return Question(
        id=qid,
        type=qtype,
        options=[
            Option(id=qid * 10 + i, question_id=qid, text=f"o{i}", score=s)
            for i, s in enumerate(scores, 1)
        ],
    )


@pytest.fixture
def quiz():
    # q1 single: 11=10, 12=5, 13=0 / q2 multi: 21=10, 22=5, 23=-5
    return Quiz(id=1, title="t", questions=[
        _question(1, "single", [10, 5, 0]),
        _question(2, "multi", [10, 5, -5]),
    ])


def test_single_choice_max_is_best_option():
    assert question_max_score(_question(1, "single", [3, 7, 2])) == 7


def test_single_choice_max_floors_at_zero():
    assert question_max_score(_question(1, "single", [-3, -1])) == 0
    assert question_max_score(_question(1, "single", [])) == 0


def test_multi_choice_max_ignores_penalties():
    assert question_max_score(_question(1, "multi", [10, 5, -5])) == 15
    assert question_max_score(_question(1, "multi", [-1, -2])) == 0


def test_quiz_max_is_sum_of_questions(quiz):
    assert max_score(quiz) == 25
    assert max_score(Quiz(title="empty")) == 0


def test_best_answers_reach_the_ceiling(quiz):
    result = score(quiz, {1: {11}, 2: {21, 22}})
    assert result.achieved == 25
    assert result.max_score == 25


def test_penalty_option_lowers_score(quiz):
    assert score(quiz, {1: {12}, 2: {21, 23}}).achieved == 10


def test_unanswered_questions_contribute_zero(quiz):
    assert score(quiz, {}).achieved == 0
    assert score(quiz, {2: {22}}).achieved == 5


def test_unknown_ids_contribute_zero(quiz):
    assert score(quiz, {99: {1}, 1: {999}}).achieved == 0


def test_two_picks_on_single_question_are_summed(quiz):
    assert score(quiz, {1: {11, 12}}).achieved == 15


def test_score_is_additive_across_questions(quiz):
    first = {1: {12}}
    second = {2: {21, 23}}
    combined = {**first, **second}
    assert score(quiz, combined).achieved == (
        score(quiz, first).achieved + score(quiz, second).achieved
    )


def test_selections_from_answers_collapses_duplicates():
    answers = [
        Answer(question_id=1, option_id=11),
        Answer(question_id=1, option_id=11),
        Answer(question_id=2, option_id=21),
        Answer(question_id=2, option_id=22),
    ]
    assert selections_from_answers(answers) == {1: {11}, 2: {21, 22}}


def test_single_choice_with_all_zero_options_has_zero_max():
    assert question_max_score(_question(1, "single", [0, 0])) == 0


def test_single_choice_quiz_partial_answer():
    quiz = Quiz(id=1, title="t", questions=[_question(1, "single", [10, 5, 0])])
    assert score(quiz, {1: {12}}) == (5, 10)


def test_multi_choice_selecting_every_option():
    quiz = Quiz(id=1, title="t", questions=[_question(2, "multi", [10, 5, -5])])
    assert score(quiz, {2: {21, 22, 23}}) == (10, 15)
