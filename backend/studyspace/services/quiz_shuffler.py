"""Randomize the position of the correct answer in generated quizzes.

Models tend to put the right answer first. Each question's options are
shuffled independently and the correct index is remapped by identity of the
original position, so duplicate option texts cannot confuse the mapping.
"""

import random

from studyspace.schemas.materials import QuizData, QuizQuestion


def shuffle_question(question: QuizQuestion, rng: random.Random) -> QuizQuestion:
    pairs = list(enumerate(question.options))
    rng.shuffle(pairs)
    new_index = next(
        position for position, (original, _) in enumerate(pairs)
        if original == question.correct_answer_index
    )
    return question.model_copy(
        update={
            "options": [option for _, option in pairs],
            "correct_answer_index": new_index,
        }
    )


def shuffle_quiz_options(quiz: QuizData, rng: random.Random | None = None) -> QuizData:
    """Return a copy of quiz with every question's options shuffled."""
    rng = rng or random.Random()
    return quiz.model_copy(
        update={"questions": [shuffle_question(q, rng) for q in quiz.questions]}
    )
