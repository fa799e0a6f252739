"""Tests for coercing AI responses into canonical material shapes."""

import pytest

from studyspace.services.normalizer import (
    MaterialShapeError,
    normalize_flashcards,
    normalize_material,
    normalize_mind_map,
    normalize_presentation,
    normalize_quiz,
    parse_model_json,
)


class TestParseModelJson:
    def test_plain_json(self):
        assert parse_model_json('{"a": 1}') == {"a": 1}

    def test_fenced_json(self):
        assert parse_model_json('```json\n[{"front": "x"}]\n```') == [{"front": "x"}]

    def test_invalid_json(self):
        with pytest.raises(MaterialShapeError, match="unrecognized quiz response"):
            parse_model_json("Sure! Here is your quiz:", "quiz")

    def test_empty_reply(self):
        with pytest.raises(MaterialShapeError):
            parse_model_json("   ")


class TestFlashcards:
    def test_bare_front_back_array(self):
        data = normalize_flashcards([{"front": "Mitosis", "back": "Cell division"}])
        assert data.title == "Flashcards"
        assert data.cards[0].question == "Mitosis"
        assert data.cards[0].answer == "Cell division"

    def test_question_answer_array(self):
        data = normalize_flashcards([{"question": "Q1", "answer": "A1"}, {"question": "Q2", "answer": "A2"}])
        assert [c.question for c in data.cards] == ["Q1", "Q2"]

    def test_titled_object(self):
        data = normalize_flashcards({"title": "Biology", "cards": [{"term": "ATP", "definition": "Energy"}]})
        assert data.title == "Biology"
        assert data.cards[0].answer == "Energy"

    def test_flashcards_key(self):
        data = normalize_flashcards({"flashcards": [{"q": "x", "a": "y"}]}, default_title="Cards")
        assert data.title == "Cards"
        assert data.cards[0].question == "x"

    def test_no_cards(self):
        with pytest.raises(MaterialShapeError):
            normalize_flashcards({"title": "Empty"})

    def test_only_junk_entries(self):
        with pytest.raises(MaterialShapeError):
            normalize_flashcards(["just a string", {"unrelated": 1}])


class TestQuiz:
    def test_canonical_shape(self):
        data = normalize_quiz(
            {
                "title": "Cells",
                "questions": [
                    {"question": "Powerhouse?", "options": ["Nucleus", "Mitochondria"], "correctAnswerIndex": 1}
                ],
            }
        )
        assert data.title == "Cells"
        assert data.questions[0].correct_answer_index == 1

    def test_answer_given_as_text(self):
        data = normalize_quiz(
            [{"question": "2+2?", "choices": ["3", "4", "5"], "answer": "4", "explanation": "Basic"}]
        )
        assert data.questions[0].correct_answer_index == 1
        assert data.questions[0].explanation == "Basic"

    def test_answer_given_as_letter(self):
        data = normalize_quiz([{"question": "Pick C", "options": ["a", "b", "c", "d"], "answer": "C"}])
        assert data.questions[0].correct_answer_index == 2

    def test_string_index(self):
        data = normalize_quiz([{"question": "Q", "options": ["a", "b"], "correct_answer_index": "0"}])
        assert data.questions[0].correct_answer_index == 0

    def test_invalid_questions_dropped(self):
        data = normalize_quiz(
            {
                "questions": [
                    {"question": "out of range", "options": ["a", "b"], "correctAnswerIndex": 5},
                    {"question": "one option", "options": ["a"], "correctAnswerIndex": 0},
                    {"question": "fine", "options": ["a", "b"], "correctAnswerIndex": 1},
                ]
            }
        )
        assert [q.question for q in data.questions] == ["fine"]

    def test_nothing_usable(self):
        with pytest.raises(MaterialShapeError, match="quiz"):
            normalize_quiz({"questions": [{"question": "x", "options": ["a", "b"]}]})


class TestMindMap:
    def test_root_node_key(self):
        data = normalize_mind_map(
            {"title": "Biology", "rootNode": {"label": "Cells", "children": [{"label": "Organelles"}]}}
        )
        assert data.title == "Biology"
        assert data.root_node.children[0].label == "Organelles"

    def test_root_key_with_name_labels(self):
        data = normalize_mind_map({"root": {"name": "Cells", "nodes": ["Nucleus", {"text": "Membrane"}]}})
        assert data.root_node.label == "Cells"
        assert [c.label for c in data.root_node.children] == ["Nucleus", "Membrane"]
        assert data.title == "Cells"

    def test_bare_root(self):
        data = normalize_mind_map({"label": "Topic", "children": [{"label": "Sub"}]})
        assert data.root_node.label == "Topic"

    def test_string_children_are_ignored(self):
        data = normalize_mind_map({"rootNode": {"label": "Cells", "children": "abc"}})
        assert data.root_node.label == "Cells"
        assert data.root_node.children == []

    def test_missing_root(self):
        with pytest.raises(MaterialShapeError):
            normalize_mind_map({"title": "nothing"})


class TestPresentation:
    def test_string_content_split_into_bullets(self):
        data = normalize_presentation(
            {"title": "Deck", "slides": [{"title": "Intro", "content": "- first\n- second\n"}]}
        )
        assert data.slides[0].content == ["first", "second"]

    def test_bullets_key_and_code(self):
        data = normalize_presentation([{"title": "Code", "bullets": ["x"], "code": "print(1)"}])
        assert data.title == "Presentation"
        assert data.slides[0].code == "print(1)"

    def test_non_list_content_is_dropped(self):
        data = normalize_presentation({"title": "T", "slides": [{"title": "S", "content": 5}]})
        assert data.slides[0].title == "S"
        assert data.slides[0].content == []

    def test_untitled_slide_without_bullets_fails(self):
        with pytest.raises(MaterialShapeError, match="presentation"):
            normalize_presentation({"slides": [{"content": 5}, {"bullets": {"a": 1}}]})

    def test_no_slides(self):
        with pytest.raises(MaterialShapeError):
            normalize_presentation({"title": "Deck"})


def test_normalize_material_unknown_type():
    with pytest.raises(MaterialShapeError):
        normalize_material("infographic", {}, "Infographic")


def test_normalize_material_dispatch():
    data = normalize_material("flashcard", [{"front": "a", "back": "b"}], "Flashcards")
    assert data.cards[0].answer == "b"
