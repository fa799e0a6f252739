"""Tests for AI study-material generation."""

import json

from httpx import AsyncClient

from conftest import pdf_base64
from studyspace.config import get_settings
from studyspace.services.llm_client import AIServiceError


def _quiz_reply(count: int) -> str:
    return json.dumps(
        {
            "title": "Generated",
            "questions": [
                {
                    "question": f"Question {i}?",
                    "options": [f"right {i}", "wrong a", "wrong b", "wrong c"],
                    "correctAnswerIndex": 0,
                    "explanation": "Because.",
                }
                for i in range(count)
            ],
        }
    )


async def _source(client: AsyncClient, headers: dict, name: str, content: str, **fields) -> str:
    response = await client.post(
        "/api/sources", json={"name": name, "content": content, **fields}, headers=headers
    )
    assert response.status_code == 201, response.text
    return response.json()["source"]["id"]


async def _pdf_source(client: AsyncClient, headers: dict, name: str = "Lecture.pdf") -> str:
    return await _source(
        client, headers, name, pdf_base64("Mitochondria produce ATP"), fileType="pdf"
    )


async def test_quiz_from_pdf_end_to_end(client: AsyncClient, auth_headers: dict, fake_llm):
    await _pdf_source(client, auth_headers)
    fake_llm.queue(_quiz_reply(12))

    response = await client.post(
        "/api/materials",
        json={"type": "quiz", "config": {"questionCount": "standard", "difficulty": "hard"}},
        headers=auth_headers,
    )

    assert response.status_code == 201, response.text
    note = response.json()["note"]
    assert note["type"] == "quiz"
    assert note["title"] == "Quiz"
    assert note["content"] == "10 questions"
    assert note["sourceCount"] == 1
    assert note["flashcardData"] is None

    questions = note["quizData"]["questions"]
    assert len(questions) == 10
    for i, question in enumerate(questions):
        assert len(question["options"]) == 4
        assert 0 <= question["correctAnswerIndex"] <= 3
        assert question["options"][question["correctAnswerIndex"]] == f"right {i}"

    call = fake_llm.calls[-1]
    assert call["json_mode"] is True
    assert call["model"] == get_settings().material_model
    assert "EXACTLY 10 questions" in fake_llm.last_prompt
    assert "Mitochondria produce ATP" in fake_llm.last_prompt
    assert "JVBER" not in fake_llm.last_prompt

    saved = await client.get("/api/notes", params={"type": "quiz"}, headers=auth_headers)
    assert saved.json()["total"] == 1


async def test_flashcards_from_bare_array_are_trimmed(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Cells and organelles")
    cards = [{"front": f"Term {i}", "back": f"Definition {i}"} for i in range(14)]
    fake_llm.queue("```json\n" + json.dumps(cards) + "\n```")

    response = await client.post(
        "/api/materials", json={"type": "flashcard", "config": {"cardCount": "less"}}, headers=auth_headers
    )

    note = response.json()["note"]
    assert note["content"] == "10 cards"
    assert note["flashcardData"]["title"] == "Flashcards"
    assert note["flashcardData"]["cards"][0] == {"question": "Term 0", "answer": "Definition 0"}
    assert len(note["flashcardData"]["cards"]) == 10


async def test_mindmap(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Cells")
    fake_llm.queue(json.dumps({"root": {"name": "Cells", "children": [{"name": "Nucleus"}]}}))

    response = await client.post("/api/materials", json={"type": "mindmap"}, headers=auth_headers)

    note = response.json()["note"]
    assert note["mindMapData"]["rootNode"]["label"] == "Cells"
    assert note["mindMapData"]["rootNode"]["children"] == [{"label": "Nucleus", "children": []}]


async def test_presentation(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Python", "Loops and functions")
    slides = [{"title": f"Slide {i}", "content": ["point"]} for i in range(7)]
    fake_llm.queue(json.dumps({"title": "Python basics", "slides": slides}))

    response = await client.post(
        "/api/materials", json={"type": "presentation", "config": {"slideCount": "short"}}, headers=auth_headers
    )

    note = response.json()["note"]
    assert note["content"] == "5 slides"
    assert note["presentationData"]["title"] == "Python basics"
    assert len(note["presentationData"]["slides"]) == 5


async def test_malformed_reply_creates_no_note(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Cells")
    fake_llm.queue("I cannot make a quiz right now.")

    response = await client.post("/api/materials", json={"type": "quiz"}, headers=auth_headers)

    assert response.status_code == 502
    assert "unrecognized quiz response" in response.json()["message"]
    assert (await client.get("/api/notes", headers=auth_headers)).json()["total"] == 0


async def test_no_sources(client: AsyncClient, auth_headers: dict, fake_llm):
    response = await client.post("/api/materials", json={"type": "quiz"}, headers=auth_headers)
    assert response.status_code == 400
    assert "No source text" in response.json()["message"]
    assert fake_llm.calls == []


async def test_pdf_without_text_is_not_context(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "scan.pdf", pdf_base64(""), fileType="pdf")
    response = await client.post("/api/materials", json={"type": "quiz"}, headers=auth_headers)
    assert response.status_code == 400


async def test_invalid_config(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Cells")
    response = await client.post(
        "/api/materials", json={"type": "quiz", "config": {"questionCount": "lots"}}, headers=auth_headers
    )
    assert response.status_code == 400
    assert "Invalid quiz settings" in response.json()["message"]


async def test_unknown_type(client: AsyncClient, auth_headers: dict, fake_llm):
    response = await client.post("/api/materials", json={"type": "essay"}, headers=auth_headers)
    assert response.status_code == 400


async def test_custom_context_replaces_sources(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Unrelated source text")
    fake_llm.queue(_quiz_reply(5))

    response = await client.post(
        "/api/materials",
        json={"type": "quiz", "config": {"questionCount": "less"}, "customContext": "Selected paragraph"},
        headers=auth_headers,
    )

    note = response.json()["note"]
    assert note["title"] == "Quiz (selection)"
    assert note["sourceIds"] == []
    assert "Selected paragraph" in fake_llm.last_prompt
    assert "Unrelated source text" not in fake_llm.last_prompt


async def test_output_language_follows_user_setting(client: AsyncClient, auth_headers: dict, fake_llm):
    await client.put("/api/auth/profile", json={"settings": {"language": "ru"}}, headers=auth_headers)
    await _source(client, auth_headers, "Bio", "Cells")
    fake_llm.queue(_quiz_reply(10))

    await client.post("/api/materials", json={"type": "quiz"}, headers=auth_headers)

    assert "Write all content in Russian" in fake_llm.last_prompt


async def test_summary(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Cells")
    fake_llm.queue("- Point one\n- Point two")

    response = await client.post("/api/materials", json={"type": "reminders"}, headers=auth_headers)

    note = response.json()["note"]
    assert note["type"] == "reminders"
    assert note["title"] == "Summary"
    assert note["content"] == "- Point one\n- Point two"


async def test_infographic(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Cells")

    response = await client.post(
        "/api/materials",
        json={"type": "infographic", "config": {"style": "vibrant", "layout": "16:9"}},
        headers=auth_headers,
    )

    note = response.json()["note"]
    assert note["infographicImageUrl"] == fake_llm.image_url
    assert fake_llm.image_models == [get_settings().image_model]


async def test_infographic_falls_back_to_placeholder(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Cells")
    fake_llm.image_url = None

    response = await client.post("/api/materials", json={"type": "infographic"}, headers=auth_headers)

    assert response.status_code == 201
    settings = get_settings()
    assert fake_llm.image_models == [settings.image_model, *settings.image_fallback_models]
    assert response.json()["note"]["infographicImageUrl"].startswith("data:image/svg+xml;base64,")


async def test_missing_api_key(client: AsyncClient, auth_headers: dict):
    await _source(client, auth_headers, "Bio", "Cells")
    response = await client.post("/api/materials", json={"type": "quiz"}, headers=auth_headers)
    assert response.status_code == 400
    assert "OpenRouter API key" in response.json()["message"]


async def test_payment_required_is_passed_through(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Bio", "Cells")
    fake_llm.error = AIServiceError.from_status(402)

    response = await client.post("/api/materials", json={"type": "quiz"}, headers=auth_headers)

    assert response.status_code == 402
    assert "credits" in response.json()["message"]


async def test_topic_complete(client: AsyncClient, auth_headers: dict, fake_llm):
    await _pdf_source(client, auth_headers, "Cell Biology.pdf")
    await _source(client, auth_headers, "notes.txt", "Not a PDF")
    fake_llm.queue(_quiz_reply(25))

    response = await client.post("/api/materials/topic-complete", json={}, headers=auth_headers)

    assert response.status_code == 201, response.text
    body = response.json()
    assert body["markerNote"]["type"] == "topicComplete"
    assert body["markerNote"]["title"] == "Cell Biology completed"
    assert body["quizNote"]["title"] == "Cell Biology quiz"
    assert len(body["quizNote"]["quizData"]["questions"]) == 20
    assert "Not a PDF" not in fake_llm.last_prompt
    assert "EXACTLY 20 questions" in fake_llm.last_prompt


async def test_topic_complete_selected_source(client: AsyncClient, auth_headers: dict, fake_llm):
    await _pdf_source(client, auth_headers, "First.pdf")
    selected = await _pdf_source(client, auth_headers, "Second.pdf")
    fake_llm.queue(_quiz_reply(20))

    response = await client.post(
        "/api/materials/topic-complete",
        json={"selectedSourceId": selected, "topic": "Organelles"},
        headers=auth_headers,
    )

    body = response.json()
    assert body["markerNote"]["title"] == "Organelles completed"
    assert body["quizNote"]["sourceIds"] == [selected]


async def test_topic_complete_needs_pdf(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "notes.txt", "Text only")
    response = await client.post("/api/materials/topic-complete", json={}, headers=auth_headers)
    assert response.status_code == 400


async def test_presentation_with_numeric_content_is_unrecognized(client: AsyncClient, auth_headers: dict, fake_llm):
    await _source(client, auth_headers, "Python", "Loops and functions")
    fake_llm.queue(json.dumps({"title": "T", "slides": [{"content": 5}]}))

    response = await client.post("/api/materials", json={"type": "presentation"}, headers=auth_headers)

    assert response.status_code == 502
    assert response.json()["success"] is False
    assert "unrecognized presentation response" in response.json()["message"]
