"""Tests for source endpoints and PDF extraction."""

import base64

import pytest
from httpx import AsyncClient

from conftest import make_pdf, pdf_base64, register
from studyspace.services.pdf_processor import decode_pdf_content, pdf_processor


async def _create(client: AsyncClient, headers: dict, **fields) -> dict:
    response = await client.post("/api/sources", json=fields, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


async def test_create_text_source(client: AsyncClient, auth_headers: dict):
    body = await _create(
        client, auth_headers, name="Notes", type="text", fileType="txt", content="Photosynthesis basics"
    )
    source = body["source"]
    assert source["name"] == "Notes"
    assert source["content"] == "Photosynthesis basics"
    assert source["extractionStatus"] == "skipped"
    assert source["isActive"] is True
    assert source["size"] == len("Photosynthesis basics")


async def test_create_pdf_source_extracts_text(client: AsyncClient, auth_headers: dict):
    body = await _create(
        client,
        auth_headers,
        name="Lecture.pdf",
        fileType="pdf",
        content=pdf_base64("Mitochondria produce ATP", "Ribosomes build proteins"),
    )
    source = body["source"]
    assert source["extractionStatus"] == "success"
    assert source["pageCount"] == 2
    assert "Mitochondria produce ATP" in source["extractedText"]
    assert "Ribosomes build proteins" in source["extractedText"]
    assert source["textLength"] == len(source["extractedText"])
    assert body["message"] is None


async def test_create_pdf_from_data_url(client: AsyncClient, auth_headers: dict):
    data_url = "data:application/pdf;base64," + pdf_base64("Data URL upload")
    body = await _create(client, auth_headers, name="upload.pdf", fileType="pdf", content=data_url)
    assert body["source"]["extractionStatus"] == "success"


async def test_invalid_pdf_is_kept_with_error(client: AsyncClient, auth_headers: dict):
    garbage = base64.b64encode(b"this is not a pdf").decode()
    body = await _create(client, auth_headers, name="broken.pdf", fileType="pdf", content=garbage)

    source = body["source"]
    assert source["extractionStatus"] == "failed"
    assert source["extractionError"]
    assert source["extractedText"] is None
    assert "no text could be extracted" in body["message"]

    listed = await client.get("/api/sources", headers=auth_headers)
    assert listed.json()["total"] == 1


async def test_list_excludes_bodies(client: AsyncClient, auth_headers: dict):
    await _create(client, auth_headers, name="Lecture.pdf", fileType="pdf", content=pdf_base64("Body text"))
    response = await client.get("/api/sources", headers=auth_headers)
    source = response.json()["sources"][0]
    assert "content" not in source
    assert "extractedText" not in source
    assert source["textLength"] > 0


async def test_list_active_only(client: AsyncClient, auth_headers: dict):
    await _create(client, auth_headers, name="On", content="a")
    await _create(client, auth_headers, name="Off", content="b", isActive=False)

    response = await client.get("/api/sources", params={"active_only": True}, headers=auth_headers)
    assert [s["name"] for s in response.json()["sources"]] == ["On"]


async def test_sources_are_user_scoped(client: AsyncClient, auth_headers: dict):
    body = await _create(client, auth_headers, name="Mine", content="private")
    source_id = body["source"]["id"]

    other = await register(client, "mallory")
    assert (await client.get(f"/api/sources/{source_id}", headers=other)).status_code == 404
    assert (await client.delete(f"/api/sources/{source_id}", headers=other)).status_code == 404
    assert (await client.get("/api/sources", headers=other)).json()["total"] == 0


async def test_update_source_reextracts_pdf(client: AsyncClient, auth_headers: dict):
    body = await _create(client, auth_headers, name="Lecture.pdf", fileType="pdf", content=pdf_base64("Old text"))
    source_id = body["source"]["id"]

    response = await client.put(
        f"/api/sources/{source_id}",
        json={"name": "Lecture v2.pdf", "content": pdf_base64("New text")},
        headers=auth_headers,
    )
    source = response.json()["source"]
    assert source["name"] == "Lecture v2.pdf"
    assert "New text" in source["extractedText"]
    assert "Old text" not in source["extractedText"]


async def test_bulk_active(client: AsyncClient, auth_headers: dict):
    ids = [
        (await _create(client, auth_headers, name=f"S{i}", content="x"))["source"]["id"] for i in range(3)
    ]
    response = await client.put(
        "/api/sources/bulk/active",
        json={"sourceIds": ids[:2], "isActive": False},
        headers=auth_headers,
    )
    assert response.status_code == 200
    assert response.json()["message"] == "2 sources updated"

    active = await client.get("/api/sources", params={"active_only": True}, headers=auth_headers)
    assert [s["id"] for s in active.json()["sources"]] == [ids[2]]


async def test_delete_source(client: AsyncClient, auth_headers: dict):
    source_id = (await _create(client, auth_headers, name="Gone", content="x"))["source"]["id"]
    response = await client.delete(f"/api/sources/{source_id}", headers=auth_headers)
    assert response.status_code == 200
    assert (await client.get(f"/api/sources/{source_id}", headers=auth_headers)).status_code == 404


async def test_process_pdf(client: AsyncClient, auth_headers: dict):
    source_id = (
        await _create(client, auth_headers, name="Lecture.pdf", fileType="pdf", content=pdf_base64("Page one"))
    )["source"]["id"]
    response = await client.post(f"/api/sources/{source_id}/process", headers=auth_headers)
    body = response.json()
    assert body["success"] is True
    assert body["status"] == "success"
    assert body["pageCount"] == 1
    assert body["textLength"] > 0


async def test_process_non_pdf_rejected(client: AsyncClient, auth_headers: dict):
    source_id = (await _create(client, auth_headers, name="notes.txt", content="x"))["source"]["id"]
    response = await client.post(f"/api/sources/{source_id}/process", headers=auth_headers)
    assert response.status_code == 400


async def test_summarize_source(client: AsyncClient, auth_headers: dict, fake_llm):
    fake_llm.queue("- Cells are the unit of life\n- ATP stores energy")
    source_id = (await _create(client, auth_headers, name="Bio", content="Cells and ATP"))["source"]["id"]

    response = await client.post(f"/api/sources/{source_id}/summarize", headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["source"]["summary"].startswith("- Cells")
    assert "Cells and ATP" in fake_llm.last_prompt


async def test_summarize_without_api_key(client: AsyncClient, auth_headers: dict):
    source_id = (await _create(client, auth_headers, name="Bio", content="Cells"))["source"]["id"]
    response = await client.post(f"/api/sources/{source_id}/summarize", headers=auth_headers)
    assert response.status_code == 400
    assert "OpenRouter API key" in response.json()["message"]


async def test_pdf_processor_reports_scanned_pdf():
    result = await pdf_processor.extract_text(make_pdf(""))
    assert result["status"] == "failed"
    assert result["page_count"] == 1
    assert result["text"] == ""


def test_decode_pdf_content_rejects_bad_base64():
    with pytest.raises(ValueError, match="base64"):
        decode_pdf_content("not base64 !!")
