"""Tests for the document edit and section API endpoints."""

import json
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from docpatch.core.errors import FatalGenerationError
from docpatch.main import app
from docpatch.services.document_editor import EditDocumentResult
from tests.fakes.fake_generation import FakeGenerationClient
from tests.fixtures_documents import (
    heading,
    make_document,
    paragraph,
    pif_nodes,
)

client = TestClient(app)


def _doc_payload(nodes=None) -> dict:
    return {"type": "doc", "content": nodes if nodes is not None else pif_nodes()}


class TestListSections:
    def test_lists_registry(self):
        response = client.get("/v1/sections")

        assert response.status_code == 200
        data = response.json()
        assert len(data) == 10
        assert data[0] == {
            "name": "GHG Inventory",
            "patterns": ["GHG Inventory Module"],
            "expected_level": None,
        }


class TestEditEndpoint:
    def test_edits_section_end_to_end(self):
        reply = json.dumps([heading("Key barriers"), paragraph("Rewritten barriers.")])
        fake = FakeGenerationClient([reply])

        with patch("docpatch.services.document_editor.get_generation_client", return_value=fake):
            response = client.post(
                "/v1/documents/edit",
                json={
                    "document": _doc_payload(),
                    "sections": ["Key Barriers"],
                    "edit_instructions": "Rewrite the barriers.",
                },
            )

        assert response.status_code == 200
        data = response.json()
        assert data["title"] == "Project Information Form"
        assert data["successful_sections"] == ["Key Barriers"]
        assert data["failed_sections"] == []
        assert data["document"]["content"][9]["content"][0]["text"] == "Rewritten barriers."

    def test_unknown_section_is_400(self):
        with patch("docpatch.api.documents.edit_document", new_callable=AsyncMock) as mock_edit:
            response = client.post(
                "/v1/documents/edit",
                json={
                    "document": _doc_payload(),
                    "sections": ["Nonexistent Section"],
                    "edit_instructions": "Anything",
                },
            )

        assert response.status_code == 400
        assert "Invalid sections: Nonexistent Section" in response.json()["detail"]
        mock_edit.assert_not_awaited()

    def test_missing_sections_is_400(self):
        response = client.post(
            "/v1/documents/edit",
            json={"document": _doc_payload(), "sections": [], "edit_instructions": "Anything"},
        )
        assert response.status_code == 400

    def test_blank_instructions_is_400(self):
        response = client.post(
            "/v1/documents/edit",
            json={"document": _doc_payload(), "sections": ["Key Barriers"], "edit_instructions": " "},
        )
        assert response.status_code == 400
        assert response.json()["detail"] == "Edit instructions are required"

    def test_malformed_document_is_422(self):
        response = client.post(
            "/v1/documents/edit",
            json={
                "document": {"type": "doc", "content": [{"type": "blockquote"}]},
                "sections": ["Key Barriers"],
                "edit_instructions": "Anything",
            },
        )
        assert response.status_code == 422

    def test_default_title_when_document_has_none(self):
        doc = make_document([heading("Key barriers"), paragraph("x")])
        result = EditDocumentResult(document=doc, failed_sections=["Key Barriers"])

        with patch("docpatch.api.documents.edit_document", new=AsyncMock(return_value=result)):
            response = client.post(
                "/v1/documents/edit",
                json={
                    "document": _doc_payload([heading("Key barriers"), paragraph("x")]),
                    "sections": ["Key Barriers"],
                    "edit_instructions": "Anything",
                },
            )

        assert response.status_code == 200
        assert response.json()["title"] == "Project Information Form"
        assert response.json()["failed_sections"] == ["Key Barriers"]

    def test_unexpected_error_is_500(self):
        with patch(
            "docpatch.api.documents.edit_document",
            new=AsyncMock(side_effect=ValueError("OPENAI_API_KEY not configured")),
        ):
            response = client.post(
                "/v1/documents/edit",
                json={
                    "document": _doc_payload(),
                    "sections": ["Key Barriers"],
                    "edit_instructions": "Anything",
                },
            )

        assert response.status_code == 500
        assert "Failed to edit document" in response.json()["detail"]


class TestLocateEndpoint:
    def test_locates_requested_sections(self):
        response = client.post(
            "/v1/documents/sections/locate",
            json={"document": _doc_payload(), "sections": ["Climate Transparency", "NDC Tracking"]},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["ranges"] == {"Climate Transparency": {"start": 4, "end": 6}}
        assert data["missing"] == ["NDC Tracking"]

    def test_defaults_to_every_section(self):
        response = client.post("/v1/documents/sections/locate", json={"document": _doc_payload()})

        data = response.json()
        assert set(data["ranges"]) == {
            "GHG Inventory",
            "Climate Transparency",
            "Key Barriers",
            "Official Reporting to the UNFCCC",
        }
        assert len(data["missing"]) == 6

    def test_unknown_section_is_400(self):
        response = client.post(
            "/v1/documents/sections/locate",
            json={"document": _doc_payload(), "sections": ["Bogus"]},
        )
        assert response.status_code == 400



# Shaped like an editor export: explicit nulls, attr-less nodes, extra attrs
EDITOR_DOCUMENT = {
    "type": "doc",
    "content": [
        {"type": "heading", "content": [{"type": "text", "text": "Project Information Form"}]},
        {
            "type": "heading",
            "attrs": {"level": 2, "textAlign": None},
            "content": [{"type": "text", "text": "Key barriers"}],
        },
        {
            "type": "paragraph",
            "attrs": {"textAlign": None},
            "content": [{"type": "text", "marks": [{"type": "bold"}], "text": "Limited data"}],
        },
        {
            "type": "table",
            "content": [
                {
                    "type": "tableRow",
                    "content": [
                        {
                            "type": "tableHeader",
                            "attrs": {"colspan": 1, "rowspan": 1, "colwidth": None},
                            "content": [{"type": "paragraph"}],
                        },
                        {
                            "type": "tableCell",
                            "attrs": {"colspan": 1, "rowspan": 1, "colwidth": [120]},
                            "content": [{"type": "paragraph", "content": [{"type": "text", "text": "x"}]}],
                        },
                    ],
                }
            ],
        },
        {
            "type": "heading",
            "attrs": {"level": 2},
            "content": [{"type": "text", "text": "Official reporting to the UNFCCC"}],
        },
        {"type": "paragraph"},
    ],
}


class TestEditRoundTrip:
    def test_untouched_document_returned_verbatim(self):
        fake = FakeGenerationClient(default=FatalGenerationError("401 invalid key"))

        with patch("docpatch.services.document_editor.get_generation_client", return_value=fake):
            response = client.post(
                "/v1/documents/edit",
                json={
                    "document": EDITOR_DOCUMENT,
                    "sections": ["Key Barriers"],
                    "edit_instructions": "Rewrite the barriers.",
                },
            )

        assert response.status_code == 200
        data = response.json()
        assert data["failed_sections"] == ["Key Barriers"]
        assert data["title"] == "Project Information Form"
        assert data["document"] == EDITOR_DOCUMENT

    def test_nodes_outside_edited_range_unchanged(self):
        reply = json.dumps([heading("Official reporting to the UNFCCC"), paragraph("BTR1 submitted in 2024.")])
        fake = FakeGenerationClient([reply])

        with patch("docpatch.services.document_editor.get_generation_client", return_value=fake):
            response = client.post(
                "/v1/documents/edit",
                json={
                    "document": EDITOR_DOCUMENT,
                    "sections": ["Official Reporting to the UNFCCC"],
                    "edit_instructions": "Mention BTR1.",
                },
            )

        assert response.status_code == 200
        content = response.json()["document"]["content"]
        assert content[:4] == EDITOR_DOCUMENT["content"][:4]
        assert content[5]["content"][0]["text"] == "BTR1 submitted in 2024."
