"""Tests for subject reference lookups."""

from unittest.mock import MagicMock, patch

from docpatch.db.references import (
    extract_section_references,
    get_subject_record,
    get_subject_references,
)

PAYLOAD = {
    "sections": [
        {
            "name": "GHG Inventory",
            "documents": [
                {"doc_type": "BTR", "extracted_text": "  Inventory covers 1990-2019.  "},
                {"doc_type": None, "extracted_text": "Untyped note."},
                {"doc_type": "NC", "extracted_text": "   "},
            ],
        },
        {"name": "Key Barriers", "documents": [{"doc_type": "BUR", "extracted_text": "Data gaps."}]},
    ]
}


def _mock_supabase(rows):
    """Create a mock supabase client with chainable methods."""
    mock_sb = MagicMock()
    mock_table = MagicMock()

    mock_table.select.return_value = mock_table
    mock_table.ilike.return_value = mock_table
    mock_table.limit.return_value = mock_table
    mock_table.execute.return_value = MagicMock(data=rows)

    mock_sb.table.return_value = mock_table
    return mock_sb, mock_table


class TestExtractSectionReferences:
    def test_collects_matching_section(self):
        assert extract_section_references(PAYLOAD, "GHG Inventory") == [
            "BTR: Inventory covers 1990-2019.",
            "Other: Untyped note.",
        ]

    def test_other_section(self):
        assert extract_section_references(PAYLOAD, "Key Barriers") == ["BUR: Data gaps."]

    def test_unknown_section(self):
        assert extract_section_references(PAYLOAD, "NDC Tracking") == []

    def test_malformed_payloads(self):
        assert extract_section_references(None, "GHG Inventory") == []
        assert extract_section_references({"sections": "nope"}, "GHG Inventory") == []
        assert extract_section_references({"sections": ["nope", {"name": "GHG Inventory"}]}, "GHG Inventory") == []


class TestGetSubjectRecord:
    def test_case_insensitive_lookup(self):
        mock_sb, mock_table = _mock_supabase([{"id": "1", "name": "Kenya", "sections": PAYLOAD}])

        with patch("docpatch.db.references.get_supabase", return_value=mock_sb):
            record = get_subject_record("  kenya ")

        mock_sb.table.assert_called_once_with("countries")
        mock_table.ilike.assert_called_once_with("name", "kenya")
        assert record["name"] == "Kenya"

    def test_no_match(self):
        mock_sb, _ = _mock_supabase([])

        with patch("docpatch.db.references.get_supabase", return_value=mock_sb):
            assert get_subject_record("Atlantis") is None


class TestGetSubjectReferences:
    def test_no_subject(self):
        with patch("docpatch.db.references.get_subject_record") as mock_record:
            assert get_subject_references(None, "GHG Inventory") == []
            assert get_subject_references("  ", "GHG Inventory") == []
        mock_record.assert_not_called()

    def test_store_not_configured(self):
        with (
            patch("docpatch.db.references.reference_store_configured", return_value=False),
            patch("docpatch.db.references.get_subject_record") as mock_record,
        ):
            assert get_subject_references("Kenya", "GHG Inventory") == []
        mock_record.assert_not_called()

    def test_returns_section_references(self):
        with (
            patch("docpatch.db.references.reference_store_configured", return_value=True),
            patch(
                "docpatch.db.references.get_subject_record",
                return_value={"id": "1", "name": "Kenya", "sections": PAYLOAD},
            ),
        ):
            assert get_subject_references("Kenya", "Key Barriers") == ["BUR: Data gaps."]

    def test_lookup_error_is_swallowed(self):
        with (
            patch("docpatch.db.references.reference_store_configured", return_value=True),
            patch("docpatch.db.references.get_subject_record", side_effect=RuntimeError("db down")),
        ):
            assert get_subject_references("Kenya", "GHG Inventory") == []

    def test_unknown_subject(self):
        with (
            patch("docpatch.db.references.reference_store_configured", return_value=True),
            patch("docpatch.db.references.get_subject_record", return_value=None),
        ):
            assert get_subject_references("Atlantis", "GHG Inventory") == []
