"""Tests for document number formatting and prefix resolution."""

from datetime import datetime, timedelta, timezone

import pytest

from billing_engines.numbering import (
    DocumentType,
    format_document_number,
    resolve_prefix,
)


class TestFormatDocumentNumber:
    def test_standard_format(self):
        issued_at = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)

        assert format_document_number("INV", issued_at, 42) == "INV-202401-000042"

    def test_year_month_taken_in_utc(self):
        """01:00 on Feb 1 at UTC+5 is still January in UTC."""
        issued_at = datetime(2024, 2, 1, 1, 0, tzinfo=timezone(timedelta(hours=5)))

        assert format_document_number("CN", issued_at, 1) == "CN-202401-000001"

    def test_sequence_wider_than_six_digits(self):
        issued_at = datetime(2024, 12, 31, tzinfo=timezone.utc)

        assert format_document_number("INV", issued_at, 1234567) == "INV-202412-1234567"

    @pytest.mark.parametrize("sequence", [0, -1])
    def test_non_positive_sequence_rejected(self, sequence):
        with pytest.raises(ValueError):
            format_document_number("INV", datetime(2024, 1, 1, tzinfo=timezone.utc), sequence)


class TestResolvePrefix:
    def test_defaults(self):
        assert resolve_prefix(DocumentType.INVOICE, None) == "INV"
        assert resolve_prefix(DocumentType.CREDIT_NOTE, None) == "CN"

    @pytest.mark.parametrize("blank", ["", "   ", "\t"])
    def test_blank_prefix_falls_back_to_default(self, blank):
        assert resolve_prefix(DocumentType.INVOICE, blank) == "INV"

    def test_custom_prefix_is_stripped(self):
        assert resolve_prefix(DocumentType.INVOICE, " RNT ") == "RNT"

    def test_custom_defaults_mapping(self):
        defaults = {DocumentType.CREDIT_NOTE: "CRN"}

        assert resolve_prefix(DocumentType.CREDIT_NOTE, None, defaults) == "CRN"
