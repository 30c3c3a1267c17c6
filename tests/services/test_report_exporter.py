"""Tests for report rendering."""
import csv
import io
from datetime import datetime, timezone

import pytest

from strepsil.models import AiCall
from strepsil.services import report_exporter
from strepsil.services.report_exporter import (
    CSV_COLUMNS,
    billing_row,
    billing_summary,
    paginate,
    pdf_call_line,
    render,
    report_filename,
)

GENERATED_AT = datetime(2024, 7, 4, 9, 15, tzinfo=timezone.utc)


def make_call(i=0, cost=0.0025, status="success"):
    return AiCall(
        id=f"call-{i}",
        provider="OpenAI",
        model_type="gpt-4o",
        endpoint="/v1/chat/completions",
        prompt="user: hi",
        tokens_in=100,
        tokens_out=50,
        total_cost=cost,
        latency_ms=250,
        status=status,
        created_at=datetime(2024, 7, 1, 8, 5, 9, tzinfo=timezone.utc),
    )


class TestBillingData:
    """Test billing rows and summary."""

    def test_billing_row(self):
        row = billing_row(make_call())

        assert row == {
            "id": "call-0",
            "date": "2024-07-01 08:05:09",
            "provider": "OpenAI",
            "model": "gpt-4o",
            "endpoint": "/v1/chat/completions",
            "tokens_in": 100,
            "tokens_out": 50,
            "total_tokens": 150,
            "cost": 0.0025,
            "latency": 250,
            "status": "success",
        }

    def test_summary(self):
        summary = billing_summary([make_call(0, 1.0), make_call(1, 2.5)], "2024-07-01", None)

        assert summary["total_calls"] == 2
        assert summary["total_cost"] == pytest.approx(3.5)
        assert summary["total_tokens"] == 300
        assert summary["average_latency"] == 250
        assert summary["date_range"] == {"start": "2024-07-01", "end": "All time"}

    def test_empty_summary(self):
        summary = billing_summary([])
        assert summary["total_calls"] == 0
        assert summary["average_latency"] == 0
        assert summary["date_range"] == {"start": "All time", "end": "All time"}


class TestCsv:
    """Test CSV rendering."""

    def test_header_and_rows(self):
        rows = [billing_row(make_call(i)) for i in range(3)]

        content = report_exporter.render_csv(rows).decode()
        parsed = list(csv.reader(io.StringIO(content)))

        assert parsed[0] == CSV_COLUMNS
        assert len(parsed) == 4
        assert parsed[1][0] == "call-0"
        assert parsed[1][CSV_COLUMNS.index("total_tokens")] == "150"
        assert parsed[1][CSV_COLUMNS.index("cost")] == "0.0025"

    def test_empty_has_header_only(self):
        content = report_exporter.render_csv([]).decode()
        assert content.strip() == ",".join(CSV_COLUMNS)


class TestPdf:
    """Test PDF rendering."""

    def test_pdf_document(self):
        rows = [billing_row(make_call(i)) for i in range(3)]
        summary = billing_summary([make_call(i) for i in range(3)])

        content = report_exporter.render_pdf(summary, rows, GENERATED_AT)

        assert content.startswith(b"%PDF")

    def test_pages_of_twenty_lines(self):
        pages = paginate(list(range(45)))
        assert [len(p) for p in pages] == [20, 20, 5]

    def test_paginate_empty(self):
        assert paginate([]) == []

    def test_call_line(self):
        line = pdf_call_line(billing_row(make_call()))
        assert line == "2024-07-01 08:05:09 | OpenAI/gpt-4o | /v1/chat/completions | $0.0025 | success"


class TestRender:
    """Test format selection."""

    def test_json(self):
        rows = [billing_row(make_call())]
        report = render("billing", {"total_calls": 1}, rows, "json", GENERATED_AT)

        assert report.content == {"summary": {"total_calls": 1}, "calls": rows}
        assert report.media_type == "application/json"

    def test_unknown_format_falls_back_to_json(self):
        rows = [billing_row(make_call())]
        xml = render("billing", {"total_calls": 1}, rows, "xml", GENERATED_AT)
        as_json = render("billing", {"total_calls": 1}, rows, "json", GENERATED_AT)

        assert xml.format == "json"
        assert xml.content == as_json.content

    def test_csv_filename(self):
        report = render("billing", {}, [], "csv", GENERATED_AT)
        assert report.filename == "billing-report-2024-07-04.csv"
        assert report.media_type == "text/csv"

    def test_pdf_media_type(self):
        summary = billing_summary([])
        report = render("billing", summary, [], "pdf", GENERATED_AT)
        assert report.media_type == "application/pdf"
        assert report.filename == "billing-report-2024-07-04.pdf"

    def test_filename_uses_generation_date(self):
        assert report_filename("cost", "csv", GENERATED_AT) == "cost-report-2024-07-04.csv"
