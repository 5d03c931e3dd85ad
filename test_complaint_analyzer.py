"""
Complaint Analyzer Test Suite
"""

from datetime import datetime

from aduan.ingestion.feeds import Report, Status
from complaint_analyzer import (
    calculate_dashboard_stats,
    generate_summary_brief,
    monthly_trend,
    recent_reports,
    reports_to_frame,
    status_distribution,
    top_locations,
)


def report(id, reported_at, location, status=Status.NEW):
    return Report(id, reported_at, "Siti", location, "Rosak", status=status)


REPORTS = [
    report("R5", "02/03/2026", "Kantin", Status.DONE),
    report("R4", "28/02/2026", "Makmal", Status.IN_PROGRESS),
    report("R3", "15/02/2026", "Kantin", Status.NEW),
    report("R2", "03/12/2025", "Kantin", Status.DONE),
    report("R1", "2025-11-30", "Tandas", Status.REJECTED),
    report("R0", "01/01/2026", "Bilik Guru", Status.NEW),
]


# ---------------------------------------------------------------------------
# Frame and counts
# ---------------------------------------------------------------------------

class TestStats:
    def test_frame_has_report_columns(self):
        df = reports_to_frame(REPORTS)
        assert len(df) == 6
        assert df['status'].iloc[0] == "Selesai"

    def test_dashboard_counts(self):
        stats = calculate_dashboard_stats(reports_to_frame(REPORTS))
        assert stats['total_reports'] == 6
        assert stats['new_count'] == 2
        assert stats['in_progress_count'] == 1
        assert stats['done_count'] == 2
        assert stats['rejected_count'] == 1
        assert set(stats) == {
            'total_reports', 'new_count', 'in_progress_count', 'done_count', 'rejected_count',
        }

    def test_empty_collection(self):
        df = reports_to_frame([])
        stats = calculate_dashboard_stats(df)
        assert stats['total_reports'] == 0
        assert stats['done_count'] == 0
        assert status_distribution(df) == []
        assert top_locations(df) == []
        assert monthly_trend(df) == []

    def test_status_distribution_in_workflow_order(self):
        df = reports_to_frame(REPORTS)
        assert status_distribution(df) == [
            ("Baru", 2), ("Dalam Proses", 1), ("Selesai", 2), ("Ditolak", 1),
        ]

    def test_top_locations(self):
        df = reports_to_frame(REPORTS)
        assert top_locations(df, limit=1) == [("Kantin", 3)]

    def test_recent_reports(self):
        assert [r.id for r in recent_reports(REPORTS, limit=2)] == ["R5", "R4"]


# ---------------------------------------------------------------------------
# Trend
# ---------------------------------------------------------------------------

class TestMonthlyTrend:
    def test_calendar_order_across_years(self):
        trend = monthly_trend(reports_to_frame(REPORTS))
        assert trend == [("12/2025", 1), ("01/2026", 1), ("02/2026", 2), ("03/2026", 1)]

    def test_unnormalized_dates_left_out(self):
        trend = monthly_trend(reports_to_frame(REPORTS))
        assert sum(count for _, count in trend) == 5


# ---------------------------------------------------------------------------
# Summary
# ---------------------------------------------------------------------------

class TestSummary:
    def test_sections_present(self):
        df = reports_to_frame(REPORTS)
        text = generate_summary_brief(
            df, calculate_dashboard_stats(df), generated_on=datetime(2026, 3, 7, 9, 0)
        )
        assert "SMK KOLOMBONG" in text
        assert "07/03/2026 09:00" in text
        assert "STATUS BREAKDOWN" in text
        assert "Selesai: 2 (33.3%)" in text
        assert "1. Kantin: 3" in text
        assert "Awaiting Action: 2" in text

    def test_empty_has_no_locations_section(self):
        df = reports_to_frame([])
        text = generate_summary_brief(df, calculate_dashboard_stats(df))
        assert "TOP LOCATIONS" not in text
        assert "Total Reports: 0" in text
