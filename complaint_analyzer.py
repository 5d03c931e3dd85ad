#!/usr/bin/env python3
"""
Complaint Analyzer - SMK KOLOMBONG
Dashboard counts, chart series and the text summary printed on exports.
Pure functions over a reports DataFrame.
"""

import pandas as pd
from datetime import datetime

from aduan.ingestion.feeds import REPORT_COLUMNS, Status
from aduan.ingestion.row_parser import month_bucket

# ============================================================================
# CONFIGURATION
# ============================================================================

SCHOOL_NAME = "SMK KOLOMBONG"

# Chart colours per status (blue, yellow, green, red)
STATUS_COLORS = {
    Status.NEW.value: "#3b82f6",
    Status.IN_PROGRESS.value: "#eab308",
    Status.DONE.value: "#22c55e",
    Status.REJECTED.value: "#ef4444",
}

# ============================================================================
# FRAME CONSTRUCTION
# ============================================================================

def reports_to_frame(reports):
    """One row per report, status as its sheet value"""

    rows = [
        {
            'id': r.id,
            'reported_at': r.reported_at,
            'teacher_name': r.teacher_name,
            'location': r.location,
            'issue_description': r.issue_description,
            'image_url': r.image_url,
            'status': Status(r.status).value,
        }
        for r in reports
    ]
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)

# ============================================================================
# STATISTICS CALCULATION
# ============================================================================

def calculate_dashboard_stats(df):
    """Headline counts for the dashboard cards"""

    status_counts = df['status'].value_counts()

    stats = {
        'total_reports': len(df),
        'new_count': int(status_counts.get(Status.NEW.value, 0)),
        'in_progress_count': int(status_counts.get(Status.IN_PROGRESS.value, 0)),
        'done_count': int(status_counts.get(Status.DONE.value, 0)),
        'rejected_count': int(status_counts.get(Status.REJECTED.value, 0)),
    }

    return stats

def status_distribution(df):
    """(status, count) in workflow order, empty statuses dropped"""

    status_counts = df['status'].value_counts()
    distribution = []
    for status in Status:
        count = int(status_counts.get(status.value, 0))
        if count > 0:
            distribution.append((status.value, count))
    return distribution

def top_locations(df, limit=5):
    """Most reported locations, busiest first"""

    if df.empty:
        return []
    counts = df['location'].value_counts()
    return [(name, int(count)) for name, count in counts.head(limit).items()]

def monthly_trend(df):
    """Reports per MM/YYYY bucket in calendar order"""

    if df.empty:
        return []

    buckets = df['reported_at'].apply(month_bucket).dropna()
    if buckets.empty:
        return []

    counts = buckets.value_counts()

    def sort_key(label):
        month, year = label.split('/')
        return (int(year), int(month))

    return [(label, int(counts[label])) for label in sorted(counts.index, key=sort_key)]

def recent_reports(reports, limit=5):
    """Newest reports for the dashboard list"""
    return list(reports[:limit])

# ============================================================================
# SUMMARY GENERATION
# ============================================================================

def generate_summary_brief(df, stats, school_name=SCHOOL_NAME, generated_on=None):
    """Plain-text summary placed above exported listings"""

    generated_on = generated_on or datetime.now()

    report = f"""
═══════════════════════════════════════════════════════════════════════════
COMPLAINT SUMMARY - {school_name}
═══════════════════════════════════════════════════════════════════════════

Generated: {generated_on.strftime('%d/%m/%Y %H:%M')}
Total Reports: {stats['total_reports']}
Awaiting Action: {stats['new_count']}

"""

    report += """═══════════════════════════════════════════════════════════════════════════
STATUS BREAKDOWN
═══════════════════════════════════════════════════════════════════════════

"""
    for status, count in status_distribution(df):
        pct = count / stats['total_reports'] * 100 if stats['total_reports'] else 0
        report += f"  {status}: {count} ({pct:.1f}%)\n"
    report += "\n"

    locations = top_locations(df)
    if locations:
        report += """═══════════════════════════════════════════════════════════════════════════
TOP LOCATIONS
═══════════════════════════════════════════════════════════════════════════

"""
        for i, (name, count) in enumerate(locations, 1):
            report += f"  {i}. {name}: {count}\n"
        report += "\n"

    return report
