import streamlit as st
import streamlit.components.v1 as components
import pandas as pd
import httpx
import logging
from datetime import date, datetime

from aduan import config
from aduan.export import (
    ExportError,
    build_listing_pdf,
    listing_csv,
    listing_filename,
    printable_html,
)
from aduan.ingestion.feeds import Status
from aduan.ingestion.images import (
    THUMBNAIL_FRAME_HEIGHT,
    ZOOM_FRAME_HEIGHT,
    has_hosted_image,
    thumbnail_document,
    zoom_document,
)
from aduan.markup import escape_markdown
from aduan.reports.gateway import FormDraft, GatewayError, UploadTooLarge
from aduan.reports.repository import AdminRequired, ReportRepository
from aduan.reports.session import VIEWS, AppState
from complaint_analyzer import (
    SCHOOL_NAME,
    STATUS_COLORS,
    calculate_dashboard_stats,
    generate_summary_brief,
    monthly_trend,
    recent_reports,
    reports_to_frame,
    status_distribution,
    top_locations,
)

logger = logging.getLogger("aduan.app")

# Page config
st.set_page_config(
    page_title="Sistem Aduan Kerosakan",
    page_icon="🛠️",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Custom CSS
st.markdown("""
<style>
    :root {
        --primary-color: #1e293b;
        --accent-color: #3b82f6;
        --text-light: #64748b;
        --border-color: #e2e8f0;
    }

    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}

    h1 {
        color: var(--primary-color);
        font-weight: 700;
        letter-spacing: -0.02em;
    }

    .subtitle {
        color: var(--text-light);
        font-size: 1.05rem;
        margin-bottom: 1.5rem;
        padding-bottom: 1rem;
        border-bottom: 2px solid var(--border-color);
    }

    [data-testid="stMetricLabel"] {
        text-transform: uppercase;
        letter-spacing: 0.05em;
    }

    .status-badge {
        font-size: 0.7rem;
        font-weight: 700;
        text-transform: uppercase;
        padding: 0.1rem 0.5rem;
        border-radius: 999px;
        border: 1px solid currentColor;
    }
</style>
""", unsafe_allow_html=True)


# ============================================================================
# SESSION
# ============================================================================

@st.cache_resource
def _configure_logging():
    config.configure_logging()
    return True


def _init_session():
    _configure_logging()
    if "app_state" not in st.session_state:
        st.session_state.app_state = AppState()
    if "repository" not in st.session_state:
        client = httpx.Client(timeout=config.REQUEST_TIMEOUT)
        st.session_state.repository = ReportRepository(client)
    if "form_key" not in st.session_state:
        st.session_state.form_key = 0
    if "upload_key" not in st.session_state:
        st.session_state.upload_key = 0


_init_session()
state: AppState = st.session_state.app_state
repo: ReportRepository = st.session_state.repository

if not repo.is_loaded and not state.is_loading:
    state.is_loading = True
    try:
        with st.spinner("Loading data from Google Sheets..."):
            repo.refresh()
    finally:
        state.is_loading = False


# ============================================================================
# HELPERS
# ============================================================================

def status_badge(status):
    color = STATUS_COLORS.get(Status(status).value, "#64748b")
    return f'<span class="status-badge" style="color: {color};">{Status(status).value}</span>'


def render_thumbnail(report):
    if has_hosted_image(report.image_url):
        components.html(thumbnail_document(report.image_url), height=THUMBNAIL_FRAME_HEIGHT)


def show_notification():
    error = state.take_error()
    if error:
        st.error(f"❌ {escape_markdown(error)}")
    message = state.take_notification()
    if message:
        st.toast(escape_markdown(message), icon="✅")


# Admin actions run as widget callbacks: once per interaction, before the
# rerun that follows it.

def change_status(report_id, widget_key):
    new_status = st.session_state[widget_key]
    state.updating_id = report_id
    try:
        repo.update_status(report_id, new_status, is_admin=state.is_admin)
        state.notify(f"Status of report {report_id} updated to {Status(new_status).value}")
    except GatewayError as e:
        logger.error("Status update failed: %s", e)
        state.fail("Failed to update the status. Please try again.")
    except AdminRequired as e:
        state.fail(str(e))
    finally:
        state.updating_id = None


def request_delete(report_id):
    state.pending_delete_id = report_id


def cancel_delete():
    state.pending_delete_id = None


def confirm_delete(report_id):
    state.deleting_id = report_id
    try:
        repo.delete_report(report_id, is_admin=state.is_admin, confirmed=True)
        state.notify(f"Report {report_id} deleted.")
    except GatewayError as e:
        logger.error("Delete failed: %s", e)
        state.fail("Failed to delete the report. Please try again.")
    except AdminRequired as e:
        state.fail(str(e))
    finally:
        state.deleting_id = None
        state.pending_delete_id = None


# ============================================================================
# SIDEBAR
# ============================================================================

with st.sidebar:
    st.markdown("## 🛠️ Sistem Aduan")
    st.caption(SCHOOL_NAME)

    view_keys = list(VIEWS)
    selected_view = st.radio(
        "Navigation",
        options=view_keys,
        index=view_keys.index(state.active_view),
        format_func=lambda key: VIEWS[key],
        label_visibility="collapsed",
    )
    if selected_view != state.active_view:
        state.navigate(selected_view)
        st.rerun()

    st.markdown("---")

    if st.button("🔄 Refresh data", use_container_width=True):
        with st.spinner("Refreshing..."):
            repo.refresh()
        st.rerun()

    @st.fragment(run_every=config.RECONCILE_SECONDS)
    def sync_indicator():
        since_refresh = (
            (datetime.now() - repo.last_refreshed).total_seconds()
            if repo.last_refreshed else None
        )
        if repo.ledger.outstanding and (since_refresh is None or since_refresh >= config.RECONCILE_SECONDS):
            confirmed_before = repo.last_reconcile
            repo.refresh()
            if repo.last_reconcile is not confirmed_before and repo.last_reconcile.confirmed:
                st.rerun()
        outstanding = repo.ledger.outstanding
        discrepancies = repo.ledger.discrepancies
        if outstanding:
            st.caption(f"⏳ {len(outstanding)} change(s) waiting for Google Sheets")
        if discrepancies:
            st.warning(
                f"⚠️ {len(discrepancies)} change(s) never appeared in the sheet:\n\n"
                + "\n".join(f"- {escape_markdown(c.describe())}" for c in discrepancies)
            )
            if st.button("Dismiss", key="dismiss_discrepancies"):
                repo.ledger.clear_discrepancies()
                st.rerun()
        if repo.last_refreshed:
            st.caption(f"Last sync: {repo.last_refreshed.strftime('%H:%M:%S')}")

    sync_indicator()

    st.markdown("---")

    if state.is_admin:
        st.success("🛡️ Admin mode")
        if st.button("Log out", use_container_width=True):
            state.drop_admin()
            st.rerun()
    else:
        with st.form("admin_login", clear_on_submit=True):
            st.markdown("**🔒 Admin login**")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Log in", use_container_width=True):
                if state.elevate(password):
                    st.rerun()
                else:
                    st.error("Wrong password!")


# ============================================================================
# VIEWS
# ============================================================================

def render_dashboard():
    st.markdown("# 📊 Report Summary")
    st.markdown('<div class="subtitle">Data pulled live from Google Sheets.</div>', unsafe_allow_html=True)

    df = reports_to_frame(repo.reports)
    stats = calculate_dashboard_stats(df)

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("Total Reports", stats['total_reports'])
    with col2:
        st.metric(Status.IN_PROGRESS.value, stats['in_progress_count'])
    with col3:
        st.metric(Status.DONE.value, stats['done_count'])
    with col4:
        st.metric(Status.REJECTED.value, stats['rejected_count'])

    st.markdown("<br>", unsafe_allow_html=True)
    header_col, link_col = st.columns([4, 1])
    with header_col:
        st.markdown("### Latest Reports")
    with link_col:
        if st.button("See all", use_container_width=True):
            state.navigate("list")
            st.rerun()

    if not repo.is_loaded:
        st.info("⏳ Loading data from Google Sheets...")
        return

    latest = recent_reports(repo.reports)
    if not latest:
        st.info("No reports found.")
        return

    for report in latest:
        with st.container(border=True):
            text_col, image_col = st.columns([6, 1])
            with text_col:
                st.markdown(
                    f"**{escape_markdown(report.id)}** &nbsp; 📍 {escape_markdown(report.location)} "
                    f"&nbsp; {status_badge(report.status)}",
                    unsafe_allow_html=True,
                )
                st.markdown(escape_markdown(report.issue_description))
                st.caption(
                    f"👤 {escape_markdown(report.teacher_name)} · 📅 {escape_markdown(report.reported_at)}"
                )
            with image_col:
                render_thumbnail(report)


def render_analysis():
    st.markdown("# 📈 Complaint Analysis")
    st.markdown(
        f'<div class="subtitle">Damage report trends for {SCHOOL_NAME}.</div>',
        unsafe_allow_html=True,
    )

    if not repo.is_loaded:
        st.info("⏳ Analysing data...")
        return

    df = reports_to_frame(repo.reports)

    col1, col2 = st.columns(2)

    with col1:
        st.markdown("### Status Distribution")
        distribution = status_distribution(df)
        if distribution:
            chart_df = pd.DataFrame(distribution, columns=["Status", "Reports"])
            st.vega_lite_chart(
                chart_df,
                {
                    "mark": {"type": "arc", "innerRadius": 60, "padAngle": 0.03},
                    "encoding": {
                        "theta": {"field": "Reports", "type": "quantitative"},
                        "color": {
                            "field": "Status",
                            "type": "nominal",
                            "scale": {
                                "domain": [s for s, _ in distribution],
                                "range": [STATUS_COLORS[s] for s, _ in distribution],
                            },
                        },
                        "tooltip": [{"field": "Status"}, {"field": "Reports"}],
                    },
                },
                use_container_width=True,
            )
        else:
            st.info("No data yet.")

    with col2:
        st.markdown("### Top 5 Damage Locations")
        locations = top_locations(df)
        if locations:
            loc_df = pd.DataFrame(locations, columns=["Location", "Reports"]).set_index("Location")
            st.bar_chart(loc_df, horizontal=True, color="#3b82f6")
        else:
            st.info("No data yet.")

    st.markdown("### Monthly Complaint Trend")
    trend = monthly_trend(df)
    if trend:
        trend_df = pd.DataFrame(trend, columns=["Month", "Reports"]).set_index("Month")
        st.area_chart(trend_df, color="#3b82f6")
    else:
        st.info("No dated reports yet.")


def render_export_controls(reports):
    df = reports_to_frame(reports)
    summary = generate_summary_brief(df, calculate_dashboard_stats(df))

    col1, col2, col3 = st.columns(3)
    with col1:
        try:
            pdf_buffer = build_listing_pdf(reports, date.today(), summary_text=summary)
        except ExportError as e:
            logger.error("%s", e)
            st.warning("⚠️ PDF could not be generated, opening the print dialog instead.")
            components.html(printable_html(reports), height=0)
        else:
            st.download_button(
                label="📥 Download PDF",
                data=pdf_buffer,
                file_name=listing_filename(),
                mime="application/pdf",
                use_container_width=True,
            )
    with col2:
        st.download_button(
            label="📄 Download CSV",
            data=listing_csv(reports),
            file_name=listing_filename().replace(".pdf", ".csv"),
            mime="text/csv",
            use_container_width=True,
        )
    with col3:
        if st.button("🖨️ Print", use_container_width=True):
            components.html(printable_html(reports), height=0)


def render_report_row(report, position):
    status_options = list(Status)
    key_suffix = f"{state.widget_epoch}_{position}_{report.id}_{Status(report.status).name}"
    with st.container(border=True):
        info_col, image_col, action_col = st.columns([6, 1, 2])
        with info_col:
            st.markdown(
                f"**{escape_markdown(report.id)}** · 📅 {escape_markdown(report.reported_at)} "
                f"· 👤 {escape_markdown(report.teacher_name)}",
            )
            st.markdown(
                f"📍 **{escape_markdown(report.location)}** · {escape_markdown(report.issue_description)}"
            )
        with image_col:
            if has_hosted_image(report.image_url):
                render_thumbnail(report)
                with st.popover("🔍"):
                    components.html(zoom_document(report.image_url), height=ZOOM_FRAME_HEIGHT)
            elif report.image_url:
                st.caption(escape_markdown(report.image_url))
        with action_col:
            if report.is_pending:
                st.caption("⏳ Waiting for Google Sheets")
            elif state.is_admin:
                status_key = f"status_{key_suffix}"
                st.selectbox(
                    "Status",
                    options=status_options,
                    index=status_options.index(Status(report.status)),
                    format_func=lambda s: s.value,
                    key=status_key,
                    on_change=change_status,
                    args=(report.id, status_key),
                    disabled=state.updating_id == report.id,
                    label_visibility="collapsed",
                )

                if state.pending_delete_id == report.id:
                    st.warning(f"Delete report {escape_markdown(report.id)}? This cannot be undone.")
                    yes_col, no_col = st.columns(2)
                    with yes_col:
                        st.button(
                            "Delete",
                            key=f"confirm_{key_suffix}",
                            type="primary",
                            on_click=confirm_delete,
                            args=(report.id,),
                            disabled=state.deleting_id == report.id,
                        )
                    with no_col:
                        st.button("Cancel", key=f"cancel_{key_suffix}", on_click=cancel_delete)
                else:
                    st.button(
                        "🗑️ Delete",
                        key=f"delete_{key_suffix}",
                        on_click=request_delete,
                        args=(report.id,),
                    )
            else:
                st.markdown(status_badge(report.status), unsafe_allow_html=True)


def render_list():
    st.markdown("# 📋 All Reports")
    st.markdown(
        f'<div class="subtitle">Senarai Aduan {SCHOOL_NAME}</div>',
        unsafe_allow_html=True,
    )

    if not repo.is_loaded:
        st.info("⏳ Loading data from Google Sheets...")
        return

    reports = repo.reports
    render_export_controls(reports)
    st.markdown("<br>", unsafe_allow_html=True)

    if not reports:
        st.info("No reports found.")
        return

    for position, report in enumerate(reports):
        render_report_row(report, position)


def render_form():
    st.markdown("# ➕ New Damage Report")
    st.markdown('<div class="subtitle">Reports are sent straight to Google Sheets.</div>', unsafe_allow_html=True)

    form_key = st.session_state.form_key
    upload_key = st.session_state.upload_key
    with st.form(f"report_form_{form_key}"):
        teacher_name = st.selectbox(
            "Teacher name",
            options=repo.teachers,
            index=None,
            placeholder="-- Select your name --",
            key=f"teacher_{form_key}",
        )
        location = st.text_input(
            "Location",
            placeholder="e.g. Block B, Level 2, Boys' toilet",
            key=f"location_{form_key}",
        )
        issue_description = st.text_area(
            "Damage type",
            placeholder="Describe the damage...",
            key=f"issue_{form_key}",
        )
        # Own key so a rejected photo can be cleared without losing the text.
        uploaded = st.file_uploader(
            f"Photo (JPG, PNG, max {config.MAX_UPLOAD_BYTES // (1024 * 1024)}MB)",
            type=["jpg", "jpeg", "png"],
            key=f"photo_{form_key}_{upload_key}",
        )
        submitted = st.form_submit_button(
            "Send report",
            type="primary",
            use_container_width=True,
            disabled=state.is_submitting,
            key="send_report",
        )

    if not submitted:
        return

    draft = FormDraft(
        teacher_name=teacher_name or "",
        location=location,
        issue_description=issue_description,
    )
    missing = draft.missing_fields()
    if missing:
        st.error("❌ Please fill in: " + ", ".join(name.replace("_", " ") for name in missing))
        return

    if uploaded is not None:
        try:
            draft.attach_image(uploaded.name, uploaded.type or "image/jpeg", uploaded.getvalue())
        except UploadTooLarge as e:
            logger.info("Rejected upload: %s", e)
            state.error_message = str(e)
            st.session_state.upload_key += 1
            st.rerun()

    state.is_submitting = True
    try:
        with st.spinner("Sending report..."):
            repo.submit_report(draft)
    except GatewayError as e:
        logger.error("Submit failed: %s", e)
        st.error("❌ There was an error sending the report.")
        return
    finally:
        state.is_submitting = False

    state.notify("Report sent to Google Sheets!")
    st.session_state.form_key += 1
    state.navigate("list")
    st.rerun()


# ============================================================================
# MAIN
# ============================================================================

show_notification()

if state.active_view == "dashboard":
    render_dashboard()
elif state.active_view == "analysis":
    render_analysis()
elif state.active_view == "list":
    render_list()
elif state.active_view == "form":
    render_form()
