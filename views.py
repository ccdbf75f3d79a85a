import datetime
import logging
import time

import altair as alt
import pandas as pd
import streamlit as st

import forms
import projection as pj
import resources
import settings
from api import ApiClientError, friendly_message, unwrap_list
from listview import CategoricalFilter, CollectionStore, FilterSet, ListView, LoadResult, LoadState, SearchFilter

logger = logging.getLogger(__name__)


# --- SESSION HELPERS ---
def get_api():
    return st.session_state.api


def notify_error(message):
    st.toast(f"⚠️ {friendly_message(message)}", icon="🚨")


def show_api_error(e, title="Request failed"):
    st.error(f"{title}: {friendly_message(e.message)}")
    for line in e.field_messages(): st.caption(f"• {line}")


def show_field_errors(errors):
    st.error("Please correct the fields below.")
    for line in forms.error_lines(errors): st.caption(f"• {line}")


def reset_views():
    """Drops every loaded list so the next page visit fetches again."""
    st.session_state.views = {}


def get_view(key, scope=None):
    views = st.session_state.setdefault("views", {})
    if key not in views:
        view = resources.build_view(key, get_api(), notify=notify_error)
        with st.spinner(f"Loading {resources.get_resource(key).title.lower()}..."):
            view.load(scope)
        views[key] = view
    return views[key]


def get_custom_view(key, builder, scope=None):
    views = st.session_state.setdefault("views", {})
    if key not in views:
        view = builder()
        with st.spinner("Loading..."):
            view.load(scope)
        views[key] = view
    return views[key]


# --- GENERIC LIST RENDERING ---
def render_filters(view, res):
    cols = st.columns([2] + [1] * len(res.categoricals))
    search = cols[0].text_input("🔍 Search", key=f"{res.key}_search", placeholder=f"Search {res.title.lower()}...")
    view.set_search(search)
    for col, f in zip(cols[1:], res.categoricals):
        sel = col.selectbox(f.label, view.options(f.field), key=f"{res.key}_{f.field}")
        view.set_selection(f.field, sel)


def render_status_metrics(view, res):
    if not res.status_field: return
    counts = view.counts(res.status_field)
    f = next((c for c in res.categoricals if c.field == res.status_field), None)
    if f is not None and f.choices:
        items = [(label, counts.get(value, 0)) for label, value in f.choices.items()]
    else:
        items = [(str(k).replace("-", " ").title() or "Unknown", v) for k, v in sorted(counts.items())]
    if not items: return
    cols = st.columns(len(items) + 1)
    cols[0].metric("Total", sum(counts.values()))
    for col, (label, n) in zip(cols[1:], items): col.metric(label, n)


def render_pager(view, page, key):
    c1, c2, c3 = st.columns([1, 3, 1])
    c1.button("◀ Previous", key=f"{key}_prev", on_click=view.previous_page, disabled=not page.has_previous, use_container_width=True)
    c2.markdown(
        f"<p style='text-align: center; color: gray;'>Showing {page.start} to {page.end} of {page.total_count} results · Page {page.page} of {page.total_pages}</p>",
        unsafe_allow_html=True,
    )
    c3.button("Next ▶", key=f"{key}_next", on_click=view.next_page, disabled=not page.has_next, use_container_width=True)


def render_list(key, view=None):
    """Search, filters, summary, table and pager for one list resource."""
    res = resources.get_resource(key)
    view = view or get_view(key)

    render_filters(view, res)

    if view.store.status is LoadState.ERROR:
        c_err, c_btn = st.columns([4, 1])
        c_err.error(f"Could not load {res.title.lower()}: {friendly_message(view.store.error)}")
        if c_btn.button("🔄 Retry", key=f"{key}_retry"):
            with st.spinner("Reloading..."): view.reload()
            st.rerun()

    render_status_metrics(view, res)

    page = view.current()
    if view.store.is_loading:
        st.info("Loading...")
    elif not page.is_empty:
        st.dataframe(page.items, width="stretch", hide_index=True)
        render_pager(view, page, key)
    # a failed load with nothing kept is not an empty result
    elif view.store.status is LoadState.LOADED:
        st.info(f"📭 {res.empty_message}")
    return view


# --- PARENT PAGES ---
def page_parent_dashboard():
    st.title("🏠 Dashboard")
    st.markdown(f"Welcome back, **{st.session_state.session.name}**")

    try:
        with st.spinner("Loading dashboard..."):
            data = get_api().get_parent_dashboard()
    except ApiClientError as e:
        logger.error("Dashboard load failed: %s", e.message)
        notify_error(e.message)
        data = {}

    children = data.get("children") or [] if isinstance(data, dict) else []
    overview = pd.DataFrame(data.get("grades_overview") or [] if isinstance(data, dict) else [])

    # 1. METRICS ROW
    c1, c2, c3 = st.columns(3)
    c1.metric("Children", len(children))
    c2.metric("Subjects", overview["subject"].nunique() if "subject" in overview else 0)
    avg = overview["overall_score"].mean() if "overall_score" in overview and not overview.empty else None
    c3.metric("Average Score", pj.format_whole_percent(avg))

    st.markdown("---")
    col_chart, col_kids = st.columns([2, 1])

    with col_chart:
        st.subheader("📈 Grades Overview")
        if not overview.empty and {"subject", "overall_score", "child_name"} <= set(overview.columns):
            c = alt.Chart(overview).mark_bar().encode(
                x=alt.X("subject:N", title="Subject"),
                y=alt.Y("overall_score:Q", title="Score (%)"),
                color=alt.Color("child_name:N", title="Child"),
                xOffset="child_name:N",
                tooltip=["child_name", "subject", "overall_score", "score_grade"],
            ).properties(height=300)
            st.altair_chart(c, use_container_width=True)
        else:
            st.info("No grades available yet.")

    with col_kids:
        st.subheader("👨‍👩‍👧 My Children")
        if not children: st.info("No children linked to your account yet.")
        for child in children:
            with st.container(border=True):
                st.markdown(f"**{child.get('name', '')}**")
                st.caption(f"{child.get('grade', '')} · {child.get('school', '')}")

    # 2. UPCOMING DEADLINES
    st.subheader("⏰ Upcoming Deadlines")
    view = get_view("parent_assessments")
    render_deadlines(view.store.records, lambda r: f"{r['title']} · {r['child_name']}")


def page_parent_assessments():
    st.title("📝 Assessments")
    st.caption("Track your children's quizzes, assignments, exams and projects.")
    render_list("parent_assessments")


def page_parent_grades():
    st.title("📜 Grades")
    st.caption("Overall subject grades for each child.")
    render_list("parent_grades")


def page_parent_submissions():
    st.title("📤 Submissions")
    st.caption("Work your children have handed in and how it was graded.")
    render_list("parent_submissions")


def page_parent_children():
    st.title("👨‍👩‍👧 My Children")
    st.caption("Children linked to your account.")
    view = render_list("parent_children")

    # LINK CHILD
    with st.expander("🔗 Link Child", expanded=False):
        with st.form("link_child"):
            sid = st.text_input("Student ID", placeholder="e.g. 1024")
            c1, c2 = st.columns(2)
            email = c1.text_input("Child's email")
            phone = c2.text_input("Child's phone")
            if st.form_submit_button("Link Child"):
                errors = forms.validate_link_child(sid, email, phone)
                if errors:
                    show_field_errors(errors)
                    return
                try:
                    with st.spinner("Linking..."):
                        child = get_api().link_child(int(sid.strip()), email.strip(), phone.strip())
                except ApiClientError as e:
                    show_api_error(e, "Could not link child")
                    return
                name = child.get("name") if isinstance(child, dict) else None
                st.toast(f"✅ {name or 'Child'} linked successfully!")
                with st.spinner("Refreshing..."): view.reload()
                time.sleep(0.5); st.rerun()


def _time_spent_view(api):
    def load(child_id):
        data = api.get_parent_analytics(child_id)
        rows = unwrap_list(data, "estimated_time_spent")
        summary = data.get("summarycards") if isinstance(data, dict) else None
        return LoadResult(rows, summary or {})

    store = CollectionStore(load, ["subject", "time", "percentage"], notify=notify_error)
    return ListView(store, FilterSet(SearchFilter(["subject"]), [CategoricalFilter("subject", "Subject")]))


def page_parent_analytics():
    st.title("📊 Analytics")
    api = get_api()

    # 1. CHILD SCOPE
    try:
        children = api.get_my_children()
    except ApiClientError as e:
        notify_error(e.message)
        children = []
    labels = {settings.ALL_OPTION: None}
    for ch in children: labels[ch.get("name") or f"Child {ch.get('id')}"] = ch.get("id")
    choice = st.selectbox("Child", list(labels.keys()), key="analytics_child")
    scope = labels[choice]

    view = get_custom_view("parent_analytics", lambda: _time_spent_view(api), scope=scope)
    if view.store.scope != scope:
        with st.spinner("Loading analytics..."): view.load(scope)

    if view.store.status is LoadState.ERROR:
        st.error(f"Could not load analytics: {friendly_message(view.store.error)}")

    # 2. SUMMARY CARDS
    cards = view.store.meta
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Assessments", cards.get("total_assessments", 0))
    c2.metric("Completed", cards.get("total_completed_assessments", 0))
    avg = cards.get("overall_average_score")
    c3.metric("Average Score", pj.format_whole_percent(avg))
    c4.metric("Est. Hours", cards.get("estimated_total_hours", 0))

    # 3. TIME SPENT
    st.subheader("⏱️ Estimated Time Spent")
    rows = view.filtered()
    if rows.empty:
        st.info("📭 No activity recorded for this period.")
        return
    c = alt.Chart(rows).mark_bar().encode(
        x=alt.X("percentage:Q", title="Share of time (%)"),
        y=alt.Y("subject:N", sort="-x", title=None),
        color=alt.Color("subject:N", legend=None),
        tooltip=["subject", "time", "percentage"],
    ).properties(height=max(120, 40 * len(rows)))
    st.altair_chart(c, use_container_width=True)


# --- TEACHER PAGES ---
def render_deadlines(records, title_fn, limit=5):
    if records.empty or "due_date" not in records:
        st.info("No upcoming deadlines.")
        return
    rows = []
    for r in records.to_dict("records"):
        days = pj.days_until(r.get("due_date"))
        if days is not None and days >= 0: rows.append((days, r))
    if not rows:
        st.info("No upcoming deadlines.")
        return
    rows.sort(key=lambda x: x[0])
    for days, r in rows[:limit]:
        c1, c2 = st.columns([3, 1])
        c1.markdown(f"**{title_fn(r)}**")
        c1.caption(pj.format_date(r.get("due_date")))
        c2.markdown(pj.badge(pj.due_label(days), pj.due_category(days)))


def page_teacher_dashboard():
    st.title("📊 Dashboard")
    st.markdown(f"Welcome back, **{st.session_state.session.name}**")

    # 1. FETCH DATA
    students = get_view("teacher_students").store.records
    assessments = get_view("teacher_assessments").store.records
    submissions = get_view("teacher_submissions").store.records

    pending = int((submissions["status"] == "pending-review").sum())
    graded = int((submissions["status"] == "graded").sum())
    rate = pj.whole_percent(graded / (graded + pending) * 100) if graded + pending else None

    # 2. METRICS ROW
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Students", len(students))
    c2.metric("Assessments", len(assessments))
    c3.metric("Pending Review", pending)
    c4.metric("Grading Progress", pj.format_percentage(rate))

    st.markdown("---")
    col_chart, col_due = st.columns([2, 1])

    with col_chart:
        st.subheader("📈 Submissions by Subject")
        if not submissions.empty:
            chart_data = submissions.groupby(["subject", "status"]).size().reset_index(name="Count")
            c = alt.Chart(chart_data).mark_bar().encode(
                x=alt.X("subject:N", title="Subject"),
                y=alt.Y("Count:Q"),
                color=alt.Color("status:N", title="Status"),
                tooltip=["subject", "status", "Count"],
            ).properties(height=300)
            st.altair_chart(c, use_container_width=True)
        else:
            st.info("No submission data available for charts.")

    with col_due:
        st.subheader("⏰ Upcoming Deadlines")
        render_deadlines(assessments, lambda r: r["title"])


def get_lessons():
    views = st.session_state.setdefault("views", {})
    if "lessons" not in views:
        views["lessons"] = get_api().get_teacher_lessons()
    return views["lessons"]


def render_create_assessment(view, kinds=tuple(forms.ASSESSMENT_KINDS)):
    label = kinds[0] if len(kinds) == 1 else "Assessment"
    with st.expander(f"➕ Create {label}", expanded=False):
        try:
            lessons = get_lessons()
        except ApiClientError as e:
            show_api_error(e, "Could not load lessons")
            return
        if not lessons:
            st.info("No lessons yet. Assessments are attached to a lesson.")
            return
        lesson_opts = forms.pick_label(lessons)

        with st.form(f"create_{label.lower()}"):
            kind = st.radio("Type", list(kinds), horizontal=True) if len(kinds) > 1 else kinds[0]
            lesson_label = st.selectbox("Lesson", list(lesson_opts.keys()))
            title = st.text_input("Title")
            instructions = st.text_area("Instructions")
            c1, c2, c3 = st.columns(3)
            marks = c1.number_input("Marks", min_value=0.0, value=10.0, step=1.0)
            due_day = c2.date_input("Due date", value=None)
            due_time = c3.time_input("Due time", value=datetime.time(23, 59))
            comment = st.text_input("Note for reviewers (optional)")

            if st.form_submit_button(f"Create {label}"):
                due_at = datetime.datetime.combine(due_day, due_time) if due_day else None
                lesson = lesson_opts.get(lesson_label)
                errors = forms.validate_assessment(lesson, title, instructions, marks, due_at)
                if errors:
                    show_field_errors(errors)
                    return
                payload = forms.assessment_payload(
                    forms.ASSESSMENT_KINDS[kind], lesson, st.session_state.session.user_id,
                    title, instructions, marks, due_at, comment,
                )
                try:
                    with st.spinner("Creating..."):
                        get_api().create_lesson_assessment(payload)
                except ApiClientError as e:
                    show_api_error(e, f"Could not create {kind.lower()}")
                    return
                st.toast(f"✅ {kind} created as a draft.")
                with st.spinner("Refreshing..."): view.reload()
                time.sleep(0.5); st.rerun()


def page_teacher_assessments():
    st.title("📝 Assessments")
    st.caption("Quizzes and assignments you have created, with their review status.")
    view = render_list("teacher_assessments")
    render_create_assessment(view)
    render_moderation(view, "lesson-assessments", "Assessments", name_field="title")


def page_teacher_quizzes():
    st.title("❓ Quizzes")
    st.caption("Quizzes attached to your lessons.")
    view = render_list("teacher_quizzes")
    render_create_assessment(view, kinds=("Quiz",))


def page_teacher_grades():
    st.title("📜 Grades")
    st.caption("Subject grades for the students you teach.")
    render_list("teacher_grades")


def page_teacher_submissions():
    st.title("📤 Submissions")
    st.caption("Review and grade student submissions.")
    view = render_list("teacher_submissions")

    # GRADING FORM
    filtered = view.filtered()
    if filtered.empty: return
    with st.expander("✏️ Grade a Submission", expanded=False):
        opts = {f"{r['student_name']} · {r['title']} ({r['subject']}) #{r['id']}": r for r in filtered.to_dict("records")}
        choice = st.selectbox("Submission", list(opts.keys()), key="grade_target")
        target = opts[choice]
        max_score = target.get("max_score")
        with st.form("grade_form"):
            st.caption(f"Current score: {pj.format_score(target.get('score'), max_score)}")
            score = st.text_input("Score", value="" if pd.isna(target.get("score")) else pj.fmt_score(target["score"]))
            feedback = st.text_area("Feedback (optional)")
            if st.form_submit_button("Save Grade"):
                try:
                    value = resources.validate_score(score, max_score)
                except ValueError as e:
                    st.error(str(e))
                    return
                try:
                    with st.spinner("Saving grade..."):
                        get_api().grade_submission(target["id"], value, feedback)
                except ApiClientError as e:
                    show_api_error(e, "Could not save grade")
                    return
                st.toast("✅ Grade saved!")
                with st.spinner("Refreshing..."): view.reload()
                time.sleep(0.5); st.rerun()


def page_teacher_students():
    st.title("🎓 Students")
    st.caption("Students in your classes.")
    render_list("teacher_students")


def render_moderation(view, kind, label, name_field="name"):
    pending = view.filtered()
    pending = pending[pending["status"].isin(["PENDING", "DRAFT"])]
    with st.expander(f"🛡️ Review {label}", expanded=False):
        if pending.empty:
            st.info(f"No {label.lower()} waiting for review.")
            return
        opts = {f"{r[name_field]} (#{r['id']})": r for r in pending.to_dict("records")}
        choice = st.selectbox(label[:-1] if label.endswith("s") else label, list(opts.keys()), key=f"mod_{kind}")
        target = opts[choice]
        comment = st.text_input("Comment (optional)", key=f"mod_{kind}_comment")
        c1, c2 = st.columns(2)
        action = None
        if c1.button("✅ Approve", key=f"mod_{kind}_approve", use_container_width=True): action = "approve"
        if c2.button("❌ Reject", key=f"mod_{kind}_reject", use_container_width=True): action = "reject"
        if not action: return
        try:
            with st.spinner("Saving..."):
                get_api().moderate(kind, target["id"], action, comment)
        except ApiClientError as e:
            show_api_error(e, f"Could not {action}")
            return
        st.toast(f"✅ {target[name_field]} {'approved' if action == 'approve' else 'rejected'}.")
        with st.spinner("Refreshing..."): view.reload()
        time.sleep(0.5); st.rerun()


def page_teachers():
    st.title("👥 Teachers")
    st.caption("Teachers registered at your school.")
    view = render_list("teachers")
    render_moderation(view, "teachers", "Teachers")


def page_teacher_subjects():
    st.title("📚 Subjects")
    st.caption("Subjects you teach and their moderation status.")
    view = render_list("teacher_subjects")
    render_create_subject(view)
    render_moderation(view, "subjects", "Subjects")


def render_create_subject(view):
    with st.expander("➕ Create Subject", expanded=False):
        with st.form("create_subject"):
            c1, c2 = st.columns([2, 1])
            name = c1.text_input("Subject name", placeholder="e.g. Mathematics")
            grade = c2.selectbox("Grade level", ["Select grade"] + forms.GRADE_LEVELS)
            description = st.text_area("Description")
            objectives = st.text_area("Learning objectives (one per line, optional)")
            if st.form_submit_button("Create Subject"):
                errors = forms.validate_subject(name, grade, description)
                if errors:
                    show_field_errors(errors)
                    return
                payload = forms.subject_payload(name, grade, description, forms.split_objectives(objectives))
                try:
                    with st.spinner("Creating..."):
                        get_api().create_subject(payload)
                except ApiClientError as e:
                    show_api_error(e, "Could not create subject")
                    return
                st.toast("✅ Subject created! It will be reviewed and approved.")
                with st.spinner("Refreshing..."): view.reload()
                time.sleep(0.5); st.rerun()


def page_leaderboard():
    st.title("🏆 Leaderboard")
    st.caption("Top performing students by average score.")
    view = render_list("leaderboard")

    filtered = view.filtered()
    if filtered.empty: return
    c1, c2 = st.columns(2)
    c1.metric("Students", len(filtered))
    avg = filtered["average_score"].mean()
    c2.metric("Average Score", pj.format_whole_percent(avg))

    chart = view.current_raw().items
    c = alt.Chart(chart).mark_bar().encode(
        x=alt.X("average_score:Q", title="Average Score (%)", scale=alt.Scale(domain=[0, 100])),
        y=alt.Y("student_name:N", sort="-x", title=None),
        color=alt.Color("top_subject:N", title="Top Subject"),
        tooltip=["rank", "student_name", "average_score", "top_subject"],
    ).properties(height=max(120, 40 * len(chart)))
    st.altair_chart(c, use_container_width=True)


# --- SHARED PAGES ---
def page_profile():
    st.title("👤 Profile")
    session = st.session_state.session
    user = session.user

    c1, c2, c3 = st.columns(3)
    c1.metric("Name", session.name)
    c2.metric("Role", session.role.title() or "-")
    c3.metric("Email", user.get("email") or "N/A")
    if user.get("phone"): st.caption(f"📞 {user['phone']}")

    st.markdown("---")
    st.subheader("🔒 Change Password")
    with st.form("change_password"):
        current = st.text_input("Current password", type="password")
        new = st.text_input("New password", type="password")
        confirm = st.text_input("Confirm new password", type="password")
        if st.form_submit_button("Update Password"):
            errors = forms.validate_password_change(current, new, confirm)
            if errors:
                show_field_errors(errors)
                return
            try:
                with st.spinner("Updating..."):
                    resp = get_api().change_password(current, new, confirm)
            except ApiClientError as e:
                show_api_error(e, "Could not change password")
                return
            msg = (resp.get("message") or resp.get("detail")) if isinstance(resp, dict) else None
            st.success(msg or "Password changed successfully.")
