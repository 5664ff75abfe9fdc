"""NEET Practice Tracker: log practice tests, see chapter-wise scores, share with a guardian."""
import sys
from pathlib import Path
from uuid import uuid4

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from db import get_api
from tracker.chapters import SUBJECTS, available_chapters, coerce_chapter
from tracker.engine import QuestionStatus, accuracy_percent, weak_chapters
from tracker.models import MAX_QUESTIONS
from tracker.notify import format_date

PAGES = ["New Test", "History", "Profile"]
STATUS_VALUES = [s.value for s in QuestionStatus]

st.set_page_config(page_title="NEET Practice Tracker", layout="wide")
st.sidebar.title("NEET Practice Tracker")

api = get_api()

if "auth" not in st.session_state:
    st.session_state["auth"] = None


def drop_session_on_401(response) -> None:
    """Expired or revoked token: forget the session and show the login form."""
    if response.status == 401:
        st.session_state["auth"] = None
        st.rerun()


def chapter_rows(by_chapter) -> list[dict]:
    return [
        {"Chapter": name, "Correct": s.correct, "Wrong": s.wrong, "NA": s.not_attempted, "Score": s.score}
        for name, s in by_chapter.items()
    ]


# ----- Login / Sign up -----
if st.session_state["auth"] is None:
    st.header("Welcome")
    login_tab, signup_tab = st.tabs(["Log in", "Sign up"])
    with login_tab:
        with st.form("login_form"):
            email = st.text_input("Email")
            password = st.text_input("Password", type="password")
            if st.form_submit_button("Log in", type="primary"):
                resp = api.login({"email": email, "password": password})
                if resp.ok:
                    st.session_state["auth"] = resp.data
                    st.rerun()
                else:
                    st.error(resp.error)
    with signup_tab:
        with st.form("signup_form"):
            name = st.text_input("Name")
            email = st.text_input("Email", key="signup_email")
            password = st.text_input("Password", type="password", key="signup_password")
            guardian_email = st.text_input("Guardian email (optional)")
            if st.form_submit_button("Create account", type="primary"):
                resp = api.signup({
                    "name": name,
                    "email": email,
                    "password": password,
                    "guardian_email": guardian_email,
                })
                if resp.ok:
                    st.session_state["auth"] = resp.data
                    st.rerun()
                else:
                    st.error(resp.error)
    st.stop()

session = st.session_state["auth"]
user = session.user
st.sidebar.caption(f"Signed in as {user.name} ({user.email})")

# Allow URL to open a specific page (e.g. after saving a test)
default_page = st.query_params.get("page", "New Test")
if default_page not in PAGES:
    default_page = "New Test"
page = st.sidebar.radio("Navigate", PAGES, index=PAGES.index(default_page), label_visibility="collapsed")

# ----- New Test -----
if page == "New Test":
    st.header("New Test")
    st.caption("Correct +4 · Wrong -1 · Not attempted 0")

    col_subject, col_count = st.columns(2)
    with col_subject:
        subject = st.selectbox("Subject", SUBJECTS, key="entry_subject")
    with col_count:
        count = st.number_input("Number of Questions", min_value=1, max_value=MAX_QUESTIONS, value=10, step=1, key="entry_count")
    chapters = available_chapters(subject)

    # Subject changed: chapters the new subject does not offer go back to "Mixed"
    if st.session_state.get("entry_prev_subject") != subject:
        for i in range(MAX_QUESTIONS):
            key = f"chapter_{i}"
            if key in st.session_state:
                st.session_state[key] = coerce_chapter(subject, st.session_state[key])
        st.session_state["entry_prev_subject"] = subject

    form_col, summary_col = st.columns([2, 1])
    questions = []
    with form_col:
        for i in range(int(count)):
            c1, c2, c3 = st.columns([1, 5, 4])
            c1.markdown(f"**{i + 1}**")
            chapter = c2.selectbox("Chapter", chapters, key=f"chapter_{i}", label_visibility="collapsed")
            status = c3.selectbox(
                "Status",
                STATUS_VALUES,
                index=STATUS_VALUES.index(QuestionStatus.NOT_ATTEMPTED.value),
                format_func=lambda v: QuestionStatus(v).label,
                key=f"status_{i}",
                label_visibility="collapsed",
            )
            questions.append({"number": i + 1, "chapter": chapter, "status": status})

        b1, b2 = st.columns(2)
        with b1:
            if st.button("Reset", use_container_width=True):
                for i in range(MAX_QUESTIONS):
                    st.session_state.pop(f"chapter_{i}", None)
                    st.session_state.pop(f"status_{i}", None)
                st.rerun()
        with b2:
            if st.button("Save Test", type="primary", use_container_width=True):
                resp = api.create_test(session.token, {"id": str(uuid4()), "subject": subject, "questions": questions})
                drop_session_on_401(resp)
                if resp.ok:
                    st.query_params["page"] = "History"
                    st.rerun()
                else:
                    st.error(resp.error)

    with summary_col:
        st.subheader("Breakdown")
        preview = api.preview(questions)
        if not preview.ok:
            st.error(preview.error)
            st.stop()
        totals = preview.data
        st.metric("Score", totals.score)
        st.caption(f"{totals.correct}C · {totals.wrong}W · {totals.not_attempted}NA")
        st.write(f"Subject: **{subject}** · Questions: {len(questions)} · Accuracy: {accuracy_percent(totals)}%")
        if not totals.by_chapter:
            st.info("No chapter selections yet.")
        for name, s in totals.by_chapter.items():
            with st.container(border=True):
                st.markdown(f"**{name}**: {s.score}")
                st.caption(f"{s.correct}C · {s.wrong}W · {s.not_attempted}NA")
        weak = weak_chapters(totals)
        if weak:
            st.write("**Focus next on:**")
            for name, info in weak:
                st.write(f"- {name} ({info['correct']}/{info['total']} correct)")

# ----- History -----
elif page == "History":
    st.header("Past Tests")

    stats_resp = api.get_stats(session.token)
    drop_session_on_401(stats_resp)
    if stats_resp.ok:
        stats = stats_resp.data
        col1, col2, col3 = st.columns(3)
        with col1:
            st.metric("Tests", stats.total_tests)
        with col2:
            st.metric("Questions", stats.total_questions)
        with col3:
            st.metric("Average score", f"{stats.avg_score:.1f}")
        if stats.by_subject:
            st.table([
                {"Subject": s.subject.value, "Tests": s.count, "Avg score": round(s.avg_score, 1), "Questions": s.total_questions}
                for s in stats.by_subject
            ])
    else:
        st.warning(f"Could not load statistics: {stats_resp.error}")

    subject_filter = st.selectbox("Subject", ["All"] + SUBJECTS, key="history_filter")
    resp = api.list_tests(session.token, subject_filter)
    drop_session_on_401(resp)
    if not resp.ok:
        st.error(resp.error)
        st.stop()

    if "history_message" in st.session_state:
        st.success(st.session_state.pop("history_message"))

    records = resp.data
    if not records:
        st.info("No tests recorded yet. Create one from the New Test page.")

    for t in records:
        title = (
            f"{t.subject.value} · {format_date(t.date_iso)} · "
            f"Score {t.score} · {t.correct}C / {t.wrong}W / {t.not_attempted}NA"
        )
        with st.expander(title):
            if t.by_chapter:
                st.table(chapter_rows(t.by_chapter))
            c1, c2 = st.columns(2)
            with c1:
                if user.guardian_email and st.button("Email to guardian", key=f"email_{t.id}"):
                    sent = api.send_test_email(session.token, t.id)
                    drop_session_on_401(sent)
                    if sent.ok:
                        st.success("Test results sent successfully to guardian email!")
                    else:
                        st.error(sent.error)
            with c2:
                confirm = st.checkbox("Confirm delete", key=f"confirm_{t.id}")
                if st.button("Delete", key=f"delete_{t.id}", disabled=not confirm):
                    deleted = api.delete_test(session.token, t.id)
                    drop_session_on_401(deleted)
                    if deleted.ok:
                        st.session_state["history_message"] = deleted.message
                        st.rerun()
                    else:
                        st.error(deleted.error)

    if records:
        st.divider()
        confirm_all = st.checkbox("I understand this removes every test record", key="confirm_clear")
        if st.button("Clear all tests", disabled=not confirm_all):
            cleared = api.delete_all_tests(session.token)
            drop_session_on_401(cleared)
            if cleared.ok:
                st.session_state["history_message"] = f"Deleted {cleared.data['deleted_count']} test records."
                st.rerun()
            else:
                st.error(cleared.error)

# ----- Profile -----
elif page == "Profile":
    st.header("Profile")
    with st.form("profile_form"):
        name = st.text_input("Name", value=user.name)
        guardian_email = st.text_input("Guardian email", value=user.guardian_email or "")
        st.caption("Leave the guardian email blank to stop result emails.")
        if st.form_submit_button("Save", type="primary"):
            resp = api.update_profile(session.token, {"name": name, "guardian_email": guardian_email})
            drop_session_on_401(resp)
            if resp.ok:
                session.user = resp.data
                st.success("Profile updated.")
            else:
                st.error(resp.error)

    if st.button("Log out"):
        st.session_state["auth"] = None
        st.query_params.clear()
        st.rerun()
