import logging
import time

import streamlit as st

import settings
import views
from api import ApiClient, ApiClientError, friendly_message

# --- PAGE CONFIGURATION ---
st.set_page_config(
    page_title=settings.APP_NAME,
    page_icon="🎓",
    layout="wide",
    initial_sidebar_state="expanded"
)

settings.configure_logging()
logger = logging.getLogger(__name__)


# --- MODERN UI & CSS STYLING ---
def load_custom_css():
    st.markdown("""
    <style>
        @import url('https://fonts.googleapis.com/css2?family=Poppins:wght@300;400;600;700&display=swap');

        html, body, [class*="css"]  {
            font-family: 'Poppins', sans-serif;
        }

        /* METRIC CARDS */
        div[data-testid="stMetric"] {
            background-color: #ffffff;
            border: 1px solid #e0e0e0;
            padding: 16px 20px;
            border-radius: 12px;
            box-shadow: 0 4px 12px rgba(0,0,0,0.05);
        }
        [data-testid="stMetricLabel"] {
            color: #555;
            font-size: 0.9rem;
            font-weight: 600;
        }
        [data-testid="stMetricValue"] {
            color: #1e3a8a;
            font-weight: 700;
        }

        /* BUTTONS */
        .stButton > button {
            background: linear-gradient(135deg, #1e3a8a 0%, #2563eb 100%);
            color: white !important;
            border: none;
            border-radius: 8px;
            font-weight: 600;
        }
        .stButton > button:disabled {
            background: #e5e7eb;
            color: #9ca3af !important;
        }

        /* LOGIN SCREEN HEADER */
        .login-header {
            background: -webkit-linear-gradient(#1e3a8a, #2563eb);
            -webkit-background-clip: text;
            -webkit-text-fill-color: transparent;
            font-weight: 800;
            font-size: 2.5rem;
            margin-bottom: 0px;
        }
        .slogan-style {
            font-size: 1.1rem;
            color: #666;
            font-style: italic;
            margin-bottom: 2rem;
        }

        [data-testid="stDataFrame"] {
            border: 1px solid #eee;
            border-radius: 10px;
            overflow: hidden;
        }
    </style>
    """, unsafe_allow_html=True)

load_custom_css()

# --- NAVIGATION ---
PARENT_PAGES = {
    "🏠 Dashboard": views.page_parent_dashboard,
    "📝 Assessments": views.page_parent_assessments,
    "📜 Grades": views.page_parent_grades,
    "📤 Submissions": views.page_parent_submissions,
    "📊 Analytics": views.page_parent_analytics,
    "👨‍👩‍👧 My Children": views.page_parent_children,
    "👤 Profile": views.page_profile,
}
TEACHER_PAGES = {
    "📊 Dashboard": views.page_teacher_dashboard,
    "📝 Assessments": views.page_teacher_assessments,
    "❓ Quizzes": views.page_teacher_quizzes,
    "📜 Grades": views.page_teacher_grades,
    "📤 Submissions": views.page_teacher_submissions,
    "🎓 Students": views.page_teacher_students,
    "👥 Teachers": views.page_teachers,
    "📚 Subjects": views.page_teacher_subjects,
    "🏆 Leaderboard": views.page_leaderboard,
    "👤 Profile": views.page_profile,
}


def pages_for(role):
    return TEACHER_PAGES if role == settings.ROLE_TEACHER else PARENT_PAGES


def sign_in(role, identifier, password):
    api = ApiClient.from_settings()
    session = api.login(role, identifier, password)
    st.session_state.api = api
    st.session_state.session = session
    st.session_state.role = session.role if session.role in (settings.ROLE_PARENT, settings.ROLE_TEACHER) else role
    st.session_state.logged_in = True
    st.session_state.active_page = None
    views.reset_views()


def sign_out():
    for k in ("api", "session", "role", "views", "active_page"):
        if k in st.session_state: del st.session_state[k]
    st.session_state.logged_in = False


# --- UI COMPONENTS ---
def login_form(role, form_key, label):
    with st.form(form_key):
        ident = st.text_input("Email or Phone", placeholder="e.g. parent@example.com")
        pw = st.text_input("Password", type="password", placeholder="••••••")
        if st.form_submit_button(label):
            if not ident or not pw:
                st.error("Please enter your email/phone and password.")
                return
            try:
                with st.spinner("Authenticating..."): sign_in(role, ident, pw)
            except ApiClientError as e:
                logger.warning("Sign-in failed for %s: %s", ident, e.message)
                st.error(friendly_message(e.message))
                for line in e.field_messages(): st.caption(f"• {line}")
                return
            st.success(f"Welcome back, {st.session_state.session.name}!")
            time.sleep(0.5); st.rerun()


def login_screen():
    c1, c2 = st.columns([1, 1.2], gap="large")
    with c1:
        st.markdown("<div style='height: 40px;'></div>", unsafe_allow_html=True)
        st.markdown(f"### Welcome to {settings.APP_NAME}")
        st.markdown("Follow your children's learning, or manage your classes, assessments and grades in one place.")

    with c2:
        st.markdown("<div style='height: 20px;'></div>", unsafe_allow_html=True)
        st.markdown("<h1 class='login-header'>Sign In</h1>", unsafe_allow_html=True)
        st.markdown("<p class='slogan-style'>Learning progress, connected.</p>", unsafe_allow_html=True)

        if not settings.get_api_base_url():
            st.warning("⚠️ API base URL is not configured. Set [api] base_url in secrets or CLASSVIEW_API_BASE_URL.")

        st.markdown("---")

        tab1, tab2 = st.tabs(["Parent", "Teacher"])
        with tab1: login_form(settings.ROLE_PARENT, "parent_login", "Sign In as Parent")
        with tab2: login_form(settings.ROLE_TEACHER, "teacher_login", "Sign In as Teacher")


def sidebar_menu():
    with st.sidebar:
        role = st.session_state.get("role", settings.ROLE_PARENT)
        session = st.session_state.session

        st.markdown("<div style='text-align: center;'>", unsafe_allow_html=True)
        st.image("https://cdn-icons-png.flaticon.com/512/1995/1995539.png" if role == settings.ROLE_TEACHER else "https://cdn-icons-png.flaticon.com/512/3237/3237472.png", width=100)
        st.markdown("</div>", unsafe_allow_html=True)

        st.markdown(f"<h3 style='text-align: center; margin-bottom: 0px;'>{session.name}</h3>", unsafe_allow_html=True)
        st.markdown(f"<p style='text-align: center; color: gray;'>{role.title()}</p>", unsafe_allow_html=True)

        st.markdown("---")
        menu = st.radio("Navigation", list(pages_for(role).keys()))

        st.markdown("---")
        if st.button("🚪 Log Out", use_container_width=True):
            sign_out()
            st.rerun()

        st.markdown(f"<p style='text-align: center; font-size: 0.8rem; color: #bbb; margin-top: 20px;'>{settings.APP_NAME} v{settings.APP_VERSION}</p>", unsafe_allow_html=True)

        return menu


# --- MAIN ---
if 'logged_in' not in st.session_state:
    st.session_state.logged_in = False

if not st.session_state.logged_in:
    login_screen()
else:
    sel = sidebar_menu()
    # every visit to a page fetches its lists again
    if st.session_state.get("active_page") != sel:
        views.reset_views()
        st.session_state.active_page = sel
    pages_for(st.session_state.role)[sel]()
