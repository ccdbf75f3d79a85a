"""
Display-side derivations for list rows: percentages, status badges, dates.

Every function here is total over its input; missing or unknown values map to a
placeholder or the neutral category instead of raising.
"""

import datetime
import math

import pandas as pd

import settings

NEUTRAL = "neutral"

# --- STATUS CATEGORIES ---
ASSESSMENT_STATUS = {"completed": "green", "in-progress": "orange", "pending": "gray"}
SUBMISSION_STATUS = {"graded": "green", "pending-review": "orange"}
MODERATION_STATUS = {"APPROVED": "green", "PUBLISHED": "blue", "PENDING": "orange", "DRAFT": "gray", "REJECTED": "red"}
GRADE_STATUS = {"excellent": "green", "good": "blue", "needs-improvement": "orange"}
ASSESSMENT_TYPE = {"quiz": "violet", "assignment": "blue", "exam": "red", "project": "orange"}

BADGE_COLORS = {"green", "blue", "orange", "red", "violet", "gray"}


def _is_missing(val):
    if val is None: return True
    if isinstance(val, str): return val.strip() == ""
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def status_category(status, mapping, upper=False):
    if _is_missing(status): return NEUTRAL
    key = str(status).strip()
    key = key.upper() if upper else key.lower()
    return mapping.get(key, NEUTRAL)


def badge(text, category):
    """Streamlit markdown badge, gray for the neutral category."""
    color = category if category in BADGE_COLORS else "gray"
    label = "-" if _is_missing(text) else str(text).replace("-", " ").title()
    return f":{color}-background[{label}]"


STATUS_DOTS = {"green": "🟢", "blue": "🔵", "orange": "🟡", "red": "🔴", "violet": "🟣", "gray": "⚪"}


def status_cell(status, mapping, upper=False):
    """Table cell text for a status: colored dot plus readable label."""
    dot = STATUS_DOTS.get(status_category(status, mapping, upper=upper), "⚪")
    label = "-" if _is_missing(status) else str(status).replace("-", " ").title()
    return f"{dot} {label}"


def normalize_grade_status(raw):
    upper = str(raw or "").upper()
    if upper == "EXCELLENT": return "excellent"
    if upper == "GOOD": return "good"
    return "needs-improvement"


# --- SCORES ---
def whole_percent(value):
    """Rounds an already scaled percentage half up to an int; missing values give None."""
    if _is_missing(value): return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    if math.isinf(value): return None
    return int(math.floor(value + 0.5))


def percentage(score, max_score):
    if _is_missing(score) or _is_missing(max_score): return None
    try:
        score, max_score = float(score), float(max_score)
    except (TypeError, ValueError):
        return None
    if max_score == 0: return None
    return whole_percent(score / max_score * 100)


def format_percentage(pct):
    if pct is None: return settings.NO_SCORE
    return f"{pct}%"


def format_whole_percent(value):
    return format_percentage(whole_percent(value))


def fmt_score(val):
    val = float(val)
    if val % 1 == 0: return f"{int(val)}"
    return f"{val:.1f}"


def format_score(score, max_score):
    top = settings.NO_SCORE if _is_missing(score) else fmt_score(score)
    bottom = settings.NO_SCORE if _is_missing(max_score) else fmt_score(max_score)
    return f"{top}/{bottom}"


def score_category(pct):
    if pct is None: return NEUTRAL
    if pct >= 90: return "green"
    if pct >= 80: return "blue"
    if pct >= 70: return "orange"
    return "red"


def grade_letter_category(letter):
    letter = str(letter or "").strip().upper()
    if letter.startswith("A"): return "green"
    if letter.startswith("B"): return "blue"
    if letter.startswith("C"): return "orange"
    return "gray"


def rank_category(rank):
    if rank == 1: return "gold"
    if rank == 2: return "silver"
    if rank == 3: return "bronze"
    return "plain"


RANK_MEDALS = {"gold": "🥇", "silver": "🥈", "bronze": "🥉"}


def format_rank(rank):
    medal = RANK_MEDALS.get(rank_category(rank))
    return f"{medal} {rank}" if medal else f"#{rank}"


# --- DATES ---
def parse_date(value):
    if _is_missing(value): return None
    try:
        ts = pd.to_datetime(value)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts): return None
    return ts


def format_date(value):
    ts = parse_date(value)
    if ts is None: return settings.NO_DATE
    return f"{ts.strftime('%b')} {ts.day}, {ts.year}"


def format_datetime(value):
    ts = parse_date(value)
    if ts is None: return settings.NO_DATE
    return f"{format_date(ts)}, {ts.strftime('%I:%M %p')}"


def days_until(value, today=None):
    ts = parse_date(value)
    if ts is None: return None
    if ts.tzinfo is not None: ts = ts.tz_convert(None)
    now = pd.Timestamp(today) if today is not None else pd.Timestamp(datetime.datetime.now())
    delta = (ts - now).total_seconds() / 86400
    return math.ceil(delta)


def due_label(days):
    if days is None: return settings.NO_DATE
    if days < 0: return f"Overdue by {-days} day{'s' if days != -1 else ''}"
    if days == 0: return "Due Today"
    if days == 1: return "Due Tomorrow"
    return f"{days} days left"


def due_category(days):
    if days is None: return NEUTRAL
    if days <= 1: return "red"
    if days <= 3: return "orange"
    return "blue"


# --- ROW PROJECTION ---
def project_rows(frame, columns):
    """
    Builds the display frame for one page of records.

    Args:
        frame (pd.DataFrame): The raw page slice.
        columns (dict): Display column name -> callable taking a row (dict).
    """
    rows = []
    for rec in frame.to_dict("records"):
        rows.append({name: fn(rec) for name, fn in columns.items()})
    return pd.DataFrame(rows, columns=list(columns.keys()))
