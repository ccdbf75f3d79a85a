"""
Field checks and request payloads for the create, link and password forms.

Each validate_* returns a dict of field name -> message; an empty dict means the
input can be sent. Pages show the messages next to the form and only call the API
when nothing is left.
"""

import pandas as pd

import projection as pj

GRADE_LEVELS = [f"GRADE {i}" for i in range(1, 13)]
ASSESSMENT_KINDS = {"Quiz": "QUIZ", "Assignment": "ASSIGNMENT"}
MIN_PASSWORD_LENGTH = 8


def _blank(val):
    return not str(val or "").strip()


# --- SUBJECTS ---
def validate_subject(name, grade, description):
    errors = {}
    if _blank(name): errors["name"] = "Subject name is required."
    if grade not in GRADE_LEVELS: errors["grade"] = "Please select a grade level."
    if _blank(description): errors["description"] = "Subject description is required."
    return errors


def subject_payload(name, grade, description, objectives=()):
    return {
        "name": name.strip(),
        "grade": grade,
        # new subjects wait for review
        "status": "PENDING",
        "description": description.strip(),
        "moderation_comment": "",
        "objectives": ", ".join(o.strip() for o in objectives if o and o.strip()),
    }


def split_objectives(text):
    return [line.strip() for line in str(text or "").splitlines() if line.strip()]


# --- LESSON ASSESSMENTS ---
def validate_assessment(lesson, title, instructions, marks, due_at, now=None):
    errors = {}
    if lesson in (None, ""): errors["lesson"] = "Please select a lesson."
    if _blank(title): errors["title"] = "Title is required."
    if _blank(instructions): errors["instructions"] = "Instructions are required."
    try:
        if float(marks) <= 0: errors["marks"] = "Marks must be greater than 0."
    except (TypeError, ValueError):
        errors["marks"] = "Marks must be greater than 0."
    due = pj.parse_date(due_at)
    if due is None:
        errors["due_at"] = "Due date is required."
    else:
        if due.tzinfo is not None: due = due.tz_convert(None)
        now = pd.Timestamp(now) if now is not None else pd.Timestamp.now()
        if due <= now: errors["due_at"] = "Due date must be in the future."
    return errors


def assessment_payload(kind, lesson, given_by, title, instructions, marks, due_at, comment=""):
    if kind not in ASSESSMENT_KINDS.values(): raise ValueError(f"Unknown assessment type: {kind}")
    return {
        "lesson": int(lesson),
        "type": kind,
        "given_by": given_by or 0,
        "title": title.strip(),
        "instructions": instructions.strip(),
        "marks": float(marks),
        "due_at": pd.Timestamp(due_at).isoformat(),
        "status": "DRAFT",
        "moderation_comment": (comment or "").strip(),
    }


# --- CHILDREN ---
def validate_link_child(student_id, email, phone):
    errors = {}
    if _blank(student_id): errors["student_id"] = "Student ID is required."
    elif not str(student_id).strip().isdigit(): errors["student_id"] = "Student ID must be a number."
    if not _blank(email) and "@" not in str(email): errors["student_email"] = "Please check your email address and try again."
    if _blank(email) and _blank(phone): errors["student_phone"] = "Enter the child's email or phone."
    return errors


# --- PASSWORD ---
def validate_password_change(current, new, confirm):
    errors = {}
    if not current: errors["current_password"] = "Current password is required."
    if not new:
        errors["new_password"] = "New password is required."
    elif len(new) < MIN_PASSWORD_LENGTH:
        errors["new_password"] = f"Password must be at least {MIN_PASSWORD_LENGTH} characters."
    elif current and new == current:
        errors["new_password"] = "New password must be different from current password."
    if not confirm: errors["confirm_password"] = "Please confirm your new password."
    elif new and confirm != new: errors["confirm_password"] = "Passwords do not match."
    return errors


def error_lines(errors):
    """Flattens field errors (local or from the server) into display lines."""
    lines = []
    for field, msgs in (errors or {}).items():
        if isinstance(msgs, str): msgs = [msgs]
        label = field.replace("_", " ").capitalize()
        for m in msgs: lines.append(f"{label}: {m}")
    return lines


def pick_label(options):
    """Selectbox label -> id for records with a title or name; the id keeps labels unique."""
    return {f"{o.get('title') or o.get('name') or 'Untitled'} (#{o.get('id')})": o.get("id") for o in options}
