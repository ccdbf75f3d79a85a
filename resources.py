"""
List configurations for every record type the dashboard shows.

Each ListResource binds an API reader to a normalizer that flattens the payload,
the columns kept in the store, the searchable and categorical fields, a page size
and the display projection. build_view() turns one of them into a ListView.
"""

import pandas as pd

import projection as pj
import settings
from listview import CategoricalFilter, CollectionStore, FilterSet, ListView, SearchFilter

ASSESSMENT_STATUS_CHOICES = {"Completed": "completed", "In Progress": "in-progress", "Pending": "pending"}
SUBMISSION_STATUS_CHOICES = {"Graded": "graded", "Pending Review": "pending-review"}
MODERATION_STATUS_CHOICES = {"Draft": "DRAFT", "Pending": "PENDING", "Approved": "APPROVED", "Published": "PUBLISHED", "Rejected": "REJECTED"}


class ListResource:
    def __init__(self, key, title, loader, normalize, columns, search_fields, categoricals,
                 page_size=settings.PAGE_SIZE_TABLE, display=None, empty_message=None, status_field=None):
        self.key = key
        self.title = title
        self.loader = loader
        self.normalize = normalize
        self.columns = list(columns)
        self.search_fields = list(search_fields)
        self.categoricals = list(categoricals)
        self.page_size = page_size
        self.display = display or {}
        self.empty_message = empty_message or f"No {title.lower()} found matching your filters."
        self.status_field = status_field

    def project(self, frame):
        if not self.display: return frame
        return pj.project_rows(frame, self.display)


# --- FIELD HELPERS ---
def _text(raw, key, default=""):
    val = raw.get(key)
    if val is None: return default
    return str(val)


def _num(raw, key):
    val = raw.get(key)
    if val is None or val == "": return None
    try:
        return float(val)
    except (TypeError, ValueError):
        return None


def _slug(val):
    return str(val or "").strip().lower().replace("_", "-").replace(" ", "-")


def _pct(rec):
    return pj.format_percentage(pj.percentage(rec.get("score"), rec.get("max_score")))


# --- NORMALIZERS ---
def normalize_parent_assessment(raw):
    return {
        "id": raw.get("id") or f"{_text(raw, 'child_name')}-{_text(raw, 'assessment_title')}",
        "child_name": _text(raw, "child_name"),
        "title": _text(raw, "assessment_title") or _text(raw, "title"),
        "subject": _text(raw, "subject", "N/A") or "N/A",
        "type": _slug(raw.get("assessment_type") or raw.get("type")),
        "status": _slug(raw.get("assessment_status") or raw.get("status")),
        "score": _num(raw, "child_score"),
        "max_score": _num(raw, "assessment_score"),
        "start_date": raw.get("start_date"),
        "due_date": raw.get("due_date"),
    }


def normalize_parent_grade(raw):
    return {
        "id": f"{_text(raw, 'student_id')}-{_text(raw, 'subject')}-{_text(raw, 'child_name')}",
        "child_name": _text(raw, "child_name"),
        "student_id": _text(raw, "student_id", "N/A") or "N/A",
        "subject": _text(raw, "subject", "N/A") or "N/A",
        "score": _num(raw, "overall_score"),
        "grade": _text(raw, "score_grade"),
        "remark": _text(raw, "score_remark"),
        "updated_at": raw.get("updated_at"),
    }


def normalize_parent_submission(raw):
    solution = raw.get("solution") or {}
    return {
        "id": raw.get("id") or f"{_text(raw, 'child_name')}-{_text(raw, 'assessment_title')}-{_text(raw, 'date_submitted')}",
        "child_name": _text(raw, "child_name"),
        "title": _text(raw, "assessment_title"),
        "subject": _text(raw, "subject", "N/A") or "N/A",
        "score": _num(raw, "score"),
        "max_score": _num(raw, "assessment_score"),
        "status": _slug(raw.get("submission_status")),
        "attachment": solution.get("attachment") if isinstance(solution, dict) else None,
        "submitted_at": raw.get("date_submitted"),
    }


def normalize_child(raw):
    return {
        "id": raw.get("id"),
        "name": _text(raw, "name"),
        "student_id": _text(raw, "student_id"),
        "grade": _text(raw, "grade", "N/A") or "N/A",
        "school": _text(raw, "school", "N/A") or "N/A",
        "linked_at": raw.get("created_at"),
    }


def normalize_lesson_assessment(raw):
    return {
        "id": raw.get("id"),
        "lesson": raw.get("lesson"),
        "title": _text(raw, "title"),
        "instructions": _text(raw, "instructions"),
        "type": _text(raw, "type").upper(),
        "status": _text(raw, "status").upper(),
        "max_score": _num(raw, "marks"),
        "due_date": raw.get("due_at"),
        "created_at": raw.get("created_at"),
        "moderation_comment": _text(raw, "moderation_comment"),
    }


def normalize_teacher_grade(raw):
    return {
        "id": f"{_text(raw, 'student_id')}-{_text(raw, 'subject')}",
        "student_id": _text(raw, "student_id", "N/A") or "N/A",
        "student_name": _text(raw, "student_name"),
        "subject": _text(raw, "subject", "N/A") or "N/A",
        "grade": _text(raw, "grade_letter"),
        "percentage": _num(raw, "percentage"),
        "status": pj.normalize_grade_status(raw.get("status")),
        "updated_at": raw.get("updated_at"),
    }


def normalize_teacher_submission(raw):
    return {
        "id": raw.get("id"),
        "student_id": _text(raw, "student_id"),
        "student_name": _text(raw, "student_name"),
        "title": _text(raw, "assessment_title"),
        "subject": _text(raw, "subject", "N/A") or "N/A",
        "score": _num(raw, "score"),
        "max_score": _num(raw, "max_score") if raw.get("max_score") is not None else _num(raw, "assessment_score"),
        "status": _slug(raw.get("status") or raw.get("submission_status")),
        "submitted_at": raw.get("submitted_at") or raw.get("date_submitted"),
    }


def normalize_student(raw):
    return {
        "id": raw.get("id"),
        "name": _text(raw, "name"),
        "student_id": _text(raw, "student_id"),
        "email": _text(raw, "email"),
        "grade": _text(raw, "grade"),
        "parent_name": _text(raw, "parent_name"),
        "status": _text(raw, "status").upper(),
    }


def normalize_teacher(raw):
    profile = raw.get("profile") or {}
    school = raw.get("school")
    return {
        "id": raw.get("id"),
        "teacher_id": _text(raw, "teacher_id"),
        "name": _text(profile, "name"),
        "email": _text(profile, "email"),
        "phone": _text(profile, "phone"),
        "school": f"School ID: {school}" if school is not None else "N/A",
        "status": _text(raw, "status").upper(),
        "joined": raw.get("created_at"),
    }


def normalize_subject(raw):
    return {
        "id": raw.get("id"),
        "name": _text(raw, "name"),
        "grade": _text(raw, "grade"),
        "status": _text(raw, "status").upper(),
        "description": _text(raw, "description"),
        "teacher_count": raw.get("teacher_count") or 0,
        "moderation_comment": _text(raw, "moderation_comment"),
        "created_at": raw.get("created_at"),
    }


def normalize_leaderboard_entry(raw):
    return {
        "student_id": _text(raw, "student_id"),
        "student_name": _text(raw, "student_name"),
        "average_score": _num(raw, "average_score"),
        "top_subject": _text(raw, "top_subject", "N/A") or "N/A",
        "completed": raw.get("completed_assessments") or 0,
    }


def validate_score(raw, max_score):
    """Parses a grading score; it must be a number between 0 and the assessment's max score."""
    try:
        score = float(raw)
    except (TypeError, ValueError):
        raise ValueError("Score must be a number.")
    if score != score: raise ValueError("Score must be a number.")
    if score < 0: raise ValueError("Score cannot be negative.")
    if max_score is not None and not pd.isna(max_score) and score > float(max_score):
        raise ValueError(f"Score cannot exceed {pj.fmt_score(max_score)}.")
    return score


def rank_leaderboard(records):
    """Orders entries by average score (best first) and assigns 1-based ranks."""
    ordered = sorted(records, key=lambda r: -(r.get("average_score") or 0))
    for i, rec in enumerate(ordered, start=1): rec["rank"] = i
    return ordered


# --- REGISTRY ---
RESOURCES = {}


def register(resource):
    RESOURCES[resource.key] = resource
    return resource


register(ListResource(
    key="parent_assessments", title="Assessments",
    loader=lambda api, scope: api.get_parent_assessments(),
    normalize=normalize_parent_assessment,
    columns=["id", "child_name", "title", "subject", "type", "status", "score", "max_score", "start_date", "due_date"],
    search_fields=["title", "child_name", "subject"],
    categoricals=[
        CategoricalFilter("child_name", "Child"),
        CategoricalFilter("subject", "Subject"),
        CategoricalFilter("type", "Type"),
        CategoricalFilter("status", "Status", choices=ASSESSMENT_STATUS_CHOICES),
    ],
    display={
        "Title": lambda r: r["title"],
        "Child": lambda r: r["child_name"],
        "Subject": lambda r: r["subject"],
        "Type": lambda r: pj.status_cell(r["type"], pj.ASSESSMENT_TYPE),
        "Status": lambda r: pj.status_cell(r["status"], pj.ASSESSMENT_STATUS),
        "Score": lambda r: pj.format_score(r["score"], r["max_score"]),
        "Percentage": _pct,
        "Due Date": lambda r: pj.format_date(r["due_date"]),
    },
    status_field="status",
))

register(ListResource(
    key="parent_grades", title="Grades",
    loader=lambda api, scope: api.get_parent_grades(),
    normalize=normalize_parent_grade,
    columns=["id", "child_name", "student_id", "subject", "score", "grade", "remark", "updated_at"],
    search_fields=["subject", "child_name", "grade"],
    categoricals=[CategoricalFilter("child_name", "Child"), CategoricalFilter("subject", "Subject")],
    display={
        "Child": lambda r: r["child_name"],
        "Subject": lambda r: r["subject"],
        "Score": lambda r: pj.format_whole_percent(r["score"]),
        "Grade": lambda r: r["grade"] or settings.NO_SCORE,
        "Remark": lambda r: r["remark"],
        "Updated": lambda r: pj.format_date(r["updated_at"]),
    },
))

register(ListResource(
    key="parent_submissions", title="Submissions",
    loader=lambda api, scope: api.get_parent_submissions(),
    normalize=normalize_parent_submission,
    columns=["id", "child_name", "title", "subject", "score", "max_score", "status", "attachment", "submitted_at"],
    search_fields=["title", "child_name", "subject"],
    categoricals=[
        CategoricalFilter("child_name", "Child"),
        CategoricalFilter("subject", "Subject"),
        CategoricalFilter("status", "Status", choices=SUBMISSION_STATUS_CHOICES),
    ],
    display={
        "Assessment": lambda r: r["title"],
        "Child": lambda r: r["child_name"],
        "Subject": lambda r: r["subject"],
        "Status": lambda r: pj.status_cell(r["status"], pj.SUBMISSION_STATUS),
        "Score": lambda r: pj.format_score(r["score"], r["max_score"]),
        "Percentage": _pct,
        "Submitted": lambda r: pj.format_datetime(r["submitted_at"]),
    },
    status_field="status",
))

register(ListResource(
    key="parent_children", title="Children",
    loader=lambda api, scope: api.get_my_children(),
    normalize=normalize_child,
    columns=["id", "name", "student_id", "grade", "school", "linked_at"],
    search_fields=["name", "student_id", "school"],
    categoricals=[CategoricalFilter("grade", "Grade"), CategoricalFilter("school", "School")],
    page_size=settings.PAGE_SIZE_CARDS,
    display={
        "Name": lambda r: r["name"],
        "Student ID": lambda r: r["student_id"] or "N/A",
        "Grade": lambda r: r["grade"],
        "School": lambda r: r["school"],
        "Linked": lambda r: pj.format_date(r["linked_at"]),
    },
    empty_message="No children linked yet. Use Link Child below to add one.",
))

LESSON_ASSESSMENT_COLUMNS = ["id", "lesson", "title", "instructions", "type", "status", "max_score", "due_date", "created_at", "moderation_comment"]
LESSON_ASSESSMENT_DISPLAY = {
    "Title": lambda r: r["title"],
    "Type": lambda r: str(r["type"]).title(),
    "Status": lambda r: pj.status_cell(r["status"], pj.MODERATION_STATUS, upper=True),
    "Marks": lambda r: settings.NO_SCORE if pd.isna(r["max_score"]) else pj.fmt_score(r["max_score"]),
    "Due": lambda r: pj.due_label(pj.days_until(r["due_date"])),
    "Due Date": lambda r: pj.format_datetime(r["due_date"]),
}

register(ListResource(
    key="teacher_assessments", title="Assessments",
    loader=lambda api, scope: api.get_teacher_lesson_assessments(),
    normalize=normalize_lesson_assessment,
    columns=LESSON_ASSESSMENT_COLUMNS,
    search_fields=["title", "instructions"],
    categoricals=[CategoricalFilter("type", "Type"), CategoricalFilter("status", "Status")],
    display=LESSON_ASSESSMENT_DISPLAY,
    status_field="status",
))

register(ListResource(
    key="teacher_quizzes", title="Quizzes",
    loader=lambda api, scope: [r for r in api.get_teacher_lesson_assessments() if str(r.get("type", "")).upper() == "QUIZ"],
    normalize=normalize_lesson_assessment,
    columns=LESSON_ASSESSMENT_COLUMNS,
    search_fields=["title", "instructions"],
    categoricals=[CategoricalFilter("status", "Status", choices=MODERATION_STATUS_CHOICES)],
    display={k: v for k, v in LESSON_ASSESSMENT_DISPLAY.items() if k != "Type"},
    status_field="status",
))

register(ListResource(
    key="teacher_grades", title="Grades",
    loader=lambda api, scope: api.get_teacher_grades(),
    normalize=normalize_teacher_grade,
    columns=["id", "student_id", "student_name", "subject", "grade", "percentage", "status", "updated_at"],
    search_fields=["subject", "student_name", "grade"],
    categoricals=[CategoricalFilter("student_name", "Student"), CategoricalFilter("subject", "Subject")],
    display={
        "Student": lambda r: r["student_name"],
        "Student ID": lambda r: r["student_id"],
        "Subject": lambda r: r["subject"],
        "Grade": lambda r: r["grade"] or settings.NO_SCORE,
        "Percentage": lambda r: pj.format_whole_percent(r["percentage"]),
        "Status": lambda r: pj.status_cell(r["status"], pj.GRADE_STATUS),
        "Updated": lambda r: pj.format_date(r["updated_at"]),
    },
    status_field="status",
))

register(ListResource(
    key="teacher_submissions", title="Submissions",
    loader=lambda api, scope: api.get_teacher_submissions(),
    normalize=normalize_teacher_submission,
    columns=["id", "student_id", "student_name", "title", "subject", "score", "max_score", "status", "submitted_at"],
    search_fields=["title", "student_name", "subject"],
    categoricals=[
        CategoricalFilter("student_name", "Student"),
        CategoricalFilter("subject", "Subject"),
        CategoricalFilter("status", "Status", choices=SUBMISSION_STATUS_CHOICES),
    ],
    display={
        "Student": lambda r: r["student_name"],
        "Assessment": lambda r: r["title"],
        "Subject": lambda r: r["subject"],
        "Status": lambda r: pj.status_cell(r["status"], pj.SUBMISSION_STATUS),
        "Score": lambda r: pj.format_score(r["score"], r["max_score"]),
        "Percentage": _pct,
        "Submitted": lambda r: pj.format_datetime(r["submitted_at"]),
    },
    status_field="status",
))

register(ListResource(
    key="teacher_students", title="Students",
    loader=lambda api, scope: api.get_teacher_students(),
    normalize=normalize_student,
    columns=["id", "name", "student_id", "email", "grade", "parent_name", "status"],
    search_fields=["name", "student_id", "email"],
    categoricals=[CategoricalFilter("grade", "Grade")],
    page_size=settings.PAGE_SIZE_CARDS,
    display={
        "Name": lambda r: r["name"],
        "Student ID": lambda r: r["student_id"],
        "Grade": lambda r: r["grade"],
        "Email": lambda r: r["email"],
        "Parent": lambda r: r["parent_name"],
    },
))

register(ListResource(
    key="teachers", title="Teachers",
    loader=lambda api, scope: api.get_teachers(),
    normalize=normalize_teacher,
    columns=["id", "teacher_id", "name", "email", "phone", "school", "status", "joined"],
    search_fields=["name", "email", "phone"],
    categoricals=[CategoricalFilter("school", "School")],
    page_size=settings.PAGE_SIZE_CARDS,
    display={
        "Name": lambda r: r["name"],
        "Email": lambda r: r["email"],
        "Phone": lambda r: r["phone"],
        "School": lambda r: r["school"],
        "Status": lambda r: pj.status_cell(r["status"], pj.MODERATION_STATUS, upper=True),
        "Joined": lambda r: pj.format_date(r["joined"]),
    },
    status_field="status",
))

register(ListResource(
    key="teacher_subjects", title="Subjects",
    loader=lambda api, scope: api.get_teacher_subjects(),
    normalize=normalize_subject,
    columns=["id", "name", "grade", "status", "description", "teacher_count", "moderation_comment", "created_at"],
    search_fields=["name", "description"],
    categoricals=[CategoricalFilter("grade", "Grade"), CategoricalFilter("status", "Status", choices=MODERATION_STATUS_CHOICES)],
    display={
        "Subject": lambda r: r["name"],
        "Grade": lambda r: r["grade"],
        "Status": lambda r: pj.status_cell(r["status"], pj.MODERATION_STATUS, upper=True),
        "Teachers": lambda r: int(r["teacher_count"] or 0),
        "Created": lambda r: pj.format_date(r["created_at"]),
    },
    status_field="status",
))

register(ListResource(
    key="leaderboard", title="Students",
    loader=lambda api, scope: rank_leaderboard([normalize_leaderboard_entry(r) for r in api.get_leaderboard()]),
    normalize=None,
    columns=["rank", "student_id", "student_name", "average_score", "top_subject", "completed"],
    search_fields=["student_name", "student_id"],
    categoricals=[CategoricalFilter("top_subject", "Subject")],
    page_size=settings.PAGE_SIZE_LEADERBOARD,
    display={
        "Rank": lambda r: pj.format_rank(int(r["rank"])),
        "Student": lambda r: r["student_name"],
        "Student ID": lambda r: r["student_id"],
        "Average": lambda r: pj.format_whole_percent(r["average_score"]),
        "Top Subject": lambda r: r["top_subject"],
        "Completed": lambda r: int(r["completed"] or 0),
    },
))


def get_resource(key):
    if key not in RESOURCES: raise KeyError(f"Unknown list resource: {key}")
    return RESOURCES[key]


def build_view(key, api, notify=None):
    """Creates a fresh, not-yet-loaded ListView for the resource `key`."""
    res = get_resource(key)
    store = CollectionStore(
        loader=lambda scope: res.loader(api, scope),
        columns=res.columns,
        notify=notify,
        normalize=res.normalize,
    )
    filters = FilterSet(SearchFilter(res.search_fields), res.categoricals)
    return ListView(store, filters, page_size=res.page_size, projector=res.project)
