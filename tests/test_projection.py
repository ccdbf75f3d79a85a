# tests/test_projection.py

import pandas as pd

import projection as pj
import settings

# === scores ===


def test_percentage_rounds_to_whole_number():
    assert pj.percentage(18, 20) == 90
    assert pj.percentage(1, 3) == 33
    assert pj.percentage(2, 3) == 67
    assert pj.percentage(1, 8) == 13  # 12.5 rounds up


def test_whole_percent_rounds_half_up():
    assert pj.whole_percent(88.5) == 89
    assert pj.whole_percent(87.5) == 88
    assert pj.whole_percent(88.49) == 88
    assert pj.whole_percent("91.5") == 92
    assert pj.whole_percent(None) is None
    assert pj.whole_percent(float("nan")) is None
    assert pj.whole_percent(float("inf")) is None
    assert pj.whole_percent("n/a") is None


def test_format_whole_percent():
    assert pj.format_whole_percent(88.5) == "89%"
    assert pj.format_whole_percent(None) == settings.NO_SCORE


def test_percentage_missing_values_are_none():
    assert pj.percentage(None, 20) is None
    assert pj.percentage(float("nan"), 20) is None
    assert pj.percentage(10, None) is None
    assert pj.percentage(10, 0) is None
    assert pj.percentage("abc", 20) is None


def test_missing_score_shows_placeholder_not_zero():
    assert pj.format_percentage(pj.percentage(None, 20)) == settings.NO_SCORE
    assert pj.format_percentage(pj.percentage(None, 20)) != "0%"
    assert pj.format_percentage(0) == "0%"
    assert pj.format_percentage(90) == "90%"


def test_format_score():
    assert pj.format_score(18, 20) == "18/20"
    assert pj.format_score(17.5, 20) == "17.5/20"
    assert pj.format_score(None, 20) == f"{settings.NO_SCORE}/20"


def test_score_category_bands():
    assert pj.score_category(95) == "green"
    assert pj.score_category(85) == "blue"
    assert pj.score_category(72) == "orange"
    assert pj.score_category(40) == "red"
    assert pj.score_category(None) == pj.NEUTRAL


def test_grade_letter_category():
    assert pj.grade_letter_category("A+") == "green"
    assert pj.grade_letter_category("b") == "blue"
    assert pj.grade_letter_category("C-") == "orange"
    assert pj.grade_letter_category(None) == "gray"


def test_rank_category_and_format():
    assert [pj.rank_category(r) for r in (1, 2, 3, 4)] == ["gold", "silver", "bronze", "plain"]
    assert pj.format_rank(1) == "🥇 1"
    assert pj.format_rank(7) == "#7"


# === statuses ===


def test_status_category_known_values():
    assert pj.status_category("completed", pj.ASSESSMENT_STATUS) == "green"
    assert pj.status_category("In-Progress", pj.ASSESSMENT_STATUS) == "orange"
    assert pj.status_category("pending-review", pj.SUBMISSION_STATUS) == "orange"
    assert pj.status_category("approved", pj.MODERATION_STATUS, upper=True) == "green"


def test_unknown_status_is_neutral():
    assert pj.status_category("archived", pj.ASSESSMENT_STATUS) == pj.NEUTRAL
    assert pj.status_category(None, pj.ASSESSMENT_STATUS) == pj.NEUTRAL
    assert pj.status_category("", pj.SUBMISSION_STATUS) == pj.NEUTRAL


def test_status_cell_label():
    assert pj.status_cell("in-progress", pj.ASSESSMENT_STATUS) == "🟡 In Progress"
    assert pj.status_cell("completed", pj.ASSESSMENT_STATUS) == "🟢 Completed"
    assert pj.status_cell("archived", pj.ASSESSMENT_STATUS) == "⚪ Archived"
    assert pj.status_cell(None, pj.ASSESSMENT_STATUS) == "⚪ -"


def test_badge_uses_gray_for_neutral():
    assert pj.badge("graded", "green") == ":green-background[Graded]"
    assert pj.badge("odd", pj.NEUTRAL) == ":gray-background[Odd]"


def test_normalize_grade_status():
    assert pj.normalize_grade_status("EXCELLENT") == "excellent"
    assert pj.normalize_grade_status("good") == "good"
    assert pj.normalize_grade_status("NEEDS_IMPROVEMENT") == "needs-improvement"
    assert pj.normalize_grade_status(None) == "needs-improvement"


# === dates ===


def test_format_date():
    assert pj.format_date("2025-12-15") == "Dec 15, 2025"
    assert pj.format_date("2025-01-05T08:00:00Z") == "Jan 5, 2025"


def test_format_date_fallbacks():
    assert pj.format_date(None) == settings.NO_DATE
    assert pj.format_date("") == settings.NO_DATE
    assert pj.format_date("not a date") == settings.NO_DATE


def test_format_datetime():
    assert pj.format_datetime("2025-12-10T14:30:00") == "Dec 10, 2025, 02:30 PM"
    assert pj.format_datetime(None) == settings.NO_DATE


def test_days_until():
    today = pd.Timestamp("2025-12-10 09:00")
    assert pj.days_until("2025-12-10 18:00", today=today) == 1
    assert pj.days_until("2025-12-13", today=today) == 3
    assert pj.days_until("2025-12-08", today=today) == -2
    assert pj.days_until(None, today=today) is None


def test_due_label_and_category():
    assert pj.due_label(0) == "Due Today"
    assert pj.due_label(1) == "Due Tomorrow"
    assert pj.due_label(5) == "5 days left"
    assert pj.due_label(-1) == "Overdue by 1 day"
    assert pj.due_label(-3) == "Overdue by 3 days"
    assert pj.due_label(None) == settings.NO_DATE
    assert pj.due_category(1) == "red"
    assert pj.due_category(3) == "orange"
    assert pj.due_category(10) == "blue"


# === row projection ===


def test_project_rows_keeps_column_order():
    frame = pd.DataFrame([{"score": 18, "max_score": 20}, {"score": None, "max_score": 20}])
    out = pj.project_rows(frame, {
        "Score": lambda r: pj.format_score(r["score"], r["max_score"]),
        "Percentage": lambda r: pj.format_percentage(pj.percentage(r["score"], r["max_score"])),
    })
    assert list(out.columns) == ["Score", "Percentage"]
    assert out["Percentage"].tolist() == ["90%", settings.NO_SCORE]


def test_project_rows_on_empty_page():
    out = pj.project_rows(pd.DataFrame(columns=["score"]), {"Score": lambda r: r["score"]})
    assert out.empty
    assert list(out.columns) == ["Score"]
