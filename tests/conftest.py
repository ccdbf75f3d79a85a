# tests/conftest.py

import pytest

from listview import CategoricalFilter, CollectionStore, FilterSet, ListView, SearchFilter, records_to_frame

ASSESSMENT_COLUMNS = ["id", "child_name", "title", "subject", "type", "status", "score", "max_score", "due_date"]


@pytest.fixture
def assessment_records():
    return [
        {"id": 1, "child_name": "Emma Johnson", "title": "Vowel Sounds Quiz", "subject": "Literacy", "type": "quiz", "status": "completed", "score": 18, "max_score": 20, "due_date": "2025-12-15"},
        {"id": 2, "child_name": "Emma Johnson", "title": "Addition and Subtraction", "subject": "Numeracy", "type": "assignment", "status": "completed", "score": 45, "max_score": 50, "due_date": "2025-12-18"},
        {"id": 3, "child_name": "Emma Johnson", "title": "Science Experiment Report", "subject": "Science", "type": "project", "status": "in-progress", "score": None, "max_score": 100, "due_date": "2025-12-20"},
        {"id": 4, "child_name": "Emma Johnson", "title": "Reading Comprehension", "subject": "Literacy", "type": "assignment", "status": "completed", "score": 38, "max_score": 40, "due_date": "2025-12-08"},
        {"id": 5, "child_name": "Michael Johnson", "title": "Multiplication Tables", "subject": "Numeracy", "type": "quiz", "status": "completed", "score": 25, "max_score": 25, "due_date": "2025-12-14"},
        {"id": 6, "child_name": "Michael Johnson", "title": "History Essay", "subject": "Social Studies", "type": "assignment", "status": "in-progress", "score": None, "max_score": 50, "due_date": "2025-12-22"},
        {"id": 7, "child_name": "Michael Johnson", "title": "Science Fair Project", "subject": "Science", "type": "project", "status": "pending", "score": None, "max_score": 100, "due_date": "2025-12-30"},
        {"id": 8, "child_name": "Michael Johnson", "title": "Spelling Quiz", "subject": "Literacy", "type": "quiz", "status": "pending", "score": None, "max_score": 10, "due_date": None},
    ]


@pytest.fixture
def assessment_frame(assessment_records):
    return records_to_frame(assessment_records, ASSESSMENT_COLUMNS)


@pytest.fixture
def assessment_filters():
    return FilterSet(
        SearchFilter(["title", "child_name", "subject"]),
        [
            CategoricalFilter("child_name", "Child"),
            CategoricalFilter("subject", "Subject"),
            CategoricalFilter("status", "Status", choices={"Completed": "completed", "In Progress": "in-progress", "Pending": "pending"}),
        ],
    )


@pytest.fixture
def numbered_records():
    return [{"id": i, "title": f"Record {i}", "subject": "Math" if i % 2 else "Art"} for i in range(1, 24)]


@pytest.fixture
def make_view():
    def _make(records, page_size=10, search_fields=("title",), categoricals=("subject",), notify=None):
        columns = sorted({k for r in records for k in r} | set(search_fields) | set(categoricals)) or ["id"]
        store = CollectionStore(lambda scope: records, columns, notify=notify)
        filters = FilterSet(SearchFilter(search_fields), [CategoricalFilter(f) for f in categoricals])
        view = ListView(store, filters, page_size=page_size)
        view.load()
        return view

    return _make


class FakeApi:
    """Stands in for ApiClient; readers and any mutation given a payload return it and record the call."""

    def __init__(self, **payloads):
        self.payloads = payloads
        self.calls = []

    def __getattr__(self, name):
        if name.startswith("get_") or name in self.__dict__.get("payloads", {}):
            def reader(*args):
                self.calls.append((name, args))
                value = self.payloads[name]
                if isinstance(value, Exception): raise value
                return value
            return reader
        raise AttributeError(name)


@pytest.fixture
def fake_api():
    return FakeApi
