import logging

import requests

import settings

logger = logging.getLogger(__name__)

AUTH_ENDPOINTS = {
    settings.ROLE_PARENT: "/api-v1/auth/parent/",
    settings.ROLE_TEACHER: "/api-v1/auth/content/",
}
MODERATION_KINDS = ("subjects", "lesson-assessments", "teachers")
MODERATION_ACTIONS = ("approve", "reject")

ERROR_MAPPINGS = {
    "email": "Please check your email address and try again.",
    "password": "Password must be at least 6 characters long.",
    "phone": "Please enter a valid phone number.",
    "name": "Please enter your full name.",
    "network": "Network error. Please check your connection and try again.",
    "server": "Server error. Please try again later.",
    "unauthorized": "You are not authorized to perform this action.",
    "not found": "The requested resource was not found.",
}


class ApiClientError(Exception):
    """
    Raised for every failed API call.

    Attributes:
        message (str): Human-readable description.
        status (int | None): HTTP status, 0 for transport failures or missing configuration.
        errors (dict): Field name -> list of validation messages.
    """

    def __init__(self, message, status=None, errors=None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.errors = errors or {}

    def field_messages(self):
        lines = []
        for field, msgs in self.errors.items():
            if isinstance(msgs, str): msgs = [msgs]
            for m in msgs: lines.append(f"{field}: {m}")
        return lines


def friendly_message(text):
    text = str(text or "")
    lowered = text.lower()
    for key, msg in ERROR_MAPPINGS.items():
        if key in lowered: return msg
    if len(text) > 100:
        return "An error occurred. Please check your input and try again."
    return text


class Session:
    """Authenticated context handed to the API client instead of ambient storage."""

    def __init__(self, token, user=None):
        self.token = token
        self.user = user or {}

    @property
    def role(self):
        return str(self.user.get("role", "")).upper()

    @property
    def name(self):
        return self.user.get("name") or self.user.get("email") or "User"

    @property
    def user_id(self):
        return self.user.get("id")


def unwrap_list(payload, key=None):
    if isinstance(payload, list): return payload
    if key and isinstance(payload, dict) and isinstance(payload.get(key), list):
        return payload[key]
    raise ApiClientError(f"Malformed response: expected a list of {key or 'records'}", 200)


def _extract_message(data, status):
    if isinstance(data, dict):
        for k in ("message", "error", "detail"):
            if data.get(k): return str(data[k])
    return f"Request failed with status {status}"


class ApiClient:
    def __init__(self, base_url, session=None, timeout=settings.DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.session = session
        self.timeout = timeout
        self.http = requests.Session()
        self.http.headers.update({"Content-Type": "application/json"})

    @classmethod
    def from_settings(cls, session=None):
        return cls(settings.get_api_base_url(), session=session, timeout=settings.get_request_timeout())

    def _headers(self):
        if self.session and self.session.token:
            return {"Authorization": f"Token {self.session.token}"}
        return {}

    def _handle_response(self, resp):
        content_type = resp.headers.get("content-type", "") or ""
        is_json = "application/json" in content_type
        if is_json:
            try:
                data = resp.json()
            except ValueError:
                raise ApiClientError("Malformed JSON in response", resp.status_code)
        else:
            data = resp.text

        if not resp.ok:
            errors = data.get("errors") if is_json and isinstance(data, dict) else None
            raise ApiClientError(_extract_message(data if is_json else None, resp.status_code), resp.status_code, errors)
        return data

    def request(self, method, endpoint, json=None, params=None):
        if not self.base_url:
            raise ApiClientError("API base URL is not configured", 0)
        url = f"{self.base_url}{endpoint}"
        try:
            resp = self.http.request(method, url, json=json, params=params, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as e:
            logger.error("%s %s failed: %s", method, endpoint, e)
            raise ApiClientError(str(e) or "Network error", 0)
        return self._handle_response(resp)

    def get(self, endpoint, params=None):
        return self.request("GET", endpoint, params=params)

    def post(self, endpoint, payload=None):
        return self.request("POST", endpoint, json=payload or {})

    # --- AUTH ---
    def login(self, role, identifier, password):
        role = str(role).upper()
        if role not in AUTH_ENDPOINTS: raise ValueError(f"Unknown role: {role}")
        data = self.post(AUTH_ENDPOINTS[role], {"identifier": identifier, "password": password})
        if not isinstance(data, dict) or not data.get("token"):
            raise ApiClientError("Malformed login response", 200)
        user = data.get("user") or {}
        if not isinstance(user, dict):
            raise ApiClientError("Malformed login response", 200)
        user = dict(user)
        user.setdefault("role", role)
        self.session = Session(data["token"], user)
        logger.info("Signed in as %s (%s)", self.session.name, self.session.role)
        return self.session

    def change_password(self, current, new, confirm):
        return self.post("/api-v1/auth/change-password/", {
            "current_password": current, "new_password": new, "confirm_password": confirm,
        })

    # --- PARENT READERS ---
    def get_parent_dashboard(self):
        return self.get("/api-v1/parent/dashboard/")

    def get_my_children(self):
        return unwrap_list(self.get("/api-v1/parent/mychildren/"), "children")

    def get_parent_grades(self):
        return unwrap_list(self.get("/api-v1/parent/grades/"), "grades")

    def get_parent_assessments(self):
        return unwrap_list(self.get("/api-v1/parent/assessments/"), "assessments")

    def get_parent_submissions(self):
        return unwrap_list(self.get("/api-v1/parent/submissions/"), "submissions")

    def get_parent_analytics(self, child_id=None):
        params = {"child": child_id} if child_id else None
        return self.get("/api-v1/parent/analytics/", params=params)

    # --- TEACHER READERS ---
    def get_teacher_subjects(self):
        return unwrap_list(self.get("/api-v1/teacher/subjects/"), "subjects")

    def get_teacher_lesson_assessments(self):
        return unwrap_list(self.get("/api-v1/teacher/lesson-assessments/"), "assessments")

    def get_teacher_grades(self):
        return unwrap_list(self.get("/api-v1/teacher/grades/"), "grades")

    def get_teacher_submissions(self):
        return unwrap_list(self.get("/api-v1/teacher/submissions/"), "submissions")

    def get_teacher_students(self):
        return unwrap_list(self.get("/api-v1/teacher/students/"), "students")

    def get_teachers(self):
        return unwrap_list(self.get("/api-v1/teacher/teachers/"), "teachers")

    def get_teacher_lessons(self):
        return unwrap_list(self.get("/api-v1/teacher/lessons/"), "lessons")

    def get_leaderboard(self):
        return unwrap_list(self.get("/api-v1/teacher/leaderboard/"), "leaderboard")

    # --- MUTATIONS ---
    def link_child(self, student_id, email="", phone=""):
        logger.info("Linking child with student id %s", student_id)
        return self.post("/api-v1/onboarding/linkchild/", {
            "student_id": student_id, "student_email": email, "student_phone": phone,
        })

    def create_subject(self, payload):
        logger.info("Creating subject %s", payload.get("name"))
        data = self.post("/api-v1/content/subjects/", payload)
        # the server answers with a one-element list
        if isinstance(data, list): return data[0] if data else {}
        return data

    def create_lesson_assessment(self, payload):
        logger.info("Creating %s %s", str(payload.get("type", "")).lower(), payload.get("title"))
        return self.post("/api-v1/teacher/lesson-assessments/create/", payload)

    def grade_submission(self, submission_id, score, feedback=""):
        logger.info("Grading submission %s with score %s", submission_id, score)
        return self.post(f"/api-v1/teacher/submissions/{submission_id}/grade/", {"score": score, "feedback": feedback})

    def moderate(self, kind, record_id, action, comment=""):
        if kind not in MODERATION_KINDS: raise ValueError(f"Unknown moderation target: {kind}")
        if action not in MODERATION_ACTIONS: raise ValueError(f"Unknown moderation action: {action}")
        logger.info("Moderating %s %s: %s", kind, record_id, action)
        return self.post(f"/api-v1/teacher/{kind}/{record_id}/{action}/", {"moderation_comment": comment})
