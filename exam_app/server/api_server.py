"""FastAPI server that exposes learner-facing exam endpoints."""

from __future__ import annotations

from datetime import timezone
from threading import Thread

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field, field_validator
import uvicorn

from exam_app.constants.about import APP_NAME, APP_VERSION
from exam_app.constants.exam_constants import LEADERBOARD_SIZE
from exam_app.constants.network_constants import DEFAULT_HOST, DEFAULT_PORT
from exam_app.core.errors import InvalidInputError, InvalidStateError
from exam_app.core.exam_manager import ExamManager
from exam_app.core.markdown_math_renderer import MATHJAX_SCRIPT, renderer
from exam_app.core.models import ExamDefinition, ExamResult, Question

_LEARNER_PAGE_HTML = f"""<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <title>{APP_NAME}</title>
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <style>
      :root {{ font-family: 'Inter', system-ui, sans-serif; background: #0b1120; color: #f5f7ff; }}
      body {{ margin: 0; padding: 1.5rem; display: flex; flex-direction: column; gap: 1rem; }}
      .card {{ background: #111a30; border-radius: 0.75rem; padding: 1.5rem; }}
      .hidden {{ display: none; }}
      button {{ border: none; border-radius: 0.75rem; padding: 0.75rem 1.25rem; background: #1f9aa5; color: #fff; cursor: pointer; }}
      button.chosen {{ background: #facc15; color: #111; }}
      #timer {{ color: #facc15; }}
    </style>
    <script>
      window.MathJax = {{ tex: {{ inlineMath: [['$','$']], displayMath: [['$$','$$']] }} }};
    </script>
    <script defer src="{MATHJAX_SCRIPT}"></script>
  </head>
  <body>
    <section class="card" id="start-card">
      <h1>{APP_NAME}</h1>
      <input id="user-id" placeholder="Your name" />
      <input id="lesson-id" placeholder="Lesson" />
      <button id="start-button">Start exam</button>
      <p id="start-status"></p>
    </section>
    <section class="card hidden" id="exam-card">
      <p><span id="position"></span> <span id="timer"></span></p>
      <div id="question"></div>
      <div id="choices"></div>
      <button id="prev">Previous</button>
      <button id="next">Next</button>
      <button id="submit">Submit</button>
    </section>
    <section class="card hidden" id="review-card"><div id="review"></div></section>
    <script>
      let attemptId = null;
      const $ = (id) => document.getElementById(id);
      async function call(method, path, body) {{
        const res = await fetch(path, {{ method, headers: {{ 'Content-Type': 'application/json' }}, body: body ? JSON.stringify(body) : undefined }});
        const data = await res.json();
        if (!res.ok) throw new Error(data.detail || res.statusText);
        return data;
      }}
      async function refresh() {{
        if (!attemptId) return;
        const s = await call('GET', `/attempts/${{attemptId}}`);
        if (s.state === 'reviewing') {{ return showReview(); }}
        $('timer').textContent = `${{Math.floor(s.remaining_seconds / 60)}}:${{String(s.remaining_seconds % 60).padStart(2, '0')}}`;
        $('position').textContent = `Question ${{s.cursor + 1}} of ${{s.question_count}}`;
        const q = s.question;
        if (!q) return;
        $('question').innerHTML = q.prompt_html;
        $('choices').innerHTML = '';
        q.choices_html.forEach((html, idx) => {{
          const b = document.createElement('button');
          b.innerHTML = `${{String.fromCharCode(65 + idx)}}. ${{html}}`;
          if (s.answers[q.id] === idx) b.classList.add('chosen');
          b.onclick = async () => {{ await call('POST', `/attempts/${{attemptId}}/answer`, {{ question_id: q.id, choice_index: idx }}); refresh(); }};
          $('choices').appendChild(b);
        }});
        if (window.MathJax && MathJax.typesetPromise) MathJax.typesetPromise();
      }}
      async function showReview() {{
        clearInterval(window.poller);
        const r = await call('GET', `/attempts/${{attemptId}}/review`);
        $('exam-card').classList.add('hidden');
        $('review-card').classList.remove('hidden');
        $('review').innerHTML = `<h2>Score: ${{r.score}}%</h2>` + r.questions.map((q) =>
          `<div>${{q.prompt_html}}<p>Your answer: ${{q.chosen_index === null ? 'unanswered' : String.fromCharCode(65 + q.chosen_index)}} | Correct: ${{String.fromCharCode(65 + q.correct_index)}}</p>${{q.explanation_html || ''}}</div>`).join('');
      }}
      $('start-button').onclick = async () => {{
        try {{
          const a = await call('POST', '/attempts', {{ user_id: $('user-id').value, lesson_id: $('lesson-id').value }});
          attemptId = a.attempt_id;
          $('start-card').classList.add('hidden');
          $('exam-card').classList.remove('hidden');
          window.poller = setInterval(refresh, 1000);
          refresh();
        }} catch (err) {{ $('start-status').textContent = err.message; }}
      }};
      $('prev').onclick = async () => {{ await call('POST', `/attempts/${{attemptId}}/navigate`, {{ direction: -1 }}); refresh(); }};
      $('next').onclick = async () => {{ await call('POST', `/attempts/${{attemptId}}/navigate`, {{ direction: 1 }}); refresh(); }};
      $('submit').onclick = async () => {{ await call('POST', `/attempts/${{attemptId}}/submit`); showReview(); }};
    </script>
  </body>
</html>
"""


class StartAttemptPayload(BaseModel):
    """Payload schema for starting an attempt."""

    user_id: str = Field(min_length=1)
    exam_id: str | None = None
    lesson_id: str | None = None

    @field_validator("user_id")
    @classmethod
    def strip_user_id(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("user_id must not be blank")
        return value


class AnswerPayload(BaseModel):
    """Payload schema for answering a question."""

    question_id: str
    choice_index: int


class NavigatePayload(BaseModel):
    """Payload schema for moving the question cursor."""

    direction: int


def _get_exam_manager_dependency(exam_manager: ExamManager):
    def dependency() -> ExamManager:
        return exam_manager

    return dependency


def _iso(value) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _question_payload(question: Question) -> dict[str, object]:
    # Correct choices are withheld until the attempt is in review.
    return {
        "id": question.id,
        "prompt_html": renderer.render_fragment(question.prompt),
        "choices": list(question.choices),
        "choices_html": [renderer.render_inline(choice) for choice in question.choices],
    }


def _exam_payload(exam: ExamDefinition) -> dict[str, object]:
    return {
        "exam_id": exam.id,
        "lesson_id": exam.lesson_id,
        "time_limit_minutes": exam.time_limit_minutes,
        "question_count": len(exam.questions),
    }


def _result_payload(result: ExamResult) -> dict[str, object]:
    return {
        "user_id": result.user_id,
        "exam_id": result.exam_id,
        "answers": dict(result.answers),
        "score": result.score,
        "completed_at": _iso(result.completed_at),
        "auto_submitted": result.auto_submitted,
    }


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, LookupError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, InvalidStateError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, (InvalidInputError, ValueError)):
        return HTTPException(status_code=422, detail=str(exc))
    return HTTPException(status_code=500, detail=str(exc))


def create_api_app(exam_manager: ExamManager) -> FastAPI:
    """Create a FastAPI application wired to the provided exam manager."""
    app = FastAPI(title=f"{APP_NAME} API", version=APP_VERSION)
    exam_manager_dep = _get_exam_manager_dependency(exam_manager)

    @app.get("/", response_class=HTMLResponse)
    def serve_learner_page() -> str:
        return _LEARNER_PAGE_HTML

    @app.get("/lessons/{lesson_id}/exam")
    def get_lesson_exam(
        lesson_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        try:
            exam = manager.get_exam_for_lesson(lesson_id)
        except LookupError as exc:
            raise _http_error(exc) from exc
        return _exam_payload(exam)

    @app.get("/lessons/{lesson_id}/exams")
    def list_lesson_exams(
        lesson_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> list[dict[str, object]]:
        return [_exam_payload(exam) for exam in manager.list_exams_for_lesson(lesson_id)]

    @app.post("/attempts", status_code=201)
    def start_attempt(
        payload: StartAttemptPayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        try:
            attempt_id = manager.start_attempt(
                payload.user_id,
                exam_id=payload.exam_id or None,
                lesson_id=payload.lesson_id or None,
            )
        except (LookupError, ValueError) as exc:
            raise _http_error(exc) from exc
        runner = manager.get_runner(attempt_id)
        return {"attempt_id": attempt_id, **_exam_payload(runner.exam)}

    @app.get("/attempts/{attempt_id}")
    def get_attempt(
        attempt_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        try:
            snapshot = manager.snapshot(attempt_id)
        except LookupError as exc:
            raise _http_error(exc) from exc
        question = snapshot.current_question
        return {
            "attempt_id": attempt_id,
            "state": snapshot.state.value,
            "remaining_seconds": snapshot.remaining_seconds,
            "cursor": snapshot.cursor,
            "question_count": snapshot.question_count,
            "question": _question_payload(question) if question else None,
            "answers": snapshot.answers,
            "score": snapshot.score,
            "persistence_error": snapshot.persistence_error,
        }

    @app.post("/attempts/{attempt_id}/answer")
    def answer_question(
        attempt_id: str,
        payload: AnswerPayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        try:
            manager.answer(attempt_id, payload.question_id, payload.choice_index)
        except (LookupError, InvalidStateError, InvalidInputError) as exc:
            raise _http_error(exc) from exc
        return {"question_id": payload.question_id, "choice_index": payload.choice_index}

    @app.post("/attempts/{attempt_id}/navigate")
    def navigate(
        attempt_id: str,
        payload: NavigatePayload,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        try:
            cursor = manager.navigate(attempt_id, payload.direction)
        except LookupError as exc:
            raise _http_error(exc) from exc
        return {"cursor": cursor}

    @app.post("/attempts/{attempt_id}/submit")
    def submit_attempt(
        attempt_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        try:
            outcome = manager.submit(attempt_id)
            snapshot = manager.snapshot(attempt_id)
        except (LookupError, InvalidStateError) as exc:
            raise _http_error(exc) from exc
        return {
            "state": snapshot.state.value,
            "score": snapshot.score,
            # False when an earlier submit or the countdown already finalized the attempt.
            "submitted": outcome is not None,
        }

    @app.get("/attempts/{attempt_id}/review")
    def review_attempt(
        attempt_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> dict[str, object]:
        try:
            reviews = manager.review(attempt_id)
            snapshot = manager.snapshot(attempt_id)
        except (LookupError, InvalidStateError) as exc:
            raise _http_error(exc) from exc
        return {
            "score": snapshot.score,
            "persistence_error": snapshot.persistence_error,
            "questions": [
                {
                    "question_id": item.question_id,
                    "prompt_html": renderer.render_fragment(item.prompt),
                    "choices": list(item.choices),
                    "chosen_index": item.chosen_index,
                    "correct_index": item.correct_index,
                    "is_correct": item.is_correct,
                    "explanation_html": (
                        renderer.render_fragment(item.explanation) if item.explanation else None
                    ),
                }
                for item in reviews
            ],
        }

    @app.delete("/attempts/{attempt_id}", status_code=204)
    def abandon_attempt(
        attempt_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> None:
        try:
            manager.abandon_attempt(attempt_id)
        except LookupError as exc:
            raise _http_error(exc) from exc

    @app.get("/exams/{exam_id}/leaderboard")
    def get_leaderboard(
        exam_id: str,
        limit: int = LEADERBOARD_SIZE,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> list[dict[str, object]]:
        try:
            manager.get_exam(exam_id)
        except LookupError as exc:
            raise _http_error(exc) from exc
        return [
            {
                "rank": row.rank,
                "user_id": row.user_id,
                "best_score": row.best_score,
                "attempts": row.attempts,
                "completed_at": _iso(row.best_completed_at),
            }
            for row in manager.get_leaderboard(exam_id, limit)
        ]

    @app.get("/users/{user_id}/results")
    def get_user_results(
        user_id: str,
        manager: ExamManager = Depends(exam_manager_dep),
    ) -> list[dict[str, object]]:
        return [_result_payload(result) for result in manager.get_student_results(user_id)]

    return app


def start_api_server(
    exam_manager: ExamManager,
    host: str = DEFAULT_HOST,
    port: int = DEFAULT_PORT,
) -> Thread:
    """Start the FastAPI server in a background daemon thread."""
    app = create_api_app(exam_manager)
    config = uvicorn.Config(app=app, host=host, port=port, log_level="info")
    server = uvicorn.Server(config)

    def run_server() -> None:
        server.run()

    thread = Thread(target=run_server, name="ExamApiServer", daemon=True)
    thread.start()
    return thread
