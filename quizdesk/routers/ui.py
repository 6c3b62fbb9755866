from pathlib import Path
from typing import List, Optional, Tuple

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
    status,
)
from fastapi.responses import HTMLResponse, RedirectResponse, Response
from fastapi.templating import Jinja2Templates
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from quizdesk import repository
from quizdesk.analytics import export_csv, quiz_report
from quizdesk.config import settings
from quizdesk.database import get_db
from quizdesk.deps import admin_exists, get_current_admin_optional
from quizdesk.errors import QuizDeskError
from quizdesk.imaging import GeneratedImage, ImageStudio, split_data_url
from quizdesk.models import AdminUser
from quizdesk.routers.auth import authenticate, create_admin
from quizdesk.routers.images import get_image_studio, read_image_upload
from quizdesk.schemas import (
    ASPECT_RATIOS,
    IMAGE_SIZES,
    Answer,
    Option,
    Question,
    Quiz,
)
from quizdesk.security import create_token

router = APIRouter(prefix="/ui", tags=["ui"])

BASE_DIR = Path(__file__).resolve().parent.parent
templates = Jinja2Templates(directory=str(BASE_DIR / "templates"))


def redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url=url, status_code=status.HTTP_303_SEE_OTHER)


def require_admin_page(
    admin: Optional[AdminUser] = Depends(get_current_admin_optional),
) -> AdminUser:
    """Like deps.require_admin, but sends a browser to the login page."""
    if admin is None:
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            detail="Not authenticated",
            headers={"Location": "/ui/login"},
        )
    return admin


def share_url(request: Request, quiz_id: int) -> str:
    base = settings.PUBLIC_BASE_URL or str(request.base_url).rstrip("/")
    return f"{base}/ui/quizzes/{quiz_id}/take"


# ---------- AUTH PAGES ----------


@router.get("/login", response_class=HTMLResponse)
def login_page(request: Request, db: Session = Depends(get_db)):
    if not admin_exists(db):
        return redirect("/ui/setup")
    return templates.TemplateResponse(request, "login.html", {"admin": None, "error": None})


@router.post("/login")
def login_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    admin = authenticate(db, email, password)
    if admin is None:
        return templates.TemplateResponse(
            request,
            "login.html",
            {"admin": None, "error": "Wrong email or password"},
            status_code=400,
        )

    response = redirect("/ui/dashboard")
    response.set_cookie("access_token", create_token(admin.id), httponly=True)
    return response


@router.get("/setup", response_class=HTMLResponse)
def setup_page(request: Request, db: Session = Depends(get_db)):
    if admin_exists(db):
        return redirect("/ui/login")
    return templates.TemplateResponse(request, "setup.html", {"admin": None, "error": None})


@router.post("/setup")
def setup_submit(
    request: Request,
    email: str = Form(...),
    password: str = Form(...),
    db: Session = Depends(get_db),
):
    if admin_exists(db):
        return redirect("/ui/login")
    if len(password) < 8:
        return templates.TemplateResponse(
            request,
            "setup.html",
            {"admin": None, "error": "Password must be at least 8 characters"},
            status_code=400,
        )

    admin = create_admin(db, email, password)
    response = redirect("/ui/dashboard")
    response.set_cookie("access_token", create_token(admin.id), httponly=True)
    return response


@router.post("/logout")
def logout():
    response = redirect("/ui/login")
    response.delete_cookie("access_token")
    return response


# ---------- DASHBOARD ----------


@router.get("/dashboard", response_class=HTMLResponse)
def dashboard(
    request: Request,
    quiz_id: Optional[int] = None,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin_page),
):
    quizzes = repository.list_quizzes(db)
    selected = None
    if quiz_id is not None:
        selected = next((q for q in quizzes if q.id == quiz_id), None)
    if selected is None and quizzes:
        selected = quizzes[0]

    submissions = repository.list_submissions(db, quiz_id=selected.id) if selected else []
    report = quiz_report(selected, submissions) if selected else None

    return templates.TemplateResponse(
        request,
        "dashboard.html",
        {
            "admin": admin,
            "quizzes": quizzes,
            "selected": selected,
            "submissions": submissions,
            "report": report,
        },
    )


@router.get("/dashboard/{quiz_id}/export")
def dashboard_export(
    quiz_id: int,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin_page),
):
    quiz = repository.get_quiz(db, quiz_id)
    body = export_csv(quiz, repository.list_submissions(db, quiz_id=quiz_id))
    filename = f"quiz_{quiz.id}_results.csv"
    return Response(
        content=body.encode("utf-8-sig"),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/submissions/{submission_id}/delete")
def submission_delete(
    submission_id: int,
    quiz_id: Optional[int] = Form(default=None),
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin_page),
):
    repository.delete_submission(db, submission_id)
    if quiz_id:
        return redirect(f"/ui/dashboard?quiz_id={quiz_id}")
    return redirect("/ui/dashboard")


# ---------- QUIZ LIST ----------


@router.get("/quizzes", response_class=HTMLResponse)
def quiz_list(
    request: Request,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin_page),
):
    quizzes = repository.list_quizzes(db)
    rows = [
        {
            "quiz": q,
            "question_count": len(q.questions),
            "share_url": share_url(request, q.id),
        }
        for q in quizzes
    ]
    return templates.TemplateResponse(request, "quiz_list.html", {"admin": admin, "rows": rows})


@router.post("/quizzes/{quiz_id}/delete")
def quiz_delete(
    quiz_id: int,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin_page),
):
    repository.delete_quiz(db, quiz_id)
    return redirect("/ui/quizzes")


# ---------- EDITOR ----------


def _blank_question(position: int) -> Question:
    return Question(
        type="single",
        position=position,
        options=[Option(), Option()],
    )


def _quiz_from_form(form) -> Tuple[Quiz, List[str]]:
    """
    Rebuilds the whole quiz document from the editor form.

    Field layout (qi/oi are row indexes in the form, not ids):
      quiz_id, created_at, title, description, question_count,
      q{qi}_id, q{qi}_text, q{qi}_type, q{qi}_option_count,
      q{qi}_o{oi}_id, q{qi}_o{oi}_text, q{qi}_o{oi}_score
    A blank score is 0. A non-integer score is kept as 0 and reported in
    the returned error list, so the draft is not lost.
    """

    def as_int(name: str, default: int = 0) -> int:
        raw = (form.get(name) or "").strip()
        return int(raw) if raw else default

    errors: List[str] = []
    questions: List[Question] = []
    for qi in range(as_int("question_count")):
        options: List[Option] = []
        for oi in range(as_int(f"q{qi}_option_count")):
            raw_score = (form.get(f"q{qi}_o{oi}_score") or "").strip()
            try:
                opt_score = int(raw_score) if raw_score else 0
            except ValueError:
                opt_score = 0
                errors.append(f"Score of option {oi + 1} in question {qi + 1} must be a whole number")
            options.append(
                Option(
                    id=as_int(f"q{qi}_o{oi}_id"),
                    text=(form.get(f"q{qi}_o{oi}_text") or "").strip(),
                    score=opt_score,
                )
            )
        q_type = form.get(f"q{qi}_type") or "single"
        questions.append(
            Question(
                id=as_int(f"q{qi}_id"),
                text=(form.get(f"q{qi}_text") or "").strip(),
                type=q_type if q_type in ("single", "multi") else "single",
                position=qi + 1,
                options=options,
            )
        )

    fields = {
        "id": as_int("quiz_id"),
        "title": (form.get("title") or "").strip(),
        "description": (form.get("description") or "").strip(),
        "questions": questions,
    }
    if form.get("created_at"):
        fields["created_at"] = form.get("created_at")
    return Quiz(**fields), errors


def _apply_editor_action(quiz: Quiz, action: str) -> Quiz:
    """add_question / add_option:<qi> / delete_question:<qi> / delete_option:<qi>:<oi>"""
    questions = list(quiz.questions)
    parts = action.split(":")
    try:
        if parts[0] == "add_question":
            questions.append(_blank_question(len(questions) + 1))
        elif parts[0] == "add_option":
            qi = int(parts[1])
            q = questions[qi]
            questions[qi] = q.model_copy(update={"options": q.options + [Option()]})
        elif parts[0] == "delete_question":
            del questions[int(parts[1])]
        elif parts[0] == "delete_option":
            qi, oi = int(parts[1]), int(parts[2])
            q = questions[qi]
            options = [o for i, o in enumerate(q.options) if i != oi]
            questions[qi] = q.model_copy(update={"options": options})
    except (IndexError, ValueError):
        return quiz

    renumbered = [q.model_copy(update={"position": i}) for i, q in enumerate(questions, 1)]
    return quiz.model_copy(update={"questions": renumbered})


def _render_editor(request: Request, admin, quiz: Quiz, error: Optional[str] = None, status_code: int = 200):
    return templates.TemplateResponse(
        request,
        "quiz_editor.html",
        {"admin": admin, "quiz": quiz, "error": error},
        status_code=status_code,
    )


@router.get("/quizzes/new", response_class=HTMLResponse)
def quiz_new(request: Request, admin: AdminUser = Depends(require_admin_page)):
    return _render_editor(request, admin, Quiz())


@router.get("/quizzes/{quiz_id}/edit", response_class=HTMLResponse)
def quiz_edit(
    quiz_id: int,
    request: Request,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin_page),
):
    return _render_editor(request, admin, repository.get_quiz(db, quiz_id))


@router.post("/quizzes/new", response_class=HTMLResponse)
@router.post("/quizzes/{quiz_id}/edit", response_class=HTMLResponse)
async def quiz_editor_post(
    request: Request,
    db: Session = Depends(get_db),
    admin: AdminUser = Depends(require_admin_page),
):
    """
    Every editor button posts the whole form:
      - save: persist and go back to the list
      - anything else: change the draft and render it again, nothing stored
    """
    form = await request.form()
    action = (form.get("action") or "save").strip()

    try:
        quiz, errors = _quiz_from_form(form)
    except ValueError as e:
        # tampered form (non-numeric ids, duplicate ids); pydantic errors are ValueErrors too
        return _render_editor(request, admin, Quiz(), error=str(e), status_code=400)

    if action != "save":
        return _render_editor(request, admin, _apply_editor_action(quiz, action))
    if errors:
        return _render_editor(request, admin, quiz, error="; ".join(errors), status_code=400)

    try:
        await run_in_threadpool(repository.save_quiz, db, quiz)
    except QuizDeskError as e:
        return _render_editor(request, admin, quiz, error=e.message, status_code=e.status_code)
    return redirect("/ui/quizzes")


# ---------- TAKE (public) ----------


def _answers_from_form(quiz: Quiz, form) -> List[Answer]:
    answers: List[Answer] = []
    for q in quiz.questions:
        for raw in form.getlist(f"q_{q.id}"):
            try:
                answers.append(Answer(question_id=q.id, option_id=int(raw)))
            except ValueError:
                continue
    return answers


@router.get("/quizzes/{quiz_id}/take", response_class=HTMLResponse)
def quiz_take(
    quiz_id: int,
    request: Request,
    db: Session = Depends(get_db),
):
    quiz = repository.get_quiz(db, quiz_id)
    return templates.TemplateResponse(
        request,
        "quiz_take.html",
        {"quiz": quiz, "selected": {}, "error": None},
    )


@router.post("/quizzes/{quiz_id}/take", response_class=HTMLResponse)
async def quiz_take_submit(
    quiz_id: int,
    request: Request,
    db: Session = Depends(get_db),
):
    form = await request.form()
    quiz = await run_in_threadpool(repository.get_quiz, db, quiz_id)
    answers = _answers_from_form(quiz, form)

    try:
        saved, result = await run_in_threadpool(repository.submit, db, quiz.id, answers)
    except QuizDeskError as e:
        selected: dict = {}
        for a in answers:
            selected.setdefault(a.question_id, set()).add(a.option_id)
        return templates.TemplateResponse(
            request,
            "quiz_take.html",
            {"quiz": quiz, "selected": selected, "error": e.message},
            status_code=e.status_code,
        )

    return templates.TemplateResponse(
        request,
        "quiz_result.html",
        {"quiz": quiz, "submission": saved, "score": result.achieved, "max_score": result.max_score},
    )


# ---------- IMAGE STUDIO ----------


def _studio_context(**overrides) -> dict:
    ctx = {
        "aspect_ratios": ASPECT_RATIOS,
        "image_sizes": IMAGE_SIZES,
        "gen_prompt": "",
        "aspect_ratio": "1:1",
        "image_size": "1K",
        "generated_image": None,
        "gen_error": None,
        "edit_prompt": "",
        "source_image": None,
        "edited_image": None,
        "edit_error": None,
    }
    ctx.update(overrides)
    return ctx


@router.get("/studio", response_class=HTMLResponse)
def studio_page(request: Request, admin: AdminUser = Depends(require_admin_page)):
    return templates.TemplateResponse(request, "studio.html", {"admin": admin, **_studio_context()})


@router.post("/studio/generate", response_class=HTMLResponse)
def studio_generate(
    request: Request,
    prompt: str = Form(""),
    aspect_ratio: str = Form("1:1"),
    image_size: str = Form("1K"),
    studio: ImageStudio = Depends(get_image_studio),
    admin: AdminUser = Depends(require_admin_page),
):
    ctx = _studio_context(gen_prompt=prompt, aspect_ratio=aspect_ratio, image_size=image_size)
    try:
        ctx["generated_image"] = studio.generate(prompt, aspect_ratio, image_size).data_url
    except QuizDeskError as e:
        ctx["gen_error"] = e.message
    return templates.TemplateResponse(request, "studio.html", {"admin": admin, **ctx})


@router.post("/studio/edit", response_class=HTMLResponse)
async def studio_edit(
    request: Request,
    prompt: str = Form(""),
    source_data_url: str = Form(""),
    image: Optional[UploadFile] = File(default=None),
    studio: ImageStudio = Depends(get_image_studio),
    admin: AdminUser = Depends(require_admin_page),
):
    """
    The source is either a fresh upload or the data URL of an image already
    shown on the page (e.g. "edit the one I just generated").
    """
    ctx = _studio_context(edit_prompt=prompt)
    try:
        if image is not None and image.filename:
            source = await read_image_upload(image)
            mime = image.content_type
        elif source_data_url:
            mime, source = split_data_url(source_data_url)
        else:
            source, mime = b"", "image/png"
        if source:
            ctx["source_image"] = GeneratedImage(data=source, mime_type=mime).data_url
        edited = await run_in_threadpool(studio.edit, source, prompt, mime)
        ctx["edited_image"] = edited.data_url
    except QuizDeskError as e:
        ctx["edit_error"] = e.message
    except HTTPException as e:
        ctx["edit_error"] = str(e.detail)
    return templates.TemplateResponse(request, "studio.html", {"admin": admin, **ctx})
