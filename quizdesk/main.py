import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.exc import SQLAlchemyError

from quizdesk.config import settings
from quizdesk.database import db_session, init_db
from quizdesk.deps import admin_exists
from quizdesk.errors import QuizDeskError
from quizdesk.models import AdminUser
from quizdesk.routers import auth, images, quizzes, submissions, ui
from quizdesk.routers.images import close_image_studio
from quizdesk.security import hash_password

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def bootstrap_admin() -> None:
    """Creates the admin from ADMIN_EMAIL / ADMIN_PASSWORD if none exists yet."""
    if not (settings.ADMIN_EMAIL and settings.ADMIN_PASSWORD):
        return
    with db_session() as db:
        if admin_exists(db):
            return
        db.add(
            AdminUser(
                email=settings.ADMIN_EMAIL.strip().lower(),
                password_hash=hash_password(settings.ADMIN_PASSWORD),
            )
        )
    logger.info("created admin account %s from environment", settings.ADMIN_EMAIL)


app = FastAPI(title="QuizDesk")

# Create tables, then the optional bootstrap admin
init_db()
bootstrap_admin()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
    allow_credentials=True,
)

app.include_router(auth.router)
app.include_router(quizzes.router)
app.include_router(submissions.router)
app.include_router(images.router)
app.include_router(ui.router)


@app.on_event("shutdown")
def shutdown() -> None:
    close_image_studio()


@app.exception_handler(QuizDeskError)
async def quizdesk_error_handler(request: Request, exc: QuizDeskError):
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(SQLAlchemyError)
async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.exception("database error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=502,
        content={"error": "UpstreamError", "message": "Database request failed"},
    )


@app.get("/")
def root():
    return RedirectResponse(url="/ui/dashboard", status_code=303)


@app.get("/health")
def health():
    return {"status": "ok"}
