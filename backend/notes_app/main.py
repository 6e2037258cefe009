"""FastAPI application entrypoint and HTTP controllers.

This module defines the HTTP endpoints used by the notes frontend.
Controllers are intentionally thin: they accept requests, delegate to
services, and return JSON responses. Service errors are turned into
`{"detail": ...}` responses by a single exception handler.

Endpoints implemented:
- POST /api/signup
- POST /api/signup/verify
- POST /api/signin
- POST /api/signin/resend
- POST /api/signin/verify
- POST /api/logout
- GET /api/me
- GET, POST /api/notes
- GET, PUT, DELETE /api/notes/{note_id}
- GET /api/health
"""

import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlmodel import Session

from . import models, services
from .auth import bearer_token, get_current_user
from .config import settings
from .database import create_db_and_tables, get_session
from .errors import ServiceError
from .mailer import OTPMailer, get_mailer
from .schemas import LogoutIn, NoteIn, NoteUpdateIn, SigninIn, SigninVerifyIn, SignupIn, VerifyOtpIn

app = FastAPI(title="Notes API")
logger = logging.getLogger("notes_app.api")
if not logger.handlers:
    logging.basicConfig(level=settings.LOG_LEVEL)

# The React frontend is served from another origin during development.
if settings.ALLOW_DEV_CORS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

create_db_and_tables()


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    request.state.request_id = req_id
    started = time.perf_counter()
    response: Response
    try:
        response = await call_next(request)
    except Exception:
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        if request.url.path.startswith("/api"):
            logger.exception(
                "request_failed %s",
                json.dumps(
                    {
                        "request_id": req_id,
                        "path": request.url.path,
                        "method": request.method,
                        "duration_ms": elapsed_ms,
                        "client": request.client.host if request.client else "unknown",
                    },
                    ensure_ascii=True,
                ),
            )
        raise
    response.headers["X-Request-ID"] = req_id
    elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
    if request.url.path.startswith("/api"):
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _client_ip(request: Request) -> str:
    if request.headers.get("cf-connecting-ip"):
        return request.headers["cf-connecting-ip"]
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def _user_payload(user: models.User) -> dict:
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'dateOfBirth': user.date_of_birth.isoformat(),
    }


def _note_payload(note: models.Note) -> dict:
    return {
        'id': note.id,
        'title': note.title,
        'content': note.content,
        'userId': note.user_id,
        'createdAt': note.created_at.isoformat(),
        'updatedAt': note.updated_at.isoformat(),
    }


@app.post('/api/signup')
def signup(payload: SignupIn, db: Session = Depends(get_session), mailer: OTPMailer = Depends(get_mailer)):
    """Start a signup: validate the details and email a verification code."""
    email = services.AuthService(db, mailer).signup(payload.name, payload.email, payload.date_of_birth)
    return {'message': 'OTP sent to your email', 'email': email}


@app.post('/api/signup/verify')
def signup_verify(payload: VerifyOtpIn, request: Request, db: Session = Depends(get_session),
                  mailer: OTPMailer = Depends(get_mailer)):
    """Confirm the signup code, create the account and return a session token."""
    user, token = services.AuthService(db, mailer).verify_signup(
        payload.email, payload.otp,
        user_agent=request.headers.get('user-agent'),
        ip_address=_client_ip(request),
    )
    return {'message': 'Account created successfully', 'user': _user_payload(user), 'token': token}


@app.post('/api/signin')
def signin(payload: SigninIn, db: Session = Depends(get_session), mailer: OTPMailer = Depends(get_mailer)):
    """Email a signin code to an existing account."""
    email = services.AuthService(db, mailer).signin(payload.email)
    return {'message': 'OTP sent to your email', 'email': email}


@app.post('/api/signin/resend')
def signin_resend(payload: SigninIn, db: Session = Depends(get_session), mailer: OTPMailer = Depends(get_mailer)):
    """Replace the pending signin code with a fresh one."""
    email = services.AuthService(db, mailer).signin(payload.email)
    return {'message': 'New OTP sent to your email', 'email': email}


@app.post('/api/signin/verify')
def signin_verify(payload: SigninVerifyIn, request: Request, db: Session = Depends(get_session),
                  mailer: OTPMailer = Depends(get_mailer)):
    """Confirm the signin code and return a session token.

    `keepLoggedIn` selects the long session lifetime.
    """
    user, token = services.AuthService(db, mailer).verify_signin(
        payload.email, payload.otp, payload.keep_logged_in,
        user_agent=request.headers.get('user-agent'),
        ip_address=_client_ip(request),
    )
    return {'message': 'Signed in successfully', 'user': _user_payload(user), 'token': token}


@app.post('/api/logout')
def logout(payload: Optional[LogoutIn] = None, header_token: Optional[str] = Depends(bearer_token),
           db: Session = Depends(get_session)):
    """Deactivate the session for a token from the body or the bearer header."""
    token = (payload.token if payload else None) or header_token
    services.SessionService(db).end(token)
    return {'message': 'Logged out successfully'}


@app.get('/api/me')
def me(user: models.User = Depends(get_current_user)):
    """Return the authenticated user."""
    return {'user': _user_payload(user)}


@app.get('/api/notes')
def list_notes(db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """List the authenticated user's notes, newest first."""
    notes = services.NoteService(db).list(user.id)
    return {'notes': [_note_payload(n) for n in notes]}


@app.post('/api/notes')
def create_note(payload: NoteIn, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Create a note owned by the authenticated user."""
    note = services.NoteService(db).create(user.id, payload.title, payload.content)
    return {'message': 'Note created successfully', 'note': _note_payload(note)}


@app.get('/api/notes/{note_id}')
def get_note(note_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Fetch one of the authenticated user's notes."""
    note = services.NoteService(db).get(user.id, note_id)
    return {'note': _note_payload(note)}


@app.put('/api/notes/{note_id}')
def update_note(note_id: str, payload: NoteUpdateIn, db: Session = Depends(get_session),
                user: models.User = Depends(get_current_user)):
    """Update the title and/or content of one of the user's notes."""
    note = services.NoteService(db).update(user.id, note_id, payload.title, payload.content)
    return {'message': 'Note updated successfully', 'note': _note_payload(note)}


@app.delete('/api/notes/{note_id}')
def delete_note(note_id: str, db: Session = Depends(get_session), user: models.User = Depends(get_current_user)):
    """Delete one of the authenticated user's notes."""
    services.NoteService(db).delete(user.id, note_id)
    return {'message': 'Note deleted successfully'}


@app.get('/api/health')
def health():
    """Lightweight health check for uptime monitoring."""
    return {'status': 'OK', 'timestamp': datetime.now(timezone.utc).isoformat()}
