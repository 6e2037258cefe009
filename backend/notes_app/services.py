"""Business logic services used by HTTP controllers.

This module holds small service classes that coordinate repositories
and the mailer. Services perform validation, run the OTP/session state
transitions and persist aggregates via repositories. Failures are
raised as `errors.ServiceError` subclasses carrying an HTTP status.
"""

import logging
import secrets
import uuid
from datetime import date, datetime, timedelta
from typing import Optional, Tuple

import jwt
from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from . import models, repositories
from .config import settings
from .errors import ConflictError, ForbiddenError, NotFoundError, ServiceError
from .mailer import OTPMailer, get_mailer

logger = logging.getLogger("notes_app.auth")

PWD_CTX = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
TOKEN_TYPE = "session"
INVALID_OTP = "Invalid or expired OTP"
TOO_MANY_ATTEMPTS = "Too many attempts. Please request a new OTP."


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def validate_email(email: str) -> None:
    """Reject addresses without exactly one `@` between non-empty parts."""
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain or "@" in domain or " " in email:
        raise ServiceError("Invalid email address")


def generate_otp() -> str:
    """Return a random six digit code."""
    return str(100000 + secrets.randbelow(900000))


def create_token(user_id: str, expires_at: datetime) -> str:
    """Sign a session JWT for `user_id` expiring at `expires_at` (aware UTC)."""
    now = models.utcnow()
    payload = {
        "userId": user_id,
        "type": TOKEN_TYPE,
        "jti": uuid.uuid4().hex,
        "iat": int(now.timestamp()),
        "exp": int(expires_at.timestamp()),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


class OtpService:
    """Issue and check one-time passcodes for a given purpose."""
    def __init__(self, session: Session, mailer: Optional[OTPMailer] = None):
        self.session = session
        self.mailer = mailer or get_mailer()
        self.otp_repo = repositories.OtpRepository(session)

    def issue(self, email: str, otp_type: models.OtpType, user_id: Optional[str] = None,
              signup_data: Optional[dict] = None) -> models.Otp:
        """Replace any previous code for `email`/`otp_type` and email a new one.

        Expired codes for every address are purged first. The raw code only
        ever leaves this method inside the email.
        """
        now = models.utcnow()
        self.otp_repo.delete_expired(now)
        self.otp_repo.delete_for(email, otp_type)
        code = generate_otp()
        otp = self.otp_repo.save(models.Otp(
            code_hash=PWD_CTX.hash(code),
            email=email,
            type=otp_type,
            expires_at=now + timedelta(minutes=settings.OTP_TTL_MINUTES),
            user_id=user_id,
            signup_data=signup_data,
        ))
        self.mailer.send_otp(email, code, otp_type)
        logger.info("issued %s otp for %s", otp_type.value, email)
        return otp

    def check(self, email: str, code: Optional[str], otp_type: models.OtpType) -> models.Otp:
        """Return the live OTP if `code` matches it.

        A mismatch counts one attempt against the OTP; once
        `OTP_MAX_ATTEMPTS` is reached the OTP is refused regardless of the
        code. The returned OTP is not yet marked verified, callers do that
        as part of their own commit.
        """
        otp = self.otp_repo.get_live(email, otp_type, models.utcnow())
        if otp is None:
            raise ServiceError(INVALID_OTP)
        if otp.attempts >= settings.OTP_MAX_ATTEMPTS:
            raise ServiceError(TOO_MANY_ATTEMPTS)
        if not PWD_CTX.verify((code or "").strip(), otp.code_hash):
            otp.attempts += 1
            self.otp_repo.save(otp)
            logger.info("wrong %s otp for %s (attempt %d)", otp_type.value, email, otp.attempts)
            raise ServiceError(INVALID_OTP)
        return otp


class SessionService:
    """Create, resolve and revoke bearer-token sessions."""
    def __init__(self, session: Session):
        self.session = session
        self.session_repo = repositories.SessionRepository(session)
        self.user_repo = repositories.UserRepository(session)

    def start(self, user: models.User, lifetime: timedelta, user_agent: Optional[str] = None,
              ip_address: Optional[str] = None) -> str:
        """Persist a new session for `user` and return its token."""
        expires_at = models.utcnow() + lifetime
        token = create_token(user.id, expires_at)
        self.session_repo.create(models.UserSession(
            user_id=user.id,
            token=token,
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
        ))
        logger.info("session started for user %s until %s", user.id, expires_at.isoformat())
        return token

    def resolve(self, token: str, user_id: str) -> Optional[models.User]:
        """Return the active user behind an active session, else `None`."""
        user_session = self.session_repo.get_active(token, models.utcnow())
        if user_session is None or user_session.user_id != user_id:
            return None
        user = self.user_repo.get(user_id)
        if user is None or not user.is_active:
            return None
        return user

    def end(self, token: Optional[str]) -> int:
        if not token:
            raise ServiceError("Token is required")
        count = self.session_repo.deactivate(token)
        logger.info("logout deactivated %d session(s)", count)
        return count


class AuthService:
    """Email-OTP signup and signin flows."""
    def __init__(self, session: Session, mailer: Optional[OTPMailer] = None):
        self.session = session
        self.user_repo = repositories.UserRepository(session)
        self.otps = OtpService(session, mailer)
        self.sessions = SessionService(session)

    def signup(self, name: Optional[str], email: Optional[str], date_of_birth: Optional[date]) -> str:
        """Start a signup by emailing a SIGNUP code; returns the normalized email."""
        email = normalize_email(email)
        name = (name or "").strip()
        if not name or not email or date_of_birth is None:
            raise ServiceError("Name, email, and date of birth are required")
        validate_email(email)
        if self.user_repo.get_by_email(email):
            raise ConflictError("User already exists")
        signup_data = {"name": name, "email": email, "dateOfBirth": date_of_birth.isoformat()}
        self.otps.issue(email, models.OtpType.SIGNUP, signup_data=signup_data)
        return email

    def verify_signup(self, email: Optional[str], code: Optional[str], user_agent: Optional[str] = None,
                      ip_address: Optional[str] = None) -> Tuple[models.User, str]:
        """Confirm a SIGNUP code, create the verified user and open a session.

        User creation and OTP consumption are committed together; if the
        email was registered in the meantime nothing is written.
        """
        email = normalize_email(email)
        if not email or not (code or "").strip():
            raise ServiceError("Email and OTP are required")
        otp = self.otps.check(email, code, models.OtpType.SIGNUP)
        data = otp.signup_data
        if not data or not data.get("name") or not data.get("dateOfBirth"):
            raise ServiceError("Invalid signup data")
        user = models.User(
            name=data["name"],
            email=data.get("email") or email,
            date_of_birth=date.fromisoformat(data["dateOfBirth"]),
            verified=True,
        )
        try:
            self.session.add(user)
            self.session.flush()
            otp.verified = True
            otp.user_id = user.id
            self.session.add(otp)
            self.session.commit()
        except IntegrityError:
            self.session.rollback()
            raise ConflictError("User already exists")
        self.session.refresh(user)
        logger.info("created user %s", user.id)
        lifetime = timedelta(days=settings.SESSION_TTL_DAYS)
        token = self.sessions.start(user, lifetime, user_agent, ip_address)
        return user, token

    def signin(self, email: Optional[str]) -> str:
        """Email a SIGNIN code to an existing, verified, active user."""
        email = normalize_email(email)
        if not email:
            raise ServiceError("Email is required")
        user = self.user_repo.get_by_email(email)
        if not user:
            raise NotFoundError("User not found")
        if not user.verified:
            raise ServiceError("Please complete signup verification first")
        if not user.is_active:
            raise ForbiddenError("Account is deactivated")
        self.otps.issue(email, models.OtpType.SIGNIN, user_id=user.id)
        return email

    def verify_signin(self, email: Optional[str], code: Optional[str], keep_logged_in: bool = False,
                      user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> Tuple[models.User, str]:
        """Confirm a SIGNIN code and open a session.

        Sessions last `SESSION_TTL_DAYS` with `keep_logged_in`, otherwise
        `SHORT_SESSION_HOURS`.
        """
        email = normalize_email(email)
        if not email or not (code or "").strip():
            raise ServiceError("Email and OTP are required")
        otp = self.otps.check(email, code, models.OtpType.SIGNIN)
        user = self.user_repo.get(otp.user_id) if otp.user_id else None
        if user is None:
            raise ServiceError(INVALID_OTP)
        if not user.is_active:
            raise ForbiddenError("Account is deactivated")
        otp.verified = True
        self.otps.otp_repo.save(otp)
        if keep_logged_in:
            lifetime = timedelta(days=settings.SESSION_TTL_DAYS)
        else:
            lifetime = timedelta(hours=settings.SHORT_SESSION_HOURS)
        token = self.sessions.start(user, lifetime, user_agent, ip_address)
        return user, token


class NoteService:
    """Owner-scoped note operations."""
    def __init__(self, session: Session):
        self.session = session
        self.note_repo = repositories.NoteRepository(session)

    def list(self, user_id: str):
        return self.note_repo.list_for_user(user_id)

    def get(self, user_id: str, note_id: str) -> models.Note:
        note = self.note_repo.get_for_user(note_id, user_id)
        if not note:
            raise NotFoundError("Note not found")
        return note

    def create(self, user_id: str, title: Optional[str], content: Optional[str] = "") -> models.Note:
        title = (title or "").strip()
        if not title:
            raise ServiceError("Title is required")
        note = models.Note(title=title, content=(content or "").strip(), user_id=user_id)
        return self.note_repo.save(note)

    def update(self, user_id: str, note_id: str, title: Optional[str] = None,
               content: Optional[str] = None) -> models.Note:
        """Apply a partial update; `None` leaves a field unchanged."""
        if title is None and content is None:
            raise ServiceError("Title or content is required")
        if title is not None and not title.strip():
            raise ServiceError("Title is required")
        note = self.get(user_id, note_id)
        if title is not None:
            note.title = title.strip()
        if content is not None:
            note.content = content.strip()
        note.updated_at = models.utcnow()
        return self.note_repo.save(note)

    def delete(self, user_id: str, note_id: str) -> None:
        note = self.get(user_id, note_id)
        self.note_repo.delete(note)
