"""Repository classes encapsulating database operations.

Each repository is small and focused on a single aggregate (users,
OTPs, sessions, notes). Repositories return SQLModel objects and
perform commits/refreshes where appropriate.
"""

from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from . import models


class UserRepository:
    """CRUD operations for `User` objects."""
    def __init__(self, session: Session):
        self.session = session

    def get_by_email(self, email: str) -> Optional[models.User]:
        """Return a `User` by (normalized) email or `None` if not found."""
        stmt = select(models.User).where(models.User.email == email)
        return self.session.exec(stmt).first()

    def get(self, user_id: str) -> Optional[models.User]:
        """Get a `User` by primary key."""
        return self.session.get(models.User, user_id)


class OtpRepository:
    """Issue, look up and retire one-time passcodes."""
    def __init__(self, session: Session):
        self.session = session

    def save(self, otp: models.Otp) -> models.Otp:
        self.session.add(otp)
        self.session.commit()
        self.session.refresh(otp)
        return otp

    def delete_expired(self, now: datetime) -> int:
        """Delete every OTP that expired before `now`; return how many."""
        stmt = select(models.Otp).where(models.Otp.expires_at < now)
        return self._delete_all(stmt)

    def delete_for(self, email: str, otp_type: models.OtpType) -> int:
        """Delete all OTPs for an email/type pair, live or not."""
        stmt = select(models.Otp).where(models.Otp.email == email, models.Otp.type == otp_type)
        return self._delete_all(stmt)

    def get_live(self, email: str, otp_type: models.OtpType, now: datetime) -> Optional[models.Otp]:
        """Return the newest unverified, unexpired OTP for an email/type pair."""
        stmt = select(models.Otp).where(
            models.Otp.email == email,
            models.Otp.type == otp_type,
            models.Otp.verified == False,  # noqa: E712
            models.Otp.expires_at > now,
        ).order_by(models.Otp.created_at.desc())
        return self.session.exec(stmt).first()

    def _delete_all(self, stmt) -> int:
        rows = self.session.exec(stmt).all()
        for row in rows:
            self.session.delete(row)
        self.session.commit()
        return len(rows)


class SessionRepository:
    """Persist and look up login sessions."""
    def __init__(self, session: Session):
        self.session = session

    def create(self, user_session: models.UserSession) -> models.UserSession:
        self.session.add(user_session)
        self.session.commit()
        self.session.refresh(user_session)
        return user_session

    def get_active(self, token: str, now: datetime) -> Optional[models.UserSession]:
        """Return the active, unexpired session for `token` if there is one."""
        stmt = select(models.UserSession).where(
            models.UserSession.token == token,
            models.UserSession.is_active == True,  # noqa: E712
            models.UserSession.expires_at > now,
        )
        return self.session.exec(stmt).first()

    def deactivate(self, token: str) -> int:
        """Mark every session carrying `token` inactive; return how many."""
        stmt = select(models.UserSession).where(models.UserSession.token == token)
        rows = self.session.exec(stmt).all()
        for row in rows:
            row.is_active = False
            self.session.add(row)
        self.session.commit()
        return len(rows)


class NoteRepository:
    """Owner-scoped CRUD for `Note` rows."""
    def __init__(self, session: Session):
        self.session = session

    def list_for_user(self, user_id: str) -> List[models.Note]:
        """Return the user's notes, newest first."""
        stmt = select(models.Note).where(models.Note.user_id == user_id).order_by(models.Note.created_at.desc())
        return self.session.exec(stmt).all()

    def get_for_user(self, note_id: str, user_id: str) -> Optional[models.Note]:
        """Fetch a note only if it belongs to `user_id`."""
        stmt = select(models.Note).where(models.Note.id == note_id, models.Note.user_id == user_id)
        return self.session.exec(stmt).first()

    def save(self, note: models.Note) -> models.Note:
        self.session.add(note)
        self.session.commit()
        self.session.refresh(note)
        return note

    def delete(self, note: models.Note) -> None:
        self.session.delete(note)
        self.session.commit()
