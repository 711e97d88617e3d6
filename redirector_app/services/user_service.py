"""
Identity & session management.

Tokens carry the user's session id at issue time. Every authenticated request
re-reads the user and compares session ids, so rotating a user's session id
(password change, logout-all, deletion) kills every token issued before it.
"""

import logging
import uuid
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from redirector_app.database.connection import atomic
from redirector_app.errors import InvalidToken, NotFound, Unauthorized, UsernameConflict
from redirector_app.models import AuditEntryType, User, UserRole
from redirector_app.security import IssuedToken, PasswordCodec, TokenCodec, generate_password
from redirector_app.services.access import ensure_allowed
from redirector_app.services.audit_trail import AuditTrailRecorder

logger = logging.getLogger(__name__)


class UserService:
    """
    User accounts, login and token validation.

    Password hashing is CPU/memory heavy (Argon2), so it runs in the threadpool
    instead of blocking the event loop.
    """

    def __init__(
        self,
        db: Session,
        passwords: PasswordCodec,
        tokens: TokenCodec,
        audit_trail: Optional[AuditTrailRecorder] = None,
    ):
        self.db = db
        self.passwords = passwords
        self.tokens = tokens
        self.audit_trail = audit_trail or AuditTrailRecorder(db)

    def _find_live_user(self, user_id: uuid.UUID) -> Optional[User]:
        return self.db.query(User).filter(
            User.id == user_id,
            User.deleted_at.is_(None)
        ).first()

    async def authenticate(self, username: str, password: str) -> IssuedToken:
        """
        Exchange credentials for a token bound to the user's current session.

        Raises:
            Unauthorized: unknown user or wrong password (same error for both)
        """
        user = self.db.query(User).filter(
            User.username == username,
            User.deleted_at.is_(None)
        ).first()

        if not user:
            raise Unauthorized("Invalid user")

        valid = await run_in_threadpool(self.passwords.verify, password, user.hashed_password)
        if not valid:
            raise Unauthorized("Invalid user")

        return self.issue_token(user)

    def issue_token(self, user: User) -> IssuedToken:
        return self.tokens.issue(user.id, user.session_id, user.role)

    async def authorize(self, token: str) -> User:
        """
        Resolve a bearer token to its (live) user.

        Raises:
            Unauthorized: invalid/expired token, deleted user, or a session id
                that was rotated after the token was issued
        """
        try:
            claims = self.tokens.verify(token)
        except InvalidToken as e:
            raise Unauthorized(f"Invalid token: {e}") from e

        user = self._find_live_user(claims.user_id)
        if not user:
            raise Unauthorized("Could not find user")

        if user.session_id != claims.session_id:
            raise Unauthorized("Token expired")

        return user

    async def create_user(
        self,
        actor: User,
        username: str,
        role: UserRole,
        password: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Tuple[User, Optional[str]]:
        """
        Create a user (admins only).

        Returns the user and, when no password was given, the generated one;
        it is never retrievable afterwards.

        Raises:
            Forbidden: actor is not an admin
            UsernameConflict: username is taken, also by a deleted user
        """
        ensure_allowed(actor, UserRole.ADMIN)

        generated = None if password else generate_password()
        hashed_password = await run_in_threadpool(self.passwords.hash, password or generated)

        with atomic(self.db):
            user = self._insert_user(username, role, hashed_password)
            self.audit_trail.record(
                actor,
                AuditEntryType.CREATE_USER,
                user=user,
                ip_address=ip_address,
            )

        self.db.refresh(user)
        return user, generated

    def _insert_user(self, username: str, role: UserRole, hashed_password: str) -> User:
        user = User(
            username=username,
            role=role,
            hashed_password=hashed_password,
            session_id=uuid.uuid4(),
        )
        self.db.add(user)
        try:
            self.db.flush()
        except IntegrityError as e:
            raise UsernameConflict("User already exists") from e
        return user

    async def change_password(
        self,
        actor: User,
        target: User,
        new_password: Optional[str] = None,
        current_password: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Tuple[User, Optional[str]]:
        """
        Set a new password and rotate the target's session id.

        Users changing their own password must confirm the current one; admins
        may reset anybody's password. Returns the user and the generated
        password when none was given.

        Raises:
            Forbidden: a manager changing somebody else's password
            Unauthorized: current password missing or wrong
        """
        changing_own = actor.id == target.id
        if not changing_own:
            ensure_allowed(actor, UserRole.ADMIN)
        else:
            valid = current_password is not None and await run_in_threadpool(
                self.passwords.verify, current_password, target.hashed_password
            )
            if not valid:
                raise Unauthorized("Invalid password")

        generated = None if new_password else generate_password()
        hashed_password = await run_in_threadpool(self.passwords.hash, new_password or generated)

        with atomic(self.db):
            target.hashed_password = hashed_password
            target.rotate_session()
            self.db.flush()

            self.audit_trail.record(
                actor,
                AuditEntryType.CHANGE_PASSWORD,
                user=target,
                ip_address=ip_address,
            )

        self.db.refresh(target)
        return target, generated

    async def logout_all(self, user: User) -> None:
        """Invalidate every outstanding token of a user"""
        with atomic(self.db):
            user.rotate_session()

    async def delete_user(
        self,
        actor: User,
        user_id: uuid.UUID,
        ip_address: Optional[str] = None,
    ) -> None:
        """
        Soft delete a user (admins only). The session is rotated as well, so the
        user's tokens stop working immediately; the username stays reserved.
        """
        ensure_allowed(actor, UserRole.ADMIN)

        with atomic(self.db):
            user = self._find_live_user(user_id)
            if not user:
                raise NotFound("User not found")

            user.soft_delete()
            user.rotate_session()
            self.db.flush()

            self.audit_trail.record(
                actor,
                AuditEntryType.DELETE_USER,
                user=user,
                ip_address=ip_address,
            )

    async def get_user(self, actor: User, user_id: uuid.UUID) -> User:
        ensure_allowed(actor, UserRole.ADMIN)
        user = self._find_live_user(user_id)
        if not user:
            raise NotFound("User not found")
        return user

    async def list_users(self, actor: User) -> List[User]:
        ensure_allowed(actor, UserRole.ADMIN)
        return self.db.query(User).filter(
            User.deleted_at.is_(None)
        ).order_by(User.created_at).all()

    async def ensure_initial_user(
        self,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> Optional[User]:
        """
        Create the first admin when no live user exists.

        Missing credentials are generated and logged once; this is the only
        time they are visible. The create-user entry is attributed to the new
        admin itself. Returns the created user, or None when users exist.
        """
        existing = self.db.query(User).filter(User.deleted_at.is_(None)).first()
        if existing:
            return None

        if username and self.db.query(User).filter(User.username == username).first():
            # Deleted users keep their username reserved
            logger.warning(
                "Initial username %s belongs to a deleted user and can not be reused", username
            )
            username = None

        if not username:
            username = str(uuid.uuid4())
            logger.info("Initial username not available, generated username: %s", username)
        if not password:
            password = generate_password()
            logger.info("Initial password not set, generated password: %s", password)

        hashed_password = await run_in_threadpool(self.passwords.hash, password)

        with atomic(self.db):
            user = self._insert_user(username, UserRole.ADMIN, hashed_password)
            self.audit_trail.record(user, AuditEntryType.CREATE_USER, user=user)

        logger.info("Created initial admin user %s", username)
        self.db.refresh(user)
        return user
