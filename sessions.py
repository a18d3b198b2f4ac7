"""
Session management: sign-in, sign-up, password changes and the single
current-session record.
"""

import logging
from typing import Dict, Optional, Tuple

from starlette.concurrency import run_in_threadpool

from entity_store import EntityStore, new_id
from errors import DuplicateEmail, InvalidCredentials, UserNotFound
from schemas import Role, User
from security import create_access_token, hash_password, verify_password
from validation import ensure_password, ensure_profile

logger = logging.getLogger(__name__)

# Post-login destination per role; every Role member must appear here.
LANDING_PATHS: Dict[Role, str] = {
    Role.ADMIN: "/admin/dashboard",
    Role.USER: "/stores",
    Role.OWNER: "/owner/dashboard",
}


def landing_path(role: Role) -> str:
    return LANDING_PATHS[role]


class SessionManager:
    """
    Session operations over an EntityStore.

    The async operations await the store's simulated latency, then run the
    blocking work (bcrypt, pymongo, the store's writer lock) in the threadpool.
    """

    def __init__(self, store: EntityStore):
        self.store = store

    def _authenticate(self, email: str, password: str) -> Tuple[User, str]:
        user = self.store.find_user_by_email(email)
        if user is None or not verify_password(password, user.password_hash):
            logger.warning(f"Failed login for {email}")
            raise InvalidCredentials()
        token = create_access_token({"sub": user.id, "role": user.role.value})
        self.store.set_session(user, token)
        logger.info(f"User {user.id} logged in")
        return user, token

    async def login_with_token(self, email: str, password: str) -> Tuple[User, str]:
        await self.store.simulate_latency()
        return await run_in_threadpool(self._authenticate, email, password)

    async def login(self, email: str, password: str) -> User:
        user, _ = await self.login_with_token(email, password)
        return user

    def _register(self, name: str, email: str, password: str, address: str) -> User:
        ensure_profile(name, email, password, address)
        if self.store.find_user_by_email(email) is not None:
            raise DuplicateEmail()
        user = User(
            id=new_id("u"),
            name=name,
            email=email,
            address=address,
            role=Role.USER,
            password_hash=hash_password(password),
        )
        self.store.add_user(user)
        logger.info(f"Signed up user {user.id}")
        return user

    async def signup(self, name: str, email: str, password: str, address: str) -> User:
        """Register a normal user. The caller signs in separately."""
        await self.store.simulate_latency()
        return await run_in_threadpool(self._register, name, email, password, address)

    def create_user(self, name: str, email: str, password: str, address: str, role: Role) -> User:
        """Admin-side user creation; any role, no email uniqueness check."""
        ensure_profile(name, email, password, address)
        user = User(
            id=new_id("u"),
            name=name,
            email=email,
            address=address,
            role=role,
            password_hash=hash_password(password),
        )
        self.store.add_user(user)
        return user

    def _change_password(self, user_id: str, new_password: str) -> None:
        ensure_password(new_password)
        if not self.store.set_password_hash(user_id, hash_password(new_password)):
            raise UserNotFound()
        logger.info(f"Password updated for user {user_id}")

    async def update_password(self, user_id: str, new_password: str) -> None:
        await self.store.simulate_latency()
        await run_in_threadpool(self._change_password, user_id, new_password)

    def logout(self, token: Optional[str] = None) -> None:
        """Clear the session; with a token, only if that token opened it."""
        if token is not None and self.store.session_token() != token:
            return
        self.store.clear_session()

    def get_current_user(self) -> Optional[User]:
        return self.store.get_session()

    def session_user_for(self, token: str) -> Optional[User]:
        """The session user, if the session was opened with this token."""
        if self.store.session_token() != token:
            return None
        return self.store.get_session()
