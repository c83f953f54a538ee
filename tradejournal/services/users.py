from __future__ import annotations

import asyncio

from tradejournal.auth.passwords import hash_password, verify_password
from tradejournal.auth.tokens import TokenManager, TokenPair
from tradejournal.journal.models import User
from tradejournal.storage.database import Database
from tradejournal.storage.users import UserStore
from tradejournal.utils.exceptions import DuplicateIdentityError, InvalidCredentialsError
from tradejournal.utils.logger import get_logger, sanitize_log_data

logger = get_logger(__name__)


class UserService:
    """Sign-up, sign-in and token refresh."""

    def __init__(self, db: Database, users: UserStore, tokens: TokenManager):
        self._db = db
        self._users = users
        self._tokens = tokens

    async def sign_up(self, email: str, username: str, password: str) -> TokenPair:
        if await self._db.run(self._users.exists, email, username):
            logger.info("sign_up_rejected", reason="duplicate_identity", username=username)
            raise DuplicateIdentityError()

        password_hash = await asyncio.to_thread(hash_password, password)
        user = User(email=email, username=username, password_hash=password_hash)
        await self._db.run(self._users.create, user)
        logger.info("user_signed_up", user_id=user.id)
        return self._tokens.issue_token_pair(user.id, user.email, user.username)

    async def sign_in(self, email: str, password: str) -> TokenPair:
        user = await self._db.run(self._users.get_by_email, email)
        if user is None or not await asyncio.to_thread(verify_password, password, user.password_hash):
            logger.warning("sign_in_failed", **sanitize_log_data({"email": email, "password": password}))
            raise InvalidCredentialsError()
        logger.info("user_signed_in", user_id=user.id)
        return self._tokens.issue_token_pair(user.id, user.email, user.username)

    async def refresh(self, refresh_token: str) -> TokenPair:
        return self._tokens.refresh_access_token(refresh_token)

    async def get_by_id(self, user_id: str):
        return await self._db.run(self._users.get_by_id, user_id)
