"""
Authentication endpoint consumer.

Handles sign-in, sign-up and sign-out, and answers session questions from the
tokens held in the TokenStore.
"""

import time

import jwt
from loguru import logger
from pydantic import BaseModel, ConfigDict, ValidationError

from apiservice.datasource.base import BaseDataSource
from apiservice.services.errors import MalformedResponseError, UnauthorizedError


class TokenPair(BaseModel):
    """Sign-in response. Both tokens must be strings."""

    model_config = ConfigDict(strict=True)

    access: str
    refresh: str


class User(BaseModel):
    """Sign-up payload."""

    email: str
    password: str
    first_name: str | None = None
    last_name: str | None = None


class AuthService(BaseDataSource):
    """Authentication operations against the API."""

    SERVICE_ID = "auth"

    @property
    def service_id(self) -> str:
        return self.SERVICE_ID

    async def sign_in(self, email: str, password: str) -> bool:
        """
        Sign in and store the returned access and refresh tokens.

        Raises:
            MalformedResponseError: If the reply lacks string access/refresh
            ApiError: Any other typed API failure
        """
        response = await self.api.post(
            self.settings.sign_in_url,
            {"email": email, "password": password},
            headers=self.api.build_unauthorized_headers(),
        )

        try:
            tokens = TokenPair.model_validate(response.body)
        except ValidationError as e:
            raise MalformedResponseError(
                "Sign-in response must contain string 'access' and 'refresh' fields",
                status_code=response.status_code,
                url=self.settings.sign_in_url,
            ) from e

        await self.api.token_store.write_access_token(tokens.access)
        await self.api.token_store.write_refresh_token(tokens.refresh)
        logger.info(f"Signed in as {email}")
        return True

    async def sign_up(self, user: User) -> bool:
        """Register a new user."""
        await self.api.post(
            self.settings.sign_up_url,
            user.model_dump(exclude_none=True),
            headers=self.api.build_unauthorized_headers(),
        )
        logger.info(f"Signed up {user.email}")
        return True

    async def sign_out(self) -> bool:
        """Forget the stored tokens."""
        await self.api.token_store.clear_tokens()
        logger.info("Signed out")
        return True

    async def is_logged_in(self) -> bool:
        return self.api.token_store.read_access_token() is not None

    async def is_access_token_expired(self) -> bool:
        """
        Raises:
            UnauthorizedError: If no access token is stored
        """
        return self._is_expired(self.api.token_store.read_access_token())

    async def is_refresh_token_expired(self) -> bool:
        """
        Raises:
            UnauthorizedError: If no refresh token is stored
        """
        return self._is_expired(self.api.token_store.read_refresh_token())

    @staticmethod
    def _is_expired(token: str | None) -> bool:
        if token is None:
            raise UnauthorizedError("No session")

        # Signature is the server's concern, only the expiry claim is read here
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError as e:
            logger.warning(f"Stored token could not be decoded, treating as expired: {e}")
            return True

        exp = claims.get("exp")
        if exp is None:
            return False
        return time.time() >= float(exp)
