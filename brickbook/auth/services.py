"""Authentication service layer.

This module implements the business logic for dealer accounts: registration,
login, access-token renewal with refresh-token rotation and logout. Tokens are
revoked by adding their ``jti`` to the Redis blocklist.
"""

import logging
from sqlmodel import select
from brickbook.auth.models import User
from brickbook.auth.schemas import LoginInput, LogoutInput, RegisterInput

from sqlmodel.ext.asyncio.session import AsyncSession
from fastapi import HTTPException, status, Request, Response
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.exc import DatabaseError
from brickbook.utils.auth import (
    verify_password_hash, generate_password_hash, create_token, decode_token,
    access_token_expiry, refresh_token_expiry,
)
from datetime import datetime, timezone
import uuid
from brickbook.db.redis import redis_client


logger = logging.getLogger(__name__)


class AuthServices:
    """Service class for authentication operations."""

    async def get_user_by_email(self, email: str, session: AsyncSession):
        """Retrieves User by email.

        Args:
            email: User email address (already lower-cased).
            session: Database session.

        Returns:
            User instance if found, None otherwise.
        """
        try:
            statement = select(User).where(User.email == email)
            result = await session.exec(statement)
            return result.first()
        except DatabaseError:
            logger.exception("Database error during user lookup")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Database error during user lookup"
            )

    async def check_user_exists(self, user_id: str, session: AsyncSession):
        """Makes sure the token subject still maps to an account.

        Raises:
            HTTPException: 401 if the user is unknown.
        """
        try:
            user_uuid = uuid.UUID(str(user_id))
        except ValueError:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="You are not authorized to proceed"
            )

        statement = select(User).where(User.user_id == user_uuid)
        result = await session.exec(statement)
        user = result.first()

        if not user:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="You are not authorized to proceed"
            )
        return user

    def _issue_tokens(self, user: User) -> dict:
        user_dict = user.model_dump()
        return {
            **user_dict,
            'access_token': create_token(user_dict, access_token_expiry, type="access"),
            'refresh_token': create_token(user_dict, refresh_token_expiry, type="refresh"),
        }

    async def register(self, register_input: RegisterInput, session: AsyncSession):
        """Create a dealer account and log it straight in.

        Raises:
            HTTPException: 409 if the email is already registered.
        """
        email = register_input.email.lower()

        if await self.get_user_by_email(email, session):
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="User with this email already exists"
            )

        new_user = User(
            email=email,
            name=register_input.name,
            phone=register_input.phone,
            company=register_input.company,
            password_hash=generate_password_hash(register_input.password),
        )
        session.add(new_user)

        try:
            await session.commit()
            await session.refresh(new_user)
        except Exception:
            await session.rollback()
            logger.exception("Failed to register %s", email)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to create user"
            )

        logger.info("Registered user %s", new_user.user_id)
        return self._issue_tokens(new_user)

    async def login(self, loginInput: LoginInput, session: AsyncSession):
        """Authenticate user and generate tokens for dual-auth delivery.

        Returns both access and refresh tokens in response dict:
        - Route layer sets tokens as httponly cookies (web clients)
        - Response body contains tokens (API clients extract and store)

        Raises:
            HTTPException: If credentials are invalid.
        """
        user = await self.get_user_by_email(loginInput.email.lower(), session)

        INVALID_CREDENTIALS = HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid Credentials"
        )

        if not user:
            raise INVALID_CREDENTIALS

        if not verify_password_hash(loginInput.password, user.password_hash):
            raise INVALID_CREDENTIALS

        return self._issue_tokens(user)

    async def renewAccessToken(self, old_refresh_token_str: str, session: AsyncSession):
        """Renew access token using refresh token with rotation.

        The old refresh token is blocklisted and a new refresh token is
        issued, so a stolen refresh token can only be used once.

        Returns:
            dict: New access_token and refresh_token.

        Raises:
            HTTPException: If token invalid, expired, or already used (rotation detection).
        """
        old_refresh_token_decode = decode_token(old_refresh_token_str)

        if old_refresh_token_decode.get('type') != "refresh":
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid token type"
            )

        jti = old_refresh_token_decode.get('jti')
        if await self.is_token_blacklisted(jti):
            logger.warning("Refresh token reuse detected for jti %s", jti)
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Refresh token reused. Login required."
            )

        user_id = old_refresh_token_decode.get("sub")
        statement = select(User).where(User.user_id == uuid.UUID(user_id))
        result = await session.exec(statement)
        user = result.first()

        if not user:
            raise HTTPException(status_code=404, detail="User not found")

        user_data = {
            "user_id": user.user_id,
            "email": user.email
        }

        new_token = create_token(user_data, expiry_delta=access_token_expiry, type="access")

        await self.add_token_to_blocklist(old_refresh_token_str)

        new_refresh_token = create_token(user_data, expiry_delta=refresh_token_expiry, type="refresh")

        return {
            "access_token": new_token,
            "refresh_token": new_refresh_token
        }

    async def add_token_to_blocklist(self, token):
        """Revokes token by adding to Redis blocklist.

        Args:
            token: JWT token string to revoke.
        """
        token_decoded = decode_token(token)
        token_id = token_decoded.get('jti')
        exp_timestamp = token_decoded.get('exp')

        # Only blocklist until natural expiry
        current_time = datetime.now(timezone.utc).timestamp()
        time_to_live = int(exp_timestamp - current_time)

        if time_to_live > 0:
            await redis_client.setex(name=token_id, time=time_to_live, value="true")

    async def is_token_blacklisted(self, jti: str) -> bool:
        result = await redis_client.get(jti)
        return result is not None


    async def logout(
            self,
            request: Request,
            response: Response,
            logout_input: LogoutInput,
            bearer_token: HTTPAuthorizationCredentials,
    ):
        """Logout user by revoking tokens.

        API clients send the access token as a bearer header and the refresh
        token in the body; browser clients have both in cookies.

        Raises:
            HTTPException: If no tokens found in either source.
        """

        if bearer_token:
            access_token = bearer_token.credentials
            refresh_token = logout_input.refresh_token
        else:
            access_token = request.cookies.get("access_token")
            refresh_token = request.cookies.get("refresh_token")

        if access_token is None and refresh_token is None:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Refresh token missing"
            )

        if access_token:
            await self.add_token_to_blocklist(access_token)
        if refresh_token:
            await self.add_token_to_blocklist(refresh_token)

        response.delete_cookie(key="access_token")
        response.delete_cookie(key="refresh_token")

        return {
            "success": True,
            "message": "Logged out successfully",
            "data": {}
        }
