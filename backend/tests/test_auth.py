"""
Authentication endpoint tests.

Tests for:
- Login endpoint
- Registration endpoint
- Get current user endpoint
- Google sign-in
- Token validation and password hashing
- Authentication dependencies

References:
-----------
- FastAPI Testing: https://fastapi.tiangolo.com/tutorial/testing/
- Pytest Async: https://pytest-asyncio.readthedocs.io/
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.security import (
    create_access_token,
    create_oauth_state,
    decode_access_token,
    decode_oauth_state,
    get_password_hash,
    verify_password,
)
from app.models.user import User


@pytest.fixture
def sample_user_data() -> dict:
    return {
        "email": "newuser@example.com",
        "username": "newuser",
        "name": "New User",
        "password": "testpass123",
    }


@pytest.fixture
def sample_login_data() -> dict:
    return {
        "username": "test@example.com",  # OAuth2 uses 'username' field
        "password": "testpass123",
    }


# ================================
# Login Endpoint Tests
# ================================

class TestLogin:

    async def test_login_success(self, client: AsyncClient, test_user: User, sample_login_data: dict):
        response = await client.post("/api/v1/auth/login", data=sample_login_data)

        assert response.status_code == 200
        data = response.json()
        assert "access_token" in data
        assert data["token_type"] == "bearer"
        assert decode_access_token(data["access_token"])["sub"] == test_user.email

    async def test_login_sets_last_login(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        test_user: User,
        sample_login_data: dict,
    ):
        assert test_user.last_login is None

        await client.post("/api/v1/auth/login", data=sample_login_data)

        await db_session.refresh(test_user)
        assert test_user.last_login is not None

    async def test_login_wrong_password(self, client: AsyncClient, test_user: User):
        response = await client.post(
            "/api/v1/auth/login",
            data={"username": "test@example.com", "password": "wrongpassword"},
        )

        assert response.status_code == 401
        assert "incorrect" in response.json()["detail"].lower()

    async def test_login_user_not_found(self, client: AsyncClient):
        response = await client.post(
            "/api/v1/auth/login",
            data={"username": "nonexistent@example.com", "password": "password123"},
        )

        assert response.status_code == 401

    async def test_login_google_only_account(self, client: AsyncClient, db_session: AsyncSession):
        """Accounts without a password hash cannot use the password flow."""
        db_session.add(User(email="google@example.com", username="googler", hashed_password=None))
        await db_session.commit()

        response = await client.post(
            "/api/v1/auth/login",
            data={"username": "google@example.com", "password": "anything123"},
        )

        assert response.status_code == 401

    async def test_login_inactive_user(self, client: AsyncClient, inactive_user: User):
        response = await client.post(
            "/api/v1/auth/login",
            data={"username": inactive_user.email, "password": "testpass123"},
        )

        assert response.status_code == 400
        assert "inactive" in response.json()["detail"].lower()


# ================================
# Registration Endpoint Tests
# ================================

class TestRegistration:

    async def test_register_success(self, client: AsyncClient, sample_user_data: dict):
        response = await client.post("/api/v1/auth/register", json=sample_user_data)

        assert response.status_code == 201
        data = response.json()
        assert data["user"]["email"] == sample_user_data["email"]
        assert data["user"]["username"] == "newuser"
        assert data["user"]["name"] == "New User"
        assert data["token_type"] == "bearer"
        assert "hashed_password" not in data["user"]

    async def test_register_hashes_password(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
        sample_user_data: dict,
    ):
        await client.post("/api/v1/auth/register", json=sample_user_data)

        result = await db_session.execute(select(User).where(User.username == "newuser"))
        user = result.scalar_one()
        assert user.hashed_password != "testpass123"
        assert verify_password("testpass123", user.hashed_password)

    async def test_register_duplicate_email(
        self,
        client: AsyncClient,
        test_user: User,
        sample_user_data: dict,
    ):
        sample_user_data["email"] = test_user.email

        response = await client.post("/api/v1/auth/register", json=sample_user_data)

        assert response.status_code == 409
        assert "already registered" in response.json()["detail"].lower()

    async def test_register_duplicate_username(
        self,
        client: AsyncClient,
        test_user: User,
        sample_user_data: dict,
    ):
        sample_user_data["username"] = test_user.username

        response = await client.post("/api/v1/auth/register", json=sample_user_data)

        assert response.status_code == 409
        assert "username" in response.json()["detail"].lower()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("email", "invalid-email"),
            ("password", "short"),
            ("username", "a b"),
            ("username", "ab"),
        ],
    )
    async def test_register_invalid_data(
        self,
        client: AsyncClient,
        sample_user_data: dict,
        field: str,
        value: str,
    ):
        sample_user_data[field] = value

        response = await client.post("/api/v1/auth/register", json=sample_user_data)

        assert response.status_code == 422


# ================================
# Current User Endpoint Tests
# ================================

class TestGetCurrentUser:

    async def test_get_current_user_success(
        self,
        client: AsyncClient,
        test_user: User,
        auth_headers: dict,
    ):
        response = await client.get("/api/v1/auth/me", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["id"] == test_user.id
        assert data["email"] == test_user.email
        assert data["username"] == "alice"
        assert data["is_active"] is True

    async def test_get_current_user_no_token(self, client: AsyncClient):
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert "not authenticated" in response.json()["detail"].lower()

    async def test_get_current_user_invalid_token(self, client: AsyncClient):
        response = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": "Bearer invalid_token_here"},
        )

        assert response.status_code == 401

    async def test_get_current_user_expired_token(
        self,
        client: AsyncClient,
        test_user: User,
        expired_token: str,
    ):
        response = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {expired_token}"},
        )

        assert response.status_code == 401

    async def test_get_current_user_inactive(self, client: AsyncClient, inactive_user: User):
        token = create_access_token(data={"sub": inactive_user.email})

        response = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 400
        assert "inactive" in response.json()["detail"].lower()


# ================================
# Google Sign-In Tests
# ================================

class TestGoogleSignIn:

    GOOGLE_USER = {
        "email": "grace@example.com",
        "name": "Grace Hopper",
        "picture": "https://example.com/grace.png",
        "email_verified": True,
        "sub": "google-123",
    }

    async def test_google_not_configured(self, client: AsyncClient):
        with patch("app.api.routes.auth.check_google_oauth_configured", return_value=False):
            response = await client.post("/api/v1/auth/google", json={"id_token": "token"})

        assert response.status_code == 501

    async def test_google_creates_account(self, client: AsyncClient, db_session: AsyncSession):
        with patch("app.api.routes.auth.check_google_oauth_configured", return_value=True), \
             patch("app.api.routes.auth.verify_google_token", AsyncMock(return_value=self.GOOGLE_USER)):
            response = await client.post("/api/v1/auth/google", json={"id_token": "token"})

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["email"] == "grace@example.com"
        assert data["user"]["username"] == "grace"
        assert data["user"]["avatar"] == "https://example.com/grace.png"

        user = (await db_session.execute(select(User).where(User.email == "grace@example.com"))).scalar_one()
        assert user.hashed_password is None

    async def test_google_username_collision_gets_suffix(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
    ):
        db_session.add(User(email="other@example.com", username="grace", hashed_password=None))
        await db_session.commit()

        with patch("app.api.routes.auth.check_google_oauth_configured", return_value=True), \
             patch("app.api.routes.auth.verify_google_token", AsyncMock(return_value=self.GOOGLE_USER)):
            response = await client.post("/api/v1/auth/google", json={"id_token": "token"})

        assert response.status_code == 200
        assert response.json()["user"]["username"] == "grace2"

    async def test_google_existing_account_fills_empty_profile(
        self,
        client: AsyncClient,
        db_session: AsyncSession,
    ):
        user = User(email="grace@example.com", username="gh", hashed_password=get_password_hash("x" * 10))
        db_session.add(user)
        await db_session.commit()

        with patch("app.api.routes.auth.check_google_oauth_configured", return_value=True), \
             patch("app.api.routes.auth.verify_google_token", AsyncMock(return_value=self.GOOGLE_USER)):
            response = await client.post("/api/v1/auth/google", json={"id_token": "token"})

        assert response.status_code == 200
        data = response.json()
        assert data["user"]["id"] == user.id
        assert data["user"]["username"] == "gh"
        assert data["user"]["name"] == "Grace Hopper"

    async def test_google_invalid_token(self, client: AsyncClient):
        rejected = AsyncMock(side_effect=HTTPException(status_code=401, detail="Invalid Google token"))
        with patch("app.api.routes.auth.check_google_oauth_configured", return_value=True), \
             patch("app.api.routes.auth.verify_google_token", rejected):
            response = await client.post("/api/v1/auth/google", json={"id_token": "bad"})

        assert response.status_code == 401


# ================================
# JWT Token Tests
# ================================

class TestJWTTokens:

    def test_create_access_token(self):
        token = create_access_token(data={"sub": "test@example.com"})

        assert isinstance(token, str)
        assert len(token.split(".")) == 3

    def test_decode_access_token(self):
        token = create_access_token(data={"sub": "test@example.com"})

        payload = decode_access_token(token)

        assert payload["sub"] == "test@example.com"
        assert "exp" in payload

    def test_decode_invalid_token(self):
        assert decode_access_token("invalid.token.here") is None

    def test_decode_expired_token(self, expired_token: str):
        assert decode_access_token(expired_token) is None

    def test_oauth_state_round_trip(self):
        state = create_oauth_state(42, "spotify")

        claims = decode_oauth_state(state, "spotify")

        assert claims["uid"] == 42

    def test_oauth_state_wrong_provider(self):
        state = create_oauth_state(42, "spotify")

        assert decode_oauth_state(state, "myanimelist") is None


# ================================
# Password Hashing Tests
# ================================

class TestPasswordHashing:

    def test_password_hash_is_salted(self):
        password = "testpass123"

        hashed = get_password_hash(password)

        assert hashed != password
        assert get_password_hash(password) != hashed

    def test_verify_password(self):
        hashed = get_password_hash("testpass123")

        assert verify_password("testpass123", hashed) is True
        assert verify_password("wrongpass", hashed) is False


# ================================
# Authentication Dependencies Tests
# ================================

class TestAuthDependencies:

    async def test_get_current_user_dependency(self, db_session: AsyncSession, test_user: User):
        from app.core.auth import get_current_user

        token = create_access_token(data={"sub": test_user.email})

        user = await get_current_user(token=token, db=db_session)

        assert user.id == test_user.id

    async def test_get_current_user_invalid_token(self, db_session: AsyncSession):
        from app.core.auth import get_current_user

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(token="invalid_token", db=db_session)

        assert exc_info.value.status_code == 401

    async def test_get_current_active_user_inactive(self, inactive_user: User):
        from app.core.auth import get_current_active_user

        with pytest.raises(HTTPException) as exc_info:
            await get_current_active_user(current_user=inactive_user)

        assert exc_info.value.status_code == 400

    async def test_get_optional_user(self, db_session: AsyncSession, test_user: User, inactive_user: User):
        from app.core.auth import get_optional_user

        assert await get_optional_user(token=None, db=db_session) is None
        assert await get_optional_user(token="garbage", db=db_session) is None

        inactive_token = create_access_token(data={"sub": inactive_user.email})
        assert await get_optional_user(token=inactive_token, db=db_session) is None

        token = create_access_token(data={"sub": test_user.email})
        viewer = await get_optional_user(token=token, db=db_session)
        assert viewer.id == test_user.id
