import pytest
from httpx import AsyncClient

from clinic_admin.core.security import verify_token


@pytest.mark.auth
@pytest.mark.integration
class TestAuthentication:
    """Test authentication endpoints"""

    @pytest.mark.asyncio
    async def test_login_success(self, client: AsyncClient, manager_user) -> None:
        """Test successful login"""
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "marta@clinic.org", "password": "secret123"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["expires_in"] > 0

        payload = verify_token(data["access_token"])
        assert payload["sub"] == str(manager_user.id)
        assert payload["role"] == "manager"

    @pytest.mark.asyncio
    async def test_login_then_me(self, client: AsyncClient, client_user) -> None:
        """Test the issued token identifies the user"""
        login = await client.post(
            "/api/v1/auth/login",
            json={"email": "carlos@clinic.org", "password": "secret123"}
        )
        token = login.json()["access_token"]

        response = await client.get(
            "/api/v1/auth/me",
            headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["email"] == "carlos@clinic.org"
        assert data["role"]["name"] == "client"

    @pytest.mark.asyncio
    async def test_login_wrong_password(self, client: AsyncClient, client_user) -> None:
        """Test login with a wrong password"""
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "carlos@clinic.org", "password": "wrongpassword"}
        )

        assert response.status_code == 401
        data = response.json()
        assert data["error_code"] == "INVALID_CREDENTIALS"
        assert data["redirect_to"] == "/login"

    @pytest.mark.asyncio
    async def test_login_unknown_email(self, client: AsyncClient) -> None:
        """Test login with an email nobody has"""
        response = await client.post(
            "/api/v1/auth/login",
            json={"email": "nobody@clinic.org", "password": "secret123"}
        )

        assert response.status_code == 401
        assert response.json()["message"] == "Invalid email or password"

    @pytest.mark.asyncio
    async def test_me_requires_token(self, client: AsyncClient) -> None:
        """Test the profile endpoint without a token"""
        response = await client.get("/api/v1/auth/me")

        assert response.status_code == 401
        assert response.json()["message"] == "You must sign in."
