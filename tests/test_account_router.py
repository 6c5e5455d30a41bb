from decimal import Decimal

from tokenhub.core.security import create_access_token
from tokenhub.models import User

from conftest import auth_header


class TestAccountRoutes:
    """계정 라우터 테스트"""

    def test_balance_without_payments(self, client, user):
        response = client.get("/api/v1/account/balance", headers=auth_header(user))

        assert response.status_code == 200
        assert Decimal(response.json()["balance"]) == Decimal("0")

    def test_balance_counts_only_confirmed(self, client, user, fund):
        fund(user.id, 30)
        fund(user.id, 12.5, status="Paid")
        fund(user.id, 100, status="waiting")

        data = client.get("/api/v1/account/balance", headers=auth_header(user)).json()

        assert Decimal(data["balance"]) == Decimal("42.5")
        assert Decimal(data["confirmed_usd"]) == Decimal("42.5")
        assert Decimal(data["spent_usd"]) == Decimal("0")

    def test_ledger(self, client, user, fund):
        fund(user.id, 30)

        data = client.get("/api/v1/account/ledger", headers=auth_header(user)).json()

        assert len(data["payments"]) == 1
        assert data["transactions"] == []
        assert data["refills"] == []

    def test_invalid_token(self, client):
        response = client.get(
            "/api/v1/account/balance", headers={"Authorization": "Bearer not-a-jwt"}
        )

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "AUTH_001"

    def test_unknown_user(self, client):
        token = create_access_token({"user_id": 4242, "sub": "ghost@tokenhub.io"})

        response = client.get(
            "/api/v1/account/balance", headers={"Authorization": f"Bearer {token}"}
        )

        assert response.status_code == 401

    def test_inactive_user(self, client, db):
        user = User(email="inactive@tokenhub.io", is_active=False)
        db.add(user)
        db.commit()

        response = client.get("/api/v1/account/balance", headers=auth_header(user))

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "AUTH_002"


class TestHealthRoute:
    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "database": True}
