"""
支付 API 测试
覆盖 /api/miniapp/pay 端点
"""
from fastapi.testclient import TestClient

from fairway.models.ontology import Collection


class TestFolioCheckoutApi:

    def test_checkout_snapshot(self, client: TestClient, store, open_folio, player_headers):
        response = client.post(f"/api/miniapp/pay/folio/{open_folio['_id']}", headers=player_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["amount"] == 19.75
        assert data["amountFen"] == 1975
        assert data["status"] == "pending"
        assert data["orderNo"].startswith("FP")
        assert store.get(Collection.PAY_ORDERS, data["orderId"])["folioId"] == open_folio["_id"]

    def test_other_players_folio(self, client: TestClient, store, open_folio, other_player_headers):
        response = client.post(f"/api/miniapp/pay/folio/{open_folio['_id']}", headers=other_player_headers)
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"
        assert store.count(Collection.PAY_ORDERS) == 0

    def test_settled_folio(self, client: TestClient, store, player_headers):
        folio = store.insert(Collection.FOLIOS, {"playerId": "player1", "clubId": "club1", "status": "settled"})
        response = client.post(f"/api/miniapp/pay/folio/{folio['_id']}", headers=player_headers)
        assert response.status_code == 409
        assert response.json()["error"] == "invalid_state"

    def test_missing_folio(self, client: TestClient, player_headers):
        response = client.post("/api/miniapp/pay/folio/missing", headers=player_headers)
        assert response.status_code == 404


class TestRechargeApi:

    def test_recharge_and_result(self, client: TestClient, player_headers, other_player_headers):
        response = client.post("/api/miniapp/pay/recharge", json={"amount": 200}, headers=player_headers)
        assert response.status_code == 200
        order = response.json()["data"]
        assert order["amountFen"] == 20000
        assert order["orderNo"].startswith("RC")

        response = client.get(f"/api/miniapp/pay/result/{order['orderId']}", headers=player_headers)
        assert response.json()["data"]["status"] == "pending"

        response = client.get(f"/api/miniapp/pay/result/{order['orderId']}", headers=other_player_headers)
        assert response.status_code == 404

    def test_recharge_out_of_range(self, client: TestClient, player_headers):
        response = client.post("/api/miniapp/pay/recharge", json={"amount": 0.5}, headers=player_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "validation"
