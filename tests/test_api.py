"""HTTP API tests: merchant cache, QR generation, verification, reconciliation."""

from __future__ import annotations

import base64
import uuid

import pytest
from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from dynqris.crc import verify_crc


def _merchant_id() -> str:
    return f"M-{uuid.uuid4().hex[:12]}"


class TestSystem:
    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_metrics(self, client: TestClient, static_payload: str) -> None:
        client.post("/v1/qr", json={"static_payload": static_payload, "amount": 1000})
        response = client.get("/metrics")
        assert response.status_code == 200
        assert "dynqris_payloads_generated_total" in response.text
        assert "dynqris_http_requests_total" in response.text

    def test_initiation_passthrough_counted(self, client: TestClient, payload_builder, default_fields) -> None:
        counter = "dynqris_initiation_passthrough_total"
        before = REGISTRY.get_sample_value(counter) or 0.0
        dynamic = payload_builder([("01", "12") if tag == "01" else (tag, value) for tag, value in default_fields])
        assert client.post("/v1/qr", json={"static_payload": dynamic, "amount": 1000}).status_code == 200
        assert REGISTRY.get_sample_value(counter) == before + 1

        static = payload_builder(default_fields)
        assert client.post("/v1/qr", json={"static_payload": static, "amount": 1000}).status_code == 200
        assert REGISTRY.get_sample_value(counter) == before + 1

    def test_timing_header(self, client: TestClient) -> None:
        response = client.get("/health")
        assert "x-process-time-ms" in response.headers


class TestApiKey:
    def test_wrong_key_rejected(self, client: TestClient) -> None:
        response = client.post("/v1/verify", json={"payload": "x"}, headers={"X-API-Key": "wrong"})
        assert response.status_code == 401


class TestMerchants:
    def test_register_and_fetch(self, client: TestClient, static_payload: str) -> None:
        merchant_id = _merchant_id()
        response = client.put(f"/v1/merchants/{merchant_id}", json={"static_payload": static_payload})
        assert response.status_code == 200
        body = response.json()
        assert body["merchant_id"] == merchant_id
        assert body["crc_valid"] is True

        fetched = client.get(f"/v1/merchants/{merchant_id}")
        assert fetched.status_code == 200
        assert fetched.json()["static_payload"] == static_payload

    def test_replace_payload(self, client: TestClient, static_payload: str, payload_builder, default_fields) -> None:
        merchant_id = _merchant_id()
        client.put(f"/v1/merchants/{merchant_id}", json={"static_payload": static_payload})
        replacement = payload_builder([(tag, "TOKO BARU" if tag == "59" else value) for tag, value in default_fields])
        client.put(f"/v1/merchants/{merchant_id}", json={"static_payload": replacement})
        assert client.get(f"/v1/merchants/{merchant_id}").json()["static_payload"] == replacement

    def test_stale_crc_accepted_but_reported(self, client: TestClient, static_payload: str) -> None:
        response = client.put(f"/v1/merchants/{_merchant_id()}", json={"static_payload": static_payload[:-4] + "0000"})
        assert response.status_code == 200
        assert response.json()["crc_valid"] is False

    def test_missing_anchor_rejected(self, client: TestClient, payload_builder, default_fields) -> None:
        payload = payload_builder([(tag, value) for tag, value in default_fields if tag != "58"])
        response = client.put(f"/v1/merchants/{_merchant_id()}", json={"static_payload": payload})
        assert response.status_code == 422
        assert response.json()["code"] == "ERR_BAD_PAYLOAD"

    def test_unknown_merchant(self, client: TestClient) -> None:
        response = client.get(f"/v1/merchants/{_merchant_id()}")
        assert response.status_code == 404
        assert response.json()["code"] == "ERR_MERCHANT_NOT_FOUND"


class TestGenerateQR:
    def test_from_merchant_cache(self, client: TestClient, static_payload: str) -> None:
        merchant_id = _merchant_id()
        client.put(f"/v1/merchants/{merchant_id}", json={"static_payload": static_payload})

        response = client.post("/v1/qr", json={"merchant_id": merchant_id, "amount": 15000})
        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "PENDING"
        assert body["transaction_id"].startswith("TXN-")
        assert 15000 <= body["final_amount"] <= 15999
        assert body["final_amount"] == 15000 + int(body["unique_code"])
        assert verify_crc(body["payload"])
        assert body["payload"].endswith(body["crc"])
        assert base64.b64decode(body["qr_png_base64"]).startswith(b"\x89PNG")

    def test_inline_payload(self, client: TestClient, static_payload: str) -> None:
        response = client.post("/v1/qr", json={"static_payload": static_payload, "amount": 25000})
        assert response.status_code == 200
        assert "010212" in response.json()["payload"]

    def test_forced_unique_code(self, client: TestClient, static_payload: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dynqris.services.generator.generate_unique_code", lambda: "005")
        response = client.post("/v1/qr", json={"static_payload": static_payload, "amount": 10000})
        body = response.json()
        assert body["unique_code"] == "005"
        assert body["final_amount"] == 10005
        assert "5405100055802ID" in body["payload"]

    def test_unknown_merchant(self, client: TestClient) -> None:
        response = client.post("/v1/qr", json={"merchant_id": _merchant_id(), "amount": 1000})
        assert response.status_code == 404
        assert response.json()["code"] == "ERR_MERCHANT_NOT_FOUND"

    def test_bad_inline_payload(self, client: TestClient) -> None:
        response = client.post("/v1/qr", json={"static_payload": "000201", "amount": 1000})
        assert response.status_code == 422
        assert response.json()["code"] == "ERR_BAD_PAYLOAD"

    @pytest.mark.parametrize("payload", ["00\u00b21x5802ID6304ABCD", "00\u0660\u0662015802ID6304ABCD"])
    def test_non_ascii_length_rejected(self, client: TestClient, payload: str) -> None:
        response = client.post("/v1/qr", json={"static_payload": payload, "amount": 1000})
        assert response.status_code == 422
        assert response.json()["code"] == "ERR_BAD_PAYLOAD"

    def test_repeated_transaction_id_allowed(self, client: TestClient, static_payload: str, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("dynqris.services.generator.generate_transaction_id", lambda: "TXN-1-repeated")
        first = client.post("/v1/qr", json={"static_payload": static_payload, "amount": 3000})
        second = client.post("/v1/qr", json={"static_payload": static_payload, "amount": 3000})
        assert first.status_code == second.status_code == 200
        assert first.json()["transaction_id"] == second.json()["transaction_id"] == "TXN-1-repeated"
        assert first.json()["payment_id"] != second.json()["payment_id"]

        fetched = client.get(f"/v1/payments/{second.json()['payment_id']}").json()
        assert fetched["payment_id"] == second.json()["payment_id"]

    @pytest.mark.parametrize(
        "body",
        [
            {"amount": 1000},
            {"merchant_id": "M-1", "static_payload": "000201", "amount": 1000},
            {"merchant_id": "M-1", "amount": 0},
        ],
    )
    def test_invalid_request(self, client: TestClient, body: dict) -> None:
        assert client.post("/v1/qr", json=body).status_code == 422


class TestVerify:
    def test_valid(self, client: TestClient, static_payload: str) -> None:
        response = client.post("/v1/verify", json={"payload": static_payload})
        body = response.json()
        assert body["valid"] is True
        assert body["provided_crc"] == body["calculated_crc"] == static_payload[-4:]

    def test_invalid(self, client: TestClient, static_payload: str) -> None:
        response = client.post("/v1/verify", json={"payload": static_payload[:-4] + "0000"})
        body = response.json()
        assert body["valid"] is False
        assert body["provided_crc"] == "0000"

    def test_short(self, client: TestClient) -> None:
        body = client.post("/v1/verify", json={"payload": "63"}).json()
        assert body == {"valid": False, "provided_crc": None, "calculated_crc": None}


class TestReconcile:
    def _create(self, client: TestClient, static_payload: str, amount: int) -> dict:
        response = client.post("/v1/qr", json={"static_payload": static_payload, "amount": amount})
        assert response.status_code == 200
        return response.json()

    def test_lookup_by_final_amount(self, client: TestClient, static_payload: str) -> None:
        created = self._create(client, static_payload, 4_321_000)
        response = client.get("/v1/payments", params={"final_amount": created["final_amount"]})
        assert response.status_code == 200
        ids = [item["payment_id"] for item in response.json()["items"]]
        assert created["payment_id"] in ids

    def test_get_payment(self, client: TestClient, static_payload: str) -> None:
        created = self._create(client, static_payload, 5_432_000)
        response = client.get(f"/v1/payments/{created['payment_id']}")
        assert response.status_code == 200
        body = response.json()
        assert body["payload"] == created["payload"]
        assert body["bill_amount"] == 5_432_000

    def test_confirm_paid(self, client: TestClient, static_payload: str) -> None:
        created = self._create(client, static_payload, 6_543_000)
        payment_id = created["payment_id"]

        response = client.post(f"/v1/payments/{payment_id}/confirm", json={"action": "PAID"})
        assert response.status_code == 200
        assert response.json() == {"payment_id": payment_id, "transaction_id": created["transaction_id"], "status": "PAID"}

        pending = client.get("/v1/payments", params={"final_amount": created["final_amount"]}).json()["items"]
        assert payment_id not in [item["payment_id"] for item in pending]

        again = client.post(f"/v1/payments/{payment_id}/confirm", json={"action": "CANCELLED"})
        assert again.status_code == 409
        assert again.json()["code"] == "ERR_PAYMENT_CLOSED"

    def test_unknown_payment(self, client: TestClient) -> None:
        response = client.get(f"/v1/payments/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["code"] == "ERR_PAYMENT_NOT_FOUND"
