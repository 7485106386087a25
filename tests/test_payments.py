"""
VNPay URL building and return verification.
"""

import hashlib
import hmac
from datetime import datetime
from urllib.parse import parse_qsl, urlsplit

import pytest

from conftest import order_body
from errors import InvalidInput
from payments import build_payment_params, build_payment_url, hash_data, query_string, sign, verify_return

CREATED = datetime(2024, 5, 17, 9, 30, 15)


def url_params(url: str) -> dict:
    return dict(parse_qsl(urlsplit(url).query, keep_blank_values=True))


class TestParams:

    def test_fixed_fields(self, settings):
        params = build_payment_params(50000, "ORDER-1", settings, create_date=CREATED)
        assert params["vnp_Amount"] == "5000000"
        assert params["vnp_TxnRef"] == "ORDER-1"
        assert params["vnp_TmnCode"] == "TESTTMN1"
        assert params["vnp_CreateDate"] == "20240517093015"
        assert params["vnp_Version"] == "2.1.0"
        assert params["vnp_Command"] == "pay"
        assert params["vnp_CurrCode"] == "VND"

    @pytest.mark.parametrize("amount", [0, -100])
    def test_non_positive_amount(self, settings, amount):
        with pytest.raises(InvalidInput):
            build_payment_params(amount, "ORDER-1", settings)


class TestSignature:

    def test_hash_data_is_sorted_and_unencoded(self):
        assert hash_data({"b": "x y", "a": "1", "c": ""}) == "a=1&b=x y"

    def test_query_string_is_encoded(self):
        assert query_string({"b": "x y", "a": "1/2"}) == "a=1%2F2&b=x+y"

    def test_signature_is_hmac_sha512_of_hash_data(self, settings):
        params = build_payment_params(50000, "ORDER-1", settings, create_date=CREATED)
        data = "&".join(f"{k}={params[k]}" for k in sorted(params))
        expected = hmac.new(b"TESTSECRETKEY", data.encode("utf-8"), hashlib.sha512).hexdigest()
        assert sign(params, "TESTSECRETKEY") == expected
        assert len(expected) == 128

    def test_url_is_deterministic(self, settings):
        first = build_payment_url(50000, "ORDER-1", settings, create_date=CREATED)
        second = build_payment_url(50000, "ORDER-1", settings, create_date=CREATED)
        assert first == second
        assert first.startswith(settings.vnpay_url + "?")
        assert "vnp_OrderInfo=Thanh+toan+don+hang+ORDER-1" in first

    def test_round_trip_verifies(self, settings):
        url = build_payment_url(50000, "ORDER-1", settings, create_date=CREATED)
        assert verify_return(url_params(url), settings)

    def test_tampered_amount_fails(self, settings):
        params = url_params(build_payment_url(50000, "ORDER-1", settings, create_date=CREATED))
        params["vnp_Amount"] = "100"
        assert not verify_return(params, settings)

    def test_missing_hash_fails(self, settings):
        params = url_params(build_payment_url(50000, "ORDER-1", settings, create_date=CREATED))
        del params["vnp_SecureHash"]
        assert not verify_return(params, settings)


class TestPaymentRoutes:

    def test_create_url(self, client, settings):
        resp = client.post("/api/payment/vnpay/create", json={"amount": 50000, "orderId": "ORDER-1"})
        assert resp.status_code == 200
        params = url_params(resp.json()["url"])
        assert params["vnp_Amount"] == "5000000"
        assert verify_return(params, settings)

    def test_create_url_bad_amount(self, client):
        resp = client.post("/api/payment/vnpay/create", json={"amount": 0, "orderId": "ORDER-1"})
        assert resp.status_code == 400

    def test_create_payment_generates_order_id(self, client):
        resp = client.post("/api/vnpay/create-payment", json={"amount": 120000})
        body = resp.json()
        assert body["orderId"].startswith("ORDER-")
        assert body["amount"] == 120000
        assert url_params(body["paymentUrl"])["vnp_TxnRef"] == body["orderId"]

    def test_return_marks_order_paid(self, client, settings):
        order = client.post("/api/orders", json=order_body()).json()
        params = {
            "vnp_Amount": str(order["total"] * 100),
            "vnp_ResponseCode": "00",
            "vnp_TxnRef": order["id"],
            "vnp_TransactionNo": "14012345",
            "vnp_TmnCode": settings.vnpay_tmn_code,
        }
        params["vnp_SecureHash"] = sign(params, settings.vnpay_hash_secret)

        body = client.get("/api/vnpay/return", params=params).json()
        assert body["valid"] is True
        assert body["paid"] is True

        saved = client.get(f"/api/orders/{order['id']}").json()
        assert saved["paymentStatus"] == "paid"
        assert saved["vnpayTransactionId"] == "14012345"

    def test_return_with_bad_signature(self, client):
        params = {"vnp_ResponseCode": "00", "vnp_TxnRef": "ORDER-1", "vnp_SecureHash": "deadbeef"}
        body = client.get("/api/vnpay/return", params=params).json()
        assert body == {"valid": False, "paid": False, "orderId": "ORDER-1", "responseCode": "00"}
