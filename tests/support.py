import itertools
import threading
import unittest

from storefront import create_app
from storefront.errors import UpstreamProviderError
from storefront.extensions import db
from storefront.models import User
from storefront.services.otp_provider import MockOtpProvider

TEST_CONFIG = {
    "TESTING": True,
    "SQLALCHEMY_DATABASE_URI": "sqlite://",
    "SECRET_KEY": "test-secret-key",
    "JWT_SECRET_KEY": "test-jwt-secret-key-that-is-long-enough-for-hs256",
    "OTP_PROVIDER": "mock",
    "PAYMENT_CURRENCY": "inr",
    "CATEGORY_ACCOUNTS": {
        "breakfast": "acct_breakfast",
        "beverages": "acct_beverages",
        "default": "acct_default",
    },
    "ENFORCE_STATUS_TRANSITIONS": False,
    "LOG_LEVEL": "WARNING",
}


class FakeGateway:
    """Records every call; charges succeed or fail as the test tells them to."""

    def __init__(self):
        self._ids = itertools.count(1)
        self._lock = threading.Lock()
        self.charges = {}
        self.transfers = []
        self.fail_destinations = set()

    def create_charge(self, amount_minor, currency, transfer_group, metadata):
        charge_id = f"pi_test_{next(self._ids)}"
        self.charges[charge_id] = {
            "amount": amount_minor,
            "currency": currency,
            "transfer_group": transfer_group,
            "metadata": metadata,
            "status": "requires_payment_method",
            "source_reference": None,
        }
        return {"id": charge_id, "client_secret": f"{charge_id}_secret"}

    def mark_succeeded(self, charge_id, source_reference="ch_test_1"):
        self.charges[charge_id]["status"] = "succeeded"
        self.charges[charge_id]["source_reference"] = source_reference

    def retrieve_charge(self, payment_intent_id):
        charge = self.charges[payment_intent_id]
        return {"status": charge["status"], "source_reference": charge["source_reference"]}

    def create_transfer(self, amount_minor, currency, destination, source_reference, transfer_group, metadata):
        if destination in self.fail_destinations:
            raise UpstreamProviderError("Transfer creation failed")
        with self._lock:
            transfer_id = f"tr_test_{next(self._ids)}"
            self.transfers.append({
                "id": transfer_id,
                "amount": amount_minor,
                "currency": currency,
                "destination": destination,
                "source_transaction": source_reference,
                "transfer_group": transfer_group,
                "metadata": metadata,
            })
        return transfer_id


class StorefrontTestCase(unittest.TestCase):
    def setUp(self):
        self.app = create_app(TEST_CONFIG)
        self.gateway = FakeGateway()
        self.otp = MockOtpProvider()
        self.app.extensions["payment_gateway"] = self.gateway
        self.app.extensions["otp_provider"] = self.otp
        self.client = self.app.test_client()
        with self.app.app_context():
            db.create_all()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.engine.dispose()

    def create_user(self, name="Test User", phone_number=None):
        with self.app.app_context():
            user = User(name=name, phone_number=phone_number)
            db.session.add(user)
            db.session.commit()
            return str(user.user_id)

    def sign_in(self):
        resp = self.client.post("/api/auth/anonymous")
        self.assertEqual(resp.status_code, 200)
        data = resp.get_json()
        return data["user"]["id"], {"Authorization": f"Bearer {data['access_token']}"}

    def create_order(self, user_id, products, status="PENDING"):
        resp = self.client.post("/api/orders", json={
            "userId": user_id,
            "products": products,
            "status": status,
        })
        self.assertEqual(resp.status_code, 200, resp.get_json())
        return resp.get_json()["order"]
