import unittest
import uuid
from unittest import mock

import requests

from storefront.errors import UpstreamProviderError
from storefront.extensions import db
from storefront.models import User
from storefront.services.otp_provider import TwilioVerifyProvider
from support import StorefrontTestCase


class TestOtpFlow(StorefrontTestCase):
    phone = "+919876543210"

    def test_send_requires_phone(self):
        resp = self.client.post("/api/send-otp", json={})
        self.assertEqual(resp.status_code, 400)

    def test_verify_requires_phone_and_code(self):
        resp = self.client.post("/api/verify-otp", json={"phoneNumber": self.phone})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.get_json()["error"], "Phone number and OTP are required")

    def test_wrong_code_does_not_sign_in(self):
        self.client.post("/api/send-otp", json={"phoneNumber": self.phone})

        resp = self.client.post("/api/verify-otp", json={"phoneNumber": self.phone, "otp": "000000"})

        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["status"], "pending")
        self.assertNotIn("access_token", body)

    def test_first_verification_signs_up(self):
        resp = self.client.post("/api/send-otp", json={"phoneNumber": self.phone})
        self.assertEqual(resp.get_json(), {"success": True, "status": "pending"})

        resp = self.client.post("/api/verify-otp", json={"phoneNumber": self.phone, "otp": "123456"})

        self.assertEqual(resp.status_code, 200)
        body = resp.get_json()
        self.assertEqual(body["status"], "approved")
        self.assertEqual(body["user"]["name"], self.phone)
        self.assertEqual(body["user"]["email"], f"{self.phone}@ammasidli.in")
        self.assertTrue(body["user"]["phoneNumberVerified"])

        headers = {"Authorization": f"Bearer {body['access_token']}"}
        resp = self.client.get("/api/auth/session", headers=headers)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()["user"]["phoneNumber"], self.phone)

    def test_returning_user_keeps_account(self):
        user_id = self.create_user(name="Asha", phone_number=self.phone)
        self.client.post("/api/send-otp", json={"phoneNumber": self.phone})

        resp = self.client.post("/api/verify-otp", json={"phoneNumber": self.phone, "otp": "123456"})

        self.assertEqual(resp.get_json()["user"]["id"], user_id)
        self.assertEqual(resp.get_json()["user"]["name"], "Asha")
        with self.app.app_context():
            self.assertEqual(User.query.count(), 1)


class TestSession(StorefrontTestCase):
    def test_no_token(self):
        resp = self.client.get("/api/auth/session")
        self.assertEqual(resp.status_code, 403)

    def test_garbage_token_is_no_session(self):
        resp = self.client.get("/api/auth/session", headers={"Authorization": "Bearer not.a.jwt"})
        self.assertEqual(resp.status_code, 403)

    def test_logout_revokes_token(self):
        _, headers = self.sign_in()
        self.assertEqual(self.client.get("/api/auth/session", headers=headers).status_code, 200)

        resp = self.client.post("/api/auth/logout", headers=headers)
        self.assertEqual(resp.status_code, 200)

        self.assertEqual(self.client.get("/api/auth/session", headers=headers).status_code, 403)

    def test_refresh(self):
        resp = self.client.post("/api/auth/anonymous")
        refresh_token = resp.get_json()["refresh_token"]

        resp = self.client.post("/api/auth/refresh", headers={"Authorization": f"Bearer {refresh_token}"})

        self.assertEqual(resp.status_code, 200)
        self.assertIn("access_token", resp.get_json())


class TestLinkPhone(StorefrontTestCase):
    def test_links_and_verifies_phone(self):
        user_id = self.create_user()

        resp = self.client.post("/api/link-phone", json={"phoneNumber": "+911234567890", "userId": user_id})

        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json(), {"success": True})
        with self.app.app_context():
            user = User.query.one()
            self.assertEqual(user.phone_number, "+911234567890")
            self.assertTrue(user.phone_number_verified)

    def test_missing_fields(self):
        resp = self.client.post("/api/link-phone", json={"phoneNumber": "+911234567890"})
        self.assertEqual(resp.status_code, 400)

    def test_unknown_user(self):
        resp = self.client.post("/api/link-phone", json={
            "phoneNumber": "+911234567890",
            "userId": "00000000-0000-0000-0000-000000000000",
        })
        self.assertEqual(resp.status_code, 404)

    def test_phone_already_taken(self):
        self.create_user(name="First", phone_number="+911234567890")
        second = self.create_user(name="Second")

        resp = self.client.post("/api/link-phone", json={"phoneNumber": "+911234567890", "userId": second})

        self.assertEqual(resp.status_code, 409)
        with self.app.app_context():
            self.assertIsNone(db.session.get(User, uuid.UUID(second)).phone_number)


class TestTwilioVerifyProvider(unittest.TestCase):
    def setUp(self):
        self.provider = TwilioVerifyProvider("AC123", "token", "VA123")

    def _response(self, status_code, payload):
        resp = mock.Mock(status_code=status_code)
        resp.json.return_value = payload
        return resp

    @mock.patch("storefront.services.otp_provider.requests.post")
    def test_send_code(self, post):
        post.return_value = self._response(201, {"status": "pending"})

        self.assertEqual(self.provider.send_code("+919876543210"), "pending")

        url = post.call_args.args[0]
        self.assertEqual(url, "https://verify.twilio.com/v2/Services/VA123/Verifications")
        self.assertEqual(post.call_args.kwargs["data"], {"To": "+919876543210", "Channel": "sms"})
        self.assertEqual(post.call_args.kwargs["auth"], ("AC123", "token"))

    @mock.patch("storefront.services.otp_provider.requests.post")
    def test_check_code(self, post):
        post.return_value = self._response(200, {"status": "approved"})

        self.assertEqual(self.provider.check_code("+919876543210", "123456"), "approved")
        self.assertTrue(post.call_args.args[0].endswith("/VerificationCheck"))

    @mock.patch("storefront.services.otp_provider.requests.post")
    def test_check_without_pending_verification(self, post):
        post.return_value = self._response(404, {"code": 20404})
        self.assertEqual(self.provider.check_code("+919876543210", "123456"), "expired")

    @mock.patch("storefront.services.otp_provider.requests.post")
    def test_provider_errors(self, post):
        post.return_value = self._response(429, {"code": 60203})
        with self.assertRaises(UpstreamProviderError):
            self.provider.send_code("+919876543210")

        post.side_effect = requests.ConnectionError("down")
        with self.assertRaises(UpstreamProviderError):
            self.provider.send_code("+919876543210")

    @mock.patch("storefront.services.otp_provider.requests.post")
    def test_unexpected_response_shape(self, post):
        post.return_value = self._response(200, {"sid": "VE123"})
        with self.assertRaises(UpstreamProviderError):
            self.provider.check_code("+919876543210", "123456")


if __name__ == "__main__":
    unittest.main()
