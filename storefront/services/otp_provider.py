"""
OTP Provider — send and check SMS verification codes.
TwilioVerifyProvider talks to the Twilio Verify REST API; MockOtpProvider
accepts the fixed code 123456 and is meant for local development and tests.
"""

import logging
import requests
from flask import current_app

from storefront.errors import UpstreamProviderError

logger = logging.getLogger(__name__)

TWILIO_VERIFY_URL = "https://verify.twilio.com/v2/Services"
MOCK_OTP_CODE = "123456"


def _mask(phone_number):
    return f"{phone_number[:4]}***" if phone_number else phone_number


class TwilioVerifyProvider:
    def __init__(self, account_sid, auth_token, service_sid, timeout=10.0):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.service_sid = service_sid
        self.timeout = timeout

    def _post(self, path, payload):
        url = f"{TWILIO_VERIFY_URL}/{self.service_sid}/{path}"
        try:
            resp = requests.post(
                url,
                data=payload,
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error("Error calling Twilio Verify %s: %s", path, e)
            raise UpstreamProviderError("OTP provider unreachable")
        return resp

    def send_code(self, phone_number):
        resp = self._post("Verifications", {"To": phone_number, "Channel": "sms"})
        if resp.status_code >= 400:
            logger.error("Twilio Verify returned %s sending OTP to %s", resp.status_code, _mask(phone_number))
            raise UpstreamProviderError("Failed to send OTP")
        return _status_from(resp)

    def check_code(self, phone_number, code):
        resp = self._post("VerificationCheck", {"To": phone_number, "Code": code})
        # 404 means no pending verification (expired, already approved, or never sent).
        if resp.status_code == 404:
            return "expired"
        if resp.status_code >= 400:
            logger.error("Twilio Verify returned %s checking OTP for %s", resp.status_code, _mask(phone_number))
            raise UpstreamProviderError("Failed to verify OTP")
        return _status_from(resp)


def _status_from(resp):
    try:
        status = resp.json().get("status")
    except ValueError:
        status = None
    if not status:
        raise UpstreamProviderError("Unexpected response from OTP provider")
    return status


class MockOtpProvider:
    """In-memory stand-in: every send is 'pending', only MOCK_OTP_CODE is approved."""

    def __init__(self):
        self.pending = set()

    def send_code(self, phone_number):
        logger.debug("Mock OTP issued for %s", _mask(phone_number))
        self.pending.add(phone_number)
        return "pending"

    def check_code(self, phone_number, code):
        if phone_number not in self.pending:
            return "expired"
        if code == MOCK_OTP_CODE:
            self.pending.discard(phone_number)
            return "approved"
        return "pending"


def get_otp_provider():
    provider = current_app.extensions.get("otp_provider")
    if provider is None:
        config = current_app.config
        if config["OTP_PROVIDER"] == "mock":
            provider = MockOtpProvider()
        else:
            provider = TwilioVerifyProvider(
                config["TWILIO_ACCOUNT_SID"],
                config["TWILIO_AUTH_TOKEN"],
                config["TWILIO_VERIFY_SERVICE_SID"],
            )
        current_app.extensions["otp_provider"] = provider
    return provider
