# Overview: Outbound email and SMS for OTPs, review decisions and enquiries.

"""
Notification Service

Backends:
- LogBackend: writes each message to the app logger (development default)
- SesBackend: email through AWS SES, SMS through AWS SNS

The active backend lives on ``app.extensions[EXTENSION_KEY]`` so tests can
swap in a recording backend without touching configuration.

WHY: Delivery is best-effort. Every helper returns a bool and never raises;
callers that need all-or-nothing semantics (registration OTPs, password
reset) check the result and raise DeliveryFailed themselves.
"""

from __future__ import annotations

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app

EXTENSION_KEY = "dealerhub.notifications"


class NotificationBackend:
    def send_email(self, to: str, subject: str, body: str) -> bool:
        raise NotImplementedError

    def send_sms(self, to: str, body: str) -> bool:
        raise NotImplementedError


class LogBackend(NotificationBackend):
    def send_email(self, to, subject, body):
        current_app.logger.info("EMAIL to=%s subject=%r\n%s", to, subject, body)
        return True

    def send_sms(self, to, body):
        current_app.logger.info("SMS to=%s %s", to, body)
        return True


class SesBackend(NotificationBackend):
    """
    AWS delivery. Credentials come from the standard boto3 chain
    (environment, shared config, instance role).
    """

    def __init__(self, *, sender: str, region: str, country_code: str = "+91",
                 ses_client=None, sns_client=None):
        self.sender = sender
        self.country_code = country_code
        self._ses = ses_client or boto3.client("ses", region_name=region)
        self._sns = sns_client or boto3.client("sns", region_name=region)

    def send_email(self, to, subject, body):
        try:
            response = self._ses.send_email(
                Source=self.sender,
                Destination={"ToAddresses": [to]},
                Message={
                    "Subject": {"Data": subject, "Charset": "UTF-8"},
                    "Body": {"Text": {"Data": body, "Charset": "UTF-8"}},
                },
            )
        except (BotoCoreError, ClientError) as e:
            current_app.logger.warning("SES send_email to %s failed: %s", to, e)
            return False
        current_app.logger.info("Email sent to %s (MessageId=%s)", to, response.get("MessageId"))
        return True

    def send_sms(self, to, body):
        phone = to if to.startswith("+") else f"{self.country_code}{to}"
        try:
            self._sns.publish(PhoneNumber=phone, Message=body)
        except (BotoCoreError, ClientError) as e:
            current_app.logger.warning("SNS publish to %s failed: %s", phone, e)
            return False
        return True


def init_app(app) -> None:
    choice = app.config.get("NOTIFICATION_BACKEND", "log")
    if choice == "ses":
        backend = SesBackend(
            sender=app.config["MAIL_SENDER"],
            region=app.config["AWS_REGION"],
            country_code=app.config.get("SMS_COUNTRY_CODE", "+91"),
        )
    elif choice == "log":
        backend = LogBackend()
    else:
        raise ValueError(f"Unknown NOTIFICATION_BACKEND: {choice}")
    app.extensions[EXTENSION_KEY] = backend


def get_backend() -> NotificationBackend:
    return current_app.extensions[EXTENSION_KEY]


def send_email(to: str, subject: str, body: str) -> bool:
    try:
        return bool(get_backend().send_email(to, subject, body))
    except Exception:
        current_app.logger.exception("Email delivery to %s raised", to)
        return False


def send_sms(to: str, body: str) -> bool:
    try:
        return bool(get_backend().send_sms(to, body))
    except Exception:
        current_app.logger.exception("SMS delivery to %s raised", to)
        return False


def _brand() -> str:
    return current_app.config.get("BRAND_NAME", "Moulded Furniture")


def _rupees(cents: int) -> str:
    return f"Rs {cents / 100:,.2f}"


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_OTP_SUBJECTS = {
    "email_verify": "Email Verification",
    "email_change": "Confirm Your New Email",
    "password_reset": "Password Reset Code",
}


def send_otp_sms(mobile: str, code: str, minutes: int) -> bool:
    return send_sms(
        mobile,
        f"Your {_brand()} verification code is {code}. Valid for {minutes} minutes.",
    )


def send_otp_email(email: str, code: str, minutes: int, purpose: str = "email_verify") -> bool:
    subject = f"{_OTP_SUBJECTS.get(purpose, 'Verification Code')} - {_brand()}"
    body = (
        f"Your verification code is: {code}\n\n"
        f"This code will expire in {minutes} minutes.\n"
        "If you didn't request this code, please ignore this email.\n"
    )
    return send_email(email, subject, body)


def notify_registration_received(dealer) -> bool:
    body = (
        f"Dear {dealer.contact_person_name},\n\n"
        f"Thank you for registering {dealer.company_name} with {_brand()}.\n"
        "Your application is under review. You will be notified once an\n"
        "administrator has approved your account.\n\n"
        f"GST Number: {dealer.gst}\n"
    )
    return send_email(dealer.email, f"Registration Received - {_brand()}", body)


def notify_dealer_approved(dealer) -> bool:
    body = (
        f"Dear {dealer.contact_person_name},\n\n"
        f"Your dealer account for {dealer.company_name} has been approved.\n"
        "You can now log in with your GST number and password.\n"
    )
    return send_email(dealer.email, f"Account Approved - {_brand()}", body)


def notify_dealer_rejected(dealer, reason: str) -> bool:
    body = (
        f"Dear {dealer.contact_person_name},\n\n"
        f"We regret to inform you that your dealer registration for {dealer.company_name}\n"
        "has not been approved.\n\n"
        f"Reason: {reason}\n"
    )
    return send_email(dealer.email, f"Registration Update - {_brand()}", body)


def notify_password_reset(dealer, token: str, minutes: int) -> bool:
    body = (
        f"Dear {dealer.contact_person_name},\n\n"
        "A password reset was requested for your account.\n"
        f"Use this reset token within {minutes} minutes:\n\n"
        f"{token}\n\n"
        "If you didn't request this, you can ignore this email.\n"
    )
    return send_email(dealer.email, f"Password Reset - {_brand()}", body)


def notify_email_changed(email: str) -> bool:
    body = (
        "Your account email has been updated to this address.\n"
        "Future notifications will be sent here.\n"
    )
    return send_email(email, f"Email Updated - {_brand()}", body)


def notify_enquiry_created(enquiry) -> bool:
    body = (
        f"Dear {enquiry.dealer_contact_person},\n\n"
        f"We have received your enquiry #{enquiry.id}.\n\n"
        f"Product: {enquiry.product_name} ({enquiry.product_code})\n"
        f"Color: {enquiry.product_color or '-'}\n"
        f"Quantity: {enquiry.quantity}\n"
        f"Price: {_rupees(enquiry.price_cents)}\n"
        f"Total: {_rupees(enquiry.total_amount_cents)}\n\n"
        "Our team will contact you shortly.\n"
    )
    return send_email(enquiry.dealer_email, f"Enquiry Confirmation - {_brand()}", body)


def notify_enquiry_status(enquiry) -> bool:
    label = enquiry.status.replace("_", " ")
    body = (
        f"Dear {enquiry.dealer_contact_person},\n\n"
        f"Your enquiry #{enquiry.id} for {enquiry.product_name} is now: {label}.\n"
    )
    if enquiry.admin_notes:
        body += f"\nNotes: {enquiry.admin_notes}\n"
    return send_email(enquiry.dealer_email, f"Enquiry #{enquiry.id} {label.title()} - {_brand()}", body)
