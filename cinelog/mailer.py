"""Outgoing email. Delivery transport is pluggable; the default sender only logs."""
import logging

logger = logging.getLogger(__name__)


class EmailSender:
    def send(self, recipient, subject, body):
        """Deliver one message. Returns True on success."""
        raise NotImplementedError


class LoggingEmailSender(EmailSender):
    def send(self, recipient, subject, body):
        logger.info("Email to %s: %s", recipient, subject)
        logger.debug("Email body for %s:\n%s", recipient, body)
        return True


_sender = LoggingEmailSender()


def use_sender(sender):
    """Swap the process-wide sender; returns the previous one."""
    global _sender
    previous, _sender = _sender, sender
    return previous


def send_email(recipient, subject, body):
    ok = _sender.send(recipient, subject, body)
    if not ok:
        logger.warning("Email delivery to %s failed: %s", recipient, subject)
    return ok


def send_verification_code(recipient, name, code, ttl_minutes):
    return send_email(
        recipient,
        "Verify your email",
        f"Hi {name},\n\nYour verification code is {code}. It expires in {ttl_minutes} minutes.",
    )


def send_reset_code(recipient, name, code, ttl_minutes):
    return send_email(
        recipient,
        "Password reset code",
        f"Hi {name},\n\nUse {code} to reset your password. It expires in {ttl_minutes} minutes.\n"
        "If you did not ask for this, ignore this email.",
    )
