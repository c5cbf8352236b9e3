"""One-time code template — time-critical, always queued at high priority."""

from storefront.notification.notification import NotificationTemplate


class OtpCodeTemplate:
    template_id = NotificationTemplate.OTP_CODE.value

    @staticmethod
    def render(context: dict) -> dict:
        code = context.get("code", "")
        minutes = context.get("valid_minutes", 10)
        return {
            "subject": "Your verification code",
            "body": (
                f"Your verification code is {code}.\n\n"
                f"It expires in {minutes} minutes. If you did not request it, ignore this email."
            ),
        }
