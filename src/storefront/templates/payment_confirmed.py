"""Payment confirmed template — sent once an order settles as paid."""

from storefront.notification.notification import NotificationTemplate


class PaymentConfirmedTemplate:
    template_id = NotificationTemplate.PAYMENT_CONFIRMED.value

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        amount = context.get("amount", "0.00")
        currency = context.get("currency", "NGN")
        name = context.get("customer_name") or "there"
        downloads = context.get("downloads") or []

        lines = [
            f"Hi {name},",
            "",
            f"We have received your payment of {currency} {amount} for order #{order_id}.",
        ]
        if downloads:
            lines += ["", "Your downloads:"]
            lines += [f"- {d.get('file_name', 'File')}: {d.get('url', '')}" for d in downloads]
            lines += ["", "Each link is personal and allows a limited number of downloads."]
        lines += ["", "Thank you for your purchase!"]

        return {
            "subject": f"Payment Confirmed - Order #{order_id}",
            "body": "\n".join(lines),
        }
