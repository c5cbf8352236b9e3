"""Download link template — sent when an operator reissues a download link."""

from storefront.notification.notification import NotificationTemplate


class DownloadLinkTemplate:
    template_id = NotificationTemplate.DOWNLOAD_LINK.value

    @staticmethod
    def render(context: dict) -> dict:
        order_id = context.get("order_id", "N/A")
        file_name = context.get("file_name", "your file")
        url = context.get("url", "")
        expires_at = context.get("expires_at")
        body = f"A new download link for {file_name} (order #{order_id}) is ready:\n\n{url}\n"
        if expires_at:
            body += f"\nThe link expires on {expires_at}."
        return {
            "subject": f"Your Download Link - Order #{order_id}",
            "body": body,
        }
