"""Template registry — maps template ids to template classes.

Each template renders a subject and plain-text body from the JSON data
stored on the queued notification.
"""

from storefront.notification.notification import NotificationTemplate
from storefront.templates.download_link import DownloadLinkTemplate
from storefront.templates.otp_code import OtpCodeTemplate
from storefront.templates.payment_confirmed import PaymentConfirmedTemplate

TEMPLATE_REGISTRY: dict[str, type] = {
    NotificationTemplate.PAYMENT_CONFIRMED.value: PaymentConfirmedTemplate,
    NotificationTemplate.DOWNLOAD_LINK.value: DownloadLinkTemplate,
    NotificationTemplate.OTP_CODE.value: OtpCodeTemplate,
}


def get_template(template_id: str):
    """Look up a template class by template id."""
    template_cls = TEMPLATE_REGISTRY.get(template_id)
    if template_cls is None:
        raise ValueError(f"No template registered for: {template_id}")
    return template_cls
