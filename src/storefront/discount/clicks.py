"""Affiliate / referral click counters — fire-and-forget side effects."""

from protean import handle
from protean.fields import String
from protean.utils.globals import current_domain

from storefront.discount.codes import AffiliateCode, ReferralCode
from storefront.discount.resolver import DiscountVariant
from storefront.domain import storefront


@storefront.command(part_of="AffiliateCode")
class RecordDiscountCodeClick:
    variant = String(required=True, choices=DiscountVariant)
    code = String(required=True, max_length=50)


@storefront.command_handler(part_of=AffiliateCode)
class RecordDiscountCodeClickHandler:
    @handle(RecordDiscountCodeClick)
    def record_click(self, command):
        aggregate_cls = AffiliateCode if command.variant == DiscountVariant.AFFILIATE.value else ReferralCode
        repo = current_domain.repository_for(aggregate_cls)
        matches = repo._dao.query.filter(code=command.code).all().items
        if not matches:
            return

        owner_code = matches[0]
        owner_code.record_click()
        repo.add(owner_code)
