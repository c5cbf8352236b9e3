"""Discount code management — create, activate and deactivate codes."""

from protean import handle
from protean.fields import Boolean, DateTime, Float, Identifier, String
from protean.utils.globals import current_domain

from storefront.discount.codes import (
    AFFILIATE_COMMISSION_RATE,
    CODE_AGGREGATES,
    AffiliateCode,
    BonusCode,
    ReferralCode,
)
from storefront.discount.resolver import DiscountVariant, normalize_code
from storefront.domain import storefront
from storefront.errors import NotFoundError, ValidationError


@storefront.command(part_of="BonusCode")
class CreateBonusCode:
    code = String(required=True, max_length=50)
    discount_percent = Float(required=True, min_value=0.0, max_value=100.0)
    expires_at = DateTime()
    description = String(max_length=255)


@storefront.command(part_of="AffiliateCode")
class CreateAffiliateCode:
    code = String(required=True, max_length=50)
    owner_id = Identifier(required=True)
    commission_rate = Float(default=AFFILIATE_COMMISSION_RATE)
    expires_at = DateTime()


@storefront.command(part_of="ReferralCode")
class CreateReferralCode:
    code = String(required=True, max_length=50)
    owner_id = Identifier(required=True)
    expires_at = DateTime()


@storefront.command(part_of="BonusCode")
class SetDiscountCodeActive:
    """Switch any variant's code on or off."""

    variant = String(required=True, choices=DiscountVariant)
    code = String(required=True, max_length=50)
    active = Boolean(default=True)


def _ensure_unique(code: str) -> None:
    for aggregate_cls in CODE_AGGREGATES.values():
        repo = current_domain.repository_for(aggregate_cls)
        if repo._dao.query.filter(code=code).all().items:
            raise ValidationError({"code": [f"Code {code} is already in use"]})


@storefront.command_handler(part_of=BonusCode)
class BonusCodeHandler:
    @handle(CreateBonusCode)
    def create_bonus_code(self, command):
        _ensure_unique(normalize_code(command.code))
        bonus = BonusCode.create(
            code=command.code,
            discount_percent=command.discount_percent,
            expires_at=command.expires_at,
            description=command.description,
        )
        current_domain.repository_for(BonusCode).add(bonus)
        return str(bonus.id)

    @handle(SetDiscountCodeActive)
    def set_active(self, command):
        aggregate_cls = CODE_AGGREGATES[DiscountVariant(command.variant)]
        repo = current_domain.repository_for(aggregate_cls)
        code = normalize_code(command.code)
        matches = repo._dao.query.filter(code=code).all().items
        if not matches:
            raise NotFoundError(f"{command.variant} code {code} does not exist")

        discount_code = matches[0]
        if command.active:
            discount_code.activate()
        else:
            discount_code.deactivate()
        repo.add(discount_code)


@storefront.command_handler(part_of=AffiliateCode)
class AffiliateCodeHandler:
    @handle(CreateAffiliateCode)
    def create_affiliate_code(self, command):
        _ensure_unique(normalize_code(command.code))
        affiliate = AffiliateCode.create(
            code=command.code,
            owner_id=command.owner_id,
            commission_rate=command.commission_rate,
            expires_at=command.expires_at,
        )
        current_domain.repository_for(AffiliateCode).add(affiliate)
        return str(affiliate.id)


@storefront.command_handler(part_of=ReferralCode)
class ReferralCodeHandler:
    @handle(CreateReferralCode)
    def create_referral_code(self, command):
        _ensure_unique(normalize_code(command.code))
        referral = ReferralCode.create(
            code=command.code,
            owner_id=command.owner_id,
            expires_at=command.expires_at,
        )
        current_domain.repository_for(ReferralCode).add(referral)
        return str(referral.id)
