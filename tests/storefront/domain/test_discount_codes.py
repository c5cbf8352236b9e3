"""Tests for the BonusCode, AffiliateCode and ReferralCode aggregates."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from storefront.discount.codes import (
    AFFILIATE_COMMISSION_RATE,
    CUSTOMER_DISCOUNT_RATE,
    AffiliateCode,
    BonusCode,
    CodeStatus,
    ReferralCode,
)
from storefront.discount.resolver import DiscountVariant


class TestBonusCode:
    def test_create_uppercases_code(self):
        code = BonusCode.create(code=" launch ", discount_percent=15.0)
        assert code.code == "LAUNCH"
        assert code.is_active is True
        assert code.usage_count == 0

    def test_blank_code_rejected(self):
        with pytest.raises(ValidationError):
            BonusCode.create(code="  ", discount_percent=10.0)

    def test_percent_above_100_rejected(self):
        with pytest.raises(ValidationError):
            BonusCode.create(code="TOO-MUCH", discount_percent=120.0)

    def test_deactivated_code_is_not_usable(self):
        code = BonusCode.create(code="OFF", discount_percent=10.0)
        code.deactivate()
        assert code.is_usable() is False
        code.activate()
        assert code.is_usable() is True

    def test_expired_code_is_not_usable(self):
        code = BonusCode.create(
            code="OLD", discount_percent=10.0, expires_at=datetime.now(UTC) - timedelta(minutes=1)
        )
        assert code.is_usable() is False

    def test_record_usage_accumulates(self):
        code = BonusCode.create(code="SALE", discount_percent=10.0)
        code.record_usage(900.0)
        code.record_usage(450.5)
        assert code.usage_count == 2
        assert code.total_sales_generated == 1350.5

    def test_to_discount_code(self):
        view = BonusCode.create(code="SALE", discount_percent=12.5).to_discount_code()
        assert view.variant == DiscountVariant.BONUS
        assert view.discount_percent == 12.5
        assert view.active is True


class TestAffiliateCode:
    def test_create_defaults(self):
        code = AffiliateCode.create(code="partner", owner_id="aff-001")
        assert code.code == "PARTNER"
        assert code.commission_rate == AFFILIATE_COMMISSION_RATE
        assert code.status == CodeStatus.ACTIVE.value
        assert code.clicks == 0

    def test_customer_gets_fixed_discount(self):
        view = AffiliateCode.create(code="PARTNER", owner_id="aff-001").to_discount_code()
        assert view.variant == DiscountVariant.AFFILIATE
        assert view.discount_percent == CUSTOMER_DISCOUNT_RATE
        assert view.owner_id == "aff-001"
        assert view.commission_rate == AFFILIATE_COMMISSION_RATE

    def test_record_click(self):
        code = AffiliateCode.create(code="PARTNER", owner_id="aff-001")
        code.record_click()
        code.record_click()
        assert code.clicks == 2

    def test_inactive_code_view_is_inactive(self):
        code = AffiliateCode.create(code="PARTNER", owner_id="aff-001")
        code.deactivate()
        assert code.to_discount_code().active is False


class TestReferralCode:
    def test_create_and_view(self):
        code = ReferralCode.create(code="friend", owner_id="cust-007")
        view = code.to_discount_code()
        assert view.variant == DiscountVariant.REFERRAL
        assert view.code == "FRIEND"
        assert view.discount_percent == CUSTOMER_DISCOUNT_RATE

    def test_expired_referral_not_usable(self):
        code = ReferralCode.create(
            code="FRIEND", owner_id="cust-007", expires_at=datetime.now(UTC) - timedelta(days=1)
        )
        assert code.is_usable() is False
