"""
Affiliate account tests - registration, code provisioning, admin edits, codes.
"""
import re

import pytest

from reftrack.errors import ConflictError, NotFoundError, ValidationError
from reftrack.models.enums import Role, UserStatus
from reftrack.schemas.admin import AffiliateUpdate, affiliate_out
from reftrack.services.affiliates import (
    delete_affiliate,
    ensure_referral_code,
    list_affiliates,
    register_affiliate,
    update_affiliate,
)
from reftrack.services.auth import check_password
from reftrack.services.referral_codes import generate_referral_code, generate_unique_code
from factories import make_affiliate, make_partner_group, make_referral, make_user


class TestReferralCodes:
    def test_format(self):
        assert re.fullmatch(r"JANEDO-[A-Z0-9]{4}", generate_referral_code("Jane Doe"))

    def test_non_letters_stripped(self):
        assert generate_referral_code("O'Neil 3rd").startswith("ONEILR-")

    def test_fallback_prefix(self):
        assert generate_referral_code("123").startswith("REF-")
        assert generate_referral_code(None).startswith("REF-")

    async def test_unique_code_exhausted(self, db, monkeypatch):
        await make_affiliate(db, code="FIXED-0000")
        monkeypatch.setattr(
            "reftrack.services.referral_codes.generate_referral_code", lambda name: "FIXED-0000",
        )
        with pytest.raises(RuntimeError):
            await generate_unique_code(db, "Fixed")


class TestRegister:
    async def test_creates_pending_affiliate(self, db):
        user = await register_affiliate(db, " New@Example.com ", "longenough", "New Partner")

        assert user.email == "new@example.com"
        assert user.role == Role.AFFILIATE.value
        assert user.status == UserStatus.PENDING.value
        assert check_password("longenough", user.password_hash)
        assert user.affiliate.referral_code.startswith("NEWPAR-")
        assert user.affiliate.partner_group is None

    async def test_joins_default_group(self, db):
        group = await make_partner_group(db, is_default=True)
        user = await register_affiliate(db, "a@example.com", "longenough", "A")
        assert user.affiliate.partner_group_id == group.id

    async def test_duplicate_email(self, db):
        await make_user(db, email="taken@example.com")
        with pytest.raises(ConflictError):
            await register_affiliate(db, "TAKEN@example.com", "longenough", "X")

    @pytest.mark.parametrize("email,password,name", [
        ("bad-email", "longenough", "X"),
        ("a@example.com", "short", "X"),
        ("a@example.com", "longenough", "  "),
    ])
    async def test_validation(self, db, email, password, name):
        with pytest.raises(ValidationError):
            await register_affiliate(db, email, password, name)


class TestEnsureReferralCode:
    async def test_creates_profile_when_missing(self, db):
        user = await make_user(db, name="Solo Seller")
        affiliate, message = await ensure_referral_code(db, user)
        assert affiliate.referral_code.startswith("SOLOSE-")
        assert "created" in message

    async def test_existing_code_kept(self, db):
        affiliate = await make_affiliate(db)
        same, message = await ensure_referral_code(db, affiliate.user)
        assert same.referral_code == "JANEDO-AB12"
        assert message == "Referral code already exists"

    async def test_blank_code_filled(self, db):
        affiliate = await make_affiliate(db)
        affiliate.referral_code = ""
        _, message = await ensure_referral_code(db, affiliate.user)
        assert affiliate.referral_code.startswith("JANEDO-")
        assert message == "Referral code generated"


class TestAdminEdits:
    async def test_assign_and_remove_group(self, db):
        group = await make_partner_group(db, rate=0.3)
        affiliate = await make_affiliate(db)

        updated = await update_affiliate(db, str(affiliate.id), AffiliateUpdate(partner_group_id=str(group.id)))
        assert updated.partner_group_id == group.id
        assert affiliate_out(updated, 0.3).partner_group == "Gold"

        updated = await update_affiliate(
            db, str(affiliate.id), AffiliateUpdate.model_validate({"partnerGroupId": None}),
        )
        assert updated.partner_group_id is None

    async def test_omitted_group_untouched(self, db):
        group = await make_partner_group(db)
        affiliate = await make_affiliate(db, partner_group=group)

        updated = await update_affiliate(db, str(affiliate.id), AffiliateUpdate(status="suspended"))

        assert updated.partner_group_id == group.id
        assert updated.user.status == UserStatus.SUSPENDED.value

    async def test_invalid_status(self, db):
        affiliate = await make_affiliate(db)
        with pytest.raises(ValidationError):
            await update_affiliate(db, str(affiliate.id), AffiliateUpdate(status="BANNED"))

    async def test_list_by_status(self, db):
        await make_affiliate(db, code="A-0001", email="a@example.com")
        await make_affiliate(db, code="P-0001", email="p@example.com", status=UserStatus.PENDING)

        pending = await list_affiliates(db, status="pending")
        assert [a.referral_code for a in pending] == ["P-0001"]

    async def test_delete_guarded_by_referrals(self, db):
        affiliate = await make_affiliate(db)
        await make_referral(db, affiliate)
        with pytest.raises(ConflictError):
            await delete_affiliate(db, str(affiliate.id))

    async def test_delete_unused_affiliate(self, db):
        affiliate = await make_affiliate(db)
        await delete_affiliate(db, str(affiliate.id))
        with pytest.raises(NotFoundError):
            await delete_affiliate(db, str(affiliate.id))
