"""
Purchases, subscriptions and payments.

No gateway is called: every purchase writes a ``payments`` row that is
confirmed on the spot and the purchased quota is credited in the same
transaction.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.logging import get_logger
from models.package import (
    DiagnosisPackage,
    DiagnosisPackagePurchase,
    ExpertSubscription,
    LeadPackage,
    LeadPackagePurchase,
    Payment,
    PaymentStatus,
    PurchaseStatus,
    SubscriptionPlan,
    SubscriptionStatus,
)
from models.profile import DriverProfile, ExpertProfile
from models.user import User
from services.helpers import add_billing_period, generate_payment_reference, utcnow

logger = get_logger(__name__)


def _completed_payment(
    user: User,
    payable_type: str,
    payable_id: int,
    amount: Decimal,
    currency: str,
    provider_reference: Optional[str],
) -> Payment:
    now = utcnow()
    return Payment(
        user_id=user.id,
        payable_type=payable_type,
        payable_id=payable_id,
        payment_reference=generate_payment_reference(),
        provider=settings.PAYMENT_PROVIDER,
        provider_reference=provider_reference,
        amount=amount,
        currency=currency or settings.DEFAULT_CURRENCY,
        status=PaymentStatus.COMPLETED,
        provider_response={"confirmed": True, "confirmed_at": now.isoformat()},
        completed_at=now,
    )


async def _lock_profile(db: AsyncSession, model, user_id: int):
    result = await db.execute(
        select(model)
        .where(model.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def purchase_diagnosis_package(
    db: AsyncSession,
    user: User,
    package: DiagnosisPackage,
    provider_reference: Optional[str] = None,
):
    """Credit ``paid_diagnoses_remaining`` with the package's diagnoses."""
    try:
        purchase = DiagnosisPackagePurchase(
            user_id=user.id,
            diagnosis_package_id=package.id,
            diagnoses_purchased=package.diagnoses_count,
            diagnoses_remaining=package.diagnoses_count,
            amount_paid=package.price,
            currency=package.currency,
            status=PurchaseStatus.ACTIVE,
        )
        db.add(purchase)
        await db.flush()

        payment = _completed_payment(
            user, "diagnosis_package_purchase", purchase.id, package.price, package.currency, provider_reference
        )
        db.add(payment)

        profile = await _lock_profile(db, DriverProfile, user.id)
        profile.paid_diagnoses_remaining += package.diagnoses_count
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(purchase)
    await db.refresh(payment)
    logger.info(
        "Diagnosis package purchased",
        user_id=user.id,
        package_id=package.id,
        diagnoses=package.diagnoses_count,
        payment_reference=payment.payment_reference,
    )
    return purchase, payment


async def purchase_lead_package(
    db: AsyncSession,
    user: User,
    package: LeadPackage,
    provider_reference: Optional[str] = None,
):
    try:
        expires_at = utcnow() + timedelta(days=package.validity_days) if package.validity_days else None
        purchase = LeadPackagePurchase(
            user_id=user.id,
            lead_package_id=package.id,
            leads_purchased=package.leads_count,
            leads_remaining=package.leads_count,
            amount_paid=package.price,
            currency=package.currency,
            status=PurchaseStatus.ACTIVE,
            expires_at=expires_at,
        )
        db.add(purchase)
        await db.flush()

        payment = _completed_payment(
            user, "lead_package_purchase", purchase.id, package.price, package.currency, provider_reference
        )
        db.add(payment)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(purchase)
    await db.refresh(payment)
    logger.info(
        "Lead package purchased",
        user_id=user.id,
        package_id=package.id,
        leads=package.leads_count,
        payment_reference=payment.payment_reference,
    )
    return purchase, payment


async def subscribe(
    db: AsyncSession,
    user: User,
    plan: SubscriptionPlan,
    auto_renew: bool = True,
    provider_reference: Optional[str] = None,
):
    """Start a subscription now; an existing active one is replaced."""
    try:
        now = utcnow()
        existing = await db.execute(
            select(ExpertSubscription).where(
                ExpertSubscription.user_id == user.id,
                ExpertSubscription.status == SubscriptionStatus.ACTIVE,
            )
        )
        for current in existing.scalars().all():
            current.status = SubscriptionStatus.CANCELLED
            current.cancelled_at = now

        subscription = ExpertSubscription(
            user_id=user.id,
            subscription_plan_id=plan.id,
            status=SubscriptionStatus.ACTIVE,
            starts_at=now,
            ends_at=add_billing_period(now, plan.billing_period.value),
            auto_renew=auto_renew,
        )
        db.add(subscription)
        await db.flush()

        payment = _completed_payment(
            user, "expert_subscription", subscription.id, plan.price, plan.currency, provider_reference
        )
        db.add(payment)

        profile = await _lock_profile(db, ExpertProfile, user.id)
        profile.is_priority_listed = bool(plan.priority_listing)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(subscription)
    await db.refresh(payment)
    logger.info(
        "Subscription started",
        user_id=user.id,
        plan_id=plan.id,
        ends_at=subscription.ends_at,
        payment_reference=payment.payment_reference,
    )
    return subscription, payment


async def cancel_subscription(db: AsyncSession, user: User, subscription: ExpertSubscription) -> ExpertSubscription:
    """Stop auto-renewal; the subscription runs until ``ends_at``."""
    subscription.auto_renew = False
    subscription.status = SubscriptionStatus.CANCELLED
    subscription.cancelled_at = utcnow()
    await db.commit()
    await db.refresh(subscription)
    logger.info("Subscription cancelled", user_id=user.id, subscription_id=subscription.id)
    return subscription
