"""
Tests for package purchases, subscriptions, payments and the expiry jobs.
"""

from datetime import timedelta
from decimal import Decimal

from sqlalchemy import select

from models.diagnosis import Diagnosis
from models.lead import Lead, LeadStatus
from models.package import (
    BillingPeriod,
    DiagnosisPackage,
    ExpertSubscription,
    LeadPackage,
    LeadPackagePurchase,
    PurchaseStatus,
    SubscriptionPlan,
    SubscriptionStatus,
)
from models.profile import ExpertProfile, KycStatus
from models.user import User, UserRole
from services.helpers import utcnow
from tasks.notification_tasks import expire_leads, expire_packages


async def _catalogue(db):
    items = [
        DiagnosisPackage(name="Five Pack", diagnoses_count=5, price=Decimal("20.00"), sort_order=1),
        DiagnosisPackage(name="Retired", diagnoses_count=1, price=Decimal("5.00"), is_active=False),
        LeadPackage(name="Ten Leads", leads_count=10, price=Decimal("50.00"), validity_days=30),
        SubscriptionPlan(
            name="Pro Monthly",
            billing_period=BillingPeriod.MONTHLY,
            price=Decimal("99.00"),
            priority_listing=True,
        ),
        SubscriptionPlan(name="Basic Monthly", billing_period=BillingPeriod.MONTHLY, price=Decimal("49.00")),
    ]
    db.add_all(items)
    await db.commit()
    return items


async def test_catalogue_lists_active_packages(client, db) -> None:
    """Verify inactive packages are hidden and slugs are generated."""

    await _catalogue(db)

    response = await client.get("/api/v1/packages/diagnosis")

    data = response.json()["data"]
    assert [p["slug"] for p in data] == ["five-pack"]
    assert data[0]["price"] == 20.0


async def test_driver_buys_diagnosis_package(client, db, make_driver, auth_headers) -> None:
    """Verify a purchase credits paid diagnoses and records a completed payment."""

    package, *_ = await _catalogue(db)
    driver = await make_driver(free=0)
    headers = await auth_headers(driver)

    response = await client.post(
        "/api/v1/packages/diagnosis/purchase",
        json={"package_id": package.id, "provider_reference": "ps_123"},
        headers=headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["purchase"]["diagnoses_remaining"] == 5
    assert data["payment"]["status"] == "completed"
    assert data["payment"]["payable_type"] == "diagnosis_package_purchase"

    profile = driver.driver_profile
    await db.refresh(profile)
    assert profile.paid_diagnoses_remaining == 5

    payments = await client.get("/api/v1/payments", headers=headers)
    assert payments.json()["data"]["total"] == 1

    diagnosis = await client.post(
        "/api/v1/diagnoses",
        json={"symptoms_description": "Gearbox slips into neutral"},
        headers=headers,
    )
    assert diagnosis.status_code == 201
    assert diagnosis.json()["data"]["diagnosis"]["is_free"] is False


async def test_inactive_package_cannot_be_bought(client, db, make_driver, auth_headers) -> None:
    """Verify a retired package is not found."""

    _, retired, *_ = await _catalogue(db)
    driver = await make_driver()

    response = await client.post(
        "/api/v1/packages/diagnosis/purchase",
        json={"package_id": retired.id},
        headers=await auth_headers(driver),
    )

    assert response.status_code == 404


async def test_expert_buys_lead_package_with_expiry(client, db, make_expert, make_driver, auth_headers) -> None:
    """Verify a lead package carries its validity window and is expert-only."""

    _, _, lead_package, *_ = await _catalogue(db)
    expert = await make_expert()

    response = await client.post(
        "/api/v1/packages/lead/purchase",
        json={"package_id": lead_package.id},
        headers=await auth_headers(expert),
    )
    assert response.status_code == 201
    purchase = response.json()["data"]["purchase"]
    assert purchase["leads_remaining"] == 10
    assert purchase["expires_at"] is not None

    as_driver = await client.post(
        "/api/v1/packages/lead/purchase",
        json={"package_id": lead_package.id},
        headers=await auth_headers(await make_driver()),
    )
    assert as_driver.status_code == 403


async def test_subscribe_replace_and_cancel(client, db, make_expert, auth_headers) -> None:
    """Verify subscribing sets priority listing and cancelling keeps it until the end date."""

    *_, pro, basic = await _catalogue(db)
    expert = await make_expert()
    headers = await auth_headers(expert)

    first = await client.post("/api/v1/packages/subscription/subscribe", json={"plan_id": pro.id}, headers=headers)
    assert first.status_code == 201
    profile = expert.expert_profile
    await db.refresh(profile)
    assert profile.is_priority_listed is True

    second = await client.post("/api/v1/packages/subscription/subscribe", json={"plan_id": basic.id}, headers=headers)
    assert second.status_code == 201
    statuses = (
        await db.execute(select(ExpertSubscription.status).order_by(ExpertSubscription.id))
    ).scalars().all()
    assert statuses == [SubscriptionStatus.CANCELLED, SubscriptionStatus.ACTIVE]

    current = await client.get("/api/v1/packages/subscription/current", headers=headers)
    assert current.json()["data"]["subscription_plan_id"] == basic.id

    cancelled = await client.post("/api/v1/packages/subscription/cancel", headers=headers)
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["auto_renew"] is False

    assert (await client.get("/api/v1/packages/subscription/current", headers=headers)).json()["data"] is None
    assert (await client.post("/api/v1/packages/subscription/cancel", headers=headers)).status_code == 404


def _sync_user(db, email, role=UserRole.EXPERT) -> User:
    user = User(first_name="Sync", last_name="User", email=email, password_hash="x", role=role)
    db.add(user)
    db.flush()
    return user


def _sync_expert(db, email, priority=True) -> ExpertProfile:
    user = _sync_user(db, email)
    profile = ExpertProfile(
        user_id=user.id,
        kyc_status=KycStatus.APPROVED,
        free_leads_remaining=0,
        total_leads_received=0,
        is_priority_listed=priority,
    )
    db.add(profile)
    db.flush()
    return profile


def test_expire_packages_and_priority_listings(sync_db) -> None:
    """Verify lapsed purchases and subscriptions expire and listings follow them."""

    now = utcnow()
    plan = SubscriptionPlan(name="Pro", billing_period=BillingPeriod.MONTHLY, price=Decimal("99.00"), priority_listing=True)
    package = LeadPackage(name="Ten", leads_count=10, price=Decimal("50.00"))
    sync_db.add_all([plan, package])
    sync_db.flush()

    lapsed = _sync_expert(sync_db, "lapsed@example.com")
    cancelled = _sync_expert(sync_db, "cancelled@example.com")
    sync_db.add_all(
        [
            ExpertSubscription(
                user_id=lapsed.user_id,
                subscription_plan_id=plan.id,
                status=SubscriptionStatus.ACTIVE,
                starts_at=now - timedelta(days=31),
                ends_at=now - timedelta(days=1),
            ),
            ExpertSubscription(
                user_id=cancelled.user_id,
                subscription_plan_id=plan.id,
                status=SubscriptionStatus.CANCELLED,
                starts_at=now - timedelta(days=10),
                ends_at=now + timedelta(days=20),
            ),
        ]
    )
    old_purchase = LeadPackagePurchase(
        user_id=lapsed.user_id,
        lead_package_id=package.id,
        leads_purchased=10,
        leads_remaining=4,
        amount_paid=Decimal("50.00"),
        status=PurchaseStatus.ACTIVE,
        expires_at=now - timedelta(hours=1),
    )
    fresh_purchase = LeadPackagePurchase(
        user_id=lapsed.user_id,
        lead_package_id=package.id,
        leads_purchased=10,
        leads_remaining=10,
        amount_paid=Decimal("50.00"),
        status=PurchaseStatus.ACTIVE,
        expires_at=now + timedelta(days=5),
    )
    sync_db.add_all([old_purchase, fresh_purchase])
    sync_db.commit()

    counts = expire_packages(sync_db, now=now)

    assert counts == {"lead_packages": 1, "subscriptions": 1, "priority_listings": 1}
    sync_db.expire_all()
    assert old_purchase.status == PurchaseStatus.EXPIRED
    assert fresh_purchase.status == PurchaseStatus.ACTIVE
    assert lapsed.is_priority_listed is False
    assert cancelled.is_priority_listed is True


def test_expire_stale_leads(sync_db) -> None:
    """Verify only new or viewed leads past the expiry window expire."""

    now = utcnow()
    expert = _sync_user(sync_db, "expert@example.com")
    diagnosis = Diagnosis(symptoms_description="Battery drains overnight", is_free=True)
    sync_db.add(diagnosis)
    sync_db.flush()

    def lead(status, age_days):
        row = Lead(
            diagnosis_id=diagnosis.id,
            expert_id=expert.id,
            status=status,
            is_free_lead=True,
            created_at=now - timedelta(days=age_days),
        )
        sync_db.add(row)
        return row

    stale_new = lead(LeadStatus.NEW, 45)
    stale_viewed = lead(LeadStatus.VIEWED, 31)
    stale_contacted = lead(LeadStatus.CONTACTED, 60)
    recent = lead(LeadStatus.NEW, 2)
    sync_db.commit()

    assert expire_leads(sync_db, now=now) == 2

    sync_db.expire_all()
    assert stale_new.status == LeadStatus.EXPIRED
    assert stale_new.expired_at is not None
    assert stale_viewed.status == LeadStatus.EXPIRED
    assert stale_contacted.status == LeadStatus.CONTACTED
    assert recent.status == LeadStatus.NEW
