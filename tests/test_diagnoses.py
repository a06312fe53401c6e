"""
Tests for diagnosis submission, quota debits and lead allocation.

Covers:
- A driver without quota is refused and nothing is written.
- Free diagnoses are used before paid ones; paid ones unlock expert contact.
- Leads are charged to free leads, then a lead package, then as chargeable.
- Guest devices get a fixed number of free diagnoses.
"""

from decimal import Decimal

from sqlalchemy import func, select

from models.device import DeviceFingerprint
from models.diagnosis import Diagnosis
from models.lead import Lead, LeadActivity
from models.package import DiagnosisPackage, DiagnosisPackagePurchase, LeadPackage, LeadPackagePurchase, PurchaseStatus
from models.profile import DriverProfile
from models.reference import Region
from repositories.diagnosis import DeviceFingerprintRepository

SYMPTOMS = {"symptoms_description": "Engine knocks loudly when climbing hills"}


async def _count(db, model) -> int:
    return (await db.execute(select(func.count(model.id)))).scalar_one()


async def test_driver_without_quota_is_refused(client, db, make_driver, auth_headers, broadcaster, queued) -> None:
    """Verify an exhausted driver gets 403 and no diagnosis or lead is stored."""

    driver = await make_driver(free=0, paid=0)
    response = await client.post("/api/v1/diagnoses", json=SYMPTOMS, headers=await auth_headers(driver))

    assert response.status_code == 403
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "DIAGNOSIS_QUOTA_EXHAUSTED"
    assert await _count(db, Diagnosis) == 0
    assert await _count(db, Lead) == 0
    assert broadcaster.events == []
    assert queued["diagnosis"] == []


async def test_free_diagnosis_then_paid_diagnosis(client, db, make_driver, auth_headers, queued) -> None:
    """Verify the free balance is used first and the paid one debits the package."""

    driver = await make_driver(free=1, paid=1)
    package = DiagnosisPackage(name="Single", diagnoses_count=1, price=Decimal("10.00"))
    db.add(package)
    await db.flush()
    purchase = DiagnosisPackagePurchase(
        user_id=driver.id,
        diagnosis_package_id=package.id,
        diagnoses_purchased=1,
        diagnoses_remaining=1,
        amount_paid=Decimal("10.00"),
    )
    db.add(purchase)
    await db.commit()
    headers = await auth_headers(driver)

    first = await client.post("/api/v1/diagnoses", json=SYMPTOMS, headers=headers)
    assert first.status_code == 201
    data = first.json()["data"]
    assert data["diagnosis"]["is_free"] is True
    assert data["diagnosis"]["expert_contact_unlocked"] is False
    assert data["diagnosis"]["status"] == "pending"
    assert data["quota"] == {"free_remaining": 0, "paid_remaining": 1, "total_remaining": 1}

    second = await client.post("/api/v1/diagnoses", json=SYMPTOMS, headers=headers)
    assert second.status_code == 201
    data = second.json()["data"]
    assert data["diagnosis"]["is_free"] is False
    assert data["diagnosis"]["expert_contact_unlocked"] is True
    assert data["quota"]["total_remaining"] == 0

    await db.refresh(purchase)
    assert purchase.diagnoses_remaining == 0
    assert purchase.status == PurchaseStatus.EXHAUSTED

    third = await client.post("/api/v1/diagnoses", json=SYMPTOMS, headers=headers)
    assert third.status_code == 403
    assert await _count(db, Diagnosis) == 2
    assert len(queued["diagnosis"]) == 2

    profile = driver.driver_profile
    await db.refresh(profile)
    assert profile.total_diagnoses_used == 2


async def test_leads_use_free_then_package_then_chargeable(
    client, db, make_driver, make_expert, auth_headers, broadcaster, queued
) -> None:
    """Verify each new lead is paid for from the right source."""

    driver = await make_driver(free=3)
    expert = await make_expert(free_leads=1)
    package = LeadPackage(name="Starter", leads_count=1, price=Decimal("25.00"))
    db.add(package)
    await db.flush()
    purchase = LeadPackagePurchase(
        user_id=expert.id,
        lead_package_id=package.id,
        leads_purchased=1,
        leads_remaining=1,
        amount_paid=Decimal("25.00"),
    )
    db.add(purchase)
    await db.commit()
    headers = await auth_headers(driver)

    for _ in range(3):
        response = await client.post("/api/v1/diagnoses", json=SYMPTOMS, headers=headers)
        assert response.status_code == 201
        assert response.json()["data"]["leads_created"] == 1

    leads = (await db.execute(select(Lead).order_by(Lead.id))).scalars().all()
    assert [lead.is_free_lead for lead in leads] == [True, False, False]
    assert [lead.lead_package_purchase_id for lead in leads] == [None, purchase.id, None]
    assert all(lead.expert_id == expert.id and lead.driver_id == driver.id for lead in leads)
    assert all(lead.status.value == "new" for lead in leads)

    activities = (await db.execute(select(LeadActivity).order_by(LeadActivity.id))).scalars().all()
    assert [a.metadata_["source"] for a in activities] == ["free", "package", "chargeable"]

    profile = expert.expert_profile
    await db.refresh(profile)
    await db.refresh(purchase)
    assert profile.free_leads_remaining == 0
    assert profile.total_leads_received == 3
    assert purchase.leads_remaining == 0
    assert purchase.status == PurchaseStatus.EXHAUSTED

    lead_events = broadcaster.named("lead.new")
    assert len(lead_events) == 3
    assert lead_events[0]["channels"] == [f"private-expert.{expert.id}"]
    assert queued["lead"] == [lead.id for lead in leads]


async def test_leads_only_for_listed_experts_in_region(client, db, make_driver, make_expert, auth_headers) -> None:
    """Verify unverified, unavailable and out-of-region experts get no lead."""

    accra = Region(name="Greater Accra", code="GA")
    ashanti = Region(name="Ashanti", code="AS")
    db.add_all([accra, ashanti])
    await db.commit()

    driver = await make_driver(free=1)
    local = await make_expert(region=accra)
    remote = await make_expert(region=ashanti)
    covering = await make_expert(region=ashanti)
    covering.expert_profile.service_regions = [accra]
    await db.commit()
    await make_expert(region=accra, approved=False)
    await make_expert(region=accra, is_available=False)
    await make_expert(region=accra, is_active=False)

    response = await client.post(
        "/api/v1/diagnoses",
        json=dict(SYMPTOMS, region_id=accra.id),
        headers=await auth_headers(driver),
    )

    assert response.status_code == 201
    expert_ids = set((await db.execute(select(Lead.expert_id))).scalars().all())
    assert expert_ids == {local.id, covering.id}
    assert remote.id not in expert_ids


async def test_diagnosis_rejects_foreign_vehicle(client, make_driver, auth_headers) -> None:
    """Verify a vehicle id that the driver does not own is refused."""

    driver = await make_driver()
    response = await client.post(
        "/api/v1/diagnoses",
        json=dict(SYMPTOMS, vehicle_id=999),
        headers=await auth_headers(driver),
    )

    assert response.status_code == 422


async def test_diagnosis_rejects_unknown_region(client, db, make_driver, auth_headers) -> None:
    """Verify an unknown region id is a field error and consumes no quota."""

    driver = await make_driver()
    headers = await auth_headers(driver)

    response = await client.post("/api/v1/diagnoses", json=dict(SYMPTOMS, region_id=9999), headers=headers)
    assert response.status_code == 422
    assert response.json()["message"] == "The selected region is invalid."

    guest = await client.post(
        "/api/v1/diagnoses/guest",
        json=dict(SYMPTOMS, region_id=9999),
        headers={"X-Device-ID": "device-region"},
    )
    assert guest.status_code == 422

    assert await _count(db, Diagnosis) == 0
    profile = (
        await db.execute(
            select(DriverProfile).where(DriverProfile.user_id == driver.id).execution_options(populate_existing=True)
        )
    ).scalar_one()
    assert profile.free_diagnoses_remaining == 5


async def test_diagnosis_validation(client, make_driver, auth_headers) -> None:
    """Verify short descriptions and too many images are rejected."""

    headers = await auth_headers(await make_driver())

    short = await client.post("/api/v1/diagnoses", json={"symptoms_description": "noise"}, headers=headers)
    assert short.status_code == 422

    images = [f"https://cdn.example.com/{i}.jpg" for i in range(6)]
    many = await client.post("/api/v1/diagnoses", json=dict(SYMPTOMS, images=images), headers=headers)
    assert many.status_code == 422


async def test_experts_cannot_submit_driver_diagnoses(client, make_expert, auth_headers) -> None:
    """Verify the driver endpoint is closed to other roles."""

    expert = await make_expert()
    response = await client.post("/api/v1/diagnoses", json=SYMPTOMS, headers=await auth_headers(expert))

    assert response.status_code == 403


async def test_guest_diagnosis_limit_per_device(client, db, make_expert) -> None:
    """Verify a device gets three free diagnoses and is then refused."""

    await make_expert()
    headers = {"X-Device-ID": "device-abc", "X-Device-Type": "android"}

    for _ in range(3):
        response = await client.post("/api/v1/diagnoses/guest", json=SYMPTOMS, headers=headers)
        assert response.status_code == 201
        assert response.json()["data"]["diagnosis"]["is_free"] is True

    blocked = await client.post("/api/v1/diagnoses/guest", json=SYMPTOMS, headers=headers)
    assert blocked.status_code == 403
    assert blocked.json()["code"] == "GUEST_LIMIT_REACHED"
    assert await _count(db, Diagnosis) == 3

    leads = (await db.execute(select(Lead))).scalars().all()
    assert len(leads) == 3
    assert all(lead.driver_id is None for lead in leads)

    quota = await client.get("/api/v1/diagnoses/guest/quota", headers=headers)
    assert quota.json()["data"] == {"total_free": 3, "used": 3, "remaining": 0, "can_diagnose": False}

    other_device = await client.post("/api/v1/diagnoses/guest", json=SYMPTOMS, headers={"X-Device-ID": "device-xyz"})
    assert other_device.status_code == 201


async def test_guest_diagnosis_requires_device_id(client) -> None:
    """Verify a guest request without `X-Device-ID` is a 400."""

    response = await client.post("/api/v1/diagnoses/guest", json=SYMPTOMS)

    assert response.status_code == 400
    assert response.json()["code"] == "DEVICE_ID_REQUIRED"


async def test_driver_sees_only_own_diagnoses(client, make_driver, auth_headers) -> None:
    """Verify listing and detail are scoped to the owner."""

    owner = await make_driver()
    other = await make_driver()
    owner_headers = await auth_headers(owner)

    created = await client.post("/api/v1/diagnoses", json=SYMPTOMS, headers=owner_headers)
    diagnosis_id = created.json()["data"]["diagnosis"]["id"]

    listing = await client.get("/api/v1/diagnoses", headers=owner_headers)
    assert listing.json()["data"]["total"] == 1

    assert (await client.get(f"/api/v1/diagnoses/{diagnosis_id}", headers=owner_headers)).status_code == 200
    foreign = await client.get(f"/api/v1/diagnoses/{diagnosis_id}", headers=await auth_headers(other))
    assert foreign.status_code == 404


async def test_device_registered_concurrently_is_reused(db, monkeypatch) -> None:
    """Verify a duplicate first registration falls back to the stored device."""

    db.add(DeviceFingerprint(device_id="device-race", diagnoses_used=1))
    await db.commit()

    repository = DeviceFingerprintRepository(db)
    lookup = repository.get_by_device_id
    calls = []

    async def lookup_missing_once(device_id):
        calls.append(device_id)
        if len(calls) == 1:
            return None
        return await lookup(device_id)

    monkeypatch.setattr(repository, "get_by_device_id", lookup_missing_once)

    fingerprint = await repository.touch("device-race", app_version="2.1.0")

    assert fingerprint.diagnoses_used == 1
    assert fingerprint.app_version == "2.1.0"
    assert await _count(db, DeviceFingerprint) == 1
