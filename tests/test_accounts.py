"""
Tests for account management: vehicles, profile, preferences, reference data and admin.
"""

from models.profile import KycStatus
from models.reference import Region, Setting, VehicleMake, VehicleModel
from models.user import UserRole

from conftest import PASSWORD


async def test_vehicle_create_requires_a_make(client, make_driver, auth_headers) -> None:
    """Verify a vehicle needs either a catalogue make or a custom one."""

    headers = await auth_headers(await make_driver())

    missing = await client.post("/api/v1/vehicles", json={"year": 2015}, headers=headers)
    assert missing.status_code == 422

    future = await client.post("/api/v1/vehicles", json={"custom_make": "Kia", "year": 2999}, headers=headers)
    assert future.status_code == 422


async def test_first_vehicle_is_primary_and_primary_is_unique(client, db, make_driver, auth_headers) -> None:
    """Verify the first vehicle becomes primary and switching primary clears the old one."""

    toyota = VehicleMake(name="Toyota")
    db.add(toyota)
    await db.commit()
    headers = await auth_headers(await make_driver())

    first = await client.post("/api/v1/vehicles", json={"vehicle_make_id": toyota.id, "year": 2012}, headers=headers)
    assert first.status_code == 201
    assert first.json()["data"]["is_primary"] is True
    assert first.json()["data"]["make_name"] == "Toyota"

    second = await client.post("/api/v1/vehicles", json={"custom_make": "Kantanka", "nickname": "Work"}, headers=headers)
    assert second.json()["data"]["is_primary"] is False

    switched = await client.put(f"/api/v1/vehicles/{second.json()['data']['id']}/primary", headers=headers)
    assert switched.json()["data"]["is_primary"] is True

    listed = await client.get("/api/v1/vehicles", headers=headers)
    assert [v["is_primary"] for v in listed.json()["data"]] == [True, False]
    assert listed.json()["data"][0]["make_name"] == "Kantanka"


async def test_vehicle_soft_delete_and_ownership(client, make_driver, auth_headers) -> None:
    """Verify deleted vehicles disappear and other drivers cannot see them."""

    owner_headers = await auth_headers(await make_driver())
    stranger_headers = await auth_headers(await make_driver())
    created = await client.post("/api/v1/vehicles", json={"custom_make": "Honda"}, headers=owner_headers)
    url = f"/api/v1/vehicles/{created.json()['data']['id']}"

    assert (await client.get(url, headers=stranger_headers)).status_code == 404

    deleted = await client.delete(url, headers=owner_headers)
    assert deleted.status_code == 200
    assert (await client.get(url, headers=owner_headers)).status_code == 404
    assert (await client.get("/api/v1/vehicles", headers=owner_headers)).json()["data"] == []

    again = await client.post("/api/v1/vehicles", json={"custom_make": "Nissan"}, headers=owner_headers)
    assert again.json()["data"]["is_primary"] is True


async def test_experts_cannot_manage_vehicles(client, make_expert, auth_headers) -> None:
    """Verify the garage is driver-only."""

    response = await client.get("/api/v1/vehicles", headers=await auth_headers(await make_expert()))

    assert response.status_code == 403


async def test_profile_update_and_phone_uniqueness(client, make_driver, auth_headers) -> None:
    """Verify the profile can be edited and a taken phone number is refused."""

    await make_driver(phone="+233201111111")
    driver = await make_driver()
    headers = await auth_headers(driver)

    updated = await client.put("/api/v1/profile", json={"first_name": "Kojo"}, headers=headers)
    assert updated.json()["data"]["first_name"] == "Kojo"
    assert updated.json()["data"]["driver_profile"]["free_diagnoses_remaining"] == 5

    taken = await client.put("/api/v1/profile", json={"phone": "+233201111111"}, headers=headers)
    assert taken.status_code == 422
    assert taken.json()["message"] == "The phone has already been taken."


async def test_change_password(client, make_driver, auth_headers) -> None:
    """Verify the current password is checked before changing it."""

    driver = await make_driver()
    headers = await auth_headers(driver)

    wrong = await client.put(
        "/api/v1/profile/password",
        json={"current_password": "nope", "password": "new-password-1", "password_confirmation": "new-password-1"},
        headers=headers,
    )
    assert wrong.status_code == 422

    changed = await client.put(
        "/api/v1/profile/password",
        json={"current_password": PASSWORD, "password": "new-password-1", "password_confirmation": "new-password-1"},
        headers=headers,
    )
    assert changed.status_code == 200

    login = await client.post("/api/v1/auth/login", json={"email": driver.email, "password": "new-password-1"})
    assert login.status_code == 200


async def test_preferences_update_and_validation(client, make_driver, auth_headers) -> None:
    """Verify preferences default sensibly and reject unknown values."""

    headers = await auth_headers(await make_driver())

    shown = await client.get("/api/v1/preferences", headers=headers)
    assert shown.json()["data"]["language"] == "en"
    assert shown.json()["data"]["theme"] == "system"

    updated = await client.put("/api/v1/preferences", json={"theme": "dark", "language": "fr"}, headers=headers)
    assert updated.json()["data"]["theme"] == "dark"
    assert updated.json()["data"]["language"] == "fr"

    invalid = await client.put("/api/v1/preferences", json={"distance_unit": "furlongs"}, headers=headers)
    assert invalid.status_code == 422


async def test_reference_data(client, db) -> None:
    """Verify regions, makes, models and public settings are served."""

    toyota = VehicleMake(name="Toyota")
    db.add_all(
        [
            Region(name="Greater Accra", code="GA"),
            Region(name="Ashanti", code="AH"),
            Region(name="Old Region", code="OR", is_active=False),
            toyota,
            Setting(key="support_phone", value="+233300000000", is_public=True),
            Setting(key="free_diagnoses", value="5", type="integer", is_public=True),
            Setting(key="secret_key", value="hidden"),
        ]
    )
    await db.flush()
    db.add(VehicleModel(vehicle_make_id=toyota.id, name="Corolla"))
    await db.commit()

    regions = await client.get("/api/v1/regions")
    assert [r["name"] for r in regions.json()["data"]] == ["Ashanti", "Greater Accra"]

    models = await client.get(f"/api/v1/vehicle-makes/{toyota.id}/models")
    assert [m["slug"] for m in models.json()["data"]] == ["corolla"]
    assert (await client.get("/api/v1/vehicle-makes/999/models")).status_code == 404

    settings = await client.get("/api/v1/settings/public")
    assert settings.json()["data"] == {"free_diagnoses": 5, "support_phone": "+233300000000"}


async def test_admin_kyc_review(client, make_user, make_expert, auth_headers) -> None:
    """Verify submitted KYC is listed and an admin decision is recorded."""

    admin_headers = await auth_headers(await make_user(UserRole.ADMIN))
    expert = await make_expert(approved=False)
    expert_headers = await auth_headers(expert)

    early = await client.post(f"/api/v1/admin/kyc/{expert.id}/decision", json={"approved": True}, headers=admin_headers)
    assert early.status_code == 400

    submitted = await client.post("/api/v1/expert/kyc/submit", headers=expert_headers)
    assert submitted.status_code == 200

    queue = await client.get("/api/v1/admin/kyc", headers=admin_headers)
    assert [item["user"]["id"] for item in queue.json()["data"]] == [expert.id]

    rejected = await client.post(
        f"/api/v1/admin/kyc/{expert.id}/decision",
        json={"approved": False, "reason": "Blurry ID card"},
        headers=admin_headers,
    )
    assert rejected.json()["data"]["kyc_status"] == KycStatus.REJECTED.value
    assert rejected.json()["data"]["kyc_rejection_reason"] == "Blurry ID card"

    await client.post("/api/v1/expert/kyc/submit", headers=expert_headers)
    approved = await client.post(
        f"/api/v1/admin/kyc/{expert.id}/decision", json={"approved": True}, headers=admin_headers
    )
    assert approved.json()["data"]["kyc_status"] == KycStatus.APPROVED.value

    leads = await client.get("/api/v1/leads", headers=expert_headers)
    assert leads.status_code == 200


async def test_admin_deactivation_revokes_sessions(client, make_user, make_driver, auth_headers) -> None:
    """Verify deactivation logs the user out and admins cannot deactivate themselves."""

    admin = await make_user(UserRole.ADMIN)
    admin_headers = await auth_headers(admin)
    driver = await make_driver()
    driver_headers = await auth_headers(driver)

    assert (await client.get("/api/v1/admin/dashboard", headers=driver_headers)).status_code == 403

    deactivated = await client.post(f"/api/v1/admin/users/{driver.id}/deactivate", headers=admin_headers)
    assert deactivated.status_code == 200
    assert (await client.get("/api/v1/auth/me", headers=driver_headers)).status_code == 401

    self_change = await client.post(f"/api/v1/admin/users/{admin.id}/deactivate", headers=admin_headers)
    assert self_change.status_code == 400

    dashboard = await client.get("/api/v1/admin/dashboard", headers=admin_headers)
    assert dashboard.json()["data"]["users_by_role"] == {"admin": 1, "driver": 1}
