"""
Tests for maintenance types, reminders and the service log.

Covers:
- System types are public; drivers add, edit and delete their own types only.
- Reminders validate their vehicle and type and take intervals from the type.
- Reminders list overdue first, then by due date.
- Completing a recurring reminder logs the service and rolls the due date forward.
- Snoozing and the daily status refresh.
"""

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import select

from models.maintenance import MaintenanceLog, MaintenanceReminder, MaintenanceType, ReminderStatus
from models.user import User, UserRole
from models.vehicle import Vehicle
from services.helpers import add_months, utcnow
from tasks.maintenance_tasks import refresh_reminder_statuses


async def _system_type(db, name="Oil Change", km=5000, months=6) -> MaintenanceType:
    maintenance_type = MaintenanceType(name=name, default_interval_km=km, default_interval_months=months)
    db.add(maintenance_type)
    await db.commit()
    await db.refresh(maintenance_type)
    return maintenance_type


async def _vehicle(db, owner, mileage=42000) -> Vehicle:
    vehicle = Vehicle(user_id=owner.id, custom_make="Toyota", custom_model="Corolla", mileage=mileage)
    db.add(vehicle)
    await db.commit()
    await db.refresh(vehicle)
    return vehicle


async def _reminder(db, owner, vehicle, maintenance_type, **fields) -> MaintenanceReminder:
    reminder = MaintenanceReminder(
        user_id=owner.id,
        vehicle_id=vehicle.id,
        maintenance_type_id=maintenance_type.id,
        **fields,
    )
    db.add(reminder)
    await db.commit()
    await db.refresh(reminder)
    return reminder


async def test_types_are_public_and_include_own(client, db, make_driver, auth_headers) -> None:
    """Verify guests see system types and drivers also see the types they added."""

    await _system_type(db)
    driver = await make_driver()
    headers = await auth_headers(driver)

    created = await client.post(
        "/api/v1/maintenance-types",
        json={"name": "Timing Belt", "default_interval_km": 90000},
        headers=headers,
    )
    assert created.status_code == 201
    assert created.json()["data"]["slug"] == "timing-belt"
    assert created.json()["data"]["is_system"] is False

    public = await client.get("/api/v1/maintenance-types")
    assert [t["name"] for t in public.json()["data"]] == ["Oil Change"]

    own = await client.get("/api/v1/maintenance-types", headers=headers)
    assert [t["name"] for t in own.json()["data"]] == ["Oil Change", "Timing Belt"]


async def test_only_owner_changes_a_type(client, db, make_driver, auth_headers) -> None:
    """Verify system types are read-only and types still in use cannot be deleted."""

    system = await _system_type(db)
    driver = await make_driver()
    headers = await auth_headers(driver)
    own = (await client.post("/api/v1/maintenance-types", json={"name": "Coolant"}, headers=headers)).json()["data"]

    locked = await client.put(f"/api/v1/maintenance-types/{system.id}", json={"name": "Oil"}, headers=headers)
    assert locked.status_code == 403

    renamed = await client.put(f"/api/v1/maintenance-types/{own['id']}", json={"is_critical": True}, headers=headers)
    assert renamed.json()["data"]["is_critical"] is True

    vehicle = await _vehicle(db, driver)
    own_type = await db.get(MaintenanceType, own["id"])
    await _reminder(db, driver, vehicle, own_type)
    in_use = await client.delete(f"/api/v1/maintenance-types/{own['id']}", headers=headers)
    assert in_use.status_code == 422

    spare = (await client.post("/api/v1/maintenance-types", json={"name": "Wipers"}, headers=headers)).json()["data"]
    deleted = await client.delete(f"/api/v1/maintenance-types/{spare['id']}", headers=headers)
    assert deleted.status_code == 200
    assert await db.get(MaintenanceType, spare["id"]) is None


async def test_create_reminder_uses_type_defaults(client, db, make_driver, auth_headers) -> None:
    """Verify intervals come from the type and the first due date follows the month interval."""

    driver = await make_driver()
    vehicle = await _vehicle(db, driver)
    oil = await _system_type(db)

    response = await client.post(
        "/api/v1/maintenance/reminders",
        json={"vehicle_id": vehicle.id, "maintenance_type_id": oil.id},
        headers=await auth_headers(driver),
    )

    data = response.json()["data"]
    assert response.status_code == 201
    assert data["status"] == "upcoming"
    assert data["title"] == "Oil Change"
    assert data["interval_km"] == 5000
    assert data["interval_months"] == 6
    assert data["due_date"] == add_months(date.today(), 6).isoformat()
    assert data["is_recurring"] is True


async def test_create_reminder_validation(client, db, make_driver, auth_headers) -> None:
    """Verify foreign vehicles, other drivers' types and past due dates are rejected."""

    driver = await make_driver()
    other = await make_driver()
    headers = await auth_headers(driver)
    vehicle = await _vehicle(db, driver)
    foreign_vehicle = await _vehicle(db, other)
    oil = await _system_type(db)
    private = MaintenanceType(user_id=other.id, name="Secret sauce")
    db.add(private)
    await db.commit()

    url = "/api/v1/maintenance/reminders"
    wrong_vehicle = await client.post(
        url, json={"vehicle_id": foreign_vehicle.id, "maintenance_type_id": oil.id}, headers=headers
    )
    assert wrong_vehicle.json()["message"] == "The selected vehicle is invalid."

    wrong_type = await client.post(
        url, json={"vehicle_id": vehicle.id, "maintenance_type_id": private.id}, headers=headers
    )
    assert wrong_type.status_code == 422
    assert wrong_type.json()["message"] == "The selected maintenance type is invalid."

    past_due = await client.post(
        url,
        json={"vehicle_id": vehicle.id, "maintenance_type_id": oil.id, "due_date": date.today().isoformat()},
        headers=headers,
    )
    assert past_due.status_code == 422

    long_interval = await client.post(
        url,
        json={"vehicle_id": vehicle.id, "maintenance_type_id": oil.id, "interval_months": 61},
        headers=headers,
    )
    assert long_interval.status_code == 422


async def test_reminders_listed_by_urgency(client, db, make_driver, auth_headers) -> None:
    """Verify overdue reminders come first, then due, then upcoming by date; deleted ones disappear."""

    driver = await make_driver()
    vehicle = await _vehicle(db, driver)
    oil = await _system_type(db)
    today = date.today()
    later = await _reminder(db, driver, vehicle, oil, due_date=today + timedelta(days=90))
    sooner = await _reminder(db, driver, vehicle, oil, due_date=today + timedelta(days=30))
    done = await _reminder(db, driver, vehicle, oil, status=ReminderStatus.COMPLETED, is_recurring=False)
    overdue = await _reminder(db, driver, vehicle, oil, status=ReminderStatus.OVERDUE, due_date=today - timedelta(days=3))
    due = await _reminder(db, driver, vehicle, oil, status=ReminderStatus.DUE, due_date=today + timedelta(days=2))
    gone = await _reminder(db, driver, vehicle, oil, due_date=today + timedelta(days=10))
    headers = await auth_headers(driver)

    deleted = await client.delete(f"/api/v1/maintenance/reminders/{gone.id}", headers=headers)
    assert deleted.status_code == 200

    response = await client.get("/api/v1/maintenance/reminders", headers=headers)
    ids = [r["id"] for r in response.json()["data"]["items"]]
    assert ids == [overdue.id, due.id, sooner.id, later.id, done.id]

    filtered = await client.get("/api/v1/maintenance/reminders", params={"status": "overdue"}, headers=headers)
    assert filtered.json()["data"]["total"] == 1

    missing = await client.get(f"/api/v1/maintenance/reminders/{gone.id}", headers=headers)
    assert missing.status_code == 404


async def test_complete_recurring_reminder_rolls_forward(client, db, make_driver, auth_headers) -> None:
    """Verify completion writes a log and sets the next due date and mileage."""

    driver = await make_driver()
    vehicle = await _vehicle(db, driver)
    oil = await _system_type(db)
    reminder = await _reminder(
        db,
        driver,
        vehicle,
        oil,
        status=ReminderStatus.OVERDUE,
        due_date=date.today() - timedelta(days=5),
        interval_km=5000,
        interval_months=6,
    )
    completed_on = date.today() - timedelta(days=1)

    response = await client.post(
        f"/api/v1/maintenance/reminders/{reminder.id}/complete",
        json={
            "completed_date": completed_on.isoformat(),
            "mileage": 45000,
            "cost": 250,
            "service_provider": "Kwame Auto Works",
            "parts_replaced": ["oil filter"],
        },
        headers=await auth_headers(driver),
    )

    data = response.json()["data"]
    assert response.status_code == 200
    assert data["reminder"]["status"] == "upcoming"
    assert data["reminder"]["due_date"] == add_months(completed_on, 6).isoformat()
    assert data["reminder"]["due_mileage"] == 50000
    assert data["reminder"]["last_completed_cost"] == 250.0
    assert data["log"]["mileage_at_service"] == 45000
    assert data["log"]["parts_replaced"] == ["oil filter"]


async def test_complete_one_off_reminder_uses_vehicle_mileage(client, db, make_driver, auth_headers) -> None:
    """Verify a one-off reminder stays completed and the log falls back to the vehicle mileage."""

    driver = await make_driver()
    vehicle = await _vehicle(db, driver, mileage=61000)
    oil = await _system_type(db)
    reminder = await _reminder(db, driver, vehicle, oil, is_recurring=False, due_date=date.today())
    headers = await auth_headers(driver)
    url = f"/api/v1/maintenance/reminders/{reminder.id}/complete"

    future = await client.post(url, json={"completed_date": (date.today() + timedelta(days=1)).isoformat()}, headers=headers)
    assert future.status_code == 422

    response = await client.post(url, json={"completed_date": date.today().isoformat()}, headers=headers)
    data = response.json()["data"]
    assert data["reminder"]["status"] == "completed"
    assert data["reminder"]["due_date"] == date.today().isoformat()
    assert data["log"]["mileage_at_service"] == 61000

    logs = await client.get("/api/v1/maintenance/logs", headers=headers)
    assert logs.json()["data"]["total"] == 1
    assert logs.json()["data"]["items"][0]["maintenance_type"]["name"] == "Oil Change"


async def test_logs_newest_first_and_owned(client, db, make_driver, auth_headers) -> None:
    """Verify the log lists the driver's own services, most recent first."""

    driver = await make_driver()
    other = await make_driver()
    vehicle = await _vehicle(db, driver)
    oil = await _system_type(db)
    for days_ago in (60, 5, 30):
        db.add(
            MaintenanceLog(
                user_id=driver.id,
                vehicle_id=vehicle.id,
                maintenance_type_id=oil.id,
                completed_date=date.today() - timedelta(days=days_ago),
                cost=Decimal("100.00"),
            )
        )
    await db.commit()

    mine = await client.get("/api/v1/maintenance/logs", headers=await auth_headers(driver))
    dates = [log["completed_date"] for log in mine.json()["data"]["items"]]
    assert dates == sorted(dates, reverse=True)
    assert len(dates) == 3

    theirs = await client.get("/api/v1/maintenance/logs", headers=await auth_headers(other))
    assert theirs.json()["data"]["total"] == 0


async def test_snooze_reminder(client, db, make_driver, auth_headers) -> None:
    """Verify snoozing defaults to seven days and refuses more than thirty."""

    driver = await make_driver()
    vehicle = await _vehicle(db, driver)
    oil = await _system_type(db)
    reminder = await _reminder(db, driver, vehicle, oil, status=ReminderStatus.DUE, due_date=date.today())
    headers = await auth_headers(driver)
    url = f"/api/v1/maintenance/reminders/{reminder.id}/snooze"

    assert (await client.post(url, json={"days": 31}, headers=headers)).status_code == 422

    response = await client.post(url, headers=headers)
    data = response.json()["data"]
    assert data["status"] == "snoozed"
    assert data["snoozed_until"][:10] == (utcnow() + timedelta(days=7)).date().isoformat()


async def test_update_reminder_resets_status_on_new_due_date(client, db, make_driver, auth_headers) -> None:
    """Verify moving the due date of an overdue reminder makes it upcoming again."""

    driver = await make_driver()
    vehicle = await _vehicle(db, driver)
    oil = await _system_type(db)
    reminder = await _reminder(
        db, driver, vehicle, oil, status=ReminderStatus.OVERDUE, due_date=date.today() - timedelta(days=1)
    )
    new_due = date.today() + timedelta(days=14)

    response = await client.put(
        f"/api/v1/maintenance/reminders/{reminder.id}",
        json={"due_date": new_due.isoformat(), "custom_title": "Oil before the trip"},
        headers=await auth_headers(driver),
    )

    data = response.json()["data"]
    assert data["status"] == "upcoming"
    assert data["title"] == "Oil before the trip"
    assert data["due_date"] == new_due.isoformat()


def test_refresh_reminder_statuses(sync_db) -> None:
    """Verify the daily refresh wakes snoozes and marks due and overdue reminders."""

    now = utcnow()
    today = now.date()
    owner = User(first_name="Ama", last_name="Owusu", email="ama@example.com", password_hash="x", role=UserRole.DRIVER)
    sync_db.add(owner)
    sync_db.flush()
    vehicle = Vehicle(user_id=owner.id, custom_make="Kia")
    oil = MaintenanceType(name="Oil Change", slug="oil-change")
    sync_db.add_all([vehicle, oil])
    sync_db.flush()

    def reminder(**fields):
        row = MaintenanceReminder(user_id=owner.id, vehicle_id=vehicle.id, maintenance_type_id=oil.id, **fields)
        sync_db.add(row)
        return row

    late = reminder(status=ReminderStatus.UPCOMING, due_date=today - timedelta(days=1))
    soon = reminder(status=ReminderStatus.UPCOMING, due_date=today + timedelta(days=3))
    far = reminder(status=ReminderStatus.UPCOMING, due_date=today + timedelta(days=60))
    woken = reminder(status=ReminderStatus.SNOOZED, snoozed_until=now - timedelta(hours=1), due_date=today)
    sleeping = reminder(status=ReminderStatus.SNOOZED, snoozed_until=now + timedelta(days=2), due_date=today)
    removed = reminder(status=ReminderStatus.UPCOMING, due_date=today - timedelta(days=9), deleted_at=now)
    sync_db.commit()

    counts = refresh_reminder_statuses(sync_db, now=now)

    sync_db.expire_all()
    assert counts == {"woken": 1, "overdue": 1, "due": 2}
    assert late.status == ReminderStatus.OVERDUE
    assert soon.status == ReminderStatus.DUE
    assert far.status == ReminderStatus.UPCOMING
    assert woken.status == ReminderStatus.DUE
    assert woken.snoozed_until is None
    assert sleeping.status == ReminderStatus.SNOOZED
    assert removed.status == ReminderStatus.UPCOMING
    assert sync_db.execute(select(MaintenanceLog)).scalars().all() == []
