"""
Tests for the expert lead workflow and driver reviews.

Covers:
- Only KYC-approved experts reach the lead endpoints.
- Viewing is idempotent; contact, convert and close follow the status rules.
- Stats count leads by status.
- Drivers review a lead once and the expert rating is updated.
"""

from sqlalchemy import select

from models.diagnosis import Diagnosis
from models.lead import Lead, LeadActivity, LeadStatus


async def _lead_for(db, expert, driver=None, status=LeadStatus.NEW) -> Lead:
    diagnosis = Diagnosis(
        user_id=driver.id if driver else None,
        symptoms_description="Brakes squeal at low speed",
        is_free=True,
    )
    db.add(diagnosis)
    await db.flush()
    lead = Lead(
        diagnosis_id=diagnosis.id,
        expert_id=expert.id,
        driver_id=driver.id if driver else None,
        status=status,
        is_free_lead=True,
    )
    db.add(lead)
    await db.commit()
    await db.refresh(lead)
    return lead


async def _activity_types(db, lead_id):
    result = await db.execute(
        select(LeadActivity.activity_type).where(LeadActivity.lead_id == lead_id).order_by(LeadActivity.id)
    )
    return list(result.scalars().all())


async def test_unapproved_expert_cannot_list_leads(client, make_expert, auth_headers) -> None:
    """Verify pending KYC blocks the lead endpoints."""

    expert = await make_expert(approved=False)
    response = await client.get("/api/v1/leads", headers=await auth_headers(expert))

    assert response.status_code == 403


async def test_list_leads_with_status_filter(client, db, make_expert, auth_headers) -> None:
    """Verify leads are listed for their expert only and filtered by status."""

    expert = await make_expert()
    other = await make_expert()
    await _lead_for(db, expert)
    await _lead_for(db, expert, status=LeadStatus.CONTACTED)
    await _lead_for(db, other)
    headers = await auth_headers(expert)

    everything = await client.get("/api/v1/leads", headers=headers)
    assert everything.json()["data"]["total"] == 2
    assert everything.json()["data"]["items"][0]["diagnosis"]["symptoms_description"]

    contacted = await client.get("/api/v1/leads", params={"status": "contacted"}, headers=headers)
    assert contacted.json()["data"]["total"] == 1


async def test_view_is_idempotent(client, db, make_expert, auth_headers) -> None:
    """Verify the first view stamps `viewed_at` and later views change nothing."""

    expert = await make_expert()
    lead = await _lead_for(db, expert)
    headers = await auth_headers(expert)

    first = await client.put(f"/api/v1/leads/{lead.id}/view", headers=headers)
    assert first.status_code == 200
    assert first.json()["data"]["status"] == "viewed"
    viewed_at = first.json()["data"]["viewed_at"]

    second = await client.put(f"/api/v1/leads/{lead.id}/view", headers=headers)
    assert second.json()["data"]["viewed_at"] == viewed_at
    assert await _activity_types(db, lead.id) == ["viewed"]


async def test_full_lifecycle_and_terminal_state(client, db, make_expert, auth_headers, broadcaster) -> None:
    """Verify new -> contacted -> converted and that converted leads are final."""

    expert = await make_expert()
    lead = await _lead_for(db, expert)
    headers = await auth_headers(expert)

    contacted = await client.put(f"/api/v1/leads/{lead.id}/contact", headers=headers)
    assert contacted.status_code == 200
    data = contacted.json()["data"]
    assert data["status"] == "contacted"
    assert data["viewed_at"] is not None
    assert data["contacted_at"] is not None

    converted = await client.put(f"/api/v1/leads/{lead.id}/convert", headers=headers)
    assert converted.json()["data"]["status"] == "converted"

    closed = await client.put(f"/api/v1/leads/{lead.id}/close", headers=headers)
    assert closed.status_code == 400
    assert closed.json()["code"] == "INVALID_TRANSITION"

    profile = expert.expert_profile
    await db.refresh(profile)
    assert profile.jobs_completed == 1
    assert await _activity_types(db, lead.id) == ["contacted", "converted"]

    changes = broadcaster.named("lead.status_changed")
    assert [e["data"]["status"] for e in changes] == ["contacted", "converted"]
    assert changes[0]["channels"] == [f"private-lead.{lead.id}"]


async def test_close_with_reason(client, db, make_expert, auth_headers) -> None:
    """Verify closing stores the reason and blocks later contact."""

    expert = await make_expert()
    lead = await _lead_for(db, expert)
    headers = await auth_headers(expert)

    closed = await client.put(f"/api/v1/leads/{lead.id}/close", json={"reason": "Driver went elsewhere"}, headers=headers)
    assert closed.status_code == 200
    assert closed.json()["data"]["notes"] == "Driver went elsewhere"

    contact = await client.put(f"/api/v1/leads/{lead.id}/contact", headers=headers)
    assert contact.status_code == 400


async def test_other_experts_lead_is_not_found(client, db, make_expert, auth_headers) -> None:
    """Verify an expert cannot touch another expert's lead."""

    owner = await make_expert()
    intruder = await make_expert()
    lead = await _lead_for(db, owner)

    response = await client.put(f"/api/v1/leads/{lead.id}/view", headers=await auth_headers(intruder))

    assert response.status_code == 404


async def test_lead_detail_includes_activities(client, db, make_expert, auth_headers) -> None:
    """Verify the detail view returns the activity trail."""

    expert = await make_expert()
    lead = await _lead_for(db, expert)
    headers = await auth_headers(expert)
    await client.put(f"/api/v1/leads/{lead.id}/contact", headers=headers)

    response = await client.get(f"/api/v1/leads/{lead.id}", headers=headers)

    assert response.status_code == 200
    assert [a["activity_type"] for a in response.json()["data"]["activities"]] == ["contacted"]


async def test_stats_count_by_status(client, db, make_expert, auth_headers) -> None:
    """Verify stats add up per status and include the free-lead balance."""

    expert = await make_expert(free_leads=2)
    await _lead_for(db, expert)
    await _lead_for(db, expert)
    await _lead_for(db, expert, status=LeadStatus.VIEWED)
    await _lead_for(db, expert, status=LeadStatus.CONVERTED)
    await _lead_for(db, expert, status=LeadStatus.EXPIRED)

    response = await client.get("/api/v1/leads/stats", headers=await auth_headers(expert))

    stats = response.json()["data"]
    assert stats["total"] == 5
    assert stats["new"] == 2
    assert stats["viewed"] == 1
    assert stats["contacted"] == 0
    assert stats["converted"] == 1
    assert stats["this_month"] == 5
    assert stats["free_leads_remaining"] == 2


async def test_driver_reviews_lead_once(client, db, make_driver, make_expert, auth_headers) -> None:
    """Verify a review updates the expert rating and cannot be repeated."""

    driver = await make_driver()
    expert = await make_expert()
    first_lead = await _lead_for(db, expert, driver=driver)
    second_lead = await _lead_for(db, expert, driver=driver)
    headers = await auth_headers(driver)

    response = await client.post("/api/v1/reviews", json={"lead_id": first_lead.id, "rating": 5}, headers=headers)
    assert response.status_code == 201
    await client.post("/api/v1/reviews", json={"lead_id": second_lead.id, "rating": 4}, headers=headers)

    profile = expert.expert_profile
    await db.refresh(profile)
    assert profile.rating_count == 2
    assert profile.rating == 4.5

    again = await client.post("/api/v1/reviews", json={"lead_id": first_lead.id, "rating": 1}, headers=headers)
    assert again.status_code == 422
    assert again.json()["message"] == "This lead has already been reviewed."


async def test_review_requires_own_lead(client, db, make_driver, make_expert, auth_headers) -> None:
    """Verify a driver cannot review somebody else's lead."""

    owner = await make_driver()
    stranger = await make_driver()
    lead = await _lead_for(db, await make_expert(), driver=owner)

    response = await client.post(
        "/api/v1/reviews",
        json={"lead_id": lead.id, "rating": 3},
        headers=await auth_headers(stranger),
    )

    assert response.status_code == 404
