"""
Tests for expert discovery: nearby search, directory and public profile.
"""

from sqlalchemy.dialects import postgresql

from models.reference import Specialization
from repositories.expert import haversine_expression

ACCRA = {"latitude": 5.6037, "longitude": -0.1870}


async def test_nearby_orders_by_distance_and_excludes_unlisted(client, db, make_expert) -> None:
    """Verify results are nearest first and only include listed experts with coordinates."""

    near = await make_expert(latitude=5.6100, longitude=-0.1900)
    mid = await make_expert(latitude=5.6500, longitude=-0.2000)
    await make_expert(latitude=6.6885, longitude=-1.6244)  # Kumasi
    await make_expert(latitude=5.6040, longitude=-0.1871, approved=False)
    await make_expert(latitude=5.6041, longitude=-0.1872, is_available=False)
    await make_expert()

    response = await client.get("/api/v1/experts/nearby", params=ACCRA)

    assert response.status_code == 200
    data = response.json()["data"]
    assert [e["user_id"] for e in data] == [near.id, mid.id]
    assert 0.5 < data[0]["distance_km"] < 1.0
    assert 5.0 < data[1]["distance_km"] < 6.0


def test_distance_clamps_asin_argument() -> None:
    """Verify the haversine term is capped at 1 before asin on PostgreSQL."""

    sql = str(haversine_expression(5.6, -0.18).compile(dialect=postgresql.dialect()))

    assert "asin(least(" in sql


async def test_nearby_respects_radius_and_specialization(client, db, make_expert) -> None:
    """Verify a smaller radius and a specialization narrow the results."""

    brakes = Specialization(name="Brakes")
    db.add(brakes)
    await db.commit()

    near = await make_expert(latitude=5.6100, longitude=-0.1900, specializations=[brakes])
    mid = await make_expert(latitude=5.6500, longitude=-0.2000)

    small = await client.get("/api/v1/experts/nearby", params=dict(ACCRA, radius=3))
    assert [e["user_id"] for e in small.json()["data"]] == [near.id]

    wide = await client.get("/api/v1/experts/nearby", params=dict(ACCRA, radius=50, specialization_id=brakes.id))
    assert [e["user_id"] for e in wide.json()["data"]] == [near.id]

    unfiltered = await client.get("/api/v1/experts/nearby", params=dict(ACCRA, radius=50))
    assert {e["user_id"] for e in unfiltered.json()["data"]} == {near.id, mid.id}


async def test_nearby_validates_query(client) -> None:
    """Verify out-of-range coordinates and radius are rejected."""

    too_far = await client.get("/api/v1/experts/nearby", params=dict(ACCRA, radius=5000))
    assert too_far.status_code == 422

    bad_lat = await client.get("/api/v1/experts/nearby", params={"latitude": 95, "longitude": 0})
    assert bad_lat.status_code == 422

    missing = await client.get("/api/v1/experts/nearby", params={"latitude": 5.6})
    assert missing.status_code == 422


async def test_directory_puts_priority_listings_first(client, make_driver, make_expert, auth_headers) -> None:
    """Verify priority-listed experts come first, then by rating."""

    good = await make_expert(rating=4.9)
    average = await make_expert(rating=3.0)
    promoted = await make_expert(rating=1.0, is_priority_listed=True)
    await make_expert(rating=5.0, approved=False)

    response = await client.get("/api/v1/experts", headers=await auth_headers(await make_driver()))

    data = response.json()["data"]
    assert data["total"] == 3
    assert [e["user_id"] for e in data["items"]] == [promoted.id, good.id, average.id]


async def test_directory_search(client, make_driver, make_expert, auth_headers) -> None:
    """Verify the search term matches business and personal names."""

    osei = await make_expert(last_name="Osei")
    await make_expert(last_name="Boateng")

    response = await client.get(
        "/api/v1/experts",
        params={"search": "osei"},
        headers=await auth_headers(await make_driver()),
    )

    assert [e["user_id"] for e in response.json()["data"]["items"]] == [osei.id]


async def test_expert_detail_only_for_listed_experts(client, make_driver, make_expert, auth_headers) -> None:
    """Verify the public profile is served for listed experts and 404 otherwise."""

    headers = await auth_headers(await make_driver())
    listed = await make_expert()
    hidden = await make_expert(approved=False)

    shown = await client.get(f"/api/v1/experts/{listed.id}", headers=headers)
    assert shown.status_code == 200
    assert shown.json()["data"]["user_id"] == listed.id
    assert shown.json()["data"]["reviews"] == []

    missing = await client.get(f"/api/v1/experts/{hidden.id}", headers=headers)
    assert missing.status_code == 404
