"""
Tests for private/presence channel authorization and signing.
"""

import hashlib
import hmac
import json

from core.config import settings
from models.diagnosis import Diagnosis
from models.lead import Lead
from services.broadcast_service import Broadcaster, sign_channel

SOCKET_ID = "1234.5678"


def test_sign_channel_matches_hmac() -> None:
    """Verify the signature is `key:hmac_sha256(secret, socket_id:channel)`."""

    expected = hmac.new(
        settings.BROADCAST_SECRET.encode(),
        f"{SOCKET_ID}:private-user.1".encode(),
        hashlib.sha256,
    ).hexdigest()

    assert sign_channel(SOCKET_ID, "private-user.1") == f"{settings.BROADCAST_KEY}:{expected}"


class _RedisSpy:
    def __init__(self):
        self.published = []

    async def publish(self, channel, message):
        self.published.append((channel, json.loads(message)))


async def test_published_message_names_its_channel() -> None:
    """Verify each Redis message carries the channel, event name and data."""

    redis_client = _RedisSpy()

    await Broadcaster(client=redis_client).publish(
        ["private-user.1", "private-diagnosis.7"], "diagnosis.updated", {"diagnosis_id": 7}
    )

    prefix = settings.BROADCAST_CHANNEL_PREFIX
    assert [channel for channel, _ in redis_client.published] == [
        f"{prefix}:private-user.1",
        f"{prefix}:private-diagnosis.7",
    ]
    first = redis_client.published[0][1]
    assert first["channel"] == "private-user.1"
    assert first["event"] == "diagnosis.updated"
    assert first["data"] == {"diagnosis_id": 7}


async def test_own_user_channel_form_post(client, make_driver, auth_headers) -> None:
    """Verify a form-encoded request for the user's own channel is signed."""

    driver = await make_driver()
    channel = f"private-user.{driver.id}"

    response = await client.post(
        "/api/v1/broadcasting/auth",
        data={"socket_id": SOCKET_ID, "channel_name": channel},
        headers=await auth_headers(driver),
    )

    assert response.status_code == 200
    assert response.json() == {"auth": sign_channel(SOCKET_ID, channel)}


async def test_other_users_channel_is_forbidden(client, make_driver, auth_headers) -> None:
    """Verify a user cannot subscribe to someone else's private channel."""

    driver = await make_driver()
    other = await make_driver()

    response = await client.post(
        "/api/v1/broadcasting/auth",
        json={"socket_id": SOCKET_ID, "channel_name": f"private-user.{other.id}"},
        headers=await auth_headers(driver),
    )

    assert response.status_code == 403


async def test_expert_channel_requires_expert_role(client, make_driver, make_expert, auth_headers) -> None:
    """Verify the expert channel is only for the expert it names."""

    expert = await make_expert()
    driver = await make_driver()

    ok = await client.post(
        "/api/v1/broadcasting/auth",
        json={"socket_id": SOCKET_ID, "channel_name": f"private-expert.{expert.id}"},
        headers=await auth_headers(expert),
    )
    assert ok.status_code == 200

    denied = await client.post(
        "/api/v1/broadcasting/auth",
        json={"socket_id": SOCKET_ID, "channel_name": f"private-expert.{driver.id}"},
        headers=await auth_headers(driver),
    )
    assert denied.status_code == 403


async def test_diagnosis_channel_for_owner_and_matched_expert(client, db, make_driver, make_expert, auth_headers) -> None:
    """Verify the driver and experts holding a lead may follow a diagnosis."""

    driver = await make_driver()
    matched = await make_expert()
    unmatched = await make_expert()
    diagnosis = Diagnosis(user_id=driver.id, symptoms_description="Overheating in traffic", is_free=True)
    db.add(diagnosis)
    await db.flush()
    db.add(Lead(diagnosis_id=diagnosis.id, expert_id=matched.id, driver_id=driver.id, is_free_lead=True))
    await db.commit()
    channel = f"private-diagnosis.{diagnosis.id}"

    for user, expected in ((driver, 200), (matched, 200), (unmatched, 403)):
        response = await client.post(
            "/api/v1/broadcasting/auth",
            json={"socket_id": SOCKET_ID, "channel_name": channel},
            headers=await auth_headers(user),
        )
        assert response.status_code == expected


async def test_presence_channel_returns_member_data(client, make_driver, auth_headers) -> None:
    """Verify presence channels sign the member data too."""

    driver = await make_driver(first_name="Ama", last_name="Owusu")

    response = await client.post(
        "/api/v1/broadcasting/auth",
        json={"socket_id": SOCKET_ID, "channel_name": "presence-online"},
        headers=await auth_headers(driver),
    )

    body = response.json()
    channel_data = json.loads(body["channel_data"])
    assert channel_data["user_id"] == driver.id
    assert channel_data["user_info"] == {"id": driver.id, "name": "Ama Owusu", "role": "driver"}
    assert body["auth"] == sign_channel(SOCKET_ID, "presence-online", body["channel_data"])


async def test_unknown_channel_and_bad_socket_id(client, make_driver, auth_headers) -> None:
    """Verify unknown channel names are forbidden and malformed socket ids are invalid."""

    headers = await auth_headers(await make_driver())

    unknown = await client.post(
        "/api/v1/broadcasting/auth",
        json={"socket_id": SOCKET_ID, "channel_name": "private-admin.1"},
        headers=headers,
    )
    assert unknown.status_code == 403

    malformed = await client.post(
        "/api/v1/broadcasting/auth",
        json={"socket_id": "not-a-socket", "channel_name": "presence-online"},
        headers=headers,
    )
    assert malformed.status_code == 422


async def test_malformed_json_body_is_invalid(client, make_driver, auth_headers) -> None:
    """Verify an unparsable JSON body is a 422 rather than a server error."""

    headers = await auth_headers(await make_driver())
    headers["Content-Type"] = "application/json"

    response = await client.post("/api/v1/broadcasting/auth", content=b"{not json", headers=headers)

    assert response.status_code == 422
    assert response.json()["message"] == "Malformed JSON body"
