"""
Tests for driver/expert messaging and its real-time events.
"""

from models.user import UserRole


async def _open_conversation(client, headers, other_id):
    response = await client.post("/api/v1/messages/conversations", json={"user_id": other_id}, headers=headers)
    assert response.status_code == 200
    return response.json()["data"]


async def test_conversation_is_unique_per_pair(client, make_driver, make_expert, auth_headers) -> None:
    """Verify opening a conversation twice, from either side, returns the same one."""

    driver = await make_driver()
    expert = await make_expert()

    first = await _open_conversation(client, await auth_headers(driver), expert.id)
    second = await _open_conversation(client, await auth_headers(expert), driver.id)

    assert first["id"] == second["id"]
    assert first["driver_id"] == driver.id
    assert first["expert_id"] == expert.id


async def test_conversation_requires_driver_expert_pair(client, make_driver, make_user, auth_headers) -> None:
    """Verify two drivers (or an admin) cannot open a conversation."""

    driver = await make_driver()
    other_driver = await make_driver()
    admin = await make_user(UserRole.ADMIN)
    headers = await auth_headers(driver)

    same_role = await client.post("/api/v1/messages/conversations", json={"user_id": other_driver.id}, headers=headers)
    assert same_role.status_code == 400

    with_admin = await client.post("/api/v1/messages/conversations", json={"user_id": admin.id}, headers=headers)
    assert with_admin.status_code == 400

    unknown = await client.post("/api/v1/messages/conversations", json={"user_id": 9999}, headers=headers)
    assert unknown.status_code == 404


async def test_send_read_and_unread_counts(client, make_driver, make_expert, auth_headers, broadcaster) -> None:
    """Verify sending publishes `message.new` and reading clears the unread count."""

    driver = await make_driver()
    expert = await make_expert()
    driver_headers = await auth_headers(driver)
    expert_headers = await auth_headers(expert)
    conversation = await _open_conversation(client, driver_headers, expert.id)
    url = f"/api/v1/messages/conversations/{conversation['id']}"

    for text in ("Hello", "Are you available today?"):
        sent = await client.post(url, json={"content": text}, headers=driver_headers)
        assert sent.status_code == 201

    events = broadcaster.named("message.new")
    assert len(events) == 2
    assert events[0]["channels"] == [f"private-conversation.{conversation['id']}"]
    assert events[0]["data"]["sender_name"] == driver.full_name

    unread = await client.get("/api/v1/messages/unread-count", headers=expert_headers)
    assert unread.json()["data"]["unread_count"] == 2
    own = await client.get("/api/v1/messages/unread-count", headers=driver_headers)
    assert own.json()["data"]["unread_count"] == 0

    summaries = await client.get("/api/v1/messages/conversations", headers=expert_headers)
    summary = summaries.json()["data"][0]
    assert summary["unread_count"] == 2
    assert summary["last_message"]["content"] == "Are you available today?"
    assert summary["other_user"]["id"] == driver.id

    read = await client.post(f"{url}/read", headers=expert_headers)
    assert read.json()["data"]["read_count"] == 2
    assert len(broadcaster.named("message.read")) == 1

    unread = await client.get("/api/v1/messages/unread-count", headers=expert_headers)
    assert unread.json()["data"]["unread_count"] == 0


async def test_non_participant_is_forbidden(client, make_driver, make_expert, auth_headers) -> None:
    """Verify outsiders cannot read or post to a conversation."""

    driver = await make_driver()
    expert = await make_expert()
    outsider = await make_driver()
    conversation = await _open_conversation(client, await auth_headers(driver), expert.id)
    url = f"/api/v1/messages/conversations/{conversation['id']}"
    headers = await auth_headers(outsider)

    assert (await client.get(url, headers=headers)).status_code == 403
    posted = await client.post(url, json={"content": "hi"}, headers=headers)
    assert posted.status_code == 403
    assert posted.json()["code"] == "NOT_PARTICIPANT"


async def test_message_validation(client, make_driver, make_expert, auth_headers) -> None:
    """Verify empty text, system messages and incomplete locations are refused."""

    driver = await make_driver()
    expert = await make_expert()
    headers = await auth_headers(driver)
    conversation = await _open_conversation(client, headers, expert.id)
    url = f"/api/v1/messages/conversations/{conversation['id']}"

    assert (await client.post(url, json={"content": "   "}, headers=headers)).status_code == 422
    assert (await client.post(url, json={"content": "x", "type": "system"}, headers=headers)).status_code == 422
    assert (await client.post(url, json={"type": "location", "metadata": {"latitude": 5.6}}, headers=headers)).status_code == 422

    location = await client.post(
        url,
        json={"type": "location", "metadata": {"latitude": 5.6, "longitude": -0.18}},
        headers=headers,
    )
    assert location.status_code == 201
    assert location.json()["data"]["content"] == "[Location shared]"


async def test_delete_only_own_message(client, make_driver, make_expert, auth_headers) -> None:
    """Verify only the sender can delete, and deleted messages leave the thread."""

    driver = await make_driver()
    expert = await make_expert()
    driver_headers = await auth_headers(driver)
    expert_headers = await auth_headers(expert)
    conversation = await _open_conversation(client, driver_headers, expert.id)
    url = f"/api/v1/messages/conversations/{conversation['id']}"
    message = (await client.post(url, json={"content": "Oops"}, headers=driver_headers)).json()["data"]

    forbidden = await client.delete(f"/api/v1/messages/{message['id']}", headers=expert_headers)
    assert forbidden.status_code == 403

    deleted = await client.delete(f"/api/v1/messages/{message['id']}", headers=driver_headers)
    assert deleted.status_code == 200

    thread = await client.get(url, headers=driver_headers)
    assert thread.json()["data"]["total"] == 0


async def test_typing_event(client, make_driver, make_expert, auth_headers, broadcaster) -> None:
    """Verify the typing indicator is broadcast to the conversation channel."""

    driver = await make_driver()
    expert = await make_expert()
    headers = await auth_headers(driver)
    conversation = await _open_conversation(client, headers, expert.id)

    response = await client.post(
        f"/api/v1/messages/conversations/{conversation['id']}/typing",
        json={"is_typing": True},
        headers=headers,
    )

    assert response.status_code == 200
    typing = broadcaster.named("user.typing")
    assert typing[0]["data"]["user_id"] == driver.id
    assert typing[0]["data"]["is_typing"] is True
