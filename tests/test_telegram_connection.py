from __future__ import annotations

import asyncio

from telethon import errors

from adapters.telegram_bot_notifier import BotApiError
from adapters.telegram_connection import TelethonBotConnection, is_conflict_error


class FakeClient:
    def __init__(self) -> None:
        self.disconnected = asyncio.get_running_loop().create_future()
        self.started_with: list[str] = []
        self.disconnects = 0

    async def start(self, bot_token: str) -> None:
        self.started_with.append(bot_token)

    async def disconnect(self) -> None:
        self.disconnects += 1


class FakeBotApi:
    def __init__(self) -> None:
        self.deleted = 0

    async def delete_webhook(self) -> None:
        self.deleted += 1


def test_duplicated_auth_key_is_conflict() -> None:
    error = errors.AuthKeyDuplicatedError(request=None)

    assert is_conflict_error(error)
    assert TelethonBotConnection(object(), "123:abc").is_conflict(error)
    assert not is_conflict_error(errors.FloodWaitError(request=None, capture=5))


def test_bot_api_409_is_conflict() -> None:
    assert is_conflict_error(BotApiError(409, "Conflict: terminated by other getUpdates request"))
    assert not is_conflict_error(BotApiError(502, "Bad Gateway"))
    assert not is_conflict_error(ConnectionError("reset by peer"))


def test_disconnect_with_error_is_reported() -> None:
    reported: list[BaseException] = []

    async def scenario() -> None:
        client = FakeClient()
        connection = TelethonBotConnection(client, "123:abc")
        connection.set_error_handler(reported.append)
        await connection.start()
        client.disconnected.set_exception(ConnectionError("lost"))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert client.started_with == ["123:abc"]

    asyncio.run(scenario())

    assert len(reported) == 1
    assert isinstance(reported[0], ConnectionError)


def test_local_stop_is_not_reported() -> None:
    reported: list[BaseException] = []

    async def scenario() -> None:
        client = FakeClient()
        connection = TelethonBotConnection(client, "123:abc")
        connection.set_error_handler(reported.append)
        await connection.start()
        await connection.stop()
        assert client.disconnects == 1

    asyncio.run(scenario())

    assert reported == []


def test_clear_conflicting_config_deletes_webhook() -> None:
    async def scenario() -> int:
        api = FakeBotApi()
        connection = TelethonBotConnection(FakeClient(), "123:abc", bot_api=api)
        await connection.clear_conflicting_config()
        return api.deleted

    assert asyncio.run(scenario()) == 1
