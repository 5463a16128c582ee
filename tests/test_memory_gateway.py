"""
Tests du backend mémoire: points, transferts, classement, XP, commandes perso
"""
import asyncio

import pytest

from botcore.backends import MemoryGateway
from botcore.gateway import PersistenceGateway
from botcore.models import CustomCommand, TransferResult, UserRef

C = "chan"


@pytest.fixture
def gw():
    return MemoryGateway()


def test_satisfies_protocol(gw):
    assert isinstance(gw, PersistenceGateway)


class TestPoints:
    @pytest.mark.asyncio
    async def test_unknown_user_has_zero(self, gw):
        assert await gw.get_balance(C, "nobody") == 0

    @pytest.mark.asyncio
    async def test_add_returns_new_balance(self, gw):
        assert await gw.add_points(C, "bob", 10, username="bob") == 10
        assert await gw.add_points(C, "bob", 5) == 15

    @pytest.mark.asyncio
    async def test_non_positive_amount_rejected(self, gw):
        with pytest.raises(ValueError):
            await gw.add_points(C, "bob", 0)
        with pytest.raises(ValueError):
            await gw.remove_points(C, "bob", -3)

    @pytest.mark.asyncio
    async def test_remove_clamps_at_zero(self, gw):
        await gw.add_points(C, "bob", 10)
        assert await gw.remove_points(C, "bob", 25) == 10
        assert await gw.get_balance(C, "bob") == 0

    @pytest.mark.asyncio
    async def test_channels_are_separate(self, gw):
        await gw.add_points("a", "bob", 10)
        assert await gw.get_balance("b", "bob") == 0

    @pytest.mark.asyncio
    async def test_concurrent_adds_not_lost(self, gw):
        await asyncio.gather(*(gw.add_points(C, "bob", 1) for _ in range(100)))
        assert await gw.get_balance(C, "bob") == 100


class TestTransfer:
    @pytest.mark.asyncio
    async def test_insufficient_funds(self, gw):
        """bob a 10, transfert de 15 vers carol: rien ne bouge"""
        await gw.add_points(C, "bob", 10)
        carol_before = await gw.get_balance(C, "carol")
        assert await gw.transfer(C, "bob", "carol", 15) is TransferResult.INSUFFICIENT_FUNDS
        assert await gw.get_balance(C, "bob") == 10
        assert await gw.get_balance(C, "carol") == carol_before

    @pytest.mark.asyncio
    async def test_ok(self, gw):
        await gw.add_points(C, "bob", 10)
        result = await gw.transfer(C, "bob", "carol", 4, to_username="carol")
        assert result is TransferResult.OK
        assert await gw.get_balance(C, "bob") == 6
        assert await gw.get_balance(C, "carol") == 4

    @pytest.mark.asyncio
    async def test_same_user_and_invalid_amount(self, gw):
        await gw.add_points(C, "bob", 10)
        assert await gw.transfer(C, "bob", "bob", 1) is TransferResult.SAME_USER
        assert await gw.transfer(C, "bob", "carol", 0) is TransferResult.INVALID_AMOUNT
        assert await gw.transfer(C, "bob", "carol", -5) is TransferResult.INVALID_AMOUNT
        assert await gw.get_balance(C, "bob") == 10

    @pytest.mark.asyncio
    async def test_concurrent_transfers_never_overdraw(self, gw):
        await gw.add_points(C, "bob", 10)
        results = await asyncio.gather(*(gw.transfer(C, "bob", "carol", 3) for _ in range(5)))
        assert results.count(TransferResult.OK) == 3
        assert await gw.get_balance(C, "bob") == 1
        assert await gw.get_balance(C, "carol") == 9


class TestLeaderboard:
    @pytest.mark.asyncio
    async def test_order_and_ties(self, gw):
        await gw.add_points(C, "u1", 5, username="first")
        await gw.add_points(C, "u2", 20, username="top")
        await gw.add_points(C, "u3", 5, username="second")
        board = await gw.get_leaderboard(C)
        assert [(e.username, e.balance) for e in board] == [("top", 20), ("first", 5), ("second", 5)]

    @pytest.mark.asyncio
    async def test_limit_and_zero_balances(self, gw):
        for i in range(12):
            await gw.add_points(C, f"u{i}", i + 1)
        await gw.add_points(C, "broke", 1)
        await gw.remove_points(C, "broke", 1)
        board = await gw.get_leaderboard(C, limit=10)
        assert len(board) == 10
        assert all(e.username != "broke" for e in board)

    @pytest.mark.asyncio
    async def test_find_user_id_case_insensitive(self, gw):
        await gw.add_points(C, "u-9", 1, username="Carol")
        assert await gw.find_user_id(C, "carol") == "u-9"
        assert await gw.find_user_id(C, "dave") is None


class TestXp:
    @pytest.mark.asyncio
    async def test_level_up(self, gw):
        result = await gw.add_xp(C, "bob", 99)
        assert (result.level, result.leveled_up) == (0, False)
        result = await gw.add_xp(C, "bob", 1)
        assert (result.xp, result.level, result.leveled_up) == (100, 1, True)
        assert await gw.get_xp(C, "bob") == 100


class TestCustomCommands:
    @pytest.mark.asyncio
    async def test_save_keeps_created_at(self, gw):
        author = UserRef("m", "modo")
        first = await gw.save_custom_command(CustomCommand(C, "salut", "v1", author))
        second = await gw.save_custom_command(CustomCommand(C, "salut", "v2", author))
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at
        assert (await gw.load_custom_commands(C))["salut"].response_template == "v2"

    @pytest.mark.asyncio
    async def test_load_returns_copies(self, gw):
        await gw.save_custom_command(CustomCommand(C, "salut", "v1", UserRef("m", "modo")))
        loaded = await gw.load_custom_commands(C)
        loaded["salut"].response_template = "changed"
        assert (await gw.load_custom_commands(C))["salut"].response_template == "v1"

    @pytest.mark.asyncio
    async def test_delete(self, gw):
        await gw.save_custom_command(CustomCommand(C, "salut", "v1", UserRef("m", "modo")))
        assert await gw.delete_custom_command(C, "salut")
        assert not await gw.delete_custom_command(C, "salut")
        assert await gw.load_custom_commands(C) == {}
