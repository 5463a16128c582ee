"""
Tests du registre de commandes (statiques + personnalisées)
"""
import pytest

from botcore.errors import DuplicateCommand, InvalidCommandName, PersistenceUnavailable, ReservedName
from botcore.models import Command, Permission, UserRef
from botcore.registry import CommandRegistry, ResolutionKind, normalize_name

MOD = UserRef("u-mod", "modo")


async def _handler(ctx):
    return "ok"


class TestStatic:
    def test_duplicate_name(self, registry):
        registry.register_static(Command(name="ping", handler=_handler))
        with pytest.raises(DuplicateCommand):
            registry.register_static(Command(name="PING", handler=_handler))

    def test_alias_clash(self, registry):
        registry.register_static(Command(name="aide", handler=_handler, aliases=("help",)))
        with pytest.raises(DuplicateCommand):
            registry.register_static(Command(name="help", handler=_handler))

    def test_static_commands_once_per_command(self, registry):
        registry.register_static(Command(name="aide", handler=_handler, aliases=("help", "h")))
        assert [c.name for c in registry.static_commands] == ["aide"]
        assert registry.get_static("H").name == "aide"


class TestNormalizeName:
    def test_strips_prefix_and_lowercases(self):
        assert normalize_name("!Salut") == "salut"

    @pytest.mark.parametrize("bad", ["", "!", "a b", 'x"y', "x" * 33])
    def test_invalid(self, bad):
        with pytest.raises(InvalidCommandName):
            normalize_name(bad)


class TestCustom:
    @pytest.mark.asyncio
    async def test_upsert_then_resolve(self, registry):
        await registry.upsert_custom("c", "!Welcome", "Welcome {username}!", MOD)
        resolution = await registry.resolve("c", "welcome")
        assert resolution.kind is ResolutionKind.CUSTOM
        assert resolution.custom.response_template == "Welcome {username}!"

    @pytest.mark.asyncio
    async def test_custom_is_per_channel(self, registry):
        await registry.upsert_custom("c1", "salut", "hey", MOD)
        assert not (await registry.resolve("c2", "salut")).found

    @pytest.mark.asyncio
    async def test_reserved_name(self, registry):
        registry.register_static(Command(name="ping", handler=_handler, aliases=("pong",)))
        with pytest.raises(ReservedName):
            await registry.upsert_custom("c", "!pong", "nope", MOD)

    @pytest.mark.asyncio
    async def test_static_wins_resolution(self, registry, gateway):
        """Même si le stockage contient un nom réservé, la commande intégrée gagne"""
        from botcore.models import CustomCommand

        registry.register_static(Command(name="ping", handler=_handler))
        await gateway.save_custom_command(CustomCommand("c", "ping", "custom", MOD))
        assert (await registry.resolve("c", "ping")).kind is ResolutionKind.STATIC

    @pytest.mark.asyncio
    async def test_empty_template_rejected(self, registry):
        with pytest.raises(ValueError):
            await registry.upsert_custom("c", "vide", "   ", MOD)

    @pytest.mark.asyncio
    async def test_update_invalidates_cache(self, registry):
        await registry.upsert_custom("c", "salut", "v1", MOD)
        assert (await registry.get_custom("c", "salut")).response_template == "v1"
        await registry.upsert_custom("c", "salut", "v2", MOD, permission=Permission.MODERATOR)
        stored = await registry.get_custom("c", "salut")
        assert stored.response_template == "v2"
        assert stored.permission is Permission.MODERATOR

    @pytest.mark.asyncio
    async def test_remove(self, registry):
        await registry.upsert_custom("c", "salut", "hey", MOD)
        assert await registry.remove_custom("c", "!salut")
        assert not await registry.remove_custom("c", "salut")
        assert not (await registry.resolve("c", "salut")).found
        assert not await registry.remove_custom("c", "a b")

    @pytest.mark.asyncio
    async def test_list_sorted(self, registry):
        for name in ("zeta", "alpha", "mid"):
            await registry.upsert_custom("c", name, "x", MOD)
        assert [c.name for c in await registry.list_custom("c")] == ["alpha", "mid", "zeta"]


class _BrokenGateway:
    async def load_custom_commands(self, channel_id):
        raise ConnectionError("db down")


class TestPersistenceFailure:
    @pytest.mark.asyncio
    async def test_load_error_wrapped(self):
        registry = CommandRegistry(_BrokenGateway())
        with pytest.raises(PersistenceUnavailable):
            await registry.resolve("c", "anything")

    @pytest.mark.asyncio
    async def test_static_resolves_without_storage(self):
        registry = CommandRegistry(_BrokenGateway())
        registry.register_static(Command(name="ping", handler=_handler))
        assert (await registry.resolve("c", "ping")).kind is ResolutionKind.STATIC
