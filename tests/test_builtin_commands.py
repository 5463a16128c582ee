"""
Tests des commandes intégrées, passées par le dispatcher
"""
import random

import httpx
import pytest

from conftest import CHANNEL, make_event

from botcore.backends import MemoryGateway
from botcore.commands import WeatherCommands, close_components, register_builtin_commands
from botcore.commands.command_manager import _parse_args
from botcore.dispatcher import DispatchPolicy, DispatchState, Dispatcher
from botcore.errors import ErrorKind
from botcore.models import Permission, UserRef
from botcore.rate_limiter import CooldownTracker
from botcore.registry import CommandRegistry

MOD = {"user_id": "u-mod", "username": "modo", "mod": True}
BOB = {"user_id": "u-bob", "username": "bob"}


async def _say(dispatcher, text, **who):
    return await dispatcher.dispatch(make_event(text, **who))


class TestGeneral:
    @pytest.mark.asyncio
    async def test_help_hides_mod_commands_from_viewers(self, dispatcher):
        result = await _say(dispatcher, "!aide")
        assert "!ping" in result.reply.text
        assert "!cmd" not in result.reply.text

    @pytest.mark.asyncio
    async def test_help_lists_custom(self, dispatcher, registry):
        await registry.upsert_custom(CHANNEL, "salut", "hey", UserRef("m", "modo"))
        result = await _say(dispatcher, "!aide")
        assert "Perso : !salut" in result.reply.text

    @pytest.mark.asyncio
    async def test_help_for_one_command(self, dispatcher):
        result = await _say(dispatcher, "!aide donner")
        assert result.reply.text.startswith("!donner @pseudo montant")

    @pytest.mark.asyncio
    async def test_usage_follows_custom_prefix(self):
        """Les messages d'usage reprennent le préfixe configuré"""
        gateway = MemoryGateway()
        registry = CommandRegistry(gateway, prefix="?")
        register_builtin_commands(registry)
        dispatcher = Dispatcher(
            registry, CooldownTracker(), gateway, DispatchPolicy(prefix="?"), rng=random.Random(0)
        )

        give = await _say(dispatcher, "?donner")
        assert give.reply.text == "Usage : ?donner @pseudo montant"

        poll = await _say(dispatcher, '?sondage "Q"')
        assert poll.reply.text.startswith('Usage : ?sondage "Question"')

        cmd = await _say(dispatcher, "?cmd", **MOD)
        assert cmd.reply.text == "Usage : ?cmd a/e/d ?nom [-cd=N] [-role=mod] réponse | ?cmd l"

        help_line = await _say(dispatcher, "?aide meteo")
        assert help_line.reply.text.startswith("?meteo <ville>")
        assert "!" not in give.reply.text + poll.reply.text + help_line.reply.text


class TestPoints:
    @pytest.mark.asyncio
    async def test_balance(self, dispatcher, gateway):
        await gateway.add_points(CHANNEL, "u-alice", 42, username="alice")
        result = await _say(dispatcher, "!points")
        assert result.reply.text == "@alice, tu as 42 points."

    @pytest.mark.asyncio
    async def test_give(self, dispatcher, gateway):
        await gateway.add_points(CHANNEL, "u-alice", 20, username="alice")
        await gateway.add_points(CHANNEL, "u-bob", 1, username="bob")
        result = await _say(dispatcher, "!donner @Bob 5")
        assert result.reply.text == "@alice a donné 5 points à Bob."
        assert await gateway.get_balance(CHANNEL, "u-alice") == 15
        assert await gateway.get_balance(CHANNEL, "u-bob") == 6

    @pytest.mark.asyncio
    async def test_give_insufficient(self, dispatcher, gateway):
        await gateway.add_points(CHANNEL, "u-alice", 10, username="alice")
        await gateway.add_points(CHANNEL, "u-bob", 1, username="bob")
        result = await _say(dispatcher, "!donner bob 15")
        assert "solde insuffisant (10 points)" in result.reply.text
        assert await gateway.get_balance(CHANNEL, "u-alice") == 10

    @pytest.mark.asyncio
    async def test_give_bad_amount_is_usage(self, dispatcher):
        result = await _say(dispatcher, "!donner bob beaucoup")
        assert result.error_kind is ErrorKind.USAGE

    @pytest.mark.asyncio
    async def test_give_to_discord_mention(self, dispatcher, gateway):
        await gateway.add_points(CHANNEL, "u-alice", 10, username="alice")
        result = await _say(
            dispatcher, "!donner <@123> 3", mentions=[UserRef("123", "carol")]
        )
        assert result.reply.text == "@alice a donné 3 points à carol."
        assert await gateway.get_balance(CHANNEL, "123") == 3

    @pytest.mark.asyncio
    async def test_unknown_target(self, dispatcher, gateway):
        await gateway.add_points(CHANNEL, "u-alice", 10, username="alice")
        result = await _say(dispatcher, "!donner @fantome 3")
        assert "introuvable" in result.reply.text

    @pytest.mark.asyncio
    async def test_leaderboard_embed(self, dispatcher, gateway):
        await gateway.add_points(CHANNEL, "u-1", 5, username="petit")
        await gateway.add_points(CHANNEL, "u-2", 50, username="grand")
        result = await _say(dispatcher, "!classement")
        embed = result.reply.embed
        assert embed["title"] == "Classement des points"
        assert embed["description"].splitlines() == ["1. grand (50)", "2. petit (5)"]
        assert result.reply.as_text().startswith("Classement des points | 1. grand (50)")

    @pytest.mark.asyncio
    async def test_leaderboard_empty(self, dispatcher):
        result = await _say(dispatcher, "!classement")
        assert result.reply.text == "Personne n'a encore de points."

    @pytest.mark.asyncio
    async def test_mod_add_and_remove(self, dispatcher, gateway):
        await gateway.add_points(CHANNEL, "u-bob", 1, username="bob")
        added = await _say(dispatcher, "!ajouterpoints @bob 10", **MOD)
        assert added.reply.text == "bob reçoit 10 points (solde : 11)."
        removed = await _say(dispatcher, "!retirerpoints @bob 50", **MOD)
        assert removed.reply.text == "bob perd 11 points (solde : 0)."

    @pytest.mark.asyncio
    async def test_level(self, dispatcher, gateway):
        await gateway.add_xp(CHANNEL, "u-alice", 150, username="alice")
        result = await _say(dispatcher, "!niveau")
        assert result.reply.text == "alice est niveau 1 (150 XP, niveau suivant à 400 XP)."


class TestPoll:
    @pytest.mark.asyncio
    async def test_poll_embed(self, dispatcher):
        result = await _say(dispatcher, '!sondage "Pizza ou pâtes ?" "Pizza" "Pâtes"')
        assert result.state is DispatchState.COMPLETED
        embed = result.reply.embed
        assert embed["title"] == "📊 Pizza ou pâtes ?"
        assert embed["description"] == "1️⃣ Pizza\n2️⃣ Pâtes"

    @pytest.mark.asyncio
    async def test_too_many_options(self, dispatcher):
        options = " ".join(f'"{i}"' for i in range(11))
        result = await _say(dispatcher, f'!sondage "Q" {options}')
        assert result.error_kind is ErrorKind.USAGE


class TestCommandManager:
    def test_parse_args_leading_options_only(self):
        assert _parse_args("-cd=30 -role=mod Salut -x=1") == (
            {"cd": "30", "role": "mod"},
            "Salut -x=1",
        )

    @pytest.mark.asyncio
    async def test_add_with_options(self, dispatcher, registry):
        result = await _say(dispatcher, "!cmd a !dé -cd=10 -role=mod {random[6]}", **MOD)
        assert result.reply.text.startswith("Commande !dé ajoutée")
        stored = await registry.get_custom(CHANNEL, "dé")
        assert stored.cooldown_seconds == 10
        assert stored.permission is Permission.MODERATOR
        assert stored.created_by == UserRef("u-mod", "modo")

    @pytest.mark.asyncio
    async def test_add_existing_refused(self, dispatcher):
        await _say(dispatcher, "!cmd a !salut hey", **MOD)
        result = await _say(dispatcher, "!cmd a !salut autre", **MOD)
        assert "existe déjà" in result.reply.text

    @pytest.mark.asyncio
    async def test_add_reserved(self, dispatcher):
        result = await _say(dispatcher, "!cmd a !ping coucou", **MOD)
        assert "commande intégrée" in result.reply.text

    @pytest.mark.asyncio
    async def test_edit_keeps_creator(self, dispatcher, registry):
        await _say(dispatcher, "!cmd a !salut hey", **MOD)
        result = await _say(
            dispatcher, "!cmd e !salut -cd=30 bonjour", user_id="u-own", username="chef", owner=True
        )
        assert "modifiée" in result.reply.text
        stored = await registry.get_custom(CHANNEL, "salut")
        assert stored.response_template == "bonjour"
        assert stored.cooldown_seconds == 30
        assert stored.created_by.username == "modo"

    @pytest.mark.asyncio
    async def test_bad_role_is_usage(self, dispatcher):
        result = await _say(dispatcher, "!cmd a !salut -role=vip hey", **MOD)
        assert result.error_kind is ErrorKind.USAGE

    @pytest.mark.asyncio
    async def test_delete_and_list(self, dispatcher):
        await _say(dispatcher, "!cmd a !salut hey", **MOD)
        listed = await _say(dispatcher, "!cmd l", **MOD)
        assert listed.reply.text == "Commandes perso : !salut"
        deleted = await _say(dispatcher, "!cmd d !salut", **MOD)
        assert deleted.reply.text == "Commande !salut supprimée."
        gone = await _say(dispatcher, "!salut", **BOB)
        assert gone.error_kind is ErrorKind.UNKNOWN_COMMAND

    @pytest.mark.asyncio
    async def test_viewer_cannot_manage(self, dispatcher):
        result = await _say(dispatcher, "!cmd a !salut hey", **BOB)
        assert result.state is DispatchState.REJECTED


def _weather_dispatcher(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    gateway = MemoryGateway()
    registry = CommandRegistry(gateway)
    register_builtin_commands(registry, http_client=client)
    return Dispatcher(registry, CooldownTracker(), gateway, DispatchPolicy(), rng=random.Random(0))


class TestWeather:
    @pytest.mark.asyncio
    async def test_ok(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, text="Paris: ☀️ +21°C\n")

        dispatcher = _weather_dispatcher(handler)
        result = await _say(dispatcher, "!meteo Paris")
        assert result.reply.text == "Paris: ☀️ +21°C"
        assert "wttr.in/Paris" in seen["url"]
        assert "lang=fr" in seen["url"]

    @pytest.mark.asyncio
    async def test_service_error(self):
        dispatcher = _weather_dispatcher(lambda request: httpx.Response(503))
        result = await _say(dispatcher, "!meteo Lyon")
        assert result.reply.text == "Service météo indisponible pour le moment."

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        dispatcher = _weather_dispatcher(handler)
        result = await _say(dispatcher, "!meteo Lille")
        assert result.reply.text == "Le service météo ne répond pas."

    @pytest.mark.asyncio
    async def test_missing_city(self):
        dispatcher = _weather_dispatcher(lambda request: httpx.Response(200, text="x"))
        result = await _say(dispatcher, "!meteo")
        assert result.error_kind is ErrorKind.USAGE

    @pytest.mark.asyncio
    async def test_owned_client_opened_lazily_and_closed(self):
        weather = WeatherCommands()
        assert weather._client is None
        client = weather.client
        await weather.aclose()
        assert client.is_closed
        assert weather._client is None

    @pytest.mark.asyncio
    async def test_shared_client_left_open(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        components = register_builtin_commands(CommandRegistry(MemoryGateway()), http_client=client)
        await close_components(components)
        assert not client.is_closed
        await client.aclose()

    @pytest.mark.asyncio
    async def test_components_returned_for_shutdown(self):
        components = register_builtin_commands(CommandRegistry(MemoryGateway()))
        weather = next(c for c in components if isinstance(c, WeatherCommands))
        client = weather.client
        await close_components(components)
        assert client.is_closed
