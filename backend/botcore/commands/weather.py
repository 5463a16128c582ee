"""Weather lookup: !meteo <ville> via wttr.in."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from botcore.models.command import Command

if TYPE_CHECKING:
    from botcore.dispatcher import CommandContext

LOGGER = logging.getLogger("WeatherCommands")

WTTR_URL = "https://wttr.in/{city}"
USAGE = "meteo <ville>"


class WeatherCommands:
    def __init__(self, client: httpx.AsyncClient | None = None) -> None:
        """Without *client*, one is opened on first use and closed by :meth:`aclose`."""
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=8.0)
        return self._client

    def commands(self) -> list[Command]:
        return [
            Command(
                name="meteo",
                handler=self.meteo,
                description="Météo actuelle d'une ville.",
                usage=USAGE,
                cooldown_seconds=15,
                aliases=("weather",),
            ),
        ]

    async def aclose(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def meteo(self, ctx: CommandContext) -> str:
        city = ctx.invocation.arg_text.strip()
        if not city:
            raise ctx.usage_error(USAGE)

        try:
            response = await self.client.get(
                WTTR_URL.format(city=quote(city)),
                params={"format": "3", "lang": "fr"},
            )
        except httpx.TimeoutException:
            LOGGER.warning(f"wttr.in timed out for {city!r}")
            return "Le service météo ne répond pas."
        except httpx.HTTPError as e:
            LOGGER.warning(f"wttr.in request failed for {city!r}: {e}")
            return "Service météo indisponible pour le moment."

        if response.status_code != 200:
            LOGGER.warning(f"wttr.in HTTP {response.status_code} for {city!r}")
            return "Service météo indisponible pour le moment."

        text = response.text.strip()
        if not text:
            return f"Aucune donnée météo pour {city}."
        return text
