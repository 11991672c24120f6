"""
Tests for the spell catalog fetcher.

INVARIANTS:
- One spell per name, whatever its per-class ids
- availableToClasses is the sorted union of classes
- One class failing logs a warning naming it and does not fail the fetch
- Every class failing is a total failure
"""

import logging

import httpx
import pytest

from ddbrelay.api.deps import RelayServices
from ddbrelay.config import GAME_DATA_URL, MAX_CLASS_LEVEL, SPELLCASTING_CLASSES
from ddbrelay.models.catalog import SpellEntry
from ddbrelay.models.failure import CredentialInvalidError, UpstreamUnavailableError
from ddbrelay.services.spells import merge_spells_by_name

BARD, CLERIC, WIZARD = 1, 2, 8


class TestMergeSpellsByName:
    def test_same_name_different_ids_merges(self) -> None:
        bard = SpellEntry.from_payload({"id": 10, "definition": {"name": "Cure Wounds"}}, "Bard")
        cleric = SpellEntry.from_payload({"id": 20, "definition": {"name": "Cure Wounds"}}, "Cleric")

        merged, skipped = merge_spells_by_name([[bard], [cleric]])

        assert len(merged) == 1
        assert merged[0].classes == ["Bard", "Cleric"]
        assert skipped == 0

    def test_first_class_supplies_scalars(self) -> None:
        first = SpellEntry.from_payload({"id": 10, "definition": {"name": "Light", "level": 0}}, "Wizard")
        later = SpellEntry.from_payload({"id": 20, "definition": {"name": "Light", "level": 9}}, "Bard")

        merged, _ = merge_spells_by_name([[first], [later]])

        assert merged[0].raw["id"] == 10
        assert merged[0].level == 0
        assert merged[0].classes == ["Bard", "Wizard"]

    def test_nameless_spells_skipped(self) -> None:
        nameless = SpellEntry.from_payload({"id": 1, "definition": {}}, "Wizard")

        merged, skipped = merge_spells_by_name([[nameless]])

        assert merged == []
        assert skipped == 1


class TestFetchAllSpells:
    async def test_fans_out_to_every_class(
        self, relay: RelayServices, platform, credential
    ) -> None:
        platform.auth()
        platform.config()
        route = platform.spells({})

        await relay.spell_fetcher.fetch_all_spells(credential)

        assert route.call_count == len(SPELLCASTING_CLASSES) == 14
        requested = {int(call.request.url.params["classId"]) for call in route.calls}
        assert requested == {class_id for class_id, _ in SPELLCASTING_CLASSES}
        levels = {call.request.url.params["classLevel"] for call in route.calls}
        assert levels == {str(MAX_CLASS_LEVEL)}

    async def test_token_resolved_once(self, relay: RelayServices, platform, credential) -> None:
        auth_route = platform.auth()
        platform.config()
        platform.spells({})

        await relay.spell_fetcher.fetch_all_spells(credential)

        assert auth_route.call_count == 1

    async def test_merges_across_classes(
        self, relay: RelayServices, platform, make_spell, credential
    ) -> None:
        platform.auth()
        platform.config()
        platform.spells(
            {
                BARD: [make_spell("Cure Wounds", 1)],
                CLERIC: [make_spell("Cure Wounds", 1), make_spell("Bless", 1)],
                WIZARD: [make_spell("Fireball", 1, level=3)],
            }
        )

        result = await relay.spell_fetcher.fetch_all_spells(credential)

        by_name = {spell["definition"]["name"]: spell for spell in result.entries}
        assert sorted(by_name) == ["Bless", "Cure Wounds", "Fireball"]
        assert by_name["Cure Wounds"]["availableToClasses"] == ["Bard", "Cleric"]
        assert by_name["Fireball"]["level"] == 3
        assert by_name["Fireball"]["sourceBook"] == "Player's Handbook"
        assert result.source_stats == {"Player's Handbook": 3}

    async def test_one_class_failing_is_partial(
        self,
        relay: RelayServices,
        platform,
        make_spell,
        credential,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        """A failing class is logged by name and the rest still return."""
        platform.auth()
        platform.config()
        platform.spells(
            {BARD: [make_spell("Vicious Mockery", 1)], WIZARD: [make_spell("Shield", 1)]},
            failing=frozenset({WIZARD}),
        )

        with caplog.at_level(logging.WARNING):
            result = await relay.spell_fetcher.fetch_all_spells(credential)

        assert [spell["definition"]["name"] for spell in result.entries] == ["Vicious Mockery"]
        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert any("Wizard" in r.getMessage() for r in warnings)

    async def test_bad_envelope_counts_as_class_failure(
        self, relay: RelayServices, platform, make_spell, credential
    ) -> None:
        platform.auth()
        platform.config()

        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.params["classId"] == str(BARD):
                return httpx.Response(200, json={"success": False, "data": None})
            return httpx.Response(200, json={"success": True, "data": [make_spell("Shield", 1)]})

        platform.router.get(f"{GAME_DATA_URL}/spells").mock(side_effect=respond)

        result = await relay.spell_fetcher.fetch_all_spells(credential)

        assert "Bard" not in result.entries[0]["availableToClasses"]

    async def test_every_class_failing_raises(
        self, relay: RelayServices, platform, credential
    ) -> None:
        platform.auth()
        platform.config()
        platform.spells({}, failing=frozenset(class_id for class_id, _ in SPELLCASTING_CLASSES))

        with pytest.raises(UpstreamUnavailableError):
            await relay.spell_fetcher.fetch_all_spells(credential)

    async def test_token_failure_propagates(
        self, relay: RelayServices, platform, credential
    ) -> None:
        platform.auth(status_code=401)
        platform.config()
        route = platform.spells({})

        with pytest.raises(CredentialInvalidError):
            await relay.spell_fetcher.fetch_all_spells(credential)

        assert route.call_count == 0

    async def test_playtest_spells_dropped(
        self, relay: RelayServices, platform, make_spell, credential
    ) -> None:
        platform.auth()
        platform.config()
        platform.spells({WIZARD: [make_spell("Shield", 1), make_spell("Playtest Bolt", 39)]})

        result = await relay.spell_fetcher.fetch_all_spells(credential)

        assert [spell["definition"]["name"] for spell in result.entries] == ["Shield"]

    async def test_ownership_ignores_filter(
        self, relay: RelayServices, platform, make_spell, credential
    ) -> None:
        platform.auth()
        platform.config()
        platform.spells({WIZARD: [make_spell("Shield", 1), make_spell("Toll the Dead", 3)]})

        result = await relay.spell_fetcher.fetch_all_spells(credential, source_filter_ids={1})

        assert [spell["definition"]["name"] for spell in result.entries] == ["Shield"]
        assert result.ownership_by_source_id[3] is True
        assert result.ownership_by_source_id[2] is False

    async def test_filter_cannot_readmit_playtest(
        self, relay: RelayServices, platform, make_spell, credential
    ) -> None:
        """Asking for the playtest source by id still yields none of it."""
        platform.auth()
        platform.config()
        platform.spells({WIZARD: [make_spell("Shield", 1), make_spell("Playtest Bolt", 39)]})

        result = await relay.spell_fetcher.fetch_all_spells(credential, source_filter_ids={39, 1})

        assert [spell["definition"]["name"] for spell in result.entries] == ["Shield"]

    async def test_network_error_on_one_class_is_partial(
        self,
        relay: RelayServices,
        platform,
        make_spell,
        credential,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        platform.auth()
        platform.config()

        def respond(request: httpx.Request) -> httpx.Response:
            if request.url.params["classId"] == str(CLERIC):
                raise httpx.ConnectError("connection reset", request=request)
            return httpx.Response(200, json={"success": True, "data": [make_spell("Light", 1)]})

        route = platform.router.get(f"{GAME_DATA_URL}/spells").mock(side_effect=respond)

        with caplog.at_level(logging.WARNING):
            result = await relay.spell_fetcher.fetch_all_spells(credential)

        assert route.call_count == 14
        assert [spell["definition"]["name"] for spell in result.entries] == ["Light"]
        classes = result.entries[0]["availableToClasses"]
        assert "Cleric" not in classes
        assert len(classes) == 13
        assert any("Cleric" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)
