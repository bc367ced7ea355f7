"""Tests for process bootstrap."""

import pytest

from src.domains.compliance.config import ComplianceConfig
from src.domains.compliance.engine import ComplianceEngine
from src.main import bootstrap


class TestBootstrap:
    @pytest.mark.asyncio
    async def test_bootstrap_seeds_rules(self, store):
        engine = await bootstrap(store, seed_rules=True)

        assert isinstance(engine, ComplianceEngine)
        assert len(await store.get_all_monitoring_rules()) == 8

    @pytest.mark.asyncio
    async def test_bootstrap_without_seeding(self, store):
        config = ComplianceConfig()
        engine = await bootstrap(store, config=config, seed_rules=False)

        assert engine.config is config
        assert await store.get_all_monitoring_rules() == []

    @pytest.mark.asyncio
    async def test_repeated_bootstrap_is_idempotent(self, store):
        await bootstrap(store, seed_rules=True)
        await bootstrap(store, seed_rules=True)

        assert len(await store.get_all_monitoring_rules()) == 8
