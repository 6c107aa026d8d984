"""Tests for SystemReader and DefaultsStore output parsing."""
import asyncio

import pytest

from cutler.system import DefaultsStore, SystemReader

from conftest import FakePreferenceStore


class SlowListingStore(FakePreferenceStore):
    """Store whose domain listing never finishes on its own."""

    async def list_domains(self) -> set[str]:
        self.list_calls += 1
        await asyncio.sleep(3600)
        return set()


class TestSystemReader:
    """Tests for SystemReader."""

    @pytest.mark.asyncio
    async def test_read_current_trims_and_maps_empty_to_none(self):
        store = FakePreferenceStore(values={("d", "k"): "  50\n", ("d", "e"): "   "})
        reader = SystemReader(store)

        assert await reader.read_current("d", "k") == "50"
        assert await reader.read_current("d", "e") is None
        assert await reader.read_current("d", "missing") is None

    @pytest.mark.asyncio
    async def test_read_failure_is_none(self):
        store = FakePreferenceStore()

        async def broken(domain, key):
            raise OSError("boom")

        store.read = broken
        reader = SystemReader(store)

        assert await reader.read_current("d", "k") is None

    @pytest.mark.asyncio
    async def test_global_domain_always_exists(self):
        store = FakePreferenceStore()
        reader = SystemReader(store)

        assert await reader.domain_exists("NSGlobalDomain")
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_uses_listing_cache_when_ready(self):
        store = FakePreferenceStore(domains={"com.apple.dock"})
        reader = SystemReader(store)

        reader.prefetch_domains()
        await asyncio.sleep(0)
        await asyncio.sleep(0)

        assert await reader.domain_exists("com.apple.dock")
        assert [c for c in store.calls if c.op == "domain-exists"] == []
        assert store.list_calls == 1

    @pytest.mark.asyncio
    async def test_direct_check_while_listing_runs(self):
        """Lookups before the listing completes fall back to a direct check."""
        store = SlowListingStore(domains={"com.apple.dock"})
        reader = SystemReader(store)
        reader.prefetch_domains()

        assert await reader.domain_exists("com.apple.dock")
        assert not await reader.domain_exists("com.apple.nope")
        assert len([c for c in store.calls if c.op == "domain-exists"]) == 2

        await reader.close()

    @pytest.mark.asyncio
    async def test_positive_direct_checks_are_cached(self):
        store = SlowListingStore(domains={"com.apple.dock"})
        reader = SystemReader(store)
        reader.prefetch_domains()

        await reader.domain_exists("com.apple.dock")
        await reader.domain_exists("com.apple.dock")

        assert len([c for c in store.calls if c.op == "domain-exists"]) == 1
        await reader.close()

    @pytest.mark.asyncio
    async def test_prefetch_once(self):
        store = FakePreferenceStore()
        reader = SystemReader(store)

        reader.prefetch_domains()
        reader.prefetch_domains()
        await reader.close()

        assert store.list_calls <= 1


class TestDefaultsStore:
    """Tests for DefaultsStore with the process call replaced."""

    @pytest.fixture
    def store(self):
        store = DefaultsStore()
        store.responses = {}
        store.invocations = []

        async def fake_run(*args):
            store.invocations.append(args)
            return store.responses.get(args, (1, "", "does not exist"))

        store._run = fake_run
        return store

    @pytest.mark.asyncio
    async def test_read(self, store):
        store.responses[("read", "com.apple.dock", "tilesize")] = (0, "50\n", "")

        assert await store.read("com.apple.dock", "tilesize") == "50"
        assert await store.read("com.apple.dock", "missing") is None

    @pytest.mark.asyncio
    async def test_read_type(self, store):
        store.responses[("read-type", "com.apple.dock", "autohide")] = (0, "Type is boolean\n", "")

        assert await store.read_type("com.apple.dock", "autohide") == "-bool"
        assert await store.read_type("com.apple.dock", "missing") is None

    @pytest.mark.asyncio
    async def test_write_arguments(self, store):
        store.responses[("write", "com.apple.dock", "autohide", "-bool", "true")] = (0, "", "")

        ok, _ = await store.write("com.apple.dock", "autohide", "-bool", "true")

        assert ok
        assert store.invocations == [("write", "com.apple.dock", "autohide", "-bool", "true")]

    @pytest.mark.asyncio
    async def test_delete_failure_output(self, store):
        ok, output = await store.delete("com.apple.dock", "tilesize")

        assert not ok
        assert output == "does not exist"

    @pytest.mark.asyncio
    async def test_list_domains(self, store):
        store.responses[("domains",)] = (0, "com.apple.dock, com.apple.finder\n", "")

        domains = await store.list_domains()

        assert domains == {"com.apple.dock", "com.apple.finder", "NSGlobalDomain"}

    @pytest.mark.asyncio
    async def test_domain_exists(self, store):
        store.responses[("read", "com.apple.dock")] = (0, "{}", "")

        assert await store.domain_exists("com.apple.dock")
        assert not await store.domain_exists("com.apple.nope")
        assert await store.domain_exists("NSGlobalDomain")

    @pytest.mark.asyncio
    async def test_missing_binary(self):
        store = DefaultsStore(binary="definitely-not-a-real-binary-xyz")

        code, _, err = await store._run("read", "x")

        assert code == 127
        assert "not found" in err
