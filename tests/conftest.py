"""Shared fixtures: an in-memory preference store and an isolated home."""
import asyncio
import time
from dataclasses import dataclass
from typing import Optional

import httpx
import pytest

from cutler.config_engine import ConfigEngine
from cutler.external.runner import ExternalRunner
from cutler.snapshot.store import SnapshotStore
from cutler.system.base import GLOBAL_DOMAIN, PreferenceStore
from cutler.system.services import ServiceRestarter

_TRUE_WORDS = {"true", "yes", "1"}


@dataclass
class Call:
    """One recorded store operation."""
    op: str
    domain: str
    key: Optional[str] = None
    flag: Optional[str] = None
    value: Optional[str] = None
    start: float = 0.0
    end: float = 0.0


class FakePreferenceStore(PreferenceStore):
    """In-memory PreferenceStore that behaves like ``defaults(1)``.

    Booleans are stored as "1"/"0", deleting a missing key fails, and
    every mutation is recorded with start/end times.
    """

    def __init__(
        self,
        values: Optional[dict[tuple[str, str], str]] = None,
        types: Optional[dict[tuple[str, str], str]] = None,
        domains: Optional[set[str]] = None,
        delay: float = 0.0,
    ):
        self.values = dict(values or {})
        self.types = dict(types or {})
        self.domains = set(domains or ())
        self.delay = delay
        self.calls: list[Call] = []
        self.fail_on: set[tuple[str, str]] = set()
        self.raise_on: set[tuple[str, str]] = set()
        self.list_calls = 0

    @property
    def mutations(self) -> list[Call]:
        return [c for c in self.calls if c.op in ("write", "delete")]

    async def _mutate(self, call: Call) -> None:
        call.start = time.perf_counter()
        if self.delay:
            await asyncio.sleep(self.delay)
        call.end = time.perf_counter()
        self.calls.append(call)

    async def read(self, domain: str, key: str) -> Optional[str]:
        self.calls.append(Call("read", domain, key))
        return self.values.get((domain, key))

    async def read_type(self, domain: str, key: str) -> Optional[str]:
        self.calls.append(Call("read-type", domain, key))
        if (domain, key) not in self.values:
            return None
        return self.types.get((domain, key))

    async def write(self, domain: str, key: str, flag: str, value: str) -> tuple[bool, str]:
        await self._mutate(Call("write", domain, key, flag, value))
        if (domain, key) in self.raise_on:
            raise OSError(f"write to {domain} exploded")
        if (domain, key) in self.fail_on:
            return False, f"Could not write domain {domain}"
        if flag == "-bool":
            value = "1" if value.lower() in _TRUE_WORDS else "0"
        self.values[(domain, key)] = value
        self.types[(domain, key)] = flag
        self.domains.add(domain)
        return True, ""

    async def delete(self, domain: str, key: str) -> tuple[bool, str]:
        await self._mutate(Call("delete", domain, key))
        if (domain, key) in self.raise_on:
            raise OSError(f"delete in {domain} exploded")
        if (domain, key) in self.fail_on or (domain, key) not in self.values:
            return False, f"Domain ({domain}, {key}) not found."
        del self.values[(domain, key)]
        self.types.pop((domain, key), None)
        return True, ""

    async def domain_exists(self, domain: str) -> bool:
        self.calls.append(Call("domain-exists", domain))
        return domain == GLOBAL_DOMAIN or domain in self.domains

    async def list_domains(self) -> set[str]:
        self.list_calls += 1
        return set(self.domains) | {GLOBAL_DOMAIN}


class RecordingRunner(ExternalRunner):
    """ExternalRunner that records argv instead of spawning processes."""

    def __init__(self, statuses: Optional[dict[str, int]] = None):
        super().__init__()
        self.statuses = statuses or {}
        self.spawned: list[list[str]] = []

    async def _spawn(self, args: list[str]) -> int:
        self.spawned.append(args)
        return self.statuses.get(args[-1], 0)



class RecordingRestarter(ServiceRestarter):
    """ServiceRestarter that records killall calls instead of running them."""

    def __init__(self, statuses: Optional[dict[str, int]] = None):
        super().__init__()
        self.statuses = statuses or {}
        self.spawned: list[list[str]] = []

    async def _spawn(self, args: list[str]) -> int:
        self.spawned.append(args)
        return self.statuses.get(args[-1], 0)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path, monkeypatch):
    """Keep config, snapshot and log lookups inside tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.delenv("CUTLER_CONFIG", raising=False)
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    monkeypatch.setenv("CUTLER_SNAPSHOT", str(home / ".cutler_snapshot"))
    return home


@pytest.fixture
def fake_store():
    return FakePreferenceStore(domains={"com.apple.dock", "com.apple.finder"})


@pytest.fixture
def snapshot_store(tmp_path):
    return SnapshotStore(tmp_path / "snapshot.json")


@pytest.fixture
def runner():
    return RecordingRunner()


@pytest.fixture
def engine(fake_store, snapshot_store, runner):
    return ConfigEngine(store=fake_store, snapshot_store=snapshot_store, runner=runner)


@pytest.fixture
def mock_transport(monkeypatch):
    """Route httpx.AsyncClient through a MockTransport.

    Returns a dict mapping URL -> (status, body); unknown URLs give 404.
    """
    responses = {}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        status, body = responses.get(str(request.url), (404, "not found"))
        return httpx.Response(status, text=body)

    def client_factory(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return responses
