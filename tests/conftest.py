from dataclasses import dataclass

import pytest

from smmpanel.infra.monitoring import ThreadingMonitor


@dataclass
class FakeClock:
    now: float = 1_000_000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@dataclass
class FakeMemory:
    used: int = 100
    total: int = 1000

    def __call__(self):
        return self.used, self.total


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory() -> FakeMemory:
    return FakeMemory()


@pytest.fixture
def monitor(clock, memory) -> ThreadingMonitor:
    return ThreadingMonitor(max_concurrency=10, memory_sampler=memory, clock=clock)
