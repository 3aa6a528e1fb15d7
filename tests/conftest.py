"""
Shared fixtures: test settings and in-memory collaborators.
"""

import asyncio
from typing import List, Optional, Union

import pytest

from profiling_engine.config import Settings
from profiling_engine.services.source_provider import SourceProvider

PEOPLE_CSV = (
    b"age,gender,joined,notes\n"
    b"18,M,2022-01-01,first visit\n"
    b"22,F,2022-01-02,came back with a friend\n"
    b"18,M,2022-01-01,\n"
    b"65,M,2022-03-15,asked about pricing\n"
    b",F,2022-02-10,left early\n"
)


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="",
        redis_url="",
        supabase_url="",
        data_dir="/tmp",
        max_concurrent_jobs=2,
        job_timeout_seconds=5.0,
        max_retries=3,
        retry_backoff_seconds=0.0,
        retry_backoff_max_seconds=0.0,
        result_ttl_seconds=60,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def test_settings() -> Settings:
    return make_settings()


class FakeSource(SourceProvider):
    """
    Serves fixed CSV bytes. `script` lists what successive fetches do:
    an exception instance is raised, bytes are returned. Once the script is
    used up, `data` is returned.
    """

    def __init__(
        self,
        data: bytes = PEOPLE_CSV,
        script: Optional[List[Union[bytes, Exception]]] = None,
        delay: float = 0.0,
    ):
        self.data = data
        self.script = list(script or [])
        self.delay = delay
        self.calls = 0
        self.active = 0
        self.peak_active = 0

    async def fetch(self, file_ref: str) -> bytes:
        self.calls += 1
        self.active += 1
        self.peak_active = max(self.peak_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.script:
                step = self.script.pop(0)
                if isinstance(step, Exception):
                    raise step
                return step
            return self.data
        finally:
            self.active -= 1
