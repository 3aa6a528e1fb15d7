"""
Source data providers: fetch an uploaded CSV and load it as a Table.

Failures are split by whether retrying can help:
- SourceUnavailable: network errors, 5xx, file not there (yet)
- MalformedSource: bytes that are not a usable CSV, 4xx object errors
"""

from __future__ import annotations

import asyncio
import csv
import io
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import httpx
import pandas as pd

from profiling_engine.errors import MalformedSource, SourceUnavailable
from profiling_engine.models.table import RawColumn, Table

logger = logging.getLogger(__name__)


def parse_csv(data: bytes) -> Table:
    """
    Parse CSV bytes into a Table of raw strings.

    Every cell is kept as text (no dtype inference); empty cells become None.
    """
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise MalformedSource(f"CSV is not valid UTF-8: {e}") from e

    if not text.strip():
        raise MalformedSource("CSV is empty")

    try:
        df = pd.read_csv(io.StringIO(text), dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError, csv.Error) as e:
        raise MalformedSource(f"Failed to parse CSV data: {e}") from e

    if len(df.columns) == 0:
        raise MalformedSource("CSV has no columns")

    columns = [
        RawColumn.of(str(name), [v if isinstance(v, str) and v != "" else None for v in df[name].tolist()])
        for name in df.columns
    ]
    return Table.of(columns)


class SourceProvider(ABC):
    @abstractmethod
    async def fetch(self, file_ref: str) -> bytes:
        ...

    async def load(self, file_ref: str) -> Table:
        data = await self.fetch(file_ref)
        logger.info("Downloaded %s (%d bytes)", file_ref, len(data))
        return await asyncio.to_thread(parse_csv, data)

    async def close(self) -> None:
        return None


class LocalFileSource(SourceProvider):
    """Reads `base_dir/<file_ref>` from local disk."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def _resolve(self, file_ref: str) -> Path:
        base = self.base_dir.resolve()
        path = (base / file_ref.lstrip("/")).resolve()
        if base not in path.parents:
            raise MalformedSource(f"file_ref escapes the data directory: {file_ref}")
        return path

    async def fetch(self, file_ref: str) -> bytes:
        path = self._resolve(file_ref)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise SourceUnavailable(f"Cannot read {file_ref}: {e}") from e


class SupabaseSource(SourceProvider):
    """
    Downloads objects from a Supabase Storage bucket using the REST API and the
    service role key (server-to-server).
    """

    def __init__(
        self,
        url: str,
        service_role_key: str,
        bucket: str = "datasets",
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not url:
            raise RuntimeError("SUPABASE_URL is not set")
        if not service_role_key:
            raise RuntimeError("SUPABASE_SERVICE_ROLE_KEY is not set")
        self.base = url.rstrip("/")
        self.key = service_role_key
        self.bucket = bucket
        self._client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.key}",
            "apikey": self.key,
        }

    async def fetch(self, file_ref: str) -> bytes:
        url = f"{self.base}/storage/v1/object/{self.bucket}/{file_ref.lstrip('/')}"
        try:
            resp = await self._client.get(url, headers=self._headers())
        except httpx.TransportError as e:
            raise SourceUnavailable(f"Supabase download failed: {type(e).__name__}: {e}") from e

        if resp.status_code >= 500 or resp.status_code == 429:
            raise SourceUnavailable(f"Supabase download failed: {resp.status_code} {resp.text}")
        if resp.status_code != 200:
            raise MalformedSource(f"Supabase download failed: {resp.status_code} {resp.text}")
        return resp.content

    async def close(self) -> None:
        await self._client.aclose()
