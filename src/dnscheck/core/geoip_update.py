"""Keeping the local GeoIP database present and fresh."""

import asyncio
import gzip
import logging
import os
import shutil
import time
from typing import Optional

import aiohttp
import maxminddb

from dnscheck.core.config import Settings, get_settings
from dnscheck.utils.decorators import sentry_exception_catcher
from dnscheck.utils.exceptions import GeoIPDatabaseError, capture_exception

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


def verify_database(path: str) -> None:
    """
    Open the database and read its metadata.

    Raises:
        GeoIPDatabaseError: the file is missing or not a valid database.
    """
    try:
        with maxminddb.open_database(path) as reader:
            reader.metadata()
    except (OSError, ValueError, maxminddb.InvalidDatabaseError) as e:
        raise GeoIPDatabaseError(f"unable to open geoip db '{path}': {e}") from e


def database_is_current(path: str, max_age: int, now: Optional[float] = None) -> bool:
    """Check the database exists, opens cleanly and is younger than ``max_age`` seconds."""
    try:
        mtime = os.stat(path).st_mtime
    except FileNotFoundError:
        return False

    try:
        verify_database(path)
    except GeoIPDatabaseError as e:
        logger.warning(str(e))
        return False

    return (now if now is not None else time.time()) - mtime < max_age


def _gunzip(src: str, dest: str) -> None:
    with gzip.open(src, "rb") as fin, open(dest, "wb") as fout:
        shutil.copyfileobj(fin, fout)


def _remove(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass


@sentry_exception_catcher
async def download_database(
    path: str,
    url: str,
    session: Optional[aiohttp.ClientSession] = None,
) -> None:
    """
    Download a gzipped database from ``url``, unpack and verify it.

    The existing file at ``path`` is only replaced once the new one has
    been verified.

    Raises:
        GeoIPDatabaseError: download, decompression or verification failed.
    """
    tmp = f"{path}.tmp"
    unpacked = f"{path}.new"

    logger.info(f"Downloading GeoIP database from {url}")

    own_session = session is None
    if own_session:
        session = aiohttp.ClientSession()

    try:
        async with session.get(url) as resp:
            if resp.status != 200:
                raise GeoIPDatabaseError(
                    f"GeoIP download failed: {resp.status} | {await resp.text()}"
                )

            with open(tmp, "wb") as f:
                async for chunk in resp.content.iter_chunked(CHUNK_SIZE):
                    f.write(chunk)

        logger.info(f"Decompressing GeoIP data into {unpacked}")

        try:
            await asyncio.to_thread(_gunzip, tmp, unpacked)
        except (OSError, EOFError) as e:
            raise GeoIPDatabaseError(f"unable to decompress GeoIP data: {e}") from e

        verify_database(unpacked)
        os.replace(unpacked, path)

        logger.info("GeoIP database verified and installed at %s", path)
    except aiohttp.ClientError as e:
        raise GeoIPDatabaseError(f"unable to fetch GeoIP data: {e}") from e
    finally:
        if own_session:
            await session.close()

        _remove(tmp)
        _remove(unpacked)


async def ensure_database(
    settings: Optional[Settings] = None,
    session: Optional[aiohttp.ClientSession] = None,
) -> bool:
    """
    Download the configured database if it is missing, broken or stale.

    Returns True when a new database was installed.
    """
    settings = settings or get_settings()

    if not settings.geoip_enabled:
        return False

    if database_is_current(settings.geoip_db, settings.geoip_max_age):
        return False

    await download_database(settings.geoip_db, settings.geoip_url, session=session)

    return True


async def update_loop(settings: Optional[Settings] = None) -> None:
    """Re-check the database every ``geoip_check_interval`` seconds until cancelled."""
    settings = settings or get_settings()

    while True:
        try:
            await ensure_database(settings)
        except GeoIPDatabaseError as e:
            capture_exception(e, {"path": settings.geoip_db}, level="warning")

        await asyncio.sleep(settings.geoip_check_interval)
