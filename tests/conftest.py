"""Shared pytest setup: suite markers by directory and a Redis testcontainer.

Only tests asking for ``redis_client`` start Docker; without a daemon they
are skipped instead of failing.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

import pytest
import redis as sync_redis
from dotenv import load_dotenv
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[1]
SUITES = {"unit": pytest.mark.unit, "integration": pytest.mark.integration}

# A local .env may point tests at extra settings; real env vars win.
load_dotenv(dotenv_path=ROOT / ".env", override=False)


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Mark each test with the suite named by its ``tests/<suite>/`` folder."""
    tests_dir = ROOT / "tests"
    for item in items:
        path = Path(str(item.fspath)).resolve()
        if not path.is_relative_to(tests_dir):
            continue
        suite = path.relative_to(tests_dir).parts[0]
        marker = SUITES.get(suite)
        if marker is not None:
            item.add_marker(marker)


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


def _wait_for_redis(host: str, port: int, attempts: int = 30) -> None:
    client = sync_redis.Redis(host=host, port=port)
    try:
        for attempt in range(1, attempts + 1):
            try:
                client.ping()
                return
            except sync_redis.ConnectionError as exc:
                if attempt == attempts:
                    raise
                logger.debug(
                    "Redis at %s:%d not up yet (%d/%d): %s", host, port, attempt, attempts, exc
                )
                time.sleep(1)
    finally:
        client.close()


@pytest.fixture(scope="session")
def redis_container():
    """URL of a throwaway ``redis:7-alpine`` shared by the whole session."""
    try:
        from testcontainers.core.container import DockerContainer

        container = DockerContainer("redis:7-alpine").with_exposed_ports(6379)
        container.start()
    except Exception as exc:  # no Docker daemon
        pytest.skip(f"Docker unavailable for Redis container: {exc}")

    try:
        host = container.get_container_host_ip()
        port = int(container.get_exposed_port(6379))
        _wait_for_redis(host, port)
        yield f"redis://{host}:{port}"
    finally:
        container.stop()


@pytest.fixture()
async def redis_client(redis_container):
    """Async client on an empty database, flushed again afterwards."""
    client = Redis.from_url(redis_container)
    await client.flushdb()
    yield client
    await client.flushdb()
    await client.aclose()
