"""Test helper functions for mattermost-probe tests.

Usage
=====

Import and use helpers directly in tests::

    from tests.helpers import make_channel_join_probe, wait_for

    def test_example():
        probe, client = make_channel_join_probe(frequency_seconds=0.2)
        probe.setup()
        ...
"""

from __future__ import annotations

import time
from collections.abc import Callable

from mmprobe.channel_join import ChannelJoinProbe
from mmprobe.config import ChannelJoinConfig
from mmprobe.metrics import MetricsSink
from tests.mocks import MockMattermostClient

DEFAULT_CHANNEL_ID = "ch-town-square"


def make_channel_join_probe(
    channel_id: str = DEFAULT_CHANNEL_ID,
    channel_name: str = "",
    frequency_seconds: float = 0.2,
    client: MockMattermostClient | None = None,
    sink: MetricsSink | None = None,
    max_in_flight: int | None = None,
) -> tuple[ChannelJoinProbe, MockMattermostClient]:
    """Create a channel join probe wired to a mock client.

    Returns:
        Tuple of (probe, client).
    """
    client = client or MockMattermostClient()
    config = ChannelJoinConfig(
        target_id=channel_id,
        target_name=channel_name,
        frequency_seconds=frequency_seconds,
    )
    probe = ChannelJoinProbe(config, client, sink=sink, max_in_flight=max_in_flight)
    return probe, client


def wait_for(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it returns True or ``timeout`` elapses.

    Returns:
        The last value of the predicate.
    """
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()
