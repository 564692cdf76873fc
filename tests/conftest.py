"""Shared pytest fixtures for mattermost-probe tests."""

from __future__ import annotations

from collections.abc import Iterator

import pytest

from mmprobe.probe import BaseProbe


@pytest.fixture
def probes() -> Iterator[list[BaseProbe]]:
    """Collect probes created by a test and stop them afterwards.

    Probe scheduler threads are daemons, but leaving them running would keep
    ticking against mocks shared with later assertions.
    """
    created: list[BaseProbe] = []
    yield created
    for probe in created:
        probe.stop(timeout=1.0)
