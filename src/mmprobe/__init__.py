"""mattermost-probe - synthetic probes for Mattermost servers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mattermost-probe")
except PackageNotFoundError:
    # Package is not installed (e.g., running from source without pip install)
    __version__ = "0.0.0.dev0"

# Re-export core public API
from mmprobe.channel_join import ChannelJoinProbe
from mmprobe.config import ChannelJoinConfig, ProbeConfig
from mmprobe.errors import ActionError, ConfigError, ProbeError, ProbeStateError, ResolutionError
from mmprobe.metrics import MetricsSink, NullSink, QueueSink, TimingReport
from mmprobe.probe import BaseProbe, ProbeState

# NOTE: Update this list when adding new exports to this module.
__all__ = [
    "__version__",
    "ActionError",
    "BaseProbe",
    "ChannelJoinConfig",
    "ChannelJoinProbe",
    "ConfigError",
    "MetricsSink",
    "NullSink",
    "ProbeConfig",
    "ProbeError",
    "ProbeState",
    "ProbeStateError",
    "QueueSink",
    "ResolutionError",
    "TimingReport",
]
