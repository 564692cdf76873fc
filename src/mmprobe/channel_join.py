"""Channel join probe: a user repeatedly joining a Mattermost channel."""

from __future__ import annotations

from mmprobe.client import MattermostClient
from mmprobe.config import ChannelJoinConfig
from mmprobe.metrics import MetricsSink
from mmprobe.probe import BaseProbe


class ChannelJoinProbe(BaseProbe):
    """Joins the configured channel on every tick.

    The channel may be configured by ID, or by name, in which case setup
    resolves it once through ``MattermostClient.get_channel_by_name``.
    """

    metric_name = "channel_join"

    config: ChannelJoinConfig

    def __init__(
        self,
        config: ChannelJoinConfig,
        client: MattermostClient,
        sink: MetricsSink | None = None,
        max_in_flight: int | None = None,
    ) -> None:
        super().__init__(config, client, sink=sink, max_in_flight=max_in_flight)

    def resolve_target(self, name: str) -> str:
        return self.client.get_channel_by_name(name)

    def perform_action(self, target_id: str) -> None:
        self.client.join_channel(target_id)
