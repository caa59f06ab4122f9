"""Which channels the onboarding engine knows about."""

from dataclasses import dataclass, field

from onboard.channels.base import ChannelAdapter


@dataclass(frozen=True)
class CatalogEntry:
    """A channel whose runtime support lives in a separately installed package."""
    id: str
    label: str
    blurb: str
    package: str
    module: str


@dataclass
class ChannelRegistry:
    adapters: dict[str, ChannelAdapter] = field(default_factory=dict)
    catalog: dict[str, CatalogEntry] = field(default_factory=dict)

    def register(self, adapter: ChannelAdapter, entry: CatalogEntry | None = None) -> None:
        self.adapters[adapter.id] = adapter
        if entry is not None:
            self.catalog[adapter.id] = entry

    def get(self, channel_id: str) -> ChannelAdapter | None:
        return self.adapters.get(channel_id)

    def ids(self) -> list[str]:
        return list(self.adapters.keys())

    def catalog_entry(self, channel_id: str) -> CatalogEntry | None:
        return self.catalog.get(channel_id)


def default_registry() -> ChannelRegistry:
    from onboard.channels.discord import DiscordAdapter
    from onboard.channels.matrix import MatrixAdapter
    from onboard.channels.telegram import TelegramAdapter
    from onboard.channels.whatsapp import WhatsAppAdapter

    registry = ChannelRegistry()
    registry.register(TelegramAdapter())
    registry.register(WhatsAppAdapter())
    registry.register(DiscordAdapter())
    matrix = MatrixAdapter()
    registry.register(
        matrix,
        CatalogEntry(
            id=matrix.id,
            label=matrix.label,
            blurb=matrix.blurb,
            package="matrix-nio",
            module="nio",
        ),
    )
    return registry
