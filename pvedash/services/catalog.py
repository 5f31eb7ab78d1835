"""Static metadata catalog: display names, categories and maintenance checks.

Pure lookup tables.  The built-in defaults describe the home-lab layout the
dashboard was written for; a JSON file with the same shape (see
``MetadataCatalog.model_validate``) replaces them via ``PVE_CATALOG_PATH``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

from pvedash.models.targets import Target, TargetKind
from pvedash.utils.logging import get_logger

log = get_logger(__name__)

OTHER_CATEGORY = "Other"


class CatalogEntry(BaseModel):
    id: int
    name: str
    description: str
    category: str = OTHER_CATEGORY
    web_ui_url: Optional[str] = None


class CategoryRange(BaseModel):
    """Inclusive id range mapped to a category."""

    low: int
    high: int
    category: str

    def contains(self, target_id: int) -> bool:
        return self.low <= target_id <= self.high


class ServiceCheck(BaseModel):
    name: str
    container_id: Optional[int] = None
    vm_id: Optional[int] = None

    @property
    def target(self) -> Target:
        return Target.from_ids(self.container_id, self.vm_id)


class BinaryCheck(ServiceCheck):
    pass


class ConfigCheck(BaseModel):
    path: str
    container_id: Optional[int] = None
    vm_id: Optional[int] = None

    @property
    def target(self) -> Target:
        return Target.from_ids(self.container_id, self.vm_id)


class MetadataCatalog(BaseModel):
    containers: list[CatalogEntry] = Field(default_factory=list)
    vms: list[CatalogEntry] = Field(default_factory=list)
    container_categories: list[CategoryRange] = Field(default_factory=list)
    services: list[ServiceCheck] = Field(default_factory=list)
    binaries: list[BinaryCheck] = Field(default_factory=list)
    configs: list[ConfigCheck] = Field(default_factory=list)

    def lookup(self, target: Target) -> Optional[CatalogEntry]:
        if target.kind is TargetKind.container:
            entries = self.containers
        elif target.kind is TargetKind.vm:
            entries = self.vms
        else:
            return None
        for entry in entries:
            if entry.id == target.id:
                return entry
        return None

    def category_for(self, target: Target) -> str:
        """Category from the numeric range rules; VMs and misses are Other."""
        if target.kind is not TargetKind.container:
            return OTHER_CATEGORY
        for rng in self.container_categories:
            if rng.contains(target.id):
                return rng.category
        return OTHER_CATEGORY

    @staticmethod
    def fallback_name(target: Target) -> str:
        if target.kind is TargetKind.vm:
            return f"VM {target.id}"
        return f"Container {target.id}"

    @staticmethod
    def fallback_description(target: Target) -> str:
        if target.kind is TargetKind.vm:
            return "Unknown virtual machine"
        return "Unknown container"


def _entries(rows: list[tuple], category: Optional[str] = None) -> list[CatalogEntry]:
    if category is None:
        return [CatalogEntry(id=i, name=n, description=d) for i, n, d in rows]
    return [CatalogEntry(id=i, name=n, description=d, category=category) for i, n, d in rows]


_CORE = "Core Infrastructure"
_MEDIA = "Essential Media Services"
_SERVERS = "Media Servers"
_ENHANCE = "Enhancement Services"
_MONITOR = "Monitoring & Analytics"
_MANAGE = "Management & Utilities"


def default_catalog() -> MetadataCatalog:
    containers = (
        _entries([
            (100, "WireGuard", "VPN access and secure tunneling"),
            (101, "Gluetun", "VPN client container for other services"),
            (102, "Flaresolverr", "Cloudflare solver proxy"),
            (103, "Traefik", "Reverse proxy and load balancer"),
            (104, "Vaultwarden", "Password manager server"),
            (105, "Valkey", "Redis-compatible in-memory database"),
            (106, "PostgreSQL", "Primary database server"),
            (107, "Authentik", "Identity provider and SSO"),
        ], _CORE)
        + _entries([
            (210, "Prowlarr", "Indexer manager and proxy"),
            (211, "Jackett", "Torrent indexer proxy"),
            (212, "QBittorrent", "BitTorrent client"),
            (214, "Sonarr", "TV series management"),
            (215, "Radarr", "Movie management"),
            (216, "Proxarr", "Proxy management for *arr apps"),
            (217, "Readarr", "Book and audiobook management"),
            (219, "Whisparr", "Adult content management"),
            (220, "Sonarr Extended", "Extended TV series management"),
            (221, "Radarr Extended", "Extended movie management"),
            (223, "Autobrr", "Automated torrent management"),
            (224, "Deluge", "Alternative BitTorrent client"),
        ], _MEDIA)
        + _entries([
            (230, "Plex", "Media server and streaming platform"),
            (231, "Jellyfin", "Open-source media server"),
            (232, "Audiobookshelf", "Audiobook and podcast server"),
            (233, "Calibre-web", "E-book server and manager"),
            (234, "IPTV-Proxy", "IPTV streaming proxy"),
            (235, "TVHeadend", "TV streaming server"),
            (236, "Tdarr Server", "Media transcoding server"),
            (237, "Tdarr Node", "Media transcoding worker"),
        ], _SERVERS)
        + _entries([
            (240, "Bazarr", "Subtitle management"),
            (241, "Overseerr", "Media request management"),
            (242, "Jellyseerr", "Jellyfin request management"),
            (243, "Ombi", "Media request platform"),
            (244, "Tautulli", "Plex monitoring and statistics"),
            (245, "Kometa", "Plex metadata management"),
            (246, "Gaps", "Plex collection gap finder"),
            (247, "Janitorr", "Media cleanup automation"),
            (248, "Decluttarr", "Media library decluttering"),
            (249, "Watchlistarr", "Watchlist synchronization"),
            (250, "Traktarr", "Trakt.tv integration"),
        ], _ENHANCE)
        + _entries([
            (260, "Prometheus", "Metrics collection and monitoring"),
            (261, "Grafana", "Metrics visualization and dashboards"),
            (262, "Checkrr", "Service health checking"),
        ], _MONITOR)
        + _entries([
            (270, "FileBot", "File renaming and organization"),
            (271, "FlexGet", "Automated content downloading"),
            (272, "Buildarr", "Configuration management for *arr apps"),
            (274, "Organizr", "Service organization dashboard"),
            (275, "Homarr", "Modern dashboard for services"),
            (276, "Homepage", "Customizable homepage dashboard"),
            (277, "Recyclarr", "Configuration recycling for *arr apps"),
            (278, "CrowdSec", "Collaborative security engine"),
            (279, "Tailscale", "Secure networking mesh"),
        ], _MANAGE)
    )
    return MetadataCatalog(
        containers=containers,
        vms=_entries([
            (500, "Home Assistant", "Home automation platform"),
            (611, "Alexa", "Voice assistant system"),
            (900, "AI System", "Artificial intelligence services"),
        ]),
        container_categories=[
            CategoryRange(low=100, high=199, category=_CORE),
            CategoryRange(low=210, high=229, category=_MEDIA),
            CategoryRange(low=230, high=239, category=_SERVERS),
            CategoryRange(low=240, high=250, category=_ENHANCE),
            CategoryRange(low=260, high=269, category=_MONITOR),
            CategoryRange(low=270, high=279, category=_MANAGE),
        ],
        services=[
            ServiceCheck(name="nginx"),
            ServiceCheck(name="docker"),
            ServiceCheck(name="ssh"),
            ServiceCheck(name="sonarr", container_id=214),
            ServiceCheck(name="radarr", container_id=215),
            ServiceCheck(name="prowlarr", container_id=210),
            ServiceCheck(name="qbittorrent", container_id=212),
            ServiceCheck(name="plex", container_id=230),
            ServiceCheck(name="jellyfin", container_id=231),
            ServiceCheck(name="home-assistant", vm_id=500),
            ServiceCheck(name="alexa-service", vm_id=611),
        ],
        binaries=[
            BinaryCheck(name="docker"),
            BinaryCheck(name="systemctl"),
            BinaryCheck(name="nginx"),
            BinaryCheck(name="sonarr", container_id=214),
            BinaryCheck(name="radarr", container_id=215),
            BinaryCheck(name="prowlarr", container_id=210),
            BinaryCheck(name="plex", container_id=230),
            BinaryCheck(name="jellyfin", container_id=231),
            BinaryCheck(name="python3", vm_id=500),
            BinaryCheck(name="hass", vm_id=500),
        ],
        configs=[
            ConfigCheck(path="/etc/nginx/nginx.conf"),
            ConfigCheck(path="/etc/docker/daemon.json"),
            ConfigCheck(path="/config/config.xml", container_id=214),
            ConfigCheck(path="/config/config.xml", container_id=215),
            ConfigCheck(path="/config/config.xml", container_id=210),
            ConfigCheck(path="/config/qBittorrent/qBittorrent.conf", container_id=212),
            ConfigCheck(path="/config/configuration.yaml", vm_id=500),
        ],
    )


def load_catalog(path: str = "") -> MetadataCatalog:
    """Load the catalog from *path*, or the built-in defaults when unset."""
    if not path:
        return default_catalog()
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    catalog = MetadataCatalog.model_validate(data)
    log.info(
        "catalog.loaded",
        path=path,
        containers=len(catalog.containers),
        vms=len(catalog.vms),
    )
    return catalog
