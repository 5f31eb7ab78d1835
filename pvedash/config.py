"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All configuration is driven by environment variables."""

    # Remote channel (pre-authenticated ssh, aliases come from ~/.ssh/config)
    pve_ssh_binary: str = "ssh"
    pve_ssh_options: list[str] = Field(
        default_factory=lambda: ["-o", "BatchMode=yes", "-o", "ConnectTimeout=5"],
    )
    pve_host_alias: str = "proxmox"
    pve_container_exec_template: str = "{host} pct exec {id} --"
    pve_vm_aliases: dict[int, str] = Field(
        default_factory=lambda: {500: "homeassistant", 611: "alexa", 900: "ai-system"},
    )

    # Timeouts and fan-out
    pve_command_timeout_seconds: float = 20.0
    pve_enrichment_timeout_seconds: float = 3.0
    pve_max_concurrent_calls: int = 6
    pve_pass_deadline_seconds: float = 45.0
    pve_overview_enrichment: bool = False

    # Cache freshness per query class
    pve_ttl_system_overview_seconds: float = 30.0
    pve_ttl_target_detail_seconds: float = 10.0
    pve_ttl_host_info_seconds: float = 300.0
    pve_ttl_maintenance_seconds: float = 120.0
    pve_ttl_performance_seconds: float = 15.0
    pve_cache_max_entries: int = 512

    # Static metadata catalog override (JSON file)
    pve_catalog_path: str = ""

    # Local maintenance scripts
    pve_scripts_dir: str = "/opt/pvedash/scripts"
    pve_script_timeout_seconds: float = 600.0

    # Text-generation endpoint for suggestions
    pve_llm_url: str = "http://localhost:11434"
    pve_llm_model: str = "llama3"
    pve_llm_timeout_seconds: float = 60.0

    # API key
    pve_api_key: str = ""

    # Logging
    pve_log_level: str = "INFO"
    pve_log_json: bool = False

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    def cache_durations(self) -> dict[str, float]:
        """Freshness duration for every logical query class."""
        return {
            "system_overview": self.pve_ttl_system_overview_seconds,
            "target_detail": self.pve_ttl_target_detail_seconds,
            "host_info": self.pve_ttl_host_info_seconds,
            "maintenance": self.pve_ttl_maintenance_seconds,
            "performance": self.pve_ttl_performance_seconds,
        }
