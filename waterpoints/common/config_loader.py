"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

from waterpoints.common.errors import ConfigError
from waterpoints.common.fs import read_yaml
from waterpoints.common.schema import validate_harvest_config


@dataclass(frozen=True)
class HarvestSettings:
    base_url: str
    token_env_var: str
    connect_timeout: float
    read_timeout: float
    start_year: int
    end_year: int
    partition_concurrency: int
    enrichment_concurrency: int
    table_filename: str
    summary_filename: str
    selected_report_type: str
    water_source: tuple[str, ...]

    @property
    def years(self) -> range:
        return range(self.start_year, self.end_year + 1)

    def with_years(self, start: int | None, end: int | None) -> "HarvestSettings":
        start_year = self.start_year if start is None else start
        end_year = self.end_year if end is None else end
        if start_year > end_year:
            raise ConfigError(f"Start year {start_year} must not be after end year {end_year}")
        return replace(self, start_year=start_year, end_year=end_year)


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if overlay is None:
        return base
    if not isinstance(overlay, dict):
        raise ConfigError(f"Overlay config must be a mapping: {overlay_path}")
    return _deep_merge(base, overlay)


def load_settings(
    config_path: Path,
    *,
    allow_unknown: bool = False,
    overlay_path: Path | None = None,
) -> HarvestSettings:
    cfg = validate_harvest_config(
        _load_yaml_with_overlay(config_path, overlay_path),
        allow_unknown=allow_unknown,
    )
    api = cfg["api"]
    return HarvestSettings(
        base_url=str(api["base_url"]).rstrip("/"),
        token_env_var=str(api["token_env_var"]),
        connect_timeout=float(api["timeout_seconds"]["connect"]),
        read_timeout=float(api["timeout_seconds"]["read"]),
        start_year=int(cfg["years"]["start"]),
        end_year=int(cfg["years"]["end"]),
        partition_concurrency=int(cfg["concurrency"]["partitions"]),
        enrichment_concurrency=int(cfg["concurrency"]["enrichments"]),
        table_filename=str(cfg["output"]["table_filename"]),
        summary_filename=str(cfg["output"]["summary_filename"]),
        selected_report_type=str(cfg["report"]["selected_report_type"]),
        water_source=tuple(str(v) for v in cfg["report"]["water_source"]),
    )
