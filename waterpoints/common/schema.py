"""Minimal strict schemas for YAML config validation."""

from __future__ import annotations

from waterpoints.common.errors import ConfigError

TOP_LEVEL_KEYS = {"api", "years", "concurrency", "output", "report"}


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_int(value: object, ctx: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{ctx} must be a positive integer")


def validate_harvest_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    _assert_required_keys(cfg, TOP_LEVEL_KEYS, "harvest config")
    _assert_no_unknown_keys(cfg, TOP_LEVEL_KEYS, "harvest config", allow_unknown)

    api_keys = {"base_url", "token_env_var", "timeout_seconds"}
    _assert_required_keys(cfg["api"], api_keys, "api")
    _assert_no_unknown_keys(cfg["api"], api_keys, "api", allow_unknown)
    _assert_required_keys(cfg["api"]["timeout_seconds"], {"connect", "read"}, "api.timeout_seconds")

    _assert_required_keys(cfg["years"], {"start", "end"}, "years")
    start, end = cfg["years"]["start"], cfg["years"]["end"]
    _assert_positive_int(start, "years.start")
    _assert_positive_int(end, "years.end")
    if start > end:
        raise ConfigError(f"years.start ({start}) must not be after years.end ({end})")

    _assert_required_keys(cfg["concurrency"], {"partitions", "enrichments"}, "concurrency")
    _assert_positive_int(cfg["concurrency"]["partitions"], "concurrency.partitions")
    _assert_positive_int(cfg["concurrency"]["enrichments"], "concurrency.enrichments")

    _assert_required_keys(cfg["output"], {"table_filename", "summary_filename"}, "output")
    _assert_required_keys(cfg["report"], {"selected_report_type", "water_source"}, "report")
    if not isinstance(cfg["report"]["water_source"], list):
        raise ConfigError("report.water_source must be a list")

    return cfg
