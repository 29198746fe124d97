"""Configuration helpers for regen-gate."""

from __future__ import annotations

import copy
import os
from typing import Any, Dict

import yaml


DEFAULTS: Dict[str, Any] = {
    "workflow": "dashboard",
    "working_directory": "dashboard",
    "upstream": {
        "url": "https://github.com/risingwavelabs/risingwave.git",
        "remote": "upstream",
    },
    "head_remote": "origin",
    "base_ref": "main",
    "head_ref": None,
    "ref": None,
    "source_paths": ["../proto"],
    "trigger": {
        "branches": ["main"],
        "paths": ["dashboard/**", "proto/**"],
    },
    "concurrency": {
        "group": "dashboard-build-{ref}",
        "cancel_in_progress": True,
        "lease_ttl": 21600,
    },
    "toolchain": {
        "node": "18",
        "protoc": "3.x",
    },
    "commands": {
        "install": "npm install",
        "generate": "npm run gen-proto",
        "lint": "npm run lint",
        "build": "npm run build",
        "build_static": "npm run build-static",
    },
    "annotations": "auto",
    "max_events": None,
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def _env_flag(value: str) -> bool:
    return value.lower() not in ("0", "false", "no")


def load_config(path: str | None = None) -> Dict[str, Any]:
    """Load configuration from ``path`` or ``REGENGATE_CONFIG`` env var.

    Values from the YAML file are merged over :data:`DEFAULTS`; nested
    mappings are merged key by key. The platform variables
    ``GITHUB_BASE_REF``, ``GITHUB_HEAD_REF`` and ``GITHUB_REF`` override the
    refs found in the file, and ``REGENGATE_*`` variables override the
    remaining settings.
    """

    cfg: Dict[str, Any] = copy.deepcopy(DEFAULTS)
    path = path or os.getenv("REGENGATE_CONFIG")
    if path and os.path.exists(path):
        with open(path, "r") as fh:
            data = yaml.safe_load(fh) or {}
        if not isinstance(data, dict):
            raise ValueError(f"configuration in {path} must be a mapping")
        _merge(cfg, data)

    # empty values are what the platform exports for non-PR events
    if os.getenv("GITHUB_BASE_REF"):
        cfg["base_ref"] = os.environ["GITHUB_BASE_REF"]
    if os.getenv("GITHUB_HEAD_REF"):
        cfg["head_ref"] = os.environ["GITHUB_HEAD_REF"]
    if os.getenv("GITHUB_REF"):
        cfg["ref"] = os.environ["GITHUB_REF"]

    if "REGENGATE_WORKDIR" in os.environ:
        cfg["working_directory"] = os.environ["REGENGATE_WORKDIR"]
    if "REGENGATE_UPSTREAM_URL" in os.environ:
        cfg["upstream"]["url"] = os.environ["REGENGATE_UPSTREAM_URL"]
    if "REGENGATE_STAGES_PATH" in os.environ:
        cfg["stages_path"] = os.environ["REGENGATE_STAGES_PATH"]
    if "REGENGATE_LEASES_PATH" in os.environ:
        cfg["leases_path"] = os.environ["REGENGATE_LEASES_PATH"]
    if "REGENGATE_ANNOTATIONS" in os.environ:
        cfg["annotations"] = os.environ["REGENGATE_ANNOTATIONS"]
    if "REGENGATE_LEASE_TTL" in os.environ:
        ttl = os.environ["REGENGATE_LEASE_TTL"]
        cfg["concurrency"]["lease_ttl"] = float(ttl) if ttl else None
    if "REGENGATE_MAX_EVENTS" in os.environ:
        cap = os.environ["REGENGATE_MAX_EVENTS"]
        cfg["max_events"] = int(cap) if cap else None

    cancel_env = os.getenv("REGENGATE_CANCEL_IN_PROGRESS")
    if cancel_env is not None:
        cfg["concurrency"]["cancel_in_progress"] = _env_flag(cancel_env)
    else:
        cfg["concurrency"]["cancel_in_progress"] = bool(
            cfg["concurrency"].get("cancel_in_progress", True)
        )

    if isinstance(cfg.get("source_paths"), str):
        cfg["source_paths"] = [cfg["source_paths"]]

    if cfg["annotations"] not in ("auto", "github", "plain"):
        raise ValueError(f"Unknown annotations mode: {cfg['annotations']}")

    if cfg.get("ref") is None:
        cfg["ref"] = cfg.get("head_ref") or "local"

    return cfg


def concurrency_group(cfg: Dict[str, Any]) -> str:
    """Return the concurrency group key for the configured ref."""

    template = cfg["concurrency"]["group"]
    return template.format(ref=cfg["ref"], workflow=cfg["workflow"])
