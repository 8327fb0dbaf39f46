"""
Configuration Loader (``billing_config.loader``).

Responsibility
--------------
Loads a billing configuration YAML file and parses its ``invoice:``
section into an ``InvoiceConfig``.  Runtime callers go through
``billing_config.get_invoice_config()`` instead of calling this directly.

Invariants enforced
-------------------
* Keys absent from the file take the ``InvoiceConfig`` defaults.
* Unknown keys are rejected rather than silently ignored.
* ``compute_checksum`` is deterministic over the parsed section.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Wrong shape, unknown key or invalid value  -> ``InvalidInvoiceConfigError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import fields
from pathlib import Path
from typing import Any

import yaml

from billing_config.schema import InvoiceConfig
from billing_kernel.exceptions import InvalidInvoiceConfigError

_KNOWN_KEYS = frozenset(f.name for f in fields(InvoiceConfig))


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_invoice_config(data: dict[str, Any]) -> InvoiceConfig:
    """Build an ``InvoiceConfig`` from the parsed ``invoice:`` section."""
    if not isinstance(data, dict):
        raise InvalidInvoiceConfigError("invoice", data, "section must be a mapping")
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise InvalidInvoiceConfigError(unknown[0], data[unknown[0]], "unknown key")
    return InvoiceConfig(**data)


def load_invoice_config(path: Path | str) -> InvoiceConfig:
    """Read ``path`` and return its validated invoice settings."""
    raw = load_yaml_file(Path(path))
    if not isinstance(raw, dict):
        raise InvalidInvoiceConfigError("<root>", raw, "document must be a mapping")
    return parse_invoice_config(raw.get("invoice") or {})


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
