from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, Mapping, Union

from .logging import get_logger
from .models import QuotaUsage

logger = get_logger(__name__)


def _reject_constant(name: str):
    # NaN and Infinity are valid for json.load but never a usage value
    raise ValueError(f"non-finite number {name} in quota tracking file")


class QuotaStore:
    """Whole-file JSON persistence for per-application quota usage."""

    def __init__(self, path: Union[str, os.PathLike[str]]):
        self.path = Path(path).expanduser()

    def load(self) -> Dict[str, QuotaUsage]:
        """Read every record. A missing or unreadable file yields an empty mapping."""
        if not self.path.exists():
            logger.info("No quota tracking file at %s, starting with an empty ledger", self.path)
            return {}

        try:
            with self.path.open("r", encoding="utf-8") as fh:
                raw = json.load(fh, parse_constant=_reject_constant)
            if not isinstance(raw, dict):
                raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
            records = {str(app_id): QuotaUsage.load(content) for app_id, content in raw.items()}
        except (OSError, KeyError, TypeError, ValueError, OverflowError, RecursionError) as exc:
            logger.error("Failed to load quota tracking file %s, starting with an empty ledger: %s", self.path, exc)
            return {}

        logger.info("Loaded quota usage for %d application(s) from %s", len(records), self.path)
        return records

    def save(self, records: Mapping[str, QuotaUsage]) -> Path:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = {app_id: usage.dump() for app_id, usage in records.items()}
        with self.path.open("w", encoding="utf-8") as fh:
            json.dump(payload, fh, ensure_ascii=False, indent=2)
        logger.debug("Saved quota usage for %d application(s) to %s", len(payload), self.path)
        return self.path
