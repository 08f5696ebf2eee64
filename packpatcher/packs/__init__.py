# packpatcher/packs/__init__.py
from __future__ import annotations

from packpatcher.packs.pipeline import PackagingRun, packageAll
from packpatcher.packs.types import OutcomeStatus, PackOutcome, RunReport

__all__ = ["PackagingRun", "packageAll", "OutcomeStatus", "PackOutcome", "RunReport"]
