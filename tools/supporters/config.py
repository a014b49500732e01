"""Configuration and environment settings for the supporters sync."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_BLOCKLIST_PATH = Path(__file__).with_name("blocklist.json")


@dataclass(frozen=True)
class LedgerConfig:
    """Open Collective GraphQL API configuration."""
    api_endpoint: str = "https://api.opencollective.com/graphql/v2"
    account_slug: str = "mochajs"
    page_size: int = 1000
    timeout: float = 30.0
    max_retries: int = 3

    @classmethod
    def from_env(cls) -> LedgerConfig:
        return cls(
            api_endpoint=os.getenv("OC_API_ENDPOINT", "https://api.opencollective.com/graphql/v2"),
            account_slug=os.getenv("OC_ACCOUNT_SLUG", "mochajs"),
        )


@dataclass(frozen=True)
class AssetConfig:
    output_dir: Path = Path("docs/images/supporters")
    timeout: float = 30.0
    max_retries: int = 3
    max_concurrency: int = 0  # 0 = one request per supporter, all at once

    @classmethod
    def from_env(cls) -> AssetConfig:
        return cls(
            output_dir=Path(os.getenv("SUPPORTERS_IMAGE_DIR", "docs/images/supporters")),
            max_concurrency=int(os.getenv("SUPPORTERS_MAX_CONCURRENCY", "0")),
        )


@dataclass
class SupportersConfig:
    ledger: LedgerConfig = field(default_factory=LedgerConfig.from_env)
    assets: AssetConfig = field(default_factory=AssetConfig.from_env)
    blocklist_path: Path = field(
        default_factory=lambda: Path(os.getenv("SUPPORTERS_BLOCKLIST", str(DEFAULT_BLOCKLIST_PATH)))
    )

    def load_blocklist(self) -> frozenset[str]:
        return load_blocklist(self.blocklist_path)


def load_blocklist(path: Path | str = DEFAULT_BLOCKLIST_PATH) -> frozenset[str]:
    """Read a JSON array of account slugs that must never be listed."""
    data = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(data, list) or not all(isinstance(s, str) for s in data):
        raise ValueError(f"Blocklist {path} must be a JSON array of slugs")
    return frozenset(data)
