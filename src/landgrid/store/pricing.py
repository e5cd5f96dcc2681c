"""Per-cell price table for the development server, loaded from YAML."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel


_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[3] / "config" / "pricing.yml"


class PriceRule(BaseModel):
    match: str
    price: float


class PriceTable:
    """First rule whose ``match`` occurs in the address wins (case-insensitive)."""

    def __init__(
        self,
        config_path: str | Path | None = None,
        default_price: float = 1.0,
    ) -> None:
        self._config_path = Path(config_path) if config_path else _DEFAULT_CONFIG_PATH
        self.default_price = default_price
        self._rules: list[PriceRule] = []
        self._raw: dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        with open(self._config_path) as fh:
            self._raw = yaml.safe_load(fh) or {}

        for entry in self._raw.get("rules", []):
            rule = PriceRule(match=str(entry["match"]), price=entry["price"])
            if rule.price < 0:
                raise ValueError(f"Negative price for rule {rule.match!r}")
            self._rules.append(rule)

    @property
    def rules(self) -> list[PriceRule]:
        return list(self._rules)

    def price_for(self, address: str) -> float:
        needle = address.lower()
        for rule in self._rules:
            if rule.match.lower() in needle:
                return rule.price
        return self.default_price
