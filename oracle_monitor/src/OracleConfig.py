"""OracleConfig: Selection made in the dashboard's oracle controls."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Mapping

from .PriceReading import ProviderKind

# Accepted spellings for each field when building from a mapping
_FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "source_chain": ("source_chain", "sourceChain"),
    "target_chain": ("target_chain", "targetChain"),
    "provider_kind": ("provider_kind", "providerKind", "oracleType", "oracle_type"),
    "data_kind": ("data_kind", "dataKind", "dataType", "data_type"),
}


@dataclass(frozen=True)
class OracleConfig:
    """Which feeds to run and where.

    :ivar source_chain: Chain whose feeds are polled (e.g., "Ethereum").
    :ivar target_chain: Counterparty chain shown alongside the source.
    :ivar provider_kind: Provider name or ProviderKind.
    :ivar data_kind: What is being monitored (e.g., "Price Feed").
    """

    source_chain: str = ""
    target_chain: str = ""
    provider_kind: str | ProviderKind = ""
    data_kind: str = ""

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> OracleConfig:
        """Build a config from camelCase or snake_case keys.

        :param data: e.g. ``{"sourceChain": "Ethereum", "oracleType": "Chainlink", ...}``.
        :returns: New OracleConfig; missing fields are left empty.
        """
        values: dict[str, str] = {}
        for field_name, aliases in _FIELD_ALIASES.items():
            for alias in aliases:
                if data.get(alias):
                    values[field_name] = data[alias]
                    break
        return cls(**values)

    @property
    def is_complete(self) -> bool:
        """True when all four fields are set."""
        return all(
            bool(str(v).strip()) for v in (
                self.source_chain, self.target_chain, self.provider_kind, self.data_kind
            )
        )

    @property
    def provider(self) -> ProviderKind:
        """Resolved provider kind.

        :raises ValueError: If provider_kind names no known provider.
        """
        return ProviderKind.parse(self.provider_kind)

    def as_dict(self) -> dict[str, str]:
        """Return a plain dict suitable for journal details."""
        data = asdict(self)
        if isinstance(self.provider_kind, ProviderKind):
            data["provider_kind"] = self.provider_kind.value
        return data
