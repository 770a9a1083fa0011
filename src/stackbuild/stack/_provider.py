"""Supported deployment providers.

Providers are a closed set. Each member carries the build capabilities the
pipeline needs, so there is no lookup of behaviour by free-form strings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum


@dataclass(frozen=True)
class ProviderCapabilities:
    """Build parameters contributed by a provider.

    Attributes:
        membrane_asset: Release asset name of the supervisor binary installed
            as image entrypoint.
        extra_build_args: Build arguments passed to the daemon in addition to
            ``PROVIDER``.
    """

    membrane_asset: str
    extra_build_args: dict[str, str] = field(default_factory=dict)


class Provider(StrEnum):
    LOCAL = "local"
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"
    DIGITALOCEAN = "digitalocean"

    @property
    def capabilities(self) -> ProviderCapabilities:
        return _CAPABILITIES[self]

    @property
    def membrane_asset(self) -> str:
        return self.capabilities.membrane_asset

    def build_args(self) -> dict[str, str]:
        """Build arguments submitted with every image build for this provider."""
        return {
            "PROVIDER": self.value,
            "MEMBRANE_ASSET": self.membrane_asset,
            **self.capabilities.extra_build_args,
        }


_CAPABILITIES: dict[Provider, ProviderCapabilities] = {
    Provider.LOCAL: ProviderCapabilities(membrane_asset="membrane-local"),
    Provider.AWS: ProviderCapabilities(membrane_asset="membrane-aws"),
    Provider.GCP: ProviderCapabilities(membrane_asset="membrane-gcp"),
    Provider.AZURE: ProviderCapabilities(membrane_asset="membrane-azure"),
    Provider.DIGITALOCEAN: ProviderCapabilities(membrane_asset="membrane-do"),
}

assert set(_CAPABILITIES) == set(Provider), "every provider needs capabilities"
