"""
Configuration management using pydantic-settings.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="CHAINWALLET_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    log_level: str = "INFO"

    # Per-call HTTP timeouts (seconds). There is no overall deadline for a send.
    http_timeout: float = Field(default=30.0, gt=0)
    fee_timeout: float = Field(default=10.0, gt=0)
    broadcast_timeout: float = Field(default=30.0, gt=0)

    # Decode a WIF against the other Bitcoin network's version byte when the
    # expected one does not match. Logged every time it happens.
    allow_alternate_network_wif: bool = True

    eth_rpc_url: str = "https://rpc.holesky.ethpandaops.io"
    base_rpc_url: str = "https://mainnet.base.org"
    xrp_rpc_url: str = "https://xrplcluster.com/"
    xrp_testnet_rpc_url: str = "https://s.altnet.rippletest.net:51234/"


def get_settings() -> Settings:
    return Settings()
