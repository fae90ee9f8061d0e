"""
Configuration management for the t2z command line.
"""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from t2z.consensus import Network


class T2zSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="T2Z_", env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )

    network: Literal["mainnet", "testnet"] = "testnet"

    log_level: str = "INFO"

    # Height the next block will have; None selects the latest upgrade and no expiry
    target_height: int | None = Field(default=None, ge=0, le=0xFFFFFFFF)

    @property
    def network_is_main(self) -> bool:
        return self.network == "mainnet"

    def get_network(self) -> Network:
        return Network.from_is_main(self.network_is_main)


def get_settings() -> T2zSettings:
    return T2zSettings()
