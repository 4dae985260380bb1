"""Oracle deployment-scope configuration."""

from pydantic import BaseModel, ConfigDict, field_validator

from src.config import Settings

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


class OracleConfig(BaseModel):
    """Identity allowed to mark completions within one deployment scope.

    Passed explicitly to the authorizer so that several scopes can coexist
    in one process (e.g. in tests).

    Attributes
    ----------
    oracle_address : str
        The single authorized oracle identity, stored lowercase
    scope : str
        Deployment scope label, typically the ledger contract address
    """

    oracle_address: str
    scope: str = "local"

    model_config = ConfigDict(frozen=True)

    @field_validator("oracle_address")
    @classmethod
    def check_oracle_address(cls, value: str) -> str:
        canonical = value.strip().lower()
        if not canonical or canonical == ZERO_ADDRESS:
            raise ValueError("Oracle address cannot be zero")
        return canonical

    def is_oracle(self, caller: str | None) -> bool:
        """Case-insensitive identity comparison."""
        if not caller:
            return False
        return caller.strip().lower() == self.oracle_address

    @classmethod
    def from_settings(cls, settings: Settings) -> "OracleConfig":
        return cls(oracle_address=settings.ORACLE_ADDRESS, scope=settings.CONTRACT_ADDRESS)
