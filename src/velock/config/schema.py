"""Pydantic schema for configuration validation."""

import hashlib
import json
from typing import Any, Dict, List

from pydantic import BaseModel, Field, field_validator, model_validator


class EpochSettings(BaseModel):
    """Epoch clock parameters."""
    duration_seconds: int = Field(gt=0, default=604_800, description="Epoch length in seconds")
    genesis_timestamp: int = Field(ge=0, description="Timestamp inside epoch 0 (floored to a boundary)")


class LockSettings(BaseModel):
    """Lock duration bounds."""
    max_lock_epochs: int = Field(gt=0, le=10_000, default=52, description="Maximum lock duration in epochs")


class FeeTokenSettings(BaseModel):
    """A token paid into the fee ledger during simulation."""
    symbol: str = Field(min_length=1, description="Token symbol (also its address)")
    mean_deposit: int = Field(gt=0, description="Mean fee deposited per epoch, whole tokens")
    transfer_fee_bps: int = Field(ge=0, lt=10_000, default=0, description="Cut taken on every transfer")


class SimulationSettings(BaseModel):
    """Random user-population simulation parameters."""
    num_users: int = Field(gt=0, description="Number of simulated users")
    horizon_epochs: int = Field(gt=0, description="Number of epochs to simulate")
    random_seed: int = Field(description="Random seed for reproducibility")
    token_decimals: int = Field(ge=0, le=36, default=18, description="Base units per whole token, as a power of ten")
    initial_balance: int = Field(gt=0, description="Stake tokens minted to each user, whole tokens")
    min_lock_amount: int = Field(gt=0, description="Smallest random lock, whole tokens")
    max_lock_amount: int = Field(gt=0, description="Largest random lock, whole tokens")
    lock_probability: float = Field(ge=0, le=1, default=0.3, description="Chance a user locks in an epoch")
    extend_probability: float = Field(ge=0, le=1, default=0.1, description="Chance a user extends a bucket")
    claim_probability: float = Field(ge=0, le=1, default=0.5, description="Chance a user claims fees")
    exit_probability: float = Field(ge=0, le=1, default=0.5, description="Chance a user exits matured principal")
    fee_tokens: List[FeeTokenSettings] = Field(min_length=1, description="Fee tokens deposited every epoch")

    @field_validator("max_lock_amount")
    @classmethod
    def validate_lock_amounts(cls, v, info):
        """Ensure min <= max lock amount."""
        if 'min_lock_amount' in info.data and v < info.data['min_lock_amount']:
            raise ValueError("max_lock_amount must be at least min_lock_amount")
        return v

    @model_validator(mode='after')
    def validate_unique_tokens(self):
        """Fee token symbols double as addresses and must be unique."""
        symbols = [t.symbol for t in self.fee_tokens]
        if len(set(symbols)) != len(symbols):
            raise ValueError(f"Fee token symbols must be unique, got {symbols}")
        return self


class Config(BaseModel):
    """Complete configuration for the ledger workbench."""
    epochs: EpochSettings
    locking: LockSettings = Field(default_factory=LockSettings)
    simulation: SimulationSettings

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
