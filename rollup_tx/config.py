"""
Configuration management for transaction validation.
"""
import json
import os
from dataclasses import dataclass, asdict

from rollup_tx.params import MAX_TOKEN_ID


@dataclass
class ValidationConfig:
    """Correctness check configuration."""
    max_token_id: int = MAX_TOKEN_ID
    # Transfers and withdrawals must carry an Ethereum signature as well
    require_eth_sign_data: bool = False


@dataclass
class Config:
    """Main configuration."""
    validation: ValidationConfig

    @classmethod
    def default(cls) -> 'Config':
        """Create default configuration."""
        return cls(validation=ValidationConfig())

    @classmethod
    def from_file(cls, path: str) -> 'Config':
        """Load configuration from JSON file."""
        with open(path, 'r') as f:
            data = json.load(f)

        return cls(validation=ValidationConfig(**data.get('validation', {})))

    def to_file(self, path: str):
        """Save configuration to JSON file."""
        os.makedirs(os.path.dirname(path) or '.', exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            'validation': asdict(self.validation),
        }
