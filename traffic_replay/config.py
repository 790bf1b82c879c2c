"""
Run configuration for a replay.
"""

import math
from dataclasses import dataclass
from typing import Optional

DEFAULT_TIMEOUT_MS = 60000
DEFAULT_ACCELERATOR = 1.0


@dataclass
class ReplayConfig:
    """Options recognised by the replay scheduler."""
    timeout_ms: float = DEFAULT_TIMEOUT_MS      # Per-request deadline
    accelerator: float = DEFAULT_ACCELERATOR    # Divides inter-record delays
    host: Optional[str] = None                  # host[:port] replacing each URL's authority
    no_cache: bool = False                      # Add cache=false to every query string
    skip_header: bool = False                   # Drop the first non-blank input line
    no_verify: bool = False                     # Disable TLS certificate verification
    reset_connections: Optional[int] = None     # Rotate the pool every N requests
    limit: Optional[int] = None                 # Stop after N records
    spin_ns: int = 0                            # Busy-wait window before each dispatch
    verbose: bool = False
    system_state: bool = False                  # Print a host snapshot before replaying

    def validate(self) -> "ReplayConfig":
        if not math.isfinite(self.timeout_ms) or self.timeout_ms <= 0:
            raise ValueError("timeout must be a positive number of milliseconds")
        if not math.isfinite(self.accelerator) or self.accelerator <= 0:
            raise ValueError("accelerator must be greater than 0")
        if self.reset_connections is not None and self.reset_connections <= 0:
            raise ValueError("reset-connections must be a positive integer")
        if self.limit is not None and self.limit <= 0:
            raise ValueError("limit must be a positive integer")
        if self.spin_ns < 0:
            raise ValueError("spin-ns must not be negative")
        if self.host is not None and not self.host.strip():
            raise ValueError("host must not be empty")
        return self
