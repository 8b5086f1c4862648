import os
from dataclasses import dataclass

MIB = 1024 * 1024

# Attachment ceiling for a bot posting into an unboosted server.
DEFAULT_CHUNK_SIZE_MB = 8
# Concurrent sends from one bot before Discord starts rate limiting it.
DEFAULT_WORKERS = 4


@dataclass(frozen=True)
class TransferConfig:
    chunk_size: int = DEFAULT_CHUNK_SIZE_MB * MIB
    workers: int = DEFAULT_WORKERS

    def __post_init__(self):
        if self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.workers < 1:
            raise ValueError(f"workers must be positive, got {self.workers}")

    @classmethod
    def from_env(cls) -> "TransferConfig":
        chunk_size_mb = int(os.getenv("CHUNK_SIZE_MB", str(DEFAULT_CHUNK_SIZE_MB)))
        workers = int(os.getenv("TRANSFER_WORKERS", str(DEFAULT_WORKERS)))
        return cls(chunk_size=chunk_size_mb * MIB, workers=workers)
