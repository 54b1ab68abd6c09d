"""Immutable configuration records for the cipher and the validator."""

import dataclasses

KIB = 1024
MIB = 1024 * KIB

DEFAULT_HEADER = "<root>"
DEFAULT_FOOTER = "</root>"


@dataclasses.dataclass(frozen=True)
class CipherOptions:
    buffer_size: int = 64 * KIB
    use_chunked_io: bool = True
    chunked_io_threshold: int = 4 * MIB
    verify_writes: bool = True
    use_vectorized: bool = True
    pooling_threshold: int = 1 * MIB

    def __post_init__(self):
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be greater than zero")
        if self.chunked_io_threshold < 0:
            raise ValueError("chunked_io_threshold cannot be negative")
        if self.pooling_threshold < 0:
            raise ValueError("pooling_threshold cannot be negative")

    def replace(self, **changes) -> "CipherOptions":
        return dataclasses.replace(self, **changes)


@dataclasses.dataclass(frozen=True)
class ValidationOptions:
    max_file_size: int = 25 * MIB
    expected_header: str = DEFAULT_HEADER
    expected_footer: str = DEFAULT_FOOTER
    max_processing_time: float = 60.0
    retry_attempts: int = 3
    retry_delay: float = 0.5
    bypass_validation_failures: bool = True
    validate_structure: bool = True
    buffer_size: int = 64 * KIB
    large_file_threshold: int = 1 * MIB
    footer_probe_attempts: int = 3

    def __post_init__(self):
        if not self.expected_header:
            raise ValueError("expected_header cannot be empty")
        if not self.expected_footer:
            raise ValueError("expected_footer cannot be empty")
        if self.max_processing_time <= 0:
            raise ValueError("max_processing_time must be greater than zero")
        if self.retry_attempts < 0:
            raise ValueError("retry_attempts cannot be negative")
        if self.retry_delay < 0:
            raise ValueError("retry_delay cannot be negative")
        if self.max_file_size <= 0:
            raise ValueError("max_file_size must be greater than zero")
        if self.buffer_size <= 0:
            raise ValueError("buffer_size must be greater than zero")
        if self.large_file_threshold < 0:
            raise ValueError("large_file_threshold cannot be negative")
        if self.footer_probe_attempts < 1:
            raise ValueError("footer_probe_attempts must be at least 1")

    @property
    def header_bytes(self) -> bytes:
        return self.expected_header.encode("utf-8")

    @property
    def footer_bytes(self) -> bytes:
        return self.expected_footer.encode("utf-8")

    def replace(self, **changes) -> "ValidationOptions":
        return dataclasses.replace(self, **changes)


__all__ = ["CipherOptions", "ValidationOptions", "KIB", "MIB", "DEFAULT_HEADER", "DEFAULT_FOOTER"]
