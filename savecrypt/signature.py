"""Header/footer boundary checks on decrypted save data."""

import warnings

from .errors import BoundaryWarning
from .options import DEFAULT_FOOTER, DEFAULT_HEADER

HEADER_SAMPLE = 256
FOOTER_SAMPLE = 512


class SignatureDetector:
    """Decides whether decrypted bytes look like a ``<root>...</root>`` document.

    Matching is tried in order of strictness: exact bytes at the edge, then
    the decoded sample with surrounding whitespace trimmed, then a search
    anywhere inside the sample window. The last step emits a
    ``BoundaryWarning`` since it accepts stray bytes around the marker.
    Text decoding problems count as "not found"; they are never raised.
    """

    def __init__(self, header: str = DEFAULT_HEADER, footer: str = DEFAULT_FOOTER):
        if not header:
            raise ValueError("header cannot be empty")
        if not footer:
            raise ValueError("footer cannot be empty")
        self.header = header
        self.footer = footer
        self.header_bytes = header.encode("utf-8")
        self.footer_bytes = footer.encode("utf-8")

    @classmethod
    def from_options(cls, options) -> "SignatureDetector":
        return cls(options.expected_header, options.expected_footer)

    @staticmethod
    def _decode_sample(data) -> str | None:
        try:
            # A sample boundary may split a multi-byte character; replace it.
            return bytes(data).decode("utf-8", errors="replace")
        except (TypeError, ValueError):
            return None

    def starts_with_header(self, data) -> bool:
        data = bytes(data)
        if len(data) < len(self.header_bytes):
            return False
        if data.startswith(self.header_bytes):
            return True
        sample = self._decode_sample(data[:HEADER_SAMPLE])
        if sample is None:
            return False
        if sample.lstrip().startswith(self.header):
            return True
        if self.header in sample:
            warnings.warn(
                f"{self.header!r} found inside the first {HEADER_SAMPLE} bytes, not at the start",
                BoundaryWarning,
                stacklevel=2,
            )
            return True
        return False

    def ends_with_footer(self, data) -> bool:
        data = bytes(data)
        if len(data) < len(self.footer_bytes):
            return False
        if data.endswith(self.footer_bytes):
            return True
        sample = self._decode_sample(data[-FOOTER_SAMPLE:])
        if sample is not None and sample.rstrip().endswith(self.footer):
            return True
        position = data.rfind(self.footer_bytes)
        if position >= 0:
            trailing = len(data) - position - len(self.footer_bytes)
            warnings.warn(
                f"{self.footer!r} found {trailing} bytes before the end of the data",
                BoundaryWarning,
                stacklevel=2,
            )
            return True
        return False

    def has_valid_signature(self, content) -> bool:
        """True when ``content`` (bytes or text), trimmed, opens with the header and closes with the footer."""
        if isinstance(content, str):
            text = content
        else:
            try:
                text = bytes(content).decode("utf-8")
            except (TypeError, ValueError):
                return False
        if not text:
            return False
        trimmed = text.strip()
        return trimmed.startswith(self.header) and trimmed.endswith(self.footer)

    def has_balanced_root(self, text: str) -> bool:
        """True when the header and footer each occur exactly once, at the edges."""
        trimmed = text.strip()
        if not (trimmed.startswith(self.header) and trimmed.endswith(self.footer)):
            return False
        if len(trimmed) < len(self.header) + len(self.footer):
            return False
        if trimmed.find(self.header, 1) != -1:
            return False
        return trimmed.rfind(self.footer, 0, len(trimmed) - 1) == -1


__all__ = ["FOOTER_SAMPLE", "HEADER_SAMPLE", "SignatureDetector"]
