class MosaicError(Exception):
    """Base class for errors raised before or during a mosaic run."""


class InputValidationError(MosaicError, ValueError):
    """Mismatched buffers, non-square images or out-of-range parameters."""


class ResourceLimitError(MosaicError, MemoryError):
    """The requested resolution needs more working memory than allowed."""

    def __init__(self, side: int, needed_bytes: int, max_side: int):
        self.side = side
        self.needed_bytes = needed_bytes
        self.max_side = max_side
        super().__init__(
            f"side length {side} ({side * side} seeds) needs about "
            f"{needed_bytes / 2**20:.0f} MiB of working buffers; "
            f"the configured limit is side <= {max_side}"
        )
