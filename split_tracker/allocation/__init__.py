"""Share allocation package."""

from split_tracker.allocation.allocator import (
    AllocationError,
    ShareAllocator,
    allocate_shares,
)

__all__ = ["AllocationError", "ShareAllocator", "allocate_shares"]
