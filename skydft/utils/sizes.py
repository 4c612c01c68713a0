# Helper functions to determine the launch geometry
from dataclasses import dataclass


@dataclass(frozen=True)
class LaunchGeometry:
    """Partition of ``num_visibilities`` workers into equally sized blocks."""

    num_blocks: int
    threads_per_block: int
    num_visibilities: int

    @property
    def num_workers(self):
        return self.num_blocks * self.threads_per_block

    def block_indices(self, block):
        """Worker indices scheduled in ``block``, including over-provisioned ones."""
        start = block * self.threads_per_block
        return range(start, start + self.threads_per_block)


def get_launch_geometry(num_visibilities, max_threads_per_block=256):
    if num_visibilities < 0:
        raise ValueError(f"num_visibilities must be >= 0, got {num_visibilities}")
    if max_threads_per_block < 1:
        raise ValueError(
            f"max_threads_per_block must be positive, got {max_threads_per_block}"
        )

    # Never more threads in a block than there is work
    threads_per_block = min(max_threads_per_block, num_visibilities)
    if threads_per_block == 0:
        return LaunchGeometry(0, 0, 0)

    # Round up so the last, partially filled block is still launched
    num_blocks = (num_visibilities + threads_per_block - 1) // threads_per_block
    return LaunchGeometry(num_blocks, threads_per_block, num_visibilities)
