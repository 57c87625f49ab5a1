"""Resource handlers built on the reconciliation core."""

from . import cluster, image, image_member, node_pool, scheduled_scaling

__all__ = ["cluster", "image", "image_member", "node_pool", "scheduled_scaling"]
