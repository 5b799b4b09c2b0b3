"""
bulkops - bulk operation executor.

Apply one mutating operation to a large set of remote items with bounded
concurrency, dry-run previews, per-item failure isolation, progress
events and a durable transaction log.
"""

__version__ = "0.1.0"

from bulkops.execution import *  # noqa
