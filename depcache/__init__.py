"""depcache: a reproducible, verifiable cache of installed dependency trees.

The tree produced by installing a manifest's dependencies (``node_modules``
for ``package.json``) is stored as a commit in a content-addressed object
database and shared through a remote cache repository. The project records
which entry it expects as a gitlink, and every entry can be re-verified by
installing its manifest again from scratch and comparing tree hashes.
"""

__version__ = "0.1.0"

from depcache.core.lifecycle import LifecycleOrchestrator
from depcache.core.verification import VerificationJob
from depcache.cli.app import app as cli

__all__ = ["LifecycleOrchestrator", "VerificationJob", "cli", "__version__"]
