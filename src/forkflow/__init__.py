"""
forkflow - Git workflow helper for fork-based pull requests
"""

__version__ = "0.1.0"
__license__ = "MIT"

# Import main CLI for convenience
from forkflow.ffw import cli

__all__ = ["cli", "__version__"]
