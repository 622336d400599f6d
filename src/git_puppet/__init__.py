"""git-puppet: Pull the strings of every sub-repo in a workspace at once."""

# Guard against deleted CWD (e.g. directory removed by another process).
# rich crashes on import if os.getcwd() fails, so recover before any imports.
import os

try:
    os.getcwd()
except (OSError, PermissionError):
    os.chdir(os.path.expanduser("~"))

from ._version import __version__
from .cli import app
from .configs import ConfigStore
from .core import (
    BatchResult,
    BatchRunner,
    BranchSnapshot,
    DiscoveryResult,
    GitOperations,
    NullProgress,
    PuppetLogger,
    PuppetManager,
    RepoFailure,
    RepoRef,
    RepoSkip,
    RichProgress,
    ShellExecutor,
    ShellOutput,
    checkout_command,
    current_branch,
    discover_repositories,
    sync_command,
)
from .exceptions import (
    ConfigKeyNotFoundError,
    ConfigNotFoundError,
    PuppetError,
    RepoCommandError,
    SettingsError,
    VcsQueryError,
)
from .formatters import OutputFormatter
from .schema import get_tool_schema
from .settings import PuppetSettings, load_settings

__all__ = [
    # Version
    "__version__",
    # CLI
    "app",
    # Models
    "BatchResult",
    "BranchSnapshot",
    "DiscoveryResult",
    "RepoFailure",
    "RepoRef",
    "RepoSkip",
    "ShellOutput",
    # Operations
    "BatchRunner",
    "ConfigStore",
    "GitOperations",
    "PuppetManager",
    "ShellExecutor",
    # Functions
    "checkout_command",
    "current_branch",
    "discover_repositories",
    "get_tool_schema",
    "load_settings",
    "sync_command",
    # Output
    "NullProgress",
    "OutputFormatter",
    "PuppetLogger",
    "RichProgress",
    # Settings
    "PuppetSettings",
    # Errors
    "ConfigKeyNotFoundError",
    "ConfigNotFoundError",
    "PuppetError",
    "RepoCommandError",
    "SettingsError",
    "VcsQueryError",
]
