"""thinlaunch - run thin application archives against a dependency cache.

Pipeline: locate the primary archive, assemble its classpath from the
launch descriptor, then print it, resolve only, or run the application
behind an ordered import loader.
"""

from .archive import Archive
from .classpath import ClasspathAssembler
from .classpath import format_classpath
from .config import LaunchConfig
from .config import strip_launcher_args
from .dependencies import DependencyManagement
from .dependencies import DependencyResolver
from .dependencies import UvDependencyResolver
from .errors import ConfigurationError
from .errors import EntryPointNotFound
from .errors import LocatorError
from .errors import NetworkFailure
from .errors import ResolutionError
from .errors import ResolutionNotFound
from .errors import ThinLaunchError
from .launcher import LaunchController
from .launcher import LaunchMode
from .launcher import launch
from .loader import LoaderPolicy
from .loader import OrderedLoader
from .locators import LocatorResolver

__all__ = [
    "Archive",
    "ClasspathAssembler",
    "ConfigurationError",
    "DependencyManagement",
    "DependencyResolver",
    "EntryPointNotFound",
    "LaunchConfig",
    "LaunchController",
    "LaunchMode",
    "LoaderPolicy",
    "LocatorError",
    "LocatorResolver",
    "NetworkFailure",
    "OrderedLoader",
    "ResolutionError",
    "ResolutionNotFound",
    "ThinLaunchError",
    "UvDependencyResolver",
    "format_classpath",
    "launch",
    "strip_launcher_args",
]
