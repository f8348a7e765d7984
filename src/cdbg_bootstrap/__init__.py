"""cdbg-bootstrap - provisions the Cloud Debugger Java agent before JVM launch."""

__version__ = "0.1.0"
__author__ = "Cloud Debugger Team"

from cdbg_bootstrap.core.config import Settings
from cdbg_bootstrap.core.models import Credential, LaunchOptions

__all__ = ["Settings", "Credential", "LaunchOptions", "__version__"]
