"""
Script entry for desktop hosts that launch a file instead of a console script.

The host must pass the daemon to run as the first argument:

    python leedz_bridge/host_entry.py translator [--config PATH]
    python leedz_bridge/host_entry.py mailer [--config PATH]

Without it argparse prints the usage on stderr and exits with code 2.
"""

import os
import sys

# Ensure the project root is on sys.path so the `leedz_bridge` package imports
# when a desktop host launches this file directly instead of the console script.
_PACKAGE_DIR = os.path.dirname(os.path.abspath(__file__))
_PROJECT_ROOT = os.path.dirname(_PACKAGE_DIR)
if _PROJECT_ROOT not in sys.path:
    sys.path.append(_PROJECT_ROOT)

from leedz_bridge.main import main  # noqa: E402


if __name__ == "__main__":
    main()
