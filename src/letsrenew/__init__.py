"""letsrenew module."""

import sys

from .errors import AcmeError, ErrorCode, PrivateKeyError
from .letsrenew import LetsRenew, run

__all__ = ['LetsRenew', 'AcmeError', 'ErrorCode', 'PrivateKeyError', 'run']

if __name__ == '__main__':      # called from the command line
    sys.exit(run())
