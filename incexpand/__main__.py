"""Enable running incexpand as a module: python -m incexpand"""

import sys

from incexpand import (
    cli,
)

if __name__ == "__main__":
    # pylint: disable=no-value-for-parameter
    sys.exit(cli())
