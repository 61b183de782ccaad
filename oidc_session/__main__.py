"""Allow ``python -m oidc_session``."""

import sys

from .cli import main


sys.exit(main())
