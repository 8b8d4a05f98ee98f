"""Console-script entrypoints.

Installed console scripts call the same `main()` functions that the modules
under `molsim_toolkit.tools` expose when run with `python -m`.
"""

from __future__ import annotations

import sys


def similarity() -> None:
    from molsim_toolkit.tools.similarity_cli import main

    sys.exit(main())
