"""Allow running the CLI as `python -m ipfsd_ctl.cli`."""

from .main import main

main()
