#!/usr/bin/env python3
"""PyInstaller entrypoint for the cloud-provider binary.

A frozen, single-file build lets bootstrap scripts run detection on hosts
that have no Python environment prepared.
"""

from cloudprovider.cli import main


if __name__ == "__main__":
    main()
