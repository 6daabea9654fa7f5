#!/usr/bin/env python3
"""
Build and push the image with a build profile, without installing the package.

Usage:
    python scripts/build_and_push.py
    python scripts/build_and_push.py --profile hopper --no-cache
"""

import sys
from pathlib import Path

repo_root = Path(__file__).resolve().parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from remote_build.cli import main


if __name__ == "__main__":
    sys.exit(main(["run", *sys.argv[1:]]))
