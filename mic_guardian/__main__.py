"""Allow ``python -m mic_guardian`` to launch the guardian."""

from __future__ import annotations

import sys


def main() -> None:
    from mic_guardian import run

    raise SystemExit(run(sys.argv[1:]))


if __name__ == "__main__":
    main()
