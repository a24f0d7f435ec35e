"""Allow ``python -m stamper``."""

from stamper.pipeline import main

main()
