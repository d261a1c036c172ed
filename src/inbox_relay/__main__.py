"""Allow ``python -m inbox_relay``."""

from inbox_relay.cli import main

main()
