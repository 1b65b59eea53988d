"""Run the server: `python -m minicdn`."""

from minicdn.server import main

main()
