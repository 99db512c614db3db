"""Interactive terminal interface for the provisioning pipeline."""

from __future__ import annotations

from ..config import Identity


def launch_tui(identity: Identity) -> int:
    """Launch the flashkit TUI application."""
    from .app import FlashkitApp

    app = FlashkitApp(identity)
    app.run()
    return 0
