"""Feature modules mounted by the filepilot app factory."""
