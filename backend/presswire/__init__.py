"""PressWire: domain-verified press releases for Irish businesses."""
