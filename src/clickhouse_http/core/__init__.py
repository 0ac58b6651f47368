"""Protocol building blocks for the HTTP connection."""

__all__: list[str] = []
