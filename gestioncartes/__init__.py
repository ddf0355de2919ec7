"""Card issuance tracking with an audited, undoable action journal."""

__version__ = "0.1.0"
