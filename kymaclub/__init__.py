"""KymaClub platform rules and query layer."""

__version__ = "0.1.0"
