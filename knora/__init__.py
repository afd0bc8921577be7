"""KnoRa document retrieval and question-answering server."""

__version__ = "2.0.0"
