"""
Domain exceptions.

"Not found" is not an exception here: storage lookups return None/False and
the route layer turns that into a 404, the same way the issue routes do.
"""


class InvalidInput(ValueError):
    """Input to a domain operation is unusable (missing run, empty name, bad key)."""


class AlreadyExists(Exception):
    """A document with the same key is already stored and overwrite was not requested."""

    def __init__(self, kind: str, key: str) -> None:
        super().__init__(f'{kind} "{key}" already exists')
        self.kind = kind
        self.key = key
