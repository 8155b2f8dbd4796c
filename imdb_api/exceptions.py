"""
Exceptions raised below the HTTP layer and translated by imdb_api.errors.
imdb_api.exceptions.py
"""


class CastError(Exception):
    """A value that cannot be cast to the type of the field it targets."""

    def __init__(self, path: str, value):
        self.path = path
        self.value = value
        super().__init__(f"Invalid value for field: <{path}>. Value: <{value}>")


class DocumentValidationError(Exception):
    """The stored document merged with an update breaks a rule spanning several fields."""

    def __init__(self, messages):
        self.messages = list(messages)
        super().__init__(f"Validation failed: {', '.join(self.messages)}")
