"""Repository state store exceptions."""


class StateStoreError(Exception):
    """Base exception for state store errors."""

    pass


class StoreUnavailableError(StateStoreError):
    """State file is missing or cannot be parsed."""

    pass


class RepositoryNotFoundError(StateStoreError):
    """Repository name is not present in the state table."""

    def __init__(self, name: str):
        super().__init__(f'Repository not found in state table: {name}')
        self.name = name


class MaxRetriesExceededError(StateStoreError):
    """Repository has used up its retry budget."""

    def __init__(self, name: str, retry_count: int):
        super().__init__(
            f'Repository {name} reached the retry limit ({retry_count} attempts); '
            'clear its error to try again'
        )
        self.name = name
        self.retry_count = retry_count
