"""
Error types for query parsing, compilation and execution.

Every error raised while resolving a request derives from
``GraphQLEngineError``. The resolution engine converts these into plain strings
in the ``errors`` array of the response envelope; none of them ever escapes
``ResolutionEngine.resolve``.
"""


class GraphQLEngineError(Exception):
    """Base exception for all engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ParseError(GraphQLEngineError):
    """
    Raised when the query document cannot be parsed.

    Examples:
    - Invalid syntax
    - Unterminated strings or selection sets
    """

    pass


class UnknownFieldError(GraphQLEngineError):
    """
    Raised when a selection names a field the current role cannot see.

    A field that does not exist and a field the role holds no privilege on
    produce the exact same message.
    """

    def __init__(self, field_name: str, type_name: str):
        self.field_name = field_name
        self.type_name = type_name
        super().__init__(f"Unknown field '{field_name}' on type '{type_name}'")


class CompileError(GraphQLEngineError):
    """
    Raised when a selection cannot be turned into a query.

    Examples:
    - Catalog lookup failure
    - Ambiguous derived field name
    - Undeclared variable
    - Recursive fragment spread
    """

    pass


class PrepareError(GraphQLEngineError):
    """Raised when a compiled query cannot be registered as a prepared statement."""

    pass


class ExecuteError(GraphQLEngineError):
    """
    Raised when a prepared statement fails to execute.

    Examples:
    - Malformed cursor
    - Constraint violation or missing privilege at execution time
    """

    pass


class CursorDecodeError(ExecuteError):
    """Raised when an opaque cursor is not base64-encoded JSON of the expected shape."""

    pass
