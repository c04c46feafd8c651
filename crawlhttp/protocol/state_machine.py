"""State machine for parsing a single HTTP response."""

from enum import Enum

import structlog

from crawlhttp.protocol.errors import FetchError, FetchErrorClass


logger = structlog.get_logger()


class ParserState(str, Enum):
    """State of the response parser.

    - AWAIT_STATUS_LINE: Expecting a status line
    - PARSE_HEADERS: Reading the header section
    - READ_FIXED_BODY: Reading a Content-Length or read-to-end body
    - READ_CHUNKED_BODY: Reading a chunked body
    - PARSE_TRAILER_HEADERS: Reading headers after the terminal chunk
    - DONE: Response fully parsed
    - FAILED: Parsing aborted with an error
    """

    AWAIT_STATUS_LINE = "AWAIT_STATUS_LINE"
    PARSE_HEADERS = "PARSE_HEADERS"
    READ_FIXED_BODY = "READ_FIXED_BODY"
    READ_CHUNKED_BODY = "READ_CHUNKED_BODY"
    PARSE_TRAILER_HEADERS = "PARSE_TRAILER_HEADERS"
    DONE = "DONE"
    FAILED = "FAILED"


# Valid state transitions
_VALID_TRANSITIONS: dict[ParserState, set[ParserState]] = {
    ParserState.AWAIT_STATUS_LINE: {
        ParserState.PARSE_HEADERS,
        ParserState.FAILED,
    },
    # Interim 100 responses loop back to another status line
    ParserState.PARSE_HEADERS: {
        ParserState.AWAIT_STATUS_LINE,
        ParserState.READ_FIXED_BODY,
        ParserState.READ_CHUNKED_BODY,
        ParserState.FAILED,
    },
    ParserState.READ_FIXED_BODY: {ParserState.DONE, ParserState.FAILED},
    # Chunked bodies truncated by the size cap skip the trailer section
    ParserState.READ_CHUNKED_BODY: {
        ParserState.PARSE_TRAILER_HEADERS,
        ParserState.DONE,
        ParserState.FAILED,
    },
    ParserState.PARSE_TRAILER_HEADERS: {ParserState.DONE, ParserState.FAILED},
    ParserState.DONE: set(),  # Terminal state
    ParserState.FAILED: set(),  # Terminal state
}


class ParserStateTransitionError(FetchError):
    """Raised when an illegal parser state transition is attempted."""

    error_class = FetchErrorClass.PARSER_STATE

    def __init__(
        self,
        from_state: ParserState,
        to_state: ParserState,
        url: str | None = None,
    ) -> None:
        """Initialize the transition error.

        Args:
            from_state: Current state.
            to_state: Attempted target state.
            url: URL being fetched.
        """
        self.from_state = from_state
        self.to_state = to_state
        super().__init__(
            f"Illegal parser state transition: {from_state.value} -> {to_state.value}",
            url=url,
            details={"from_state": from_state.value, "to_state": to_state.value},
        )


class ParserStateMachine:
    """Tracks the parser's progress through one response.

    Enforces valid transitions and logs all state changes.
    """

    def __init__(
        self,
        url: str | None = None,
        initial_state: ParserState = ParserState.AWAIT_STATUS_LINE,
    ) -> None:
        """Initialize the state machine.

        Args:
            url: URL whose response is being parsed.
            initial_state: Starting state.
        """
        self._url = url
        self._state = initial_state
        self._log = logger.bind(component="http", url=url)

    @property
    def state(self) -> ParserState:
        """Get the current state."""
        return self._state

    @property
    def is_terminal(self) -> bool:
        """Check if current state is terminal."""
        return self._state in (ParserState.DONE, ParserState.FAILED)

    def can_transition_to(self, target: ParserState) -> bool:
        """Check if a transition to the target state is valid.

        Args:
            target: The target state.

        Returns:
            True if the transition is valid.
        """
        return target in _VALID_TRANSITIONS.get(self._state, set())

    def transition_to(self, target: ParserState) -> None:
        """Transition to a new state.

        Args:
            target: The target state.

        Raises:
            ParserStateTransitionError: If the transition is invalid.
        """
        if not self.can_transition_to(target):
            self._log.error(
                "illegal_state_transition",
                from_state=self._state.value,
                to_state=target.value,
            )
            raise ParserStateTransitionError(self._state, target, url=self._url)

        old_state = self._state
        self._state = target

        self._log.debug(
            "state_transition",
            from_state=old_state.value,
            to_state=target.value,
        )

    def fail(self) -> None:
        """Move to FAILED unless already terminal."""
        if not self.is_terminal:
            self.transition_to(ParserState.FAILED)
