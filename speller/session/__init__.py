"""Practice sessions: state machine, snapshot reducers, runner and service."""
