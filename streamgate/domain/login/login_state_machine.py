"""Login state machine for the redirect-driven OAuth sequence."""

from .login_models import LoginState


class LoginStateMachine:
    """State machine for a browser's login lifecycle.

    Each transition happens in its own HTTP request; the requests are tied
    together only by cookies.

    State flow with triggers:
    - UNAUTHENTICATED -> STATE_PENDING (initiate: state cookie issued, redirect to provider)
      | LOGGED_OUT (logout)
    - STATE_PENDING -> AUTHENTICATED (callback: state verified, code exchanged, login cookie set)
      | UNAUTHENTICATED (callback failed; state cookie already consumed)
      | STATE_PENDING (initiate again before the callback arrives)
      | LOGGED_OUT (logout)
    - AUTHENTICATED -> LOGGED_OUT (logout) | STATE_PENDING (re-login)
    - LOGGED_OUT -> STATE_PENDING (initiate) | LOGGED_OUT (repeated logout)

    AUTHENTICATED is only reachable from STATE_PENDING, so a callback that
    arrives without a state cookie fails closed.
    """

    TRANSITIONS: dict[LoginState, set[LoginState]] = {
        LoginState.UNAUTHENTICATED: {LoginState.STATE_PENDING, LoginState.LOGGED_OUT},
        LoginState.STATE_PENDING: {
            LoginState.AUTHENTICATED,
            LoginState.UNAUTHENTICATED,
            LoginState.STATE_PENDING,
            LoginState.LOGGED_OUT,
        },
        LoginState.AUTHENTICATED: {LoginState.LOGGED_OUT, LoginState.STATE_PENDING},
        LoginState.LOGGED_OUT: {LoginState.STATE_PENDING, LoginState.LOGGED_OUT},
    }

    @classmethod
    def can_transition(cls, current: LoginState, new: LoginState) -> bool:
        return new in cls.TRANSITIONS.get(current, set())

    @classmethod
    def get_valid_transitions(cls, state: LoginState) -> set[LoginState]:
        return cls.TRANSITIONS.get(state, set())

    @classmethod
    def get_valid_sources(cls, target: LoginState) -> set[LoginState]:
        """Get all states that can transition to the target state."""
        return {state for state, targets in cls.TRANSITIONS.items() if target in targets}
