"""Reconnect delay policy."""


class ExponentialBackoff:
    """Delay that grows on consecutive failures and resets after a success."""

    def __init__(self, initial: float = 5.0, maximum: float = 60.0, factor: float = 2.0):
        if initial <= 0 or maximum < initial or factor <= 1:
            raise ValueError("Invalid backoff parameters")
        self.initial = initial
        self.maximum = maximum
        self.factor = factor
        self.failures = 0

    def peek(self) -> float:
        """The delay the next failure would produce."""
        return min(self.initial * (self.factor ** self.failures), self.maximum)

    def next_delay(self) -> float:
        """Record a failure and return the delay to wait before retrying."""
        delay = self.peek()
        if delay < self.maximum:
            self.failures += 1
        return delay

    def reset(self) -> None:
        self.failures = 0
