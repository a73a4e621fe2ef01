from collections import deque
from typing import Optional, Set
import threading

from models import Message

# Max number of messages kept around for subscribers that fall behind.
HUB_CAPACITY = 100


class SubscriptionClosed(Exception):
    """Raised by Subscription.recv() once the subscription was closed."""


class Hub:
    """
    Bounded fan-out queue shared by every session.

    Messages live in a ring buffer and are addressed by an ever-growing
    sequence number. Every subscriber has its own cursor into that
    sequence; publishing never waits for anybody. When the buffer is full
    the oldest message is dropped, and a subscriber whose cursor pointed at
    it simply skips forward to the oldest message still buffered.
    """

    def __init__(self, capacity: int = HUB_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("hub capacity must be at least 1")
        self.capacity = capacity
        self._buffer: deque = deque(maxlen=capacity)
        self._next_seq = 0
        self._cond = threading.Condition()
        self._subscribers: Set["Subscription"] = set()

    @property
    def subscriber_count(self) -> int:
        with self._cond:
            return len(self._subscribers)

    def publish(self, message: Message) -> int:
        """
        Append a message and wake up everyone waiting on it.

        Returns how many subscriptions were open at publish time. Zero
        is fine, the message is just buffered for nobody.
        """
        with self._cond:
            self._buffer.append(message)
            self._next_seq += 1
            self._cond.notify_all()
            return len(self._subscribers)

    def subscribe(self) -> "Subscription":
        """New cursor; it only sees messages published from now on."""
        with self._cond:
            sub = Subscription(self, self._next_seq)
            self._subscribers.add(sub)
            return sub

    # --- used by Subscription, caller must hold self._cond ---

    def _oldest_seq(self) -> int:
        return self._next_seq - len(self._buffer)

    def _get(self, seq: int) -> Message:
        return self._buffer[seq - self._oldest_seq()]

    def _unsubscribe(self, sub: "Subscription") -> None:
        self._subscribers.discard(sub)
        self._cond.notify_all()


class Subscription:
    """
    A private read cursor into a Hub.

    `missed` counts messages that were evicted before this subscriber got
    to them. They are gone for good.
    """

    def __init__(self, hub: Hub, cursor: int) -> None:
        self._hub = hub
        self._cursor = cursor
        self.missed = 0
        self.closed = False

    def recv(self, timeout: Optional[float] = None) -> Optional[Message]:
        """
        Block until the next message is available and return it.

        Returns None if `timeout` expires first. Raises SubscriptionClosed
        if the subscription is (or gets) closed while waiting.
        """
        hub = self._hub
        with hub._cond:
            ready = hub._cond.wait_for(
                lambda: self.closed or self._cursor < hub._next_seq,
                timeout=timeout,
            )
            if self.closed:
                raise SubscriptionClosed()
            if not ready:
                return None

            oldest = hub._oldest_seq()
            if self._cursor < oldest:
                # fell too far behind, jump to what's still there
                self.missed += oldest - self._cursor
                self._cursor = oldest

            message = hub._get(self._cursor)
            self._cursor += 1
            return message

    def pending(self) -> int:
        """How many messages are waiting (including ones already lost)."""
        with self._hub._cond:
            return self._hub._next_seq - self._cursor

    def close(self) -> None:
        """Release the subscription. Safe to call more than once."""
        with self._hub._cond:
            if self.closed:
                return
            self.closed = True
            self._hub._unsubscribe(self)
