"""Fixed-length history of integration points

Index 0 is the point being probed (or the one just accepted); higher
indices are progressively older accepted points. Cycling shifts every
entry one place back and recycles the oldest entry as the new index 0,
so no arrays are allocated during a transient run.
"""

from typing import Callable, Generic, Iterator, List, TypeVar

T = TypeVar("T")


class History(Generic[T]):
    """Ring buffer addressed relative to the most recent point

    Args:
        length: Number of points kept (at least 1)
        factory: Creates the initial entry for each index

    Example:
        >>> history = History(3, lambda i: i)
        >>> history.cycle()
        >>> list(history)
        [2, 0, 1]
    """

    def __init__(self, length: int, factory: Callable[[int], T]):
        if length < 1:
            raise ValueError(f"History length must be at least 1, got {length}")
        self._items: List[T] = [factory(i) for i in range(length)]
        self._head = 0

    def __len__(self) -> int:
        return len(self._items)

    def _position(self, index: int) -> int:
        if not 0 <= index < len(self._items):
            raise IndexError(f"History index {index} out of range")
        return (self._head + index) % len(self._items)

    def __getitem__(self, index: int) -> T:
        return self._items[self._position(index)]

    def __setitem__(self, index: int, value: T) -> None:
        self._items[self._position(index)] = value

    @property
    def current(self) -> T:
        return self._items[self._head]

    def cycle(self) -> None:
        """Shift all points back by one; the oldest becomes index 0."""
        self._head = (self._head - 1) % len(self._items)

    def __iter__(self) -> Iterator[T]:
        for i in range(len(self._items)):
            yield self[i]
