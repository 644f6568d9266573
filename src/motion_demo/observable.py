from __future__ import annotations

from typing import Callable, Generic, List, TypeVar

T = TypeVar("T")


class Publisher(Generic[T]):
    """Change notification channel. Observers are called in subscription order."""

    def __init__(self) -> None:
        self._observers: List[Callable[[T], None]] = []

    def __len__(self) -> int:
        return len(self._observers)

    def subscribe(self, observer: Callable[[T], None]) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    def notify(self, value: T) -> None:
        for observer in list(self._observers):
            observer(value)

    def clear(self) -> None:
        self._observers.clear()
