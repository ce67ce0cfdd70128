from typing import Callable, Generic, TypeVar


T = TypeVar("T")
V = TypeVar("V")


Observer = Callable[[V], None]


class State(Generic[T]):
    """A value that tells its subscribers whenever it is set."""

    def __init__(self, value: T) -> None:
        self._value = value
        self._observers: list[Observer[T]] = []

    def __repr__(self) -> str:
        return f"<State({self._value!r})>"

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for observer in list(self._observers):
            observer(value)

    def subscribe(self, observer: Observer[T]) -> Callable[[], None]:
        """Register `observer` and return a function that removes it."""
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe
