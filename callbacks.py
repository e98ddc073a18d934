# -*- coding: utf-8 -*-
########################
# callbacks.py
########################
# Purpose:
# - Explicit callback registration lists for the pure gameplay modules.
# - Plays the role pyqtSignal plays in the Qt layer, without a Qt dependency.
#
# Design notes:
# - No Qt usage.
# - The emitter owns the list. Subscribers hold an unsubscribe handle and never keep the emitter alive.
# - emit() iterates over a snapshot, so subscribing or unsubscribing from inside a callback
#   takes effect on the next emit.
#
########################
# Interfaces:
# Public classes:
# - class CallbackList
#   - subscribe(callback: Callable[..., None]) -> Callable[[], None]
#   - unsubscribe(callback: Callable[..., None]) -> bool
#   - clear() -> None
#   - emit(*args) -> None
#   - __len__() -> int
#
########################

from __future__ import annotations

from typing import Callable, List


class CallbackList:
    def __init__(self, name: str = "") -> None:
        self._name = str(name)
        self._callbacks: List[Callable[..., None]] = []

    @property
    def name(self) -> str:
        return self._name

    def subscribe(self, callback: Callable[..., None]) -> Callable[[], None]:
        if not callable(callback):
            raise TypeError(f"{self._name or 'callback list'}: subscriber must be callable")
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Callable[..., None]) -> bool:
        try:
            self._callbacks.remove(callback)
        except ValueError:
            return False
        return True

    def clear(self) -> None:
        self._callbacks.clear()

    def emit(self, *args) -> None:
        for callback in tuple(self._callbacks):
            callback(*args)

    def __len__(self) -> int:
        return len(self._callbacks)


def _run_unit_tests() -> None:
    received: List[int] = []
    callbacks = CallbackList("beat")
    unsubscribe = callbacks.subscribe(received.append)
    callbacks.emit(1)
    unsubscribe()
    callbacks.emit(2)
    assert received == [1]
    assert len(callbacks) == 0


if __name__ == "__main__":
    _run_unit_tests()
    print("callbacks.py: ok")
