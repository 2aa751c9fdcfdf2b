import functools
import threading


def singleton(func):
    """
    Decorator for a zero-argument factory function.
    The first return value is cached for the process lifetime; creation
    happens under a lock so concurrent first calls build one instance.
    ``wrapper.reset()`` drops the cached value (tests only).
    """
    lock = threading.Lock()
    missing = object()
    instance = missing

    @functools.wraps(func)
    def wrapper():
        nonlocal instance
        if instance is missing:
            with lock:
                if instance is missing:
                    instance = func()
        return instance

    def reset() -> None:
        nonlocal instance
        with lock:
            instance = missing

    wrapper.reset = reset
    return wrapper
