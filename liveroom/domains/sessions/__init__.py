# liveroom/domains/sessions/__init__.py
from importlib import import_module


def __getattr__(name: str):
    if name in ("router", "ws_router"):
        return getattr(import_module(".api", __name__), name)
    if name == "service":
        return import_module(".service", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
