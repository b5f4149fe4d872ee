"""Handler resolution for function resolvers.

Handlers are not part of the approved surface: the gate only needs to know a
reference exists. Resolution happens through an explicit ``HandlerRegistry``
created once per process and passed to whatever needs it.
"""

import importlib
import importlib.util
import logging
import os
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from ontlock.errors import HandlerLoadError

logger = logging.getLogger(__name__)

HandlerRef = Union[str, Callable[..., Any]]
Loader = Callable[[str], Any]


def _split_ref(ref: str) -> tuple[str, str]:
    # rpartition keeps drive letters ("C:\\app\\h.py:run") in the target
    target, sep, attr = ref.rpartition(":")
    if not sep or not target or not attr:
        raise HandlerLoadError(
            f"Invalid handler reference {ref!r}: expected 'package.module:attr' or 'path/to/file.py:attr'",
            ref=ref,
        )
    return target, attr


def _load_module_from_file(path: Path, ref: str) -> Any:
    """Execute a Python file as a module, once per process.

    The file's directory is put at the front of ``sys.path`` so the file can
    import its sibling modules. The module is registered in ``sys.modules``
    before it runs: pydantic and ``typing.get_type_hints`` resolve string
    annotations (``from __future__ import annotations``) through it.
    """
    if not path.is_file():
        raise HandlerLoadError(f"Handler file not found: {path}", ref=ref)
    path = path.resolve()
    module_name = f"ontlock_handler_{abs(hash(str(path)))}"
    if module_name in sys.modules:
        return sys.modules[module_name]
    spec = importlib.util.spec_from_file_location(module_name, path)
    if spec is None or spec.loader is None:
        raise HandlerLoadError(f"Cannot load handler file: {path}", ref=ref)
    module = importlib.util.module_from_spec(spec)

    directory = str(path.parent)
    if directory not in sys.path:
        sys.path.insert(0, directory)
    sys.modules[module_name] = module
    try:
        spec.loader.exec_module(module)
    except Exception:
        del sys.modules[module_name]
        raise
    return module


def load_object(ref: str, base_dir: Optional[Union[str, os.PathLike, Path]] = None) -> Any:
    """Import the object named by ``ref``.

    Accepts ``package.module:attr`` and ``path/to/file.py:attr``; relative file
    paths are resolved against ``base_dir`` (default: current directory). A file
    is loaded once per process, with its directory added to ``sys.path``.

    Raises:
        HandlerLoadError: malformed reference, missing module/file or attribute
    """
    target, attr = _split_ref(ref)

    if target.endswith(".py") or "/" in target or "\\" in target:
        path = Path(target)
        if not path.is_absolute() and base_dir is not None:
            path = Path(base_dir) / path
        module = _load_module_from_file(path, ref)
    else:
        try:
            module = importlib.import_module(target)
        except ImportError as e:
            raise HandlerLoadError(f"Cannot import module {target!r} for handler {ref!r}: {e}", ref=ref) from e

    try:
        return getattr(module, attr)
    except AttributeError as e:
        raise HandlerLoadError(f"Handler {ref!r}: module has no attribute {attr!r}", ref=ref) from e


class HandlerRegistry:
    """Resolves handler references, loading each one at most once.

    The cache lives on the instance; two registries never share state.
    """

    def __init__(
        self,
        loader: Optional[Loader] = None,
        base_dir: Optional[Union[str, os.PathLike, Path]] = None,
    ):
        self._loader = loader
        self._base_dir = Path(base_dir) if base_dir is not None else None
        self._cache: Dict[str, Callable[..., Any]] = {}

    def _load(self, ref: str) -> Any:
        if self._loader is not None:
            return self._loader(ref)
        return load_object(ref, base_dir=self._base_dir)

    def resolve(self, ref: HandlerRef) -> Callable[..., Any]:
        """Return the callable for ``ref``; callables are returned unchanged.

        Raises:
            HandlerLoadError: if the reference cannot be loaded or is not callable
        """
        if callable(ref):
            return ref
        if ref in self._cache:
            return self._cache[ref]

        handler = self._load(ref)
        if not callable(handler):
            raise HandlerLoadError(f"Handler {ref!r} is not callable", ref=ref)
        logger.debug("Loaded handler %s", ref)
        self._cache[ref] = handler
        return handler

    def clear(self) -> None:
        self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def __contains__(self, ref: object) -> bool:
        return ref in self._cache
