"""Process-start composition: gate first, then handlers.

A request layer (HTTP or tool server) calls ``prepare_runtime`` once before it
starts serving and refuses to start if it raises.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ontlock.codes import Mode
from ontlock.config import load_settings
from ontlock.definition import ApiDefinition
from ontlock.gate import GateResult, check_lock
from ontlock.kernel.snapshot import identity_context_fields
from ontlock.registry import HandlerRegistry
from ontlock.review import Reviewer

logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """What a request layer needs after a successful start."""
    definition: ApiDefinition
    gate_result: GateResult
    registry: HandlerRegistry
    handlers: Dict[str, Callable[..., Any]] = field(default_factory=dict)
    identity_fields: Dict[str, List[str]] = field(default_factory=dict)

    @property
    def mode(self) -> Mode:
        return self.gate_result.mode

    def handler(self, function_name: str) -> Callable[..., Any]:
        """Handler for ``function_name``, resolving it on first use if not preloaded.

        Raises:
            KeyError: unknown function or a function without a resolver
        """
        if function_name in self.handlers:
            return self.handlers[function_name]
        fn = self.definition.get_function(function_name)
        if fn is None:
            raise KeyError(f"Unknown function: {function_name}")
        if fn.resolver is None:
            raise KeyError(f"Function {function_name!r} has no resolver")
        handler = self.registry.resolve(fn.resolver)
        self.handlers[function_name] = handler
        return handler


def prepare_runtime(
    definition: ApiDefinition,
    directory: Optional[Union[str, os.PathLike, Path]] = None,
    mode: Optional[Union[Mode, str]] = None,
    registry: Optional[HandlerRegistry] = None,
    load_handlers: bool = False,
    reviewer: Optional[Reviewer] = None,
) -> Runtime:
    """
    Run the change-control gate and prepare handlers for serving.

    Args:
        definition: The validated live definition
        directory: Directory holding ``ont.lock`` (default: ONTLOCK_DIR or cwd);
            also the base for relative handler file paths
        mode: Explicit mode; otherwise ONTLOCK_MODE, defaulting to production
        registry: Registry to resolve handlers with (default: a new one)
        load_handlers: Resolve every function's handler now instead of on first use
        reviewer: Forwarded to the gate for development-mode approval

    Raises:
        MissingLockError / LockMismatchError: production mode, unapproved surface
        LockParseError: corrupt lock file
        HandlerLoadError: ``load_handlers`` and a handler reference cannot be loaded
    """
    if directory is None:
        directory = load_settings().lock_dir
    directory = Path(directory)

    gate_result = check_lock(definition, directory, mode=mode, reviewer=reviewer)

    if registry is None:
        registry = HandlerRegistry(base_dir=directory)

    handlers: Dict[str, Callable[..., Any]] = {}
    if load_handlers:
        for name, fn in definition.functions.items():
            if fn.resolver is None:
                logger.debug("Function %s has no resolver", name)
                continue
            handlers[name] = registry.resolve(fn.resolver)

    identity_fields = {}
    for name, fn in definition.functions.items():
        fields = identity_context_fields(fn.inputs)
        if fields:
            identity_fields[name] = fields

    logger.info(
        "Runtime ready: %d functions, mode %s, %d handlers loaded",
        len(definition.functions),
        gate_result.mode.value,
        len(handlers),
    )
    return Runtime(
        definition=definition,
        gate_result=gate_result,
        registry=registry,
        handlers=handlers,
        identity_fields=identity_fields,
    )
