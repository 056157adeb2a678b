"""treeflux: path-addressed reactive state with reentrancy-safe subscriptions."""

from importlib.metadata import version as _version

__version__ = _version("treeflux")

from treeflux._cycle import DispatchState
from treeflux.config import Limits
from treeflux.sanitize import RESERVED_KEYS, WILDCARD, Sanitizer
from treeflux.dispatch import Dispatcher
from treeflux.computed import Computed, ComputedRegistry
from treeflux.action import action
from treeflux.stream import ActionEvent, ChangeEvent, EventStream
from treeflux.store import MergeTree, SetPath, Store, as_operation
# textual is opt-in, import treeflux.textual explicitly

__all__ = [
    "Store",
    "Limits",
    "Sanitizer",
    "RESERVED_KEYS",
    "WILDCARD",
    "Dispatcher",
    "DispatchState",
    "Computed",
    "ComputedRegistry",
    "action",
    "EventStream",
    "ChangeEvent",
    "ActionEvent",
    "MergeTree",
    "SetPath",
    "as_operation",
]
