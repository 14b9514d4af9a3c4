# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
# SPDX-License-Identifier: Apache-2.0

from typing import Any, Dict


class CoreData:
    """Provide basic dunder implementations for core entities (equality, hashing and a readable repr) so that they can
    be compared against what is read back from AWS and reported in assertion messages.

    Attributes with a leading underscore are bookkeeping and do not take part in equality.
    """

    def _fields(self) -> Dict[str, Any]:
        return {name: value for name, value in self.__dict__.items() if not name.startswith("_")}

    def __eq__(self, other) -> bool:
        return type(other) is type(self) and self._fields() == other._fields()

    def __hash__(self) -> int:
        return hash(tuple(sorted((name, _hashable(value)) for name, value in self._fields().items())))

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({','.join([f'{name}={repr(value)}' for name, value in self._fields().items()])})"

    def __str__(self) -> str:
        return self.__repr__()


class FrozenCoreData(CoreData):
    """CoreData that cannot be modified once its __init__ calls `_freeze`."""

    def _freeze(self) -> None:
        object.__setattr__(self, "_frozen", True)

    def __setattr__(self, name, value) -> None:
        if getattr(self, "_frozen", False):
            raise AttributeError(f"{self.__class__.__name__} is immutable, cannot set {name!r}")
        super().__setattr__(name, value)

    def __delattr__(self, name) -> None:
        if getattr(self, "_frozen", False):
            raise AttributeError(f"{self.__class__.__name__} is immutable, cannot delete {name!r}")
        super().__delattr__(name)


def _hashable(value):
    if isinstance(value, (list, tuple)):
        return tuple(_hashable(v) for v in value)
    if isinstance(value, dict):
        return tuple(sorted((k, _hashable(v)) for k, v in value.items()))
    return value
