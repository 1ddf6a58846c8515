"""
What to do when uploading to a path where a file already exists.
"""

from typing import Dict, Optional


class WriteMode:
    """
    Upload conflict policy.

    Use one of the constructors:
      - WriteMode.add(): never overwrite; the server renames the new file
        ("notes (1).txt") if something is already there.
      - WriteMode.force(): always overwrite.
      - WriteMode.update(rev): overwrite only if the existing file is at
        revision `rev`, otherwise the server renames the new file.
    """

    def __init__(self, extra_params: Dict[str, str], label: str):
        self._extra_params = extra_params
        self._label = label

    @classmethod
    def add(cls) -> "WriteMode":
        return cls({"overwrite": "false"}, "add")

    @classmethod
    def force(cls) -> "WriteMode":
        return cls({"overwrite": "true"}, "force")

    @classmethod
    def update(cls, parent_rev: str) -> "WriteMode":
        if not isinstance(parent_rev, str) or not parent_rev:
            raise ValueError("'parent_rev' must be a non-empty string")
        return cls({"parent_rev": parent_rev}, f"update({parent_rev})")

    @classmethod
    def from_overwrite(cls, overwrite: bool) -> "WriteMode":
        return cls.force() if overwrite else cls.add()

    def extra_params(self) -> Dict[str, str]:
        """Query parameters that express this mode on the wire."""
        return dict(self._extra_params)

    @staticmethod
    def check_arg(arg_name: str, value: Optional["WriteMode"]) -> None:
        if not isinstance(value, WriteMode):
            raise TypeError(f"'{arg_name}' must be a WriteMode, got {value!r}")

    def __eq__(self, other):
        return isinstance(other, WriteMode) and self._extra_params == other._extra_params

    def __hash__(self):
        return hash(tuple(sorted(self._extra_params.items())))

    def __repr__(self):
        return f"WriteMode.{self._label}"
