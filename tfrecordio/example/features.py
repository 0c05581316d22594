"""In-memory model of decoded examples.

A feature value is exactly one of three list kinds. Each kind is a frozen
dataclass whose constructor normalizes its values to what the wire can hold,
so an encode/decode round trip compares equal:

    BytesList: byte strings (str items are UTF-8 encoded)
    Int64List: signed 64-bit integers
    FloatList: float32 values (inputs are rounded to float32)
"""

from __future__ import annotations

import operator
from dataclasses import dataclass, field
from typing import ClassVar, Iterable, Iterator, Mapping, Union

import numpy as np

from tfrecordio.errors import InconsistentSequenceLengthError, SizeOverflowError

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


@dataclass(frozen=True)
class BytesList:
    """List of byte strings."""

    value: tuple[bytes, ...] = ()
    kind: ClassVar[str] = "bytes_list"

    def __post_init__(self) -> None:
        items = []
        for item in self.value:
            if isinstance(item, str):
                item = item.encode("utf-8")
            elif not isinstance(item, (bytes, bytearray, memoryview, np.bytes_)):
                raise TypeError(
                    f"BytesList values must be bytes or str, got {type(item).__name__}"
                )
            items.append(bytes(item))
        object.__setattr__(self, "value", tuple(items))

    def __len__(self) -> int:
        return len(self.value)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self.value)


@dataclass(frozen=True)
class Int64List:
    """List of signed 64-bit integers."""

    value: tuple[int, ...] = ()
    kind: ClassVar[str] = "int64_list"

    def __post_init__(self) -> None:
        items = []
        for item in self.value:
            number = operator.index(item)
            if not INT64_MIN <= number <= INT64_MAX:
                raise SizeOverflowError(f"Value {number} does not fit in a signed 64-bit integer")
            items.append(number)
        object.__setattr__(self, "value", tuple(items))

    def __len__(self) -> int:
        return len(self.value)

    def __iter__(self) -> Iterator[int]:
        return iter(self.value)


@dataclass(frozen=True)
class FloatList:
    """List of 32-bit floats."""

    value: tuple[float, ...] = ()
    kind: ClassVar[str] = "float_list"

    def __post_init__(self) -> None:
        wide = np.asarray(list(self.value), dtype=np.float64).reshape(-1)
        with np.errstate(over="ignore"):
            narrow = wide.astype(np.float32)
        overflowed = np.isinf(narrow) & np.isfinite(wide)
        if overflowed.any():
            bad = wide[overflowed][0]
            raise SizeOverflowError(f"Value {bad} is out of float32 range")
        object.__setattr__(self, "value", tuple(narrow.tolist()))

    def __len__(self) -> int:
        return len(self.value)

    def __iter__(self) -> Iterator[float]:
        return iter(self.value)


Feature = Union[BytesList, Int64List, FloatList]
FEATURE_TYPES: tuple[type, ...] = (BytesList, FloatList, Int64List)
FeatureMap = dict[str, Feature]


@dataclass
class SequenceExample:
    """Context features plus named per-step feature lists.

    Every named list holds one feature value per time step, and all lists
    must have the same number of steps.
    """

    context: dict[str, Feature] = field(default_factory=dict)
    feature_lists: dict[str, list[Feature]] = field(default_factory=dict)

    def validate(self) -> None:
        """Raise InconsistentSequenceLengthError unless all lists have equal length."""
        lengths = {name: len(steps) for name, steps in self.feature_lists.items()}
        if len(set(lengths.values())) > 1:
            raise InconsistentSequenceLengthError(lengths)

    @property
    def num_steps(self) -> int:
        self.validate()
        for steps in self.feature_lists.values():
            return len(steps)
        return 0

    def steps(self) -> Iterator[dict[str, Feature]]:
        """Yield one feature map per time step."""
        for t in range(self.num_steps):
            yield {name: steps[t] for name, steps in self.feature_lists.items()}

    @classmethod
    def from_steps(
        cls,
        steps: Iterable[Mapping[str, Feature]],
        context: Mapping[str, Feature] | None = None,
    ) -> SequenceExample:
        """Build from per-step feature maps; every step must carry the same names."""
        feature_lists: dict[str, list[Feature]] = {}
        num_steps = 0
        for step in steps:
            num_steps += 1
            for name, feature in step.items():
                feature_lists.setdefault(name, []).append(feature)

        lengths = {name: len(values) for name, values in feature_lists.items()}
        if any(length != num_steps for length in lengths.values()):
            raise InconsistentSequenceLengthError(lengths)
        return cls(context=dict(context or {}), feature_lists=feature_lists)
