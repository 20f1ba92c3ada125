"""
Node type mapping table.

A MappingEntry describes how one node type of the source platform becomes a
node type of the target platform: parameter paths to rename, values to
substitute, parameters holding embedded code, and value transforms. The
table is immutable; a resolver answers lookups in both directions by
inverting entries on demand.
"""

import copy
import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

from flow_translate.exceptions import UnmappedTypeError
from flow_translate.util.paths import get_path, pop_path, set_path

logger = logging.getLogger(__name__)


def _boolean_to_string(value):
    return ("true" if value else "false") if isinstance(value, bool) else value


def _string_to_boolean(value):
    return value.lower() == "true" if isinstance(value, str) else value


def _to_upper_case(value):
    return value.upper() if isinstance(value, str) else value


def _to_lower_case(value):
    return value.lower() if isinstance(value, str) else value


def _number_to_string(value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return value
    return str(value)


def _string_to_number(value):
    if not isinstance(value, str):
        return value
    try:
        number = float(value)
    except ValueError:
        return value
    return int(number) if number.is_integer() and "." not in value else number


TRANSFORMS = MappingProxyType(
    {
        "booleanToString": _boolean_to_string,
        "stringToBoolean": _string_to_boolean,
        "toUpperCase": _to_upper_case,
        "toLowerCase": _to_lower_case,
        "numberToString": _number_to_string,
        "stringToNumber": _string_to_number,
    }
)

INVERSE_TRANSFORMS = MappingProxyType(
    {
        "booleanToString": "stringToBoolean",
        "stringToBoolean": "booleanToString",
        "numberToString": "stringToNumber",
        "stringToNumber": "numberToString",
    }
)


def _frozen(mapping: Mapping | None) -> Mapping:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class MappingEntry:
    """
    How one source node type maps to a target node type.

    Attributes:
        source_type: Node type on the source platform
        target_type: Node type on the target platform
        parameter_path_map: Source parameter path -> target parameter path
        value_substitutions: Source parameter path -> {source value: target value}
        code_parameters: Source parameter paths holding embedded code
        transforms: Source parameter path -> transform name
        display_name: Human readable name
        description: Free text description
    """

    source_type: str
    target_type: str
    parameter_path_map: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    value_substitutions: Mapping[str, Mapping[Any, Any]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    code_parameters: tuple[str, ...] = ()
    transforms: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    display_name: str | None = None
    description: str | None = None

    def __post_init__(self):
        # Entries are shared by every conversion using the table
        substitutions = {
            path: _frozen(values) for path, values in self.value_substitutions.items()
        }
        object.__setattr__(self, "parameter_path_map", _frozen(self.parameter_path_map))
        object.__setattr__(self, "value_substitutions", _frozen(substitutions))
        object.__setattr__(self, "code_parameters", tuple(self.code_parameters))
        object.__setattr__(self, "transforms", _frozen(self.transforms))

    @classmethod
    def from_dict(cls, key: str, data: dict[str, Any]) -> "MappingEntry":
        """Build an entry from one item of a mapping database document."""
        return cls(
            source_type=data.get("sourceType", key),
            target_type=data["targetType"],
            parameter_path_map=data.get("parameterPathMap") or {},
            value_substitutions=data.get("valueSubstitutions") or {},
            code_parameters=tuple(data.get("codeParameters") or ()),
            transforms=data.get("transforms") or {},
            display_name=data.get("displayName"),
            description=data.get("description"),
        )

    def target_path(self, source_path: str) -> str:
        return self.parameter_path_map.get(source_path, source_path)

    @property
    def target_code_parameters(self) -> tuple[str, ...]:
        """Code parameter paths after renaming."""
        return tuple(self.target_path(path) for path in self.code_parameters)

    def inverted(self) -> "MappingEntry":
        """
        Entry for the opposite direction (target type -> source type).

        Substitutions whose values are not hashable and transforms without an
        inverse are dropped.
        """
        substitutions = {}
        for path, values in self.value_substitutions.items():
            reverse = {}
            for source_value, target_value in values.items():
                try:
                    reverse.setdefault(target_value, source_value)
                except TypeError:
                    continue
            substitutions[self.target_path(path)] = _frozen(reverse)

        transforms = {
            self.target_path(path): INVERSE_TRANSFORMS[name]
            for path, name in self.transforms.items()
            if name in INVERSE_TRANSFORMS
        }

        return MappingEntry(
            source_type=self.target_type,
            target_type=self.source_type,
            parameter_path_map=_frozen({dst: src for src, dst in self.parameter_path_map.items()}),
            value_substitutions=_frozen(substitutions),
            code_parameters=self.target_code_parameters,
            transforms=_frozen(transforms),
            display_name=self.display_name,
            description=self.description,
        )

    def convert_value(self, source_path: str, value: Any) -> Any:
        """Apply the substitution and transform configured for a path."""
        substitutions = self.value_substitutions.get(source_path)
        if substitutions is not None:
            try:
                if value in substitutions:
                    value = substitutions[value]
            except TypeError:
                pass
        transform = self.transforms.get(source_path)
        if transform is not None:
            function = TRANSFORMS.get(transform)
            if function is None:
                logger.warning(
                    f"Unknown transform '{transform}' for {self.source_type}.{source_path}"
                )
            else:
                value = function(value)
        return value

    def apply(self, parameters: dict[str, Any], copy_unmapped: bool = True) -> dict[str, Any]:
        """
        Rename and convert a parameter tree.

        Top-level renames keep the key order of the source; nested paths are
        placed after the copied keys.

        Args:
            parameters: Source parameters (not modified)
            copy_unmapped: Keep parameters without a path mapping

        Returns:
            New parameter dict for the target node
        """
        source = copy.deepcopy(parameters)
        renamed: dict[str, tuple[str, Any]] = {}
        nested: list[tuple[str, Any]] = []

        for source_path, target_path in self.parameter_path_map.items():
            found, value = get_path(source, source_path)
            if not found:
                continue
            value = self.convert_value(source_path, value)
            if "." not in source_path and "." not in target_path:
                renamed[source_path] = (target_path, value)
            else:
                nested.append((target_path, value))
                pop_path(source, source_path)

        result: dict[str, Any] = {}
        for key, value in source.items():
            if key in renamed:
                target_key, converted = renamed[key]
                result[target_key] = converted
            elif copy_unmapped:
                result[key] = self.convert_value(key, value)

        for target_path, value in nested:
            set_path(result, target_path, value)

        return result


class MappingTable:
    """
    Immutable collection of mapping entries keyed by source type.

    Example:
        >>> table = MappingTable([MappingEntry("a", "b")])
        >>> table.get("a").target_type
        'b'
    """

    def __init__(
        self,
        entries: Iterable[MappingEntry] = (),
        version: str = "0",
        last_updated: str | None = None,
    ):
        by_source: dict[str, MappingEntry] = {}
        by_target: dict[str, MappingEntry] = {}
        for entry in entries:
            by_source[entry.source_type] = entry
            by_target.setdefault(entry.target_type, entry)
        self._by_source = MappingProxyType(by_source)
        self._by_target = MappingProxyType(by_target)
        self._version = version
        self._last_updated = last_updated

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> "MappingTable":
        """Build a table from a validated mapping database document."""
        mappings = document.get("mappings") or {}
        entries = [MappingEntry.from_dict(key, data) for key, data in mappings.items()]
        return cls(
            entries,
            version=str(document.get("version", "0")),
            last_updated=document.get("lastUpdated"),
        )

    @property
    def version(self) -> str:
        return self._version

    @property
    def last_updated(self) -> str | None:
        return self._last_updated

    def __len__(self) -> int:
        return len(self._by_source)

    def __iter__(self):
        return iter(self._by_source.values())

    def __contains__(self, source_type: str) -> bool:
        return source_type in self._by_source

    def get(self, source_type: str) -> MappingEntry | None:
        return self._by_source.get(source_type)

    def find_by_target(self, target_type: str) -> MappingEntry | None:
        """First entry (in document order) whose target type matches."""
        return self._by_target.get(target_type)


class MappingResolver:
    """
    Answer "what does this type become?" for one conversion direction.

    Lookups try an entry keyed by the type itself, then the inverse of an
    entry whose target is the type.
    """

    def __init__(self, table: MappingTable):
        self.table = table
        self._inverted: dict[str, MappingEntry] = {}

    def resolve(self, source_type: str) -> MappingEntry | None:
        entry = self.table.get(source_type)
        if entry is not None:
            return entry

        if source_type in self._inverted:
            return self._inverted[source_type]

        forward = self.table.find_by_target(source_type)
        if forward is None:
            return None
        inverse = forward.inverted()
        self._inverted[source_type] = inverse
        logger.debug(f"Resolved {source_type} through inverse of {forward.source_type}")
        return inverse

    def require(self, source_type: str) -> MappingEntry:
        """
        Like resolve, but raise when no entry exists.

        Raises:
            UnmappedTypeError: If neither a direct nor an inverse entry exists
        """
        entry = self.resolve(source_type)
        if entry is None:
            raise UnmappedTypeError(source_type)
        return entry
