"""The ``Atoms`` aggregate: a partially filled debianization.

Atoms is built up by successive "set if absent" writes. The first writer of
a field wins and later writes are ignored, so the most specific source of
information has to be applied first (customizations before policy
defaults). A few fields are additive instead: relation sets and name sets
are unioned, mapping fields are merged key by key, and override tables are
layered with the earlier table on top.

Every stored value is immutable. ``freeze`` turns the aggregate read-only;
``thaw`` returns a writable copy.
"""

from __future__ import annotations

from enum import Enum, StrEnum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, cast

from debianize.domain.errors import FrozenAtomsError
from debianize.domain.relations import union_relations

if TYPE_CHECKING:
    from collections.abc import Iterator, Mapping

    from debianize.domain.model.primitives import BinPkgName


class FieldState(StrEnum):
    UNSET = "unset"
    COMPUTED = "computed"
    USER_SUPPLIED = "user_supplied"


class FieldKind(StrEnum):
    VALUE = "value"
    RELATIONS = "relations"
    NAMES = "names"
    BINARY_NAMES = "binary_names"
    INSTALL_RULES = "install_rules"
    MAPPING = "mapping"
    BINARY_MAPPING = "binary_mapping"
    OVERRIDES = "overrides"


class DebianFile(StrEnum):
    """Logical files of a debianization."""

    CONTROL = "control"
    RULES = "rules"
    CHANGELOG = "changelog"
    COMPAT = "compat"
    COPYRIGHT = "copyright"
    SOURCE_FORMAT = "source/format"
    WATCH = "watch"
    INSTALL = "install"
    MAINTAINER_SCRIPTS = "maintainer-scripts"


class _FieldInfo:
    key: str
    kind: FieldKind
    file: DebianFile | None
    additive: bool

    def __init__(
        self,
        key: str,
        kind: FieldKind,
        file: DebianFile | None,
        additive: bool = False,  # noqa: FBT001, FBT002
    ) -> None:
        self.key = key
        self.kind = kind
        self.file = file
        self.additive = additive

    @property
    def emitted(self) -> bool:
        return self.file is not None

    def __str__(self) -> str:
        return self.key


class SourceField(_FieldInfo, Enum):
    """Source-level fields, declared in finalization order."""

    # inputs and customization knobs
    PACKAGE_DESCRIPTION = ("package_description", FieldKind.VALUE, None)
    NAME_OVERRIDES = ("name_overrides", FieldKind.OVERRIDES, None)
    EPOCHS = ("epochs", FieldKind.MAPPING, None)
    EXEC_MAP = ("exec_map", FieldKind.MAPPING, None)
    EXTRA_LIB_MAP = ("extra_lib_map", FieldKind.MAPPING, None)
    MISSING_DEPENDENCIES = ("missing_dependencies", FieldKind.NAMES, None, True)
    EXTRA_BUILD_DEPENDS = ("extra_build_depends", FieldKind.RELATIONS, None, True)
    EXECUTABLES = ("executables", FieldKind.BINARY_MAPPING, None)
    NO_DOCUMENTATION = ("no_documentation", FieldKind.VALUE, None)
    NO_PROFILING = ("no_profiling", FieldKind.VALUE, None)
    REVISION = ("revision", FieldKind.VALUE, None)
    PREVIOUS_VERSION = ("previous_version", FieldKind.VALUE, None)
    PREVIOUS_CHANGELOG = ("previous_changelog", FieldKind.VALUE, None)
    OMIT_LT_DEPS = ("omit_lt_deps", FieldKind.VALUE, None)
    OMIT_PROF_VERSION_DEPS = ("omit_prof_version_deps", FieldKind.VALUE, None)
    EXTRA_DEV_DEPENDS = ("extra_dev_depends", FieldKind.RELATIONS, None, True)
    EXTRA_INSTALL_RULES = ("extra_install_rules", FieldKind.INSTALL_RULES, None, True)
    UTILITIES_PACKAGE = ("utilities_package", FieldKind.VALUE, None)

    # derived from the upstream identity, never emitted
    DEB_BASE = ("deb_base", FieldKind.VALUE, None)

    # emitted fields
    SOURCE_NAME = ("source", FieldKind.VALUE, DebianFile.CONTROL)
    VERSION = ("version", FieldKind.VALUE, DebianFile.CHANGELOG)
    MAINTAINER = ("maintainer", FieldKind.VALUE, DebianFile.CONTROL)
    UPLOADERS = ("uploaders", FieldKind.VALUE, DebianFile.CONTROL)
    SECTION = ("section", FieldKind.VALUE, DebianFile.CONTROL)
    PRIORITY = ("priority", FieldKind.VALUE, DebianFile.CONTROL)
    HOMEPAGE = ("homepage", FieldKind.VALUE, DebianFile.CONTROL)
    SOURCE_FORMAT = ("source_format", FieldKind.VALUE, DebianFile.SOURCE_FORMAT)
    STANDARDS_VERSION = ("standards_version", FieldKind.VALUE, DebianFile.CONTROL)
    COMPAT = ("compat", FieldKind.VALUE, DebianFile.COMPAT)
    BINARIES = ("binaries", FieldKind.BINARY_NAMES, DebianFile.CONTROL)
    BUILD_DEPENDS = ("build_depends", FieldKind.RELATIONS, DebianFile.CONTROL)
    BUILD_DEPENDS_INDEP = ("build_depends_indep", FieldKind.RELATIONS, DebianFile.CONTROL)
    LICENSE = ("license", FieldKind.VALUE, DebianFile.COPYRIGHT)
    COPYRIGHT = ("copyright", FieldKind.VALUE, DebianFile.COPYRIGHT)
    INSTALL_RULES = ("install_rules", FieldKind.INSTALL_RULES, DebianFile.INSTALL)
    RULES_HEAD = ("rules_head", FieldKind.VALUE, DebianFile.RULES)
    RULES_FRAGMENTS = ("rules_fragments", FieldKind.VALUE, DebianFile.RULES)
    CHANGELOG = ("changelog", FieldKind.VALUE, DebianFile.CHANGELOG)
    WATCH = ("watch", FieldKind.VALUE, DebianFile.WATCH)


class BinaryField(_FieldInfo, Enum):
    """Fields qualified by a binary package name."""

    PACKAGE_TYPE = ("package_type", FieldKind.VALUE, None)
    EXPLICIT_NAME = ("explicit_name", FieldKind.VALUE, None)
    EXTRA_DEPENDS = ("extra_depends", FieldKind.RELATIONS, None, True)

    ARCHITECTURE = ("architecture", FieldKind.VALUE, DebianFile.CONTROL)
    SECTION = ("section", FieldKind.VALUE, DebianFile.CONTROL)
    PRIORITY = ("priority", FieldKind.VALUE, DebianFile.CONTROL)
    DESCRIPTION = ("description", FieldKind.VALUE, DebianFile.CONTROL)
    PRE_DEPENDS = ("pre_depends", FieldKind.RELATIONS, DebianFile.CONTROL)
    DEPENDS = ("depends", FieldKind.RELATIONS, DebianFile.CONTROL)
    RECOMMENDS = ("recommends", FieldKind.RELATIONS, DebianFile.CONTROL)
    SUGGESTS = ("suggests", FieldKind.RELATIONS, DebianFile.CONTROL)
    CONFLICTS = ("conflicts", FieldKind.RELATIONS, DebianFile.CONTROL)
    BREAKS = ("breaks", FieldKind.RELATIONS, DebianFile.CONTROL)
    PROVIDES = ("provides", FieldKind.RELATIONS, DebianFile.CONTROL)
    REPLACES = ("replaces", FieldKind.RELATIONS, DebianFile.CONTROL)
    PREINST = ("preinst", FieldKind.VALUE, DebianFile.MAINTAINER_SCRIPTS)
    POSTINST = ("postinst", FieldKind.VALUE, DebianFile.MAINTAINER_SCRIPTS)
    PRERM = ("prerm", FieldKind.VALUE, DebianFile.MAINTAINER_SCRIPTS)
    POSTRM = ("postrm", FieldKind.VALUE, DebianFile.MAINTAINER_SCRIPTS)


type AtomField = SourceField | BinaryField
type FieldKey = SourceField | tuple[BinaryField, BinPkgName]


def field_of(key: FieldKey) -> AtomField:
    return key if isinstance(key, SourceField) else key[0]


def binary_of(key: FieldKey) -> BinPkgName | None:
    return None if isinstance(key, SourceField) else key[1]


def _freeze_value(field: AtomField, value: Any) -> Any:
    if field.kind in {FieldKind.MAPPING, FieldKind.BINARY_MAPPING} and not isinstance(
        value, MappingProxyType
    ):
        return MappingProxyType(dict(value))
    if field.kind in {FieldKind.NAMES} and not isinstance(value, frozenset):
        return frozenset(value)
    if field.kind in {FieldKind.BINARY_NAMES, FieldKind.INSTALL_RULES} and not isinstance(
        value, tuple
    ):
        return tuple(value)
    return value


def _combine(field: AtomField, existing: Any, incoming: Any) -> Any:
    """Merge ``incoming`` under ``existing`` for fields that combine; ``existing`` wins."""

    if field.kind in {FieldKind.MAPPING, FieldKind.BINARY_MAPPING}:
        return MappingProxyType({**incoming, **existing})
    if field.kind is FieldKind.OVERRIDES:
        return incoming.amend(existing)
    if field.additive and field.kind is FieldKind.RELATIONS:
        return union_relations(existing, incoming)
    if field.additive and field.kind is FieldKind.NAMES:
        return existing | incoming
    if field.additive and field.kind is FieldKind.INSTALL_RULES:
        return tuple(dict.fromkeys((*existing, *incoming)))
    return existing


class Atoms:
    """Mutable-until-frozen collection of debianization fields."""

    __slots__ = ("_frozen", "_states", "_values")

    def __init__(self) -> None:
        self._values: dict[FieldKey, Any] = {}
        self._states: dict[FieldKey, FieldState] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    @staticmethod
    def key(field: AtomField, binary: BinPkgName | None = None) -> FieldKey:
        if isinstance(field, BinaryField):
            if binary is None:
                raise ValueError(f"Binary field {field} requires a binary package name")
            return (field, binary)
        if binary is not None:
            raise ValueError(f"Source field {field} cannot be qualified by a binary package")
        return field

    def get(self, field: AtomField, binary: BinPkgName | None = None, *, default: Any = None) -> Any:
        return self._values.get(self.key(field, binary), default)

    def state(self, field: AtomField, binary: BinPkgName | None = None) -> FieldState:
        return self._states.get(self.key(field, binary), FieldState.UNSET)

    def is_set(self, field: AtomField, binary: BinPkgName | None = None) -> bool:
        return self.key(field, binary) in self._values

    def set_if_absent(
        self,
        field: AtomField,
        value: Any,
        *,
        binary: BinPkgName | None = None,
        state: FieldState = FieldState.USER_SUPPLIED,
    ) -> bool:
        """Store ``value`` unless the field is already present; return whether anything changed."""

        return self._write_if_absent(self.key(field, binary), value, state)

    def replace(
        self,
        field: AtomField,
        value: Any,
        *,
        binary: BinPkgName | None = None,
        state: FieldState = FieldState.USER_SUPPLIED,
    ) -> None:
        """Overwrite a field regardless of its current state (explicit overrides only)."""

        self.replace_key(self.key(field, binary), value, state=state)

    def replace_key(self, key: FieldKey, value: Any, *, state: FieldState) -> None:
        self._check_writable()
        if state is FieldState.UNSET:
            self._values.pop(key, None)
            self._states.pop(key, None)
            return
        self._values[key] = _freeze_value(field_of(key), value)
        self._states[key] = state

    def discard(self, field: AtomField, binary: BinPkgName | None = None) -> None:
        self.replace(field, None, binary=binary, state=FieldState.UNSET)

    def merge(self, other: Atoms) -> Atoms:
        """Fold ``other`` into this aggregate with first-writer-wins semantics."""

        for key, value, state in other.items():
            self._write_if_absent(key, value, state)
        return self

    def items(self) -> Iterator[tuple[FieldKey, Any, FieldState]]:
        for key, value in self._values.items():
            yield key, value, self._states[key]

    def binary_names(self) -> frozenset[BinPkgName]:
        return frozenset(key[1] for key in self._values if isinstance(key, tuple))

    def binary_fields(self, binary: BinPkgName) -> dict[BinaryField, Any]:
        return {
            key[0]: value
            for key, value in self._values.items()
            if isinstance(key, tuple) and key[1] == binary
        }

    def rename_binary(self, old: BinPkgName, new: BinPkgName) -> None:
        self._check_writable()
        for key in [key for key in self._values if isinstance(key, tuple) and key[1] == old]:
            value = self._values.pop(key)
            state = self._states.pop(key)
            self._values[(key[0], new)] = value
            self._states[(key[0], new)] = state

    def freeze(self) -> Atoms:
        self._frozen = True
        return self

    def thaw(self) -> Atoms:
        copy = Atoms()
        copy._values = dict(self._values)  # noqa: SLF001
        copy._states = dict(self._states)  # noqa: SLF001
        return copy

    def _write_if_absent(self, key: FieldKey, value: Any, state: FieldState) -> bool:
        self._check_writable()
        if value is None or state is FieldState.UNSET:
            return False
        field = field_of(key)
        incoming = _freeze_value(field, value)
        if key not in self._values:
            self._values[key] = incoming
            self._states[key] = state
            return True
        existing = self._values[key]
        combined = _combine(field, existing, incoming)
        if combined == existing:
            return False
        self._values[key] = combined
        if self._states[key] is not FieldState.USER_SUPPLIED:
            self._states[key] = state
        return True

    def _check_writable(self) -> None:
        if self._frozen:
            raise FrozenAtomsError("Atoms are frozen after finalization; use thaw() for a copy")

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Atoms):
            return NotImplemented
        return self._values == other._values and self._states == other._states  # noqa: SLF001

    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        fields = ", ".join(
            f"{field_of(key)}{'[' + binary + ']' if (binary := binary_of(key)) else ''}"
            for key in self._values
        )
        return f"Atoms(frozen={self._frozen}, fields=[{fields}])"


def mapping_of[K, V](atoms: Atoms, field: SourceField) -> Mapping[K, V]:
    return cast("Mapping[K, V]", atoms.get(field, default=MappingProxyType({})))
