"""
Plugin SDK for easyplug.

This module defines the handle types shared by the scanner, loader,
registry and profile, plus the decorator plugin authors use to expose
alternate constructors.

Core Types:
    - LoadedType: A discovered, instantiable plugin class
    - Constructor: One way of building an instance of a LoadedType
    - ParameterSpec: A single declared constructor parameter

Constructors:
    Every class has its primary constructor (calling the class). Plugin
    authors may declare extra constructors by marking classmethods with
    ``@constructor``. When an object is requested with arguments, the
    first constructor whose parameters accept those arguments is used.

Example - Writing a plugin class:
    from easyplug import constructor

    class CsvExporter:
        def __init__(self, delimiter: str = ","):
            self.delimiter = delimiter

        @constructor
        def from_settings(cls, settings: dict):
            return cls(settings.get("delimiter", ","))
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Union
import inspect
import types
import typing


_CONSTRUCTOR_MARKER = "__easyplug_constructor__"

# Implicit numeric widening accepted when matching annotations
_NUMERIC_PROMOTIONS: dict[type, tuple[type, ...]] = {
    float: (int,),
    complex: (int, float),
}


class PluginError(Exception):
    """Base class for all easyplug errors."""


class ConstructionError(PluginError, TypeError):
    """Raised when an object cannot be built from a LoadedType.

    Covers a missing zero-argument constructor, no constructor matching
    the supplied arguments, and a constructor that raised.

    Attributes:
        type_name: Qualified name of the type being constructed.
        reason: Reason for the failure.
        original: Original exception if the constructor itself raised.
    """

    def __init__(
        self,
        type_name: str,
        reason: str,
        original: BaseException | None = None,
    ):
        self.type_name = type_name
        self.reason = reason
        self.original = original
        super().__init__(f"Cannot construct '{type_name}': {reason}")


def constructor(func: Callable) -> classmethod:
    """Mark a function as an alternate constructor.

    The function is turned into a classmethod, so it receives the class
    as its first argument.

    Usage:
        class Report:
            @constructor
            def from_path(cls, path: str) -> "Report":
                ...
    """
    if isinstance(func, classmethod):
        func = func.__func__
    setattr(func, _CONSTRUCTOR_MARKER, True)
    return classmethod(func)


@dataclass(frozen=True)
class ParameterSpec:
    """A declared constructor parameter.

    Attributes:
        name: Parameter name.
        annotation: Resolved type hint, or ``inspect.Parameter.empty``.
        kind: The ``inspect.Parameter`` kind.
        has_default: Whether the parameter may be omitted.
    """

    name: str
    annotation: Any
    kind: inspect._ParameterKind
    has_default: bool

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "annotation": _describe(self.annotation),
            "kind": self.kind.name,
            "has_default": self.has_default,
        }


@dataclass(frozen=True)
class Constructor:
    """One way of creating an instance of a loaded type.

    Attributes:
        name: ``"__init__"`` for the class call, otherwise the
            classmethod name.
        target: The callable that builds the instance.
        signature: Signature of ``target`` (without ``self``/``cls``).
        hints: Resolved type hints keyed by parameter name.
    """

    name: str
    target: Callable[..., Any]
    signature: inspect.Signature
    hints: dict[str, Any] = field(default_factory=dict)

    @property
    def parameters(self) -> tuple[ParameterSpec, ...]:
        """Declared parameters in order."""
        return tuple(
            ParameterSpec(
                name=param.name,
                annotation=self._annotation_for(param),
                kind=param.kind,
                has_default=(
                    param.default is not inspect.Parameter.empty
                    or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD)
                ),
            )
            for param in self.signature.parameters.values()
        )

    def accepts(self, args: tuple = (), kwargs: dict[str, Any] | None = None) -> bool:
        """Check whether this constructor can be called with the arguments.

        Arity is checked by binding the arguments to the signature, then
        each bound value is checked against its parameter's annotation.

        Args:
            args: Positional arguments.
            kwargs: Keyword arguments.

        Returns:
            True if every argument fits its parameter.
        """
        try:
            bound = self.signature.bind(*args, **(kwargs or {}))
        except TypeError:
            return False

        for name, value in bound.arguments.items():
            param = self.signature.parameters[name]
            annotation = self._annotation_for(param)
            if param.kind is param.VAR_POSITIONAL:
                values = value
            elif param.kind is param.VAR_KEYWORD:
                values = value.values()
            else:
                values = (value,)
            if not all(matches_annotation(v, annotation) for v in values):
                return False
        return True

    def __call__(self, *args: Any, **kwargs: Any) -> Any:
        return self.target(*args, **kwargs)

    def _annotation_for(self, param: inspect.Parameter) -> Any:
        return self.hints.get(param.name, param.annotation)

    def __repr__(self) -> str:
        return f"<Constructor {self.name}{self.signature}>"


@dataclass(frozen=True, eq=False)
class LoadedType:
    """A plugin class discovered inside an archive.

    Identity matters: two LoadedType objects wrapping the same class are
    distinct entries, which is how "last registered wins" is observed.

    Attributes:
        qualified_name: Dotted name derived from the archive entry path.
        cls: The resolved Python class.
        archive: The archive the class was loaded from, if any.

    Example:
        loaded = profile.by_name("Foo")
        obj = loaded.instantiate("config.json")
    """

    qualified_name: str
    cls: type
    archive: Path | None = None

    @classmethod
    def from_class(cls, klass: type, archive: Path | None = None) -> "LoadedType":
        """Wrap an already imported class.

        The qualified name is built from the class's module and
        qualified name, e.g. ``"myapp.exporters.CsvExporter"``.
        """
        return cls(
            qualified_name=f"{klass.__module__}.{klass.__qualname__}",
            cls=klass,
            archive=archive,
        )

    @property
    def short_name(self) -> str:
        """Final segment of the qualified name."""
        return self.qualified_name.rpartition(".")[2]

    def constructors(self) -> list[Constructor]:
        """Enumerate the constructors of this type.

        Returns:
            The class call first, then ``@constructor`` classmethods in
            definition order (base classes first).
        """
        found = [_primary_constructor(self.cls)]

        alternates: dict[str, classmethod] = {}
        for klass in reversed(self.cls.__mro__):
            for attr_name, attr in vars(klass).items():
                if isinstance(attr, classmethod) and getattr(
                    attr.__func__, _CONSTRUCTOR_MARKER, False
                ):
                    alternates[attr_name] = attr

        for attr_name, attr in alternates.items():
            bound = getattr(self.cls, attr_name)
            found.append(Constructor(
                name=attr_name,
                target=bound,
                signature=_signature_of(bound),
                hints=_hints_of(attr.__func__),
            ))
        return found

    def select_constructor(
        self,
        args: tuple = (),
        kwargs: dict[str, Any] | None = None,
    ) -> Constructor | None:
        """Find the first constructor accepting the given arguments."""
        for candidate in self.constructors():
            if candidate.accepts(args, kwargs):
                return candidate
        return None

    def instantiate(self, *args: Any, **kwargs: Any) -> Any:
        """Build an instance, choosing a constructor from the arguments.

        Returns:
            The new object.

        Raises:
            ConstructionError: If no constructor accepts the arguments or
                the selected constructor raises.
        """
        selected = self.select_constructor(args, kwargs)
        if selected is None:
            if not args and not kwargs:
                raise ConstructionError(
                    self.qualified_name, "no zero-argument constructor"
                )
            raise ConstructionError(
                self.qualified_name,
                f"no constructor accepts ({_describe_arguments(args, kwargs)})",
            )

        try:
            return selected(*args, **kwargs)
        except Exception as e:
            raise ConstructionError(
                self.qualified_name,
                f"constructor '{selected.name}' raised {type(e).__name__}: {e}",
                e,
            ) from e

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Returns:
            Dictionary representation.
        """
        return {
            "qualified_name": self.qualified_name,
            "short_name": self.short_name,
            "archive": str(self.archive) if self.archive else None,
            "constructors": [
                {
                    "name": c.name,
                    "parameters": [p.to_dict() for p in c.parameters],
                }
                for c in self.constructors()
            ],
        }

    def __repr__(self) -> str:
        return f"<LoadedType {self.qualified_name}>"


def matches_annotation(value: Any, annotation: Any) -> bool:
    """Check a runtime value against a declared type hint.

    Unannotated parameters, ``Any``, unresolved forward references and
    hints that cannot be checked at runtime accept everything. ``None``
    is only accepted where the hint admits it.
    """
    if annotation is inspect.Parameter.empty or annotation is Any:
        return True
    if isinstance(annotation, (str, typing.ForwardRef, typing.TypeVar)):
        return True
    if annotation is None or annotation is type(None):
        return value is None

    origin = typing.get_origin(annotation)
    if origin is Union or origin is types.UnionType:
        return any(matches_annotation(value, arg) for arg in typing.get_args(annotation))
    if origin is typing.Annotated:
        return matches_annotation(value, typing.get_args(annotation)[0])
    if origin is typing.Literal:
        return value in typing.get_args(annotation)

    if value is None:
        return False

    target = origin if origin is not None else annotation
    if not isinstance(target, type):
        return True
    if isinstance(value, bool) and target in _NUMERIC_PROMOTIONS:
        return False
    try:
        if isinstance(value, target):
            return True
    except TypeError:
        # non runtime-checkable protocols and similar
        return True
    return isinstance(value, _NUMERIC_PROMOTIONS.get(target, ()))


def _primary_constructor(cls: type) -> Constructor:
    init = cls.__init__
    hints = _hints_of(init) if inspect.isfunction(init) else {}
    return Constructor(
        name="__init__",
        target=cls,
        signature=_signature_of(cls),
        hints=hints,
    )


def _signature_of(target: Callable) -> inspect.Signature:
    try:
        return inspect.signature(target)
    except (TypeError, ValueError):
        # No introspectable signature; accept any call shape
        return inspect.Signature([
            inspect.Parameter("args", inspect.Parameter.VAR_POSITIONAL),
            inspect.Parameter("kwargs", inspect.Parameter.VAR_KEYWORD),
        ])


def _hints_of(func: Callable) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func, include_extras=True)
    except Exception:
        return {}


def _describe(annotation: Any) -> str:
    if annotation is inspect.Parameter.empty:
        return "any"
    if isinstance(annotation, type):
        return annotation.__name__
    return str(annotation)


def _describe_arguments(args: tuple, kwargs: dict[str, Any]) -> str:
    parts = ["None" if a is None else type(a).__name__ for a in args]
    parts.extend(
        f"{k}={'None' if v is None else type(v).__name__}" for k, v in kwargs.items()
    )
    return ", ".join(parts)
