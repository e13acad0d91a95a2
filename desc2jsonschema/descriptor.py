"""Normalize raw schema descriptors into typed descriptor objects.

A raw descriptor is the mapping a validation library hands out when it
describes one of its schemas (Joi's ``describe()`` output is the model):

    {"type": "string",
     "flags": {"presence": "required", "default": "bar"},
     "rules": [{"name": "min", "arg": 5}],
     "valids": ["a", "b"]}

The shape differs between library versions, so a few spellings of the
same thing are accepted (``kind``/``type``, ``valids``/``allow``,
``matches``/``alternatives``, ``arg``/``args``, ...). The result is a
closed set of frozen dataclasses, one per kind, which is what the JSON
Schema converter dispatches on.

Array members follow one rule whatever the source library meant: a single
``item`` (or ``items`` given as one mapping) describes every member, while
``items`` given as a list is a tuple declaration and becomes ``ordered``.
Some Joi releases describe a homogeneous ``array().items(x)`` as
``items: [x]``; rewrite that to ``item: x`` before converting.
"""
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any, Callable, ClassVar, Dict, Optional, Tuple

from desc2jsonschema.errors import ConversionError, CyclicReferenceError, DepthLimitError

REQUIRED = "required"
FORBIDDEN = "forbidden"

TIMESTAMP_MODES = ("javascript", "unix")

DEFAULT_MAX_DEPTH = 128

# Keys of a mapping rule argument that hold the real value
RULE_ARG_KEYS = ("limit", "pattern", "regex", "precision")

# ----------------------------
# Typed descriptors
# ----------------------------

@dataclass(frozen=True)
class Flags:
    presence: Optional[str] = None
    has_default: bool = False
    default: Any = None
    label: Optional[str] = None
    description: Optional[str] = None
    unknown: bool = False
    timestamp: Optional[str] = None


@dataclass(frozen=True)
class Rule:
    name: str
    arg: Any = None


@dataclass(frozen=True)
class Descriptor:
    kind: ClassVar[str] = ""

    flags: Flags = field(default_factory=Flags)
    rules: Tuple[Rule, ...] = ()
    valids: Tuple[Any, ...] = ()
    invalids: Tuple[Any, ...] = ()
    examples: Tuple[Any, ...] = ()
    # Raw object this descriptor was built from, used to spot cycles
    source: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class StringDescriptor(Descriptor):
    kind: ClassVar[str] = "string"

    date: bool = False


@dataclass(frozen=True)
class NumberDescriptor(Descriptor):
    kind: ClassVar[str] = "number"


@dataclass(frozen=True)
class BooleanDescriptor(Descriptor):
    kind: ClassVar[str] = "boolean"


@dataclass(frozen=True)
class AnyDescriptor(Descriptor):
    kind: ClassVar[str] = "any"


@dataclass(frozen=True)
class ArrayDescriptor(Descriptor):
    kind: ClassVar[str] = "array"

    item: Optional[Descriptor] = None
    ordered: Tuple[Descriptor, ...] = ()


@dataclass(frozen=True)
class ObjectDescriptor(Descriptor):
    kind: ClassVar[str] = "object"

    children: Dict[str, Descriptor] = field(default_factory=dict)


@dataclass(frozen=True)
class Conditional:
    """A ``when`` construct. Only its branches survive conversion."""
    subject: Any = None
    is_: Any = None
    then: Optional[Descriptor] = None
    otherwise: Optional[Descriptor] = None


@dataclass(frozen=True)
class AlternativesDescriptor(Descriptor):
    kind: ClassVar[str] = "alternatives"

    matches: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class LazyDescriptor(Descriptor):
    kind: ClassVar[str] = "lazy"

    fn: Optional[Callable[[], Any]] = None


def identity(descriptor):
    """Object whose id stands for this descriptor on a conversion path."""
    return descriptor.source if descriptor.source is not None else descriptor

# ----------------------------
# Normalization
# ----------------------------

def normalize(raw, max_depth=DEFAULT_MAX_DEPTH):
    """Return the typed view of ``raw``.

    Descriptor instances pass through unchanged. Raises ConversionError for
    anything that is neither a descriptor nor a mapping with a known kind,
    and DepthLimitError when the tree nests deeper than ``max_depth``.
    """
    return _normalize(raw, (), max_depth)


def _normalize(raw, path, limit):
    if isinstance(raw, Descriptor):
        return raw
    if not isinstance(raw, Mapping):
        raise ConversionError(f"Descriptor must be a mapping, got {type(raw).__name__}")
    if any(raw is seen for seen in path):
        raise CyclicReferenceError("Descriptor contains itself; wrap the reference in a lazy descriptor")
    if len(path) > limit:
        raise DepthLimitError(f"Descriptor nesting exceeds {limit} levels", len(path))
    path = path + (raw,)

    kind = raw.get("kind", raw.get("type"))
    builder = _BUILDERS.get(kind)
    if builder is None:
        raise ConversionError(f"Unsupported descriptor kind: {kind!r}", kind=kind)
    return builder(raw, path, limit, _common_fields(raw))


def _common_fields(raw):
    flags = raw.get("flags") or {}
    options = raw.get("options") or {}
    language = options.get("language") or {}

    label = flags.get("label", raw.get("label", language.get("label")))
    description = flags.get("description", raw.get("description"))
    unknown = flags.get("unknown", flags.get("allowUnknown", False))

    has_default = "default" in flags
    fields = {
        "flags": Flags(
            presence=flags.get("presence"),
            has_default=has_default,
            default=flags["default"] if has_default else None,
            label=label,
            description=description,
            unknown=bool(unknown),
            timestamp=flags.get("timestamp"),
        ),
        "rules": tuple(_normalize_rule(r) for r in raw.get("rules") or ()),
        "valids": tuple(raw.get("valids", raw.get("allow")) or ()),
        "invalids": tuple(raw.get("invalids", raw.get("invalid")) or ()),
        "examples": tuple(raw.get("examples") or ()),
        "source": raw,
    }
    return fields


def _normalize_rule(raw_rule):
    if isinstance(raw_rule, Rule):
        return raw_rule
    if isinstance(raw_rule, str):
        return Rule(raw_rule)
    if isinstance(raw_rule, Mapping):
        name = raw_rule.get("name")
        arg = raw_rule.get("arg", raw_rule.get("args"))
    else:
        name, arg = raw_rule
    if isinstance(arg, Mapping):
        # e.g. {"limit": 5, "encoding": "utf8"} for string().max(5, "utf8")
        key = next((k for k in RULE_ARG_KEYS if k in arg), None)
        if key is not None:
            arg = arg[key]
    return Rule(name, arg)

# ----------------------------
# Per-kind builders
# ----------------------------

def _build_string(raw, path, limit, fields):
    return StringDescriptor(**fields)


def _build_date(raw, path, limit, fields):
    flags = fields["flags"]
    # Newer describe() output reports the timestamp mode as the date format
    fmt = (raw.get("flags") or {}).get("format")
    if flags.timestamp is None and fmt in TIMESTAMP_MODES:
        fields["flags"] = replace(flags, timestamp=fmt)
    return StringDescriptor(date=True, **fields)


def _build_number(raw, path, limit, fields):
    return NumberDescriptor(**fields)


def _build_boolean(raw, path, limit, fields):
    return BooleanDescriptor(**fields)


def _build_any(raw, path, limit, fields):
    return AnyDescriptor(**fields)


def _build_array(raw, path, limit, fields):
    item = raw.get("item")
    ordered = raw.get("ordered", raw.get("orderedItems")) or ()
    items = raw.get("items")
    if isinstance(items, (Mapping, Descriptor)):
        item = items if item is None else item
    elif items:
        ordered = items
    return ArrayDescriptor(
        item=_normalize(item, path, limit) if item is not None else None,
        ordered=tuple(_normalize(i, path, limit) for i in ordered),
        **fields,
    )


def _build_object(raw, path, limit, fields):
    children = raw.get("children", raw.get("keys")) or {}
    return ObjectDescriptor(
        children={name: _normalize(child, path, limit) for name, child in children.items()},
        **fields,
    )


def _is_conditional(entry):
    if isinstance(entry, Conditional):
        return True
    if not isinstance(entry, Mapping) or "kind" in entry or "type" in entry:
        return False
    return any(k in entry for k in ("then", "otherwise", "subject", "ref", "is"))


def _build_conditional(entry, path, limit):
    if isinstance(entry, Conditional):
        return entry
    then = entry.get("then")
    otherwise = entry.get("otherwise")
    return Conditional(
        subject=entry.get("subject", entry.get("ref")),
        is_=entry.get("is"),
        then=_normalize(then, path, limit) if then is not None else None,
        otherwise=_normalize(otherwise, path, limit) if otherwise is not None else None,
    )


def _build_alternatives(raw, path, limit, fields):
    matches = raw.get("matches", raw.get("alternatives")) or ()
    if _is_conditional(matches):
        matches = (matches,)
    normalized = []
    for entry in matches:
        if _is_conditional(entry):
            normalized.append(_build_conditional(entry, path, limit))
        elif isinstance(entry, Mapping) and "schema" in entry and "type" not in entry:
            normalized.append(_normalize(entry["schema"], path, limit))
        else:
            normalized.append(_normalize(entry, path, limit))
    return AlternativesDescriptor(matches=tuple(normalized), **fields)


def _build_lazy(raw, path, limit, fields):
    fn = raw.get("fn")
    if not callable(fn):
        raise ConversionError("Lazy descriptor has no callable 'fn'", kind="lazy")
    return LazyDescriptor(fn=fn, **fields)


_BUILDERS = {
    "string": _build_string,
    "date": _build_date,
    "number": _build_number,
    "boolean": _build_boolean,
    "any": _build_any,
    "array": _build_array,
    "object": _build_object,
    "alternatives": _build_alternatives,
    "lazy": _build_lazy,
}
