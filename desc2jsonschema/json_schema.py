"""Convert normalized schema descriptors to JSON Schema."""
import copy
import logging

from desc2jsonschema.descriptor import (
    DEFAULT_MAX_DEPTH,
    FORBIDDEN,
    REQUIRED,
    AlternativesDescriptor,
    AnyDescriptor,
    ArrayDescriptor,
    BooleanDescriptor,
    Conditional,
    LazyDescriptor,
    NumberDescriptor,
    ObjectDescriptor,
    StringDescriptor,
    identity,
    normalize,
)
from desc2jsonschema.errors import ConversionError, CyclicReferenceError, DepthLimitError

logger = logging.getLogger(__name__)

DRAFT_07 = "http://json-schema.org/draft-07/schema#"

# Everything a JSON value can be; used for "accept anything"
ANY_JSON_TYPES = ["array", "boolean", "number", "object", "string", "null"]

# ----------------------------
# Constraint tables
# ----------------------------

STRING_RULE_MAP = {
    "min": ("minLength",),
    "max": ("maxLength",),
    "length": ("minLength", "maxLength"),
}

STRING_FORMAT_MAP = {
    "email": "email",
    "uri": "uri",
}

NUMBER_RULE_MAP = {
    "min": ("minimum",),
    "max": ("maximum",),
}

NUMBER_EXCLUSIVE_MAP = {
    "greater": ("minimum", "exclusiveMinimum"),
    "less": ("maximum", "exclusiveMaximum"),
}

ARRAY_RULE_MAP = {
    "min": ("minItems",),
    "max": ("maxItems",),
    "length": ("minItems", "maxItems"),
}


def _ignore_rule(node, rule):
    logger.debug("Ignoring unsupported %s rule %r", node.kind, rule.name)


def _apply_limits(schema, rule_map, rule):
    for keyword in rule_map[rule.name]:
        schema[keyword] = rule.arg


def regex_source(arg):
    """Return the bare pattern text of a regex rule argument.

    Accepts compiled patterns and JavaScript-style literals such as
    ``/^[a-z]$/i``, whose delimiters and flags are dropped.
    """
    if hasattr(arg, "pattern"):
        return arg.pattern
    text = str(arg)
    end = text.rfind("/")
    if text.startswith("/") and end > 0:
        return text[1:end]
    return text


def _enum_values(node):
    return [copy.deepcopy(v) for v in node.valids if v not in node.invalids]

# ----------------------------
# Per-kind handlers
# ----------------------------

def convert_string_to_json_schema(node, recurse):
    if node.flags.timestamp:
        # javascript and unix timestamps are both plain integers
        return {"type": "integer"}

    schema = {"type": "string"}
    if node.date:
        schema["format"] = "date-time"
        # date limits are dates, not lengths
        for rule in node.rules:
            _ignore_rule(node, rule)
    else:
        for rule in node.rules:
            if rule.name in STRING_RULE_MAP:
                _apply_limits(schema, STRING_RULE_MAP, rule)
            elif rule.name in ("regex", "pattern"):
                schema["pattern"] = regex_source(rule.arg)
            elif rule.name in STRING_FORMAT_MAP:
                schema["format"] = STRING_FORMAT_MAP[rule.name]
            else:
                _ignore_rule(node, rule)

    enum = _enum_values(node)
    if enum:
        schema["enum"] = enum
    return schema


def convert_number_to_json_schema(node, recurse):
    schema = {"type": "number"}
    for rule in node.rules:
        if rule.name in NUMBER_RULE_MAP:
            _apply_limits(schema, NUMBER_RULE_MAP, rule)
        elif rule.name in NUMBER_EXCLUSIVE_MAP:
            limit, exclusive = NUMBER_EXCLUSIVE_MAP[rule.name]
            schema[limit] = rule.arg
            schema[exclusive] = True
        elif rule.name == "integer" or (rule.name == "precision" and rule.arg == 0):
            schema["type"] = "integer"
        else:
            _ignore_rule(node, rule)

    enum = _enum_values(node)
    if enum:
        schema["enum"] = enum
    return schema


def convert_boolean_to_json_schema(node, recurse):
    schema = {"type": "boolean"}
    for rule in node.rules:
        _ignore_rule(node, rule)
    enum = _enum_values(node)
    if enum:
        schema["enum"] = enum
    return schema


def convert_any_to_json_schema(node, recurse):
    schema = {"type": list(ANY_JSON_TYPES)}
    enum = _enum_values(node)
    if enum:
        schema["enum"] = enum
    return schema


def convert_array_to_json_schema(node, recurse):
    schema = {"type": "array"}
    for rule in node.rules:
        if rule.name in ARRAY_RULE_MAP:
            _apply_limits(schema, ARRAY_RULE_MAP, rule)
        elif rule.name == "unique":
            schema["uniqueItems"] = True
        else:
            _ignore_rule(node, rule)
    if node.item is not None:
        schema["items"] = recurse(node.item)
    if node.ordered:
        schema["ordered"] = [recurse(item) for item in node.ordered]
    return schema


def convert_object_to_json_schema(node, recurse):
    schema = {
        "type": "object",
        "properties": {},
        "patterns": [],
        "additionalProperties": node.flags.unknown,
    }
    required_fields = []
    for name, child in node.children.items():
        presence = child.flags.presence
        if presence == FORBIDDEN:
            continue
        schema["properties"][name] = recurse(child)
        if presence == REQUIRED:
            required_fields.append(name)
    if required_fields:
        schema["required"] = required_fields
    return schema


def convert_alternatives_to_json_schema(node, recurse):
    one_of = []
    for match in node.matches:
        if isinstance(match, Conditional):
            # the condition itself is dropped, only the branches remain
            for branch in (match.then, match.otherwise):
                if branch is not None:
                    one_of.append(recurse(branch))
        else:
            one_of.append(recurse(match))
    return {"oneOf": one_of}


HANDLERS = {
    StringDescriptor: convert_string_to_json_schema,
    NumberDescriptor: convert_number_to_json_schema,
    BooleanDescriptor: convert_boolean_to_json_schema,
    AnyDescriptor: convert_any_to_json_schema,
    ArrayDescriptor: convert_array_to_json_schema,
    ObjectDescriptor: convert_object_to_json_schema,
    AlternativesDescriptor: convert_alternatives_to_json_schema,
}

# ----------------------------
# Metadata
# ----------------------------

def compose_metadata(schema, node):
    flags = node.flags
    if flags.label is not None:
        schema["title"] = flags.label
    if flags.description is not None:
        schema["description"] = flags.description
    if flags.has_default:
        schema["default"] = copy.deepcopy(flags.default)
    if node.examples:
        examples = copy.deepcopy(list(node.examples))
        schema["example"] = examples[0]
        schema["examples"] = examples
    return schema

# ----------------------------
# Dispatch
# ----------------------------

def resolve_lazy(node, max_depth=DEFAULT_MAX_DEPTH):
    """Invoke a lazy descriptor's producer and normalize what it returns."""
    resolved = normalize(node.fn(), max_depth=max_depth)
    logger.debug("Resolved lazy descriptor to %s", resolved.kind)
    return resolved


def _convert(node, ancestors, depth, max_depth):
    if depth > max_depth:
        raise DepthLimitError(f"Descriptor nesting exceeds {max_depth} levels", depth)

    if isinstance(node, LazyDescriptor):
        try:
            resolved = resolve_lazy(node, max_depth - depth)
        except DepthLimitError as e:
            # report the depth from the root, not from the lazy target
            raise DepthLimitError(
                f"Descriptor nesting exceeds {max_depth} levels", depth + e.depth) from None
        if id(identity(resolved)) in ancestors:
            raise CyclicReferenceError(
                f"Lazy descriptor refers back to an enclosing {resolved.kind} descriptor",
                kind=resolved.kind,
            )
        return _convert(resolved, ancestors, depth + 1, max_depth)

    handler = HANDLERS.get(type(node))
    if handler is None:
        raise ConversionError(f"Unsupported descriptor kind: {node.kind!r}", kind=node.kind)

    ancestors = ancestors | {id(identity(node))}
    schema = handler(node, lambda child: _convert(child, ancestors, depth + 1, max_depth))
    return compose_metadata(schema, node)


def convert(descriptor, *, max_depth=DEFAULT_MAX_DEPTH):
    """Convert a schema descriptor into a JSON Schema node.

    ``descriptor`` is either a raw descriptor mapping or an already
    normalized Descriptor. Raises ConversionError (or one of its subclasses)
    when the tree holds an unsupported kind, refers back to itself through a
    lazy descriptor, or nests deeper than ``max_depth``.
    """
    return _convert(normalize(descriptor, max_depth=max_depth), frozenset(), 0, max_depth)


def convert_document(descriptor, *, schema_uri=DRAFT_07, max_depth=DEFAULT_MAX_DEPTH):
    """Convert a root descriptor and stamp the ``$schema`` keyword on it."""
    schema = convert(descriptor, max_depth=max_depth)
    if schema_uri:
        schema["$schema"] = schema_uri
    return schema
