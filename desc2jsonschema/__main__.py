#!/usr/bin/env python3
"""
Convert schema descriptors (the introspection output of a validation
library, saved as JSON or YAML) to JSON Schema.

Output is JSON Schema (Draft-07 flavoured) written as JSON or YAML.
"""

# Version string
from desc2jsonschema import __version__

# Command line parsing
import argparse
import logging
import sys

# Output
import os
import json
import yaml

# Core functionality
import desc2jsonschema.json_schema
from desc2jsonschema.errors import ConversionError


def load_descriptor(path):
    """Read one descriptor tree from a JSON or YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def render(document, fmt):
    if fmt == "yaml":
        return yaml.safe_dump(document, sort_keys=False)
    # YAML input may carry dates and timestamps
    return json.dumps(document, indent=2, default=str)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="desc2jsonschema",
        description="Convert schema descriptors to JSON Schema")
    parser.add_argument("descriptors", nargs="+", metavar="descriptor",
                        help="Path to a descriptor file (JSON or YAML)")
    parser.add_argument('-v', '--version', action='version', version='%(prog)s ' + str(__version__))
    parser.add_argument("-o", "--output", help="Output file (default: stdout)")
    parser.add_argument("--format", choices=["json", "yaml"], default="json",
                        help="Output format: json (default) or yaml")
    parser.add_argument("--no-schema-uri", action="store_true",
                        help="Do not add the $schema keyword to the output")
    parser.add_argument("--max-depth", type=int,
                        default=desc2jsonschema.json_schema.DEFAULT_MAX_DEPTH,
                        help="Maximum descriptor nesting depth (default: %(default)s)")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    return parser


def document_name(path):
    return os.path.splitext(os.path.basename(path))[0]


def duplicate_names(paths):
    seen = set()
    duplicates = []
    for path in paths:
        name = document_name(path)
        if name in seen and name not in duplicates:
            duplicates.append(name)
        seen.add(name)
    return duplicates


def convert_files(paths, schema_uri, max_depth):
    documents = {}
    for path in paths:
        descriptor = load_descriptor(path)
        documents[document_name(path)] = desc2jsonschema.json_schema.convert_document(
            descriptor, schema_uri=schema_uri, max_depth=max_depth)
    if len(paths) == 1:
        return next(iter(documents.values()))
    return documents


# Main module
def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.debug:
        logging.basicConfig(level=logging.DEBUG,
                            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    duplicates = duplicate_names(args.descriptors)
    if duplicates:
        print(f"ERROR: several descriptors would be named {', '.join(duplicates)}; rename the files",
              file=sys.stderr)
        return 1

    schema_uri = None if args.no_schema_uri else desc2jsonschema.json_schema.DRAFT_07
    try:
        document = convert_files(args.descriptors, schema_uri, args.max_depth)
    except (OSError, yaml.YAMLError) as e:
        print(f"ERROR loading descriptor: {e}", file=sys.stderr)
        return 1
    except ConversionError as e:
        print(f"ERROR converting descriptor: {e}", file=sys.stderr)
        return 1

    output = render(document, args.format)
    if args.output:
        os.makedirs(os.path.dirname(args.output) or ".", exist_ok=True)
        with open(args.output, "w", encoding="utf-8") as f:
            f.write(output)
        print(f"Wrote {args.format.upper()} to {args.output}")
    else:
        print(output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
