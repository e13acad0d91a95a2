"""Convert validation-schema descriptors to JSON Schema."""
import os
from importlib.metadata import version, PackageNotFoundError

# Checkout root, one level above this package
_SOURCE_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def _source_version():
    try:
        from setuptools_scm import get_version
        return get_version(root=_SOURCE_ROOT, fallback_version="0.1.0")
    except (ModuleNotFoundError, LookupError):
        return "0.0.0+unknown"


try:
    __version__ = version("desc2jsonschema")
except PackageNotFoundError:
    # running from a source tree that was never installed
    __version__ = _source_version()

from desc2jsonschema.errors import ConversionError, CyclicReferenceError, DepthLimitError
from desc2jsonschema.descriptor import normalize
from desc2jsonschema.json_schema import DRAFT_07, DEFAULT_MAX_DEPTH, convert, convert_document

__all__ = [
    "__version__",
    "ConversionError",
    "CyclicReferenceError",
    "DepthLimitError",
    "DRAFT_07",
    "DEFAULT_MAX_DEPTH",
    "convert",
    "convert_document",
    "normalize",
]
