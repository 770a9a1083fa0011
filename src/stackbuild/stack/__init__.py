"""Stack model, descriptor loading and provider variants."""

from stackbuild.stack._loader import load_stack, parse_stack
from stackbuild.stack._models import ComputeUnit, Stack, UnitKind
from stackbuild.stack._provider import Provider, ProviderCapabilities

__all__ = [
    "ComputeUnit",
    "Provider",
    "ProviderCapabilities",
    "Stack",
    "UnitKind",
    "load_stack",
    "parse_stack",
]
