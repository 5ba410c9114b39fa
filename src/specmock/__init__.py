"""specmock: serve mock REST APIs generated from declarative contracts."""

from specmock.contracts import load_contract, load_contracts
from specmock.engine import ResponseBuilder
from specmock.errors import SpecValidationError
from specmock.models import Contract, GeneratedResponse, IncomingRequest

__version__ = "0.1.0"

__all__ = [
    "Contract",
    "GeneratedResponse",
    "IncomingRequest",
    "ResponseBuilder",
    "SpecValidationError",
    "load_contract",
    "load_contracts",
]
