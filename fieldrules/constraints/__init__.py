"""Constraint compiler and evaluator (rules as data, evaluation as code)."""

from .compiler import compile_schema, compile_type
from .options import OptionDiscovered, OptionKind
from .rules import MessageValidation, ValidationTable
from .transition import check_transition
from .validator import Validator, validate

__all__ = [
    "compile_schema",
    "compile_type",
    "OptionDiscovered",
    "OptionKind",
    "MessageValidation",
    "ValidationTable",
    "check_transition",
    "Validator",
    "validate",
]
