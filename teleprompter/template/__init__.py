"""Template variable engine for teleprompter."""
from .compiler import CompiledTemplate, compile_template, parse_template
from .extractor import VariableDeclaration, VariableKind, extract_variables
from .form import build_values, coerce_input, parse_array_input, parse_assignments
from .lexer import Token, TokenKind, tokenize

__all__ = [
    'CompiledTemplate', 'compile_template', 'parse_template',
    'VariableDeclaration', 'VariableKind', 'extract_variables',
    'build_values', 'coerce_input', 'parse_array_input', 'parse_assignments',
    'Token', 'TokenKind', 'tokenize',
]
