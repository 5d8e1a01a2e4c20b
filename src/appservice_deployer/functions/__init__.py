"""
Function app packaging: binding model, staging, zip archive and Core Tools.
"""

from .bindings import Binding, BindingKind, FunctionConfiguration, FunctionEntryPoint

__all__ = [
    "Binding",
    "BindingKind",
    "FunctionConfiguration",
    "FunctionEntryPoint",
]
