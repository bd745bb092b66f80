"""
Core components for the Screenshot Analyzer service.

Submodules are imported directly; the integrations depend on
``core.exceptions`` and would form an import cycle through this package.
"""
