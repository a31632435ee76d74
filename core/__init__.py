"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Injected time abstraction (millisecond epoch)
- config: Dataclass configuration loaded from env / YAML
- exceptions: Custom exception hierarchy
- constants: System-wide constants
- logging_config: Entry-point logging setup
"""
