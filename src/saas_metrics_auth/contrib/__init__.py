# ruff: noqa: E402, F401
"""
Contrib modules for library integrations.

Available integrations (installed conditionally based on dependencies):
- dependency_injector: AuthContainer for DI
"""

__all__ = []

# Dependency Injector integration
try:
    from saas_metrics_auth.contrib.dependency_injector import AuthContainer

    HAS_DEPENDENCY_INJECTOR = True
    __all__.append("AuthContainer")
except ImportError:
    HAS_DEPENDENCY_INJECTOR = False
