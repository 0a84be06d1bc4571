"""Runtime composition."""

from personaforge.app.bootstrap import PersonaRuntime, build_runtime, resolve_identity_name

__all__ = ["PersonaRuntime", "build_runtime", "resolve_identity_name"]
