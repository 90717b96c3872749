"""Policy — hub parameters loaded from the project configuration."""

from circles.policy.resolver import PolicyResolver

__all__ = ["PolicyResolver"]
