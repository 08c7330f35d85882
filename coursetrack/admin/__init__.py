"""Administrative overrides of learner progress."""

from .service import AdminOverrideService


__all__ = ["AdminOverrideService"]
