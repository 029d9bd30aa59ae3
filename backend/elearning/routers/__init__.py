from elearning.routers import evaluations, health, me, progress

__all__ = [
    "evaluations",
    "health",
    "me",
    "progress",
]
