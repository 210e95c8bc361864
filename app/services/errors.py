"""Error kinds raised while processing a webhook event"""


class RecordNotFound(LookupError):
    """A project, project identifier or reviewer could not be resolved (HTTP 404)."""


class PreconditionFailed(TypeError):
    """The payload does not have the shape the event type requires (HTTP 412)."""


class SkipEvent(Exception):
    """Expected steady-state outcome: the event is logged and ignored."""
