"""
actionhost - A single-action runtime for serverless function containers.

The runtime accepts one init request carrying an action's code archive,
then any number of run requests executed against the loaded action:

- **Streaming init parsing**: inline base64 archives are decoded straight
  to a temporary file, never held in memory
- **Archive loading**: the entry point is resolved inside the archive and
  registered with the action engine
- **Sandboxed invocation**: module isolation and a privilege policy are
  swapped in for each run and always restored

Action authors subclass ``actionhost.api.ActionRouteBuilder``:

    >>> from actionhost.api import ActionRouteBuilder
    >>>
    >>> class Echo(ActionRouteBuilder):
    ...     def configure(self):
    ...         self.from_().process(lambda body, headers: body)

Serve with ``python -m actionhost``.
"""

__version__ = "0.1.0"
__author__ = "Kuzushi Labs"
__license__ = "Apache-2.0"

__all__ = [
    "__version__",
    "__license__",
]
