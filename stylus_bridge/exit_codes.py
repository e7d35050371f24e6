"""Process exit codes used by the ``stylus`` command.

Each ``StylusError`` subclass names one of these, so shell scripts can
tell a broken stylesheet (4) from a missing Node.js (3).
"""


class ExitCode:
    """Exit codes of the stylus CLI.

    0 and 1 keep their usual meaning and 130 is the shell's code for
    SIGINT. The codes in between identify the failing layer.
    """

    SUCCESS = 0
    GENERAL_ERROR = 1

    CONFIGURATION_ERROR = 2
    RUNTIME_UNAVAILABLE = 3
    COMPILATION_ERROR = 4
    BRIDGE_ERROR = 5
    INVALID_ARGUMENT = 7
    NOT_FOUND = 8

    CANCELLED = 130

    @classmethod
    def get_name(cls, code: int) -> str:
        """Name of the constant holding ``code``, e.g. ``"NOT_FOUND"``."""
        for name, value in vars(cls).items():
            if name.isupper() and value == code:
                return name
        return f"UNKNOWN({code})"
