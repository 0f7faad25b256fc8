"""
Login-shell wrapping for process servers.

Tool servers are usually launched through package runners (``npx``, ``uvx``)
that live on a PATH assembled by the user's shell profile. Wrapping the
command in a login shell loads that profile before the server starts.
"""

import platform
import re
from dataclasses import dataclass

# Characters that force an argument to be quoted
_NEEDS_QUOTING = re.compile(r"[\s\"'$`\\|&;<>(){}*?!#~]")
# Characters escaped inside a double-quoted POSIX string
_POSIX_ESCAPE = re.compile(r'(["\\$`])')


@dataclass(frozen=True)
class ShellWrapper:
    """A shell executable plus the flags preceding the command string."""

    name: str
    args: tuple[str, ...]

    def wrap(self, command_line: str) -> list[str]:
        """Build the argv that runs ``command_line`` through this shell."""
        return [self.name, *self.args, command_line]

    @property
    def is_posix(self) -> bool:
        return self.name != "cmd"


def get_login_shell_wrapper(system: str | None = None, override: str | None = None) -> ShellWrapper:
    """
    Resolve the login shell for the host OS.

    Args:
        system: ``platform.system()`` value, detected when omitted.
        override: POSIX shell to use instead of the OS default.
    """
    system = system or platform.system()
    if system == "Windows":
        return ShellWrapper("cmd", ("/C",))
    if override:
        return ShellWrapper(override, ("-l", "-c"))
    if system == "Darwin":
        return ShellWrapper("zsh", ("-l", "-c"))
    return ShellWrapper("bash", ("-l", "-c"))


def quote_argument(arg: str, posix: bool = True) -> str:
    """Quote one argument if it contains whitespace or shell metacharacters."""
    if arg == "":
        return '""'
    if not _NEEDS_QUOTING.search(arg):
        return arg
    if posix:
        return '"' + _POSIX_ESCAPE.sub(r"\\\1", arg) + '"'
    return '"' + arg.replace('"', '""') + '"'


def build_command_string(command: str, args: list[str] | tuple[str, ...] = (), posix: bool = True) -> str:
    """Join a command and its arguments into one shell command string."""
    return " ".join([command, *(quote_argument(arg, posix) for arg in args)])
