"""Poll command encoding for probe boxes."""

from ..core.exceptions import ConfigurationError, ProtocolError

MIN_BOX_ID = 1
MAX_BOX_ID = 999

COMMAND_PREFIX = "*"
READ_ALL_COMMAND = "VALL#"
COMMAND_TERMINATOR = "\r"


def encode_poll_command(box: int) -> bytes:
    """
    Build the command that reads all four channels of a box.

    Args:
        box: Box identifier (1..999)

    Returns:
        ASCII command, e.g. b"*007VALL#\\r"

    Raises:
        ConfigurationError: If the box id cannot be addressed
    """
    if isinstance(box, bool) or not isinstance(box, int) or not MIN_BOX_ID <= box <= MAX_BOX_ID:
        raise ConfigurationError(f"Box id {box!r} is outside {MIN_BOX_ID}..{MAX_BOX_ID}")
    return f"{COMMAND_PREFIX}{box:03d}{READ_ALL_COMMAND}{COMMAND_TERMINATOR}".encode("ascii")


def decode_poll_command(data: bytes) -> int:
    """
    Extract the box id from a poll command.

    Used by box simulators to answer commands.

    Raises:
        ProtocolError: If the data is not a poll command
    """
    text = data.decode("ascii", errors="replace").strip()
    if not (text.startswith(COMMAND_PREFIX) and text.endswith(READ_ALL_COMMAND)):
        raise ProtocolError(f"Not a poll command: {text!r}")
    box_text = text[len(COMMAND_PREFIX):-len(READ_ALL_COMMAND)]
    if len(box_text) != 3 or not box_text.isdigit():
        raise ProtocolError(f"Malformed box id in command: {text!r}")
    return int(box_text)
