"""Out-of-band metadata protocol between Profesor Mentis and the system."""
from mentor.protocol.directives import (
    DecodedReply,
    Directive,
    DirectiveStatus,
    clamp_points,
    decode_reply,
    strip_directives,
)

__all__ = [
    "DecodedReply",
    "Directive",
    "DirectiveStatus",
    "clamp_points",
    "decode_reply",
    "strip_directives",
]
