"""libssbp: decode compiled .ssbp projects into SpriteStudio documents."""

from .errors import SsbpError
from .project import ConversionResult, ProjectConverter, convert_bytes, convert_file
from .reader import parse_ssbp, read_ssbp
from .summary import summarize_ssbp
from .texture import PillowTextureResolver
from .writer import DirectorySink, MemorySink

__all__ = [
    "ConversionResult",
    "DirectorySink",
    "MemorySink",
    "PillowTextureResolver",
    "ProjectConverter",
    "SsbpError",
    "convert_bytes",
    "convert_file",
    "parse_ssbp",
    "read_ssbp",
    "summarize_ssbp",
]
