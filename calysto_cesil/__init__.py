from ._version import __version__
from .cesil import CESIL, Instruction, is_identifier, is_integer
