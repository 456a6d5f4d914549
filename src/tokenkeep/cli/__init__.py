"""CLIレイヤー"""

from tokenkeep.cli.main import TokenKeepCLI
from tokenkeep.cli.parser import ArgumentParser, ParsedCommand, ValidationResult

__all__ = ["ArgumentParser", "ParsedCommand", "TokenKeepCLI", "ValidationResult"]
