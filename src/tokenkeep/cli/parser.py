"""
コマンドライン引数の解析

コマンドとオプションの解析、およびバリデーション機能を提供
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from tokenkeep.models import SignInMode


# 有効なコマンド一覧
VALID_COMMANDS = {"login", "silent-login", "logout", "whoami", "help", "version"}
VALID_MODES = {mode.value for mode in SignInMode}


@dataclass
class ParsedCommand:
    """解析済みコマンド

    Attributes:
        command: コマンド名
        args: コマンド引数
        options: オプション辞書
        config_path: 設定ファイルのパス
        scopes: 要求スコープ（未指定なら設定値を使う）
    """

    command: str
    args: List[str]
    options: Dict[str, Any]
    config_path: Optional[Path] = None
    scopes: List[str] = field(default_factory=list)


@dataclass
class ValidationResult:
    """バリデーション結果

    Attributes:
        is_valid: 有効かどうか
        errors: エラーメッセージのリスト
    """

    is_valid: bool
    errors: List[str]


class ArgumentParser:
    """コマンドライン引数の解析"""

    def parse(self, argv: List[str]) -> ParsedCommand:
        """引数を解析してParsedCommandを返す

        Args:
            argv: コマンドライン引数リスト

        Returns:
            ParsedCommand: 解析結果
        """
        options: Dict[str, Any] = {}
        args: List[str] = []
        command: str = ""
        config_path: Optional[Path] = None
        scopes: List[str] = []

        i = 0
        while i < len(argv):
            arg = argv[i]

            # ヘルプオプション
            if arg in ("-h", "--help"):
                options["help"] = True
                i += 1
                continue

            # バージョンオプション
            if arg in ("-v", "--version"):
                options["version"] = True
                i += 1
                continue

            if arg == "--verbose":
                options["verbose"] = True
                i += 1
                continue

            # 設定ファイルオプション
            if arg == "--config":
                if i + 1 < len(argv):
                    config_path = Path(argv[i + 1])
                    i += 2
                    continue
                options["missing_value"] = arg
                i += 1
                continue

            # サインインモードオプション
            if arg == "--mode":
                if i + 1 < len(argv) and not argv[i + 1].startswith("-"):
                    options["mode"] = argv[i + 1].lower().replace("-", "_")
                    i += 2
                    continue
                options["missing_value"] = arg
                i += 1
                continue

            # スコープオプション（複数指定可）
            if arg == "--scope":
                if i + 1 < len(argv) and not argv[i + 1].startswith("-"):
                    scopes.append(argv[i + 1])
                    i += 2
                    continue
                options["missing_value"] = arg
                i += 1
                continue

            # コマンドまたは引数
            if not command and not arg.startswith("-"):
                command = arg
            elif not arg.startswith("-"):
                args.append(arg)

            i += 1

        return ParsedCommand(
            command=command,
            args=args,
            options=options,
            config_path=config_path,
            scopes=scopes,
        )

    def validate(self, parsed: ParsedCommand) -> ValidationResult:
        """解析結果の妥当性を検証

        Args:
            parsed: 解析済みコマンド

        Returns:
            ValidationResult: バリデーション結果
        """
        errors: List[str] = []

        # ヘルプ・バージョンオプションは常に有効
        if parsed.options.get("help") or parsed.options.get("version"):
            return ValidationResult(is_valid=True, errors=[])

        if not parsed.command:
            errors.append("Command is required. Use --help for usage information.")
            return ValidationResult(is_valid=False, errors=errors)

        if parsed.command not in VALID_COMMANDS:
            errors.append(
                f"Unknown command: '{parsed.command}'. "
                f"Available commands: {', '.join(sorted(VALID_COMMANDS))}"
            )

        missing = parsed.options.get("missing_value")
        if missing:
            errors.append(f"Option '{missing}' requires a value.")

        mode = parsed.options.get("mode")
        if mode is not None and mode not in VALID_MODES:
            errors.append(
                f"Unknown sign-in mode: '{mode}'. "
                f"Available modes: {', '.join(sorted(VALID_MODES))}"
            )

        return ValidationResult(is_valid=not errors, errors=errors)
