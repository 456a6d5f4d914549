"""
TokenKeepCLIメインモジュール

サインイン系コマンドのハンドラーとAuthenticationServiceの統合
"""

from __future__ import annotations

import asyncio
import sys
from typing import Any, Dict, List, Optional

from tokenkeep import __version__
from tokenkeep.cli.parser import VALID_COMMANDS
from tokenkeep.errors import TokenKeepException
from tokenkeep.service import AuthenticationService


class TokenKeepCLI:
    """tokenkeep コマンドの実行を担う"""

    def __init__(self, service: Optional[AuthenticationService] = None):
        """初期化

        Args:
            service: サインイン処理を委譲するサービス（help/versionのみなら不要）
        """
        self.service = service

    def run(self, command: str, args: List[str], options: Dict[str, Any] | None = None) -> int:
        """コマンドを実行し、Exit Codeを返す

        Args:
            command: コマンド名
            args: コマンド引数
            options: 解析済みオプション辞書

        Returns:
            int: 終了コード（0: 成功、非0: エラー）
        """
        if options is None:
            options = {}

        # ヘルプコマンド
        if command == "help":
            self.show_help()
            return 0

        # バージョンコマンド
        if command == "version":
            self.show_version()
            return 0

        # 有効なコマンドかチェック
        if command not in VALID_COMMANDS:
            print(
                f"Unknown command: '{command}'. "
                f"Available commands: {', '.join(sorted(VALID_COMMANDS))}",
                file=sys.stderr,
            )
            return 1

        handlers = {
            "login": self._run_login,
            "silent-login": self._run_silent_login,
            "logout": self._run_logout,
            "whoami": self._run_whoami,
        }
        try:
            return handlers[command]()
        except TokenKeepException as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    def _run_login(self) -> int:
        """loginコマンドの実行"""
        asyncio.run(self.service.login())
        if self.service.identity is None:
            print("サインインはキャンセルされました。", file=sys.stderr)
            return 1
        self._print_identity()
        return 0

    def _run_silent_login(self) -> int:
        """silent-loginコマンドの実行

        対話型サインインが必要な場合は終了コード1を返す。
        """
        if not asyncio.run(self.service.silent_login()):
            print("サイレントサインインできませんでした。loginを実行してください。", file=sys.stderr)
            return 1
        self._print_identity()
        return 0

    def _run_logout(self) -> int:
        asyncio.run(self.service.logout())
        print("サインアウトしました。")
        return 0

    def _run_whoami(self) -> int:
        """キャッシュから現在のアカウントを表示する（対話型サインインは行わない）"""
        if not asyncio.run(self.service.silent_login()):
            print("サインインしていません。", file=sys.stderr)
            return 1
        self._print_identity()
        return 0

    def _print_identity(self) -> None:
        print(f"user_name: {self.service.user_name or '-'}")
        print(f"user_email: {self.service.user_email or '-'}")
        print(f"user_account_id: {self.service.user_account_id or '-'}")

    def show_help(self) -> None:
        """ヘルプメッセージを表示"""
        print(
            f"""tokenkeep v{__version__} - 公開クライアント向けのサインイン/トークンキャッシュ管理

Usage:
    tokenkeep <command> [options]

Commands:
    login            サイレントサインインを試み、必要なら対話型サインインを行う
    silent-login     キャッシュ済みの資格情報のみでサインインする
    logout           キャッシュ済みのすべてのアカウントを削除する
    whoami           現在のアカウントを表示する
    help             このヘルプメッセージを表示
    version          バージョン情報を表示

Options:
    -h, --help           ヘルプメッセージを表示
    -v, --version        バージョン情報を表示
    --config <path>      設定ファイルのパス
    --mode <mode>        アカウント選択方針（system_account, known_account_list, any_cached_account）
    --scope <scope>      要求スコープ（複数指定可）
    --verbose            デバッグログを出力
"""
        )

    def show_version(self) -> None:
        """バージョン情報を表示"""
        print(f"tokenkeep {__version__}")
