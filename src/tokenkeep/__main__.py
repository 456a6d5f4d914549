"""tokenkeepのCLIエントリーポイント"""

import logging
import sys
from typing import List

from tokenkeep.cli.main import TokenKeepCLI
from tokenkeep.cli.parser import ArgumentParser
from tokenkeep.config.settings import load_settings
from tokenkeep.errors import ConfigurationException
from tokenkeep.models import SignInMode
from tokenkeep.service import create_service


def main(args: List[str] | None = None) -> int:
    """
    tokenkeepのメインエントリーポイント

    Args:
        args: コマンドライン引数（Noneの場合はsys.argvを使用）

    Returns:
        終了コード（0: 成功、非0: エラー）
    """
    if args is None:
        args = sys.argv[1:]

    # 引数解析
    parser = ArgumentParser()
    parsed = parser.parse(args)

    # バージョン表示
    if parsed.options.get("version"):
        TokenKeepCLI().show_version()
        return 0

    # ヘルプ表示
    if parsed.options.get("help") or (not parsed.command and not args):
        TokenKeepCLI().show_help()
        return 0

    # バリデーション
    validation = parser.validate(parsed)
    if not validation.is_valid:
        for error in validation.errors:
            print(error, file=sys.stderr)
        return 1

    if parsed.command in ("help", "version"):
        return TokenKeepCLI().run(parsed.command, parsed.args, options=parsed.options)

    if parsed.options.get("verbose"):
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )

    # 設定読み込み
    try:
        settings = load_settings(parsed.config_path)
        overrides = {}
        if parsed.options.get("mode"):
            overrides["sign_in_mode"] = SignInMode(parsed.options["mode"])
        if parsed.scopes:
            overrides["scopes"] = list(parsed.scopes)
        if overrides:
            settings = settings.model_copy(update=overrides)
        service = create_service(settings)
    except ConfigurationException as exc:
        print(f"Configuration error: {exc.error.message}", file=sys.stderr)
        return 1

    # CLI実行
    cli = TokenKeepCLI(service)
    return cli.run(parsed.command, parsed.args, options=parsed.options)


if __name__ == "__main__":
    sys.exit(main())
