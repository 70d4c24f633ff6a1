"""
共通ユーティリティ。

- config: 環境変数の読み取り
- logging_config: ログ設定
"""
