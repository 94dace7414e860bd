"""
Okiru Bot — Command keywords and reply templates.

A single immutable BotText value is built at startup and handed to the parser
and the response composer. Templates use ``{name}`` placeholders filled by
src.core.responses.compose.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

_HELP_TEXT = """\
起きるくんneo使い方ガイド

📱 基本コマンド
・「7時に起きる」「6:30に起きる」
→ 起床時間を設定

・「起きた」「起床」「おはよう」「朝」
→ 起床報告

・「ぐっすり」「明日パス」「明日休み」
→ 翌日の早起きをパス（週1回まで）

・「ぐっすり取消」
→ ぐっすり宣言を取り消し

・「記録確認」
→ 連続記録・最高記録を確認

・「設定確認」「設定」
→ 自分の起床時間を確認

・「使い方」「ヘルプ」「help」
→ コマンド一覧、ヘルプを表示

🔄 使い方の流れ
起床時間を設定（例：「7時に起きる」）
↓
翌日、起床報告（例：「おはよう！」）
↓
{aggregation_time}に結果集計→全員成功でチャレンジ達成。連続記録を目指そう！

😴 ぐっすり機能（特別パス）
使用条件：{deadline_hour}:00より前に宣言必須
使用回数：週に{weekly_limit}回まで
取り消し：「ぐっすり取消」で取消可能

📊 集計について
・毎日{aggregation_time}に自動集計
・全員成功→連続記録UP
・誰か失敗→連続記録リセット

⚠️ 注意点
・同じ日の起床報告は1回まで
・起床時間未設定は集計対象外"""

_WELCOME_TEXT = """\
朝の怠惰と戦うbot"起きるくん"です！

朝起きるのが苦手なあなたも、友達と一緒なら変われる。
「起きるくん」は、チームの力で早起き習慣を楽しく身につけるbotです！

⭐️主な特徴
みんなで挑戦: グループ全員で早起きに挑戦
記録更新: 連続達成日数を自動カウント、最高記録更新を目指そう
ぐっすり機能: 週に1回だけ特別に寝坊OKな日を作れる
自分のペース: 各自で起床時間を設定可能

⭐️使い方はカンタン
①「7時に起きる」と宣言
②朝「起きた」とコメント
③毎日自動集計、全員成功で記録UP！

⭐️詳しい使い方を知りたかったら【ヘルプ】と送ってね！"""


class BotText(BaseModel):
    """Keyword tables and message templates. Frozen after construction."""

    model_config = ConfigDict(frozen=True)

    # -- keywords -----------------------------------------------------------
    wakeup_keywords: tuple[str, ...] = ("起きた", "起床", "おはよう", "朝")
    good_sleep_keywords: tuple[str, ...] = ("ぐっすり", "明日パス", "明日休み")
    good_sleep_cancel_keywords: tuple[str, ...] = ("ぐっすり取消", "ぐっすり取り消し", "ぐっすりキャンセル")
    record_check_keywords: tuple[str, ...] = ("記録確認", "記録")
    settings_check_keywords: tuple[str, ...] = ("設定確認", "設定")
    # slash forms come from the Telegram command menu
    help_keywords: tuple[str, ...] = ("使い方", "ヘルプ", "help", "/help", "/start")

    # -- replies --------------------------------------------------------------
    wakeup_success: str = "{user_name}さん、起床報告を記録しました✔️"
    wakeup_already_reported: str = "今日はすでに起床報告済みです！"
    time_set_success: str = "OK！{hours}:{minutes}に設定しました⏰"
    time_format_error: str = "時間の形式が正しくありません。例: 7時に起きる または 7:00に起きる"
    no_time_set: str = "起床時間が設定されていません。\n7時に起きる で設定してください。"
    good_sleep_success: str = (
        "{user_name}さん、明日の早起きはパスします。ゆっくりぐっすり眠ってください😴\n"
        "（週に1回のぐっすり機能を使用しました）"
    )
    good_sleep_time_limit: str = "ぐっすり機能は{deadline_hour}時までに宣言する必要があります。"
    good_sleep_weekly_limit: str = "ぐっすり機能は週に{weekly_limit}回しか使用できません。"
    good_sleep_cancel_success: str = (
        "{user_name}さん、ぐっすり機能の使用を取り消しました。明日の早起きは通常通り必要です。"
    )
    good_sleep_not_used: str = "ぐっすり機能を使用していないため、取り消しできません。"
    group_only: str = "このコマンドはグループチャットでのみ使用できます。"
    record_status: str = "現在の連続記録: {streak}日\n最高連続記録: {best}日"
    user_settings: str = "{user_name}さんの起床時間: {hours}:{minutes}"
    unknown_command: str = "コマンドが認識できませんでした。\n「使い方」でヘルプを表示します。"

    # -- broadcasts ---------------------------------------------------------
    all_success: str = "全員が時間通りに起きました！連続記録は{streak}日目です🎉"
    someone_failure: str = (
        "⚠️ {failed_users}さんが寝坊しました…連続記録はリセットされます💀\n（{old_streak}日でした）"
    )
    failed_users_separator: str = "、"

    help_text: str = _HELP_TEXT
    welcome_text: str = _WELCOME_TEXT

    def template(self, key: str) -> str:
        """Look up a reply template by key (error codes map 1:1 to keys)."""
        value = getattr(self, key, None)
        if not isinstance(value, str):
            raise KeyError(f"No message template named {key!r}")
        return value


DEFAULT_BOT_TEXT = BotText()
