"""
TokenCacheのユニットテスト
"""

import json
import unittest

from fakes import make_account, make_record

from tokenkeep.cache.token_cache import TokenCache
from tokenkeep.errors import CacheException
from tokenkeep.models import normalize_scopes


class TestTokenCache(unittest.TestCase):
    """TokenCacheのテスト"""

    def setUp(self):
        self.cache = TokenCache()
        self.account = make_account(1)

    def test_new_cache_is_unchanged(self):
        self.assertEqual(self.cache.accounts(), [])
        self.assertFalse(self.cache.has_state_changed)

    def test_accounts_keep_insertion_order(self):
        """アカウントは追加順に列挙される"""
        second = make_account(2)
        self.cache.upsert(make_record(account=second))
        self.cache.upsert(make_record(account=self.account))
        self.assertEqual(self.cache.accounts(), [second, self.account])

    def test_upsert_replaces_same_key(self):
        """同じキーのレコードは置き換えられる"""
        self.cache.upsert(make_record(account=self.account, access_token="old"))
        self.cache.upsert(make_record(account=self.account, access_token="new"))
        records = self.cache.records_for(self.account)
        self.assertEqual(len(records), 1)
        self.assertEqual(records[0].access_token, "new")
        self.assertTrue(self.cache.has_state_changed)

    def test_upsert_supersedes_other_key(self):
        """置き換え元のレコードはキーが異なっても削除される"""
        old = make_record(account=self.account, scopes=("User.Read",))
        new = make_record(account=self.account, scopes=("User.Read", "Mail.Read"))
        self.cache.upsert(old)
        self.cache.upsert(new, supersedes=old)
        self.assertEqual(self.cache.records_for(self.account), [new])

    def test_find_exact_match(self):
        record = make_record(account=self.account)
        self.cache.upsert(record)
        self.assertEqual(self.cache.find(self.account, normalize_scopes(["user.read"])), record)

    def test_find_covering_record_prefers_latest_expiry(self):
        """包含するレコードのうち期限が最も遅いものを返す"""
        short = make_record(account=self.account, scopes=("User.Read", "Mail.Read"), expires_in=60)
        long = make_record(account=self.account, scopes=("User.Read", "Files.Read"), expires_in=7200)
        self.cache.upsert(short)
        self.cache.upsert(long)
        self.assertEqual(self.cache.find(self.account, normalize_scopes(["User.Read"])), long)

    def test_find_returns_none_when_not_covered(self):
        self.cache.upsert(make_record(account=self.account))
        self.assertIsNone(self.cache.find(self.account, normalize_scopes(["Mail.Send"])))
        self.assertIsNone(self.cache.find(make_account(9), normalize_scopes(["User.Read"])))

    def test_find_refresh_token_falls_back_to_any_record(self):
        """要求スコープのレコードがなくても同じアカウントのリフレッシュトークンを使う"""
        self.cache.upsert(make_record(account=self.account, refresh_token="rt-1"))
        self.assertEqual(
            self.cache.find_refresh_token(self.account, normalize_scopes(["Mail.Send"])), "rt-1"
        )
        self.assertIsNone(self.cache.find_refresh_token(make_account(2), normalize_scopes(["Mail.Send"])))

    def test_remove_account(self):
        """アカウントと関連レコードが削除される"""
        self.cache.upsert(make_record(account=self.account))
        self.cache.upsert(make_record(account=self.account, scopes=("Mail.Read",)))
        self.cache.has_state_changed = False

        self.assertTrue(self.cache.remove_account(self.account))
        self.assertEqual(self.cache.accounts(), [])
        self.assertEqual(self.cache.records_for(self.account), [])
        self.assertTrue(self.cache.has_state_changed)

    def test_remove_unknown_account(self):
        """存在しないアカウントの削除は変更扱いにならない"""
        self.assertFalse(self.cache.remove_account(self.account))
        self.assertFalse(self.cache.has_state_changed)


class TestTokenCacheSerialization(unittest.TestCase):
    """シリアライズのテスト"""

    def test_serialize_and_restore(self):
        """保存した内容を復元できる"""
        cache = TokenCache()
        record = make_record()
        cache.upsert(record)

        restored = TokenCache.deserialize(cache.serialize())

        self.assertEqual(restored.accounts(), [record.account])
        self.assertEqual(restored.records_for(record.account), [record])
        self.assertFalse(restored.has_state_changed)

    def test_serialized_format(self):
        cache = TokenCache()
        cache.upsert(make_record())
        payload = json.loads(cache.serialize())
        self.assertEqual(payload["version"], 1)
        self.assertEqual(len(payload["accounts"]), 1)
        self.assertEqual(payload["records"][0]["scopes"], ["user.read"])

    def test_empty_blob(self):
        """空のblobは空のキャッシュになる"""
        self.assertEqual(TokenCache.deserialize(None).accounts(), [])
        self.assertEqual(TokenCache.deserialize("").accounts(), [])

    def test_invalid_json_raises(self):
        with self.assertRaises(CacheException) as ctx:
            TokenCache.deserialize("{not json")
        self.assertEqual(ctx.exception.error.code, "CACHE_001")

    def test_non_object_raises(self):
        with self.assertRaises(CacheException):
            TokenCache.deserialize("[1, 2, 3]")

    def test_broken_record_raises(self):
        """必須項目が欠けたレコードは破損として扱う"""
        blob = json.dumps({"version": 1, "accounts": [], "records": [{"expires_at": 1}]})
        with self.assertRaises(CacheException) as ctx:
            TokenCache.deserialize(blob)
        self.assertEqual(ctx.exception.error.code, "CACHE_001")

    def test_non_object_items_raise(self):
        """オブジェクト以外の要素や型の合わない項目は破損として扱う"""
        payloads = [
            {"version": 1, "accounts": [], "records": ["garbage"]},
            {"version": 1, "accounts": [42], "records": []},
            {"version": 1, "accounts": [], "records": [{"access_token": "a", "account": "oid-1.contoso"}]},
            {"version": 1, "accounts": [], "records": [{"access_token": "a", "account": {"home_account_id": "x"}, "scopes": [1]}]},
            {"version": 1, "accounts": 7, "records": []},
        ]
        for payload in payloads:
            with self.subTest(payload=payload):
                with self.assertRaises(CacheException) as ctx:
                    TokenCache.deserialize(json.dumps(payload))
                self.assertEqual(ctx.exception.error.code, "CACHE_001")


if __name__ == "__main__":
    unittest.main()
