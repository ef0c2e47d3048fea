"""定时任务配置迁移测试"""
import copy
import uuid

from fluxdigest.domain.digest.models import DigestScope
from fluxdigest.domain.schedules import load_schedules, migrate_schedules
from fluxdigest.domain.schedules.migration import set_task_enabled
from fluxdigest.domain.schedules.models import AIConfig, PushConfig, ScheduledTask


class TestMigrateSchedules:
    """旧格式迁移测试类"""

    def test_legacy_single_schedule_is_wrapped(self):
        prefs = {"digest_schedule": {"enabled": True, "time": "08:00", "scope": "all", "hours": 12}}

        assert migrate_schedules(prefs) is True
        assert "digest_schedule" not in prefs
        assert prefs["digest_schedules"] == [
            {"id": "default", "enabled": True, "time": "08:00", "scope": "all", "hours": 12}
        ]

    def test_empty_legacy_schedule_is_wrapped(self):
        prefs = {"digest_schedule": {}}

        assert migrate_schedules(prefs) is True
        assert prefs == {"digest_schedules": [{"id": "default"}]}
        # 没有 time 的任务永远不会到期
        [task] = load_schedules(prefs)
        assert task.time == ""
        assert task.enabled is False

    def test_migration_is_idempotent(self):
        prefs = {"digest_schedule": {"enabled": True, "time": "08:00", "scope": "feed", "feedId": 5}}
        migrate_schedules(prefs)
        snapshot = copy.deepcopy(prefs)

        assert migrate_schedules(prefs) is False
        assert prefs == snapshot

    def test_scope_aliases_are_copied_to_scope_id(self):
        prefs = {
            "digest_schedules": [
                {"id": "a", "scope": "feed", "feedId": 5, "time": "08:00"},
                {"id": "b", "scope": "group", "groupId": "7", "time": "09:00"},
                {"id": "c", "scope": "feed", "feedId": 1, "scopeId": 2, "time": "10:00"},
            ]
        }

        assert migrate_schedules(prefs) is True
        tasks = prefs["digest_schedules"]
        assert tasks[0]["scopeId"] == 5 and tasks[0]["feedId"] == 5
        assert tasks[1]["scopeId"] == "7"
        # 已有 scopeId 时不覆盖
        assert tasks[2]["scopeId"] == 2

    def test_missing_ids_get_uuids(self):
        prefs = {"digest_schedules": [{"time": "08:00"}, {"id": "", "time": "09:00"}]}

        assert migrate_schedules(prefs) is True
        ids = [task["id"] for task in prefs["digest_schedules"]]
        for task_id in ids:
            uuid.UUID(task_id)
        assert ids[0] != ids[1]

    def test_legacy_key_dropped_when_both_present(self):
        existing = [{"id": "x", "time": "07:00", "scope": "all"}]
        prefs = {
            "digest_schedule": {"time": "08:00"},
            "digest_schedules": copy.deepcopy(existing),
        }

        assert migrate_schedules(prefs) is True
        assert "digest_schedule" not in prefs
        assert prefs["digest_schedules"] == existing

    def test_nothing_to_migrate(self):
        prefs = {"ai_config": {"apiKey": "k"}}
        assert migrate_schedules(prefs) is False
        assert prefs == {"ai_config": {"apiKey": "k"}}


class TestLoadSchedules:
    """任务读取测试类"""

    def test_parses_canonical_fields(self):
        prefs = {
            "digest_schedules": [
                {
                    "id": "t1",
                    "scope": "group",
                    "scopeId": "3",
                    "time": " 08:00 ",
                    "enabled": True,
                    "hours": "6",
                    "unreadOnly": False,
                    "pushEnabled": True,
                }
            ]
        }
        [task] = load_schedules(prefs)

        assert task == ScheduledTask(
            id="t1",
            scope=DigestScope.group(3),
            time="08:00",
            enabled=True,
            hours=6,
            unread_only=False,
            push_enabled=True,
        )

    def test_defaults(self):
        [task] = load_schedules({"digest_schedules": [{"id": "t1"}]})
        assert task.scope == DigestScope.all()
        assert task.enabled is False
        assert task.hours == 24
        assert task.unread_only is True
        assert task.push_enabled is False

    def test_invalid_tasks_are_skipped(self):
        prefs = {
            "digest_schedules": [
                {"id": "bad-scope", "scope": "tag"},
                {"id": "missing-id", "scope": "feed"},
                {"id": "bad-id", "scope": "group", "scopeId": "abc"},
                "not-a-dict",
                {"id": "ok", "scope": "feed", "scopeId": 4},
            ]
        }
        assert [t.id for t in load_schedules(prefs)] == ["ok"]

    def test_not_a_list(self):
        assert load_schedules({"digest_schedules": {"id": "x"}}) == []
        assert load_schedules({}) == []

    def test_to_dict_uses_canonical_keys(self):
        task = ScheduledTask(id="t", scope=DigestScope.feed(9), time="08:00", enabled=True)
        assert task.to_dict() == {
            "id": "t",
            "scope": "feed",
            "scopeId": 9,
            "time": "08:00",
            "enabled": True,
            "hours": 24,
            "unreadOnly": True,
            "pushEnabled": False,
        }

    def test_set_task_enabled(self):
        prefs = {"digest_schedules": [{"id": "a", "enabled": True}]}
        assert set_task_enabled(prefs, "a", False) is True
        assert prefs["digest_schedules"][0]["enabled"] is False
        assert set_task_enabled(prefs, "missing", False) is False


class TestConfigFromPrefs:
    """AI 与推送配置读取"""

    def test_ai_config(self):
        config = AIConfig.from_prefs(
            {"ai_config": {"apiUrl": "https://x", "apiKey": "k", "temperature": "0.2", "summarizeLang": "English"}}
        )
        assert config.is_configured
        assert config.model == "gpt-4.1-mini"
        assert config.temperature == 0.2
        assert config.target_lang == "English"

    def test_ai_config_missing(self):
        assert AIConfig.from_prefs({}).is_configured is False

    def test_push_config(self):
        config = PushConfig.from_prefs({"digest_push_config": {"url": " https://hook ", "method": "get"}})
        assert config.is_configured
        assert config.url == "https://hook"
        assert config.method == "GET"
        assert PushConfig.from_prefs({}).is_configured is False
