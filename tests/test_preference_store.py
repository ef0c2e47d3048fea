"""用户偏好存储测试"""
import pytest

from fluxdigest.services.preference_store import PreferenceStore, is_valid_user_id


class TestPreferenceStore:
    """PreferenceStore 测试类"""

    def test_save_and_get(self, preference_store):
        assert preference_store.get("u1") == {}
        assert preference_store.save("u1", {"digest_timezone": "Asia/Shanghai", "名称": "值"}) is True
        assert preference_store.get("u1") == {"digest_timezone": "Asia/Shanghai", "名称": "值"}
        assert preference_store.get_all_user_ids() == ["u1"]

    def test_corrupt_file_reads_as_empty(self, preference_store):
        preference_store.save("u1", {})
        (preference_store.base_dir / "u1.json").write_text("[1, 2", encoding="utf-8")
        assert preference_store.get("u1") == {}

    @pytest.mark.parametrize("user_id", ["../../victim", "..", "a b", "u1/x", ""])
    def test_unsafe_user_id_is_rejected(self, tmp_path, preference_store, user_id):
        with pytest.raises(ValueError):
            preference_store.save(user_id, {"digest_schedules": []})
        with pytest.raises(ValueError):
            preference_store.get(user_id)
        assert not list(tmp_path.rglob("*.json"))

    def test_unsafe_file_names_are_not_listed(self, preference_store):
        preference_store.save("ok-user_1", {})
        (preference_store.base_dir / "bad name.json").write_text("{}", encoding="utf-8")
        assert preference_store.get_all_user_ids() == ["ok-user_1"]

    @pytest.mark.parametrize("username", ["admin", "张三", "a+b/c?", "x" * 40])
    def test_user_id_for_is_file_safe(self, username):
        user_id = PreferenceStore.user_id_for(username)
        assert is_valid_user_id(user_id)
        assert "=" not in user_id
        assert PreferenceStore.user_id_for(username) == user_id

    def test_user_id_for_known_value(self):
        assert PreferenceStore.user_id_for("admin") == "YWRtaW4"
