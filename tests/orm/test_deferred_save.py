"""
测试延迟关系在 SQLAlchemy 模型上的行为：直到保存父记录才写入链接
"""
import pytest
from sqlalchemy.exc import IntegrityError

from deferring.engine.load_state import LoadState
from deferring.errors import DetachedParentError, ElementValidationError
from deferring.orm import DeferredRelation, pending_proxies, reload_deferred, save
from deferring.proxy import DeferredCollection
from models import Issue, Person, Team


# ============== 延迟写入 ==============

def test_descriptor_returns_one_proxy_per_instance(bob, db_session):
    """测试每个实例每个关系只有一个代理"""
    alice = db_session.query(Person).filter(Person.name == "Alice").one()
    assert isinstance(bob.teams, DeferredCollection)
    assert bob.teams is bob.teams
    assert bob.teams is not alice.teams
    assert bob.teams is not bob.issues
    assert isinstance(Person.teams, DeferredRelation)


def test_link_is_written_on_save(bob, dba, support, linked_team_count):
    """测试直到保存父记录才创建链接"""
    bob.teams.append(dba, support)
    assert linked_team_count(bob.id) == 0

    assert save(bob) is True
    assert linked_team_count(bob.id) == 2


def test_unlink_is_written_on_save(bob, dba, support, operations, linked_team_count):
    """测试直到保存父记录才删除链接"""
    bob.team_ids = [dba.id, support.id, operations.id]
    save(bob)

    bob.teams.remove(dba, operations)
    assert linked_team_count(bob.id) == 3

    save(bob)
    assert linked_team_count(bob.id) == 1
    assert bob.teams == [support]


def test_assignment_replaces_unsaved_assignment(bob, dba, support, operations, linked_team_count):
    """测试重复赋值时以最后一次为准，未保存的赋值不会写入"""
    bob.teams = [dba]
    bob.teams = [support, operations]

    assert bob.teams.links() == [support, operations]
    save(bob)
    assert linked_team_count(bob.id) == 2


def test_none_is_dropped(bob):
    """测试 None 被丢弃"""
    bob.teams.append(None)
    assert bob.teams.is_empty()

    bob.teams = [None]
    assert bob.teams.is_empty()

    bob.teams.remove(None)
    bob.teams.destroy(None)
    assert bob.teams.get() == []


def test_saving_untouched_parent_issues_no_queries(bob, queries):
    """测试保存未触碰关系的父记录不发任何查询"""
    queries.clear()
    assert save(bob) is False
    assert queries == []


def test_pending_changes_check_issues_no_queries(bob, queries):
    """测试检查未加载关系的变更不发查询"""
    queries.clear()
    assert bob.teams.has_pending_changes() is False
    assert bob.teams.links() == []
    assert bob.teams.unlinks() == []
    assert queries == []
    assert bob.teams.load_state == LoadState.GHOST


def test_pending_proxies_only_lists_touched_relations(bob, dba):
    """测试只有被修改的关系进入保存流程"""
    bob.teams.append(dba)
    bob.issues.size()
    assert pending_proxies(bob) == [bob.teams]


def test_baseline_is_refreshed_after_save(bob, dba, queries):
    """测试保存成功后基线立即刷新且不重新获取"""
    bob.teams.append(dba)
    save(bob)
    queries.clear()

    assert bob.teams.links() == []
    assert bob.teams.unlinks() == []
    assert bob.teams.loaded
    assert queries == []


# ============== ids ==============

def test_team_ids_include_unsaved_assignment(bob, dba, operations, linked_team_count):
    """测试 ids 返回已保存与未保存的关联"""
    bob.teams = [dba, operations]
    assert bob.team_ids == [dba.id, operations.id]

    save(bob)
    assert linked_team_count(bob.id) == 2
    assert bob.team_ids == [dba.id, operations.id]


def test_team_ids_assignment_drops_blank_values(bob, dba, linked_team_count):
    """测试 ids 赋值丢弃空值"""
    bob.team_ids = [dba.id, ""]
    assert len(bob.teams.get()) == 1

    save(bob)
    assert linked_team_count(bob.id) == 1


def test_team_ids_assignment_with_string(bob, dba, support, operations, linked_team_count):
    """测试用逗号分隔字符串赋值"""
    bob.team_ids = f"{dba.id},{operations.id}"
    save(bob)
    assert linked_team_count(bob.id) == 2

    bob.team_ids = str(support.id)
    save(bob)
    assert linked_team_count(bob.id) == 1
    assert bob.teams.first() == support


@pytest.mark.parametrize("empty", [[], None, ""])
def test_team_ids_assignment_empty_unlinks_all(bob, dba, operations, linked_team_count, empty):
    """测试赋空值解除所有链接"""
    bob.team_ids = [dba.id, operations.id]
    save(bob)

    bob.team_ids = empty
    assert len(bob.teams.get()) == 0

    save(bob)
    assert linked_team_count(bob.id) == 0


# ============== reload ==============

def test_reload_discards_unsaved_changes(bob, dba, linked_team_count):
    """测试 reload 丢弃未保存的变更"""
    bob.teams.append(dba)
    bob.teams.reload()

    assert bob.teams.get() == []
    save(bob)
    assert linked_team_count(bob.id) == 0


def test_reload_deferred_resets_all_accessed_relations(bob, dba):
    """测试 reload_deferred 重置父记录的所有已访问关系"""
    bob.teams.append(dba)
    reloaded = reload_deferred(bob)

    assert reloaded == [bob.teams]
    assert bob.teams.load_state == LoadState.GHOST


def test_reload_sees_changes_saved_elsewhere(db_session, bob, dba, support):
    """测试 reload 后能读到其他途径保存的变更"""
    assert bob.teams.get() == []

    same_row = db_session.query(Person).filter(Person.name == "Bob").one()
    same_row._teams.append(support)
    db_session.commit()

    assert bob.teams.get() == []
    bob.teams.reload()
    assert bob.teams.get() == [support]


# ============== 轻量读取 ==============

def test_size_and_first_do_not_load(db_session, bob, dba, operations, queries):
    """测试加载前 size/first 只发轻量查询"""
    bob.teams.append(dba, operations)
    save(bob)
    bob.teams.reload()
    db_session.refresh(bob)
    queries.clear()

    assert bob.teams.size() == 2
    assert bob.teams.first() == dba
    assert len(queries) == 2
    assert bob.teams.load_state == LoadState.GHOST


def test_size_reflects_unsaved_changes_after_load(bob, dba, support):
    """测试加载后 size 反映未保存变更"""
    bob.teams.append(dba, support)
    assert bob.teams.size() == 2
    bob.teams.remove(dba)
    assert len(bob.teams) == 1


def test_where_queries_database(bob, dba, operations):
    """测试 where 在数据库中查询已保存链接"""
    bob.teams.append(dba, operations)
    assert bob.teams.where(Team.name == "Operations") == []

    save(bob)
    assert bob.teams.where(Team.name == "Operations") == [operations]
    assert bob.teams.filter(lambda team: team.name.startswith("Data")) == [dba]


# ============== build / create ==============

def test_build_is_inserted_on_save(db_session, bob, linked_team_count):
    """测试 build 的新记录在保存时插入并链接"""
    team = bob.teams.build(name="Security")
    assert team.id is None
    assert bob.teams.links() == [team]

    save(bob)

    assert team.id is not None
    assert linked_team_count(bob.id) == 1
    assert db_session.get(Team, team.id) is team


def test_create_bypasses_deferral(bob, issue_count):
    """测试 create 立即持久化并使代理失效"""
    bob.issues.size()
    result = bob.issues.create(subject="Broken keyboard")

    assert result.success
    assert issue_count(bob.id) == 1
    assert bob.issues.load_state == LoadState.GHOST
    assert bob.issues.get() == [result.element]


def test_create_with_validation_errors(bob, issue_count):
    """测试 create 校验失败返回错误且不写入"""
    result = bob.issues.create(subject="")

    assert not result.success
    assert result.errors == ["subject is required"]
    assert issue_count(bob.id) == 0


def test_create_or_fail_raises(bob, issue_count):
    """测试 create_or_fail 校验失败抛出异常"""
    with pytest.raises(ElementValidationError):
        bob.issues.create_or_fail(subject=None)
    assert issue_count(bob.id) == 0


# ============== destroy ==============

def test_destroy_with_delete_all_removes_rows(db_session, bob, bob_issues, issue_count):
    """测试 dependent=delete_all 时保存会删除记录"""
    first_id = bob_issues[0].id

    processed = bob.issues.destroy(str(first_id))

    assert processed == [bob_issues[0]]
    assert issue_count(bob.id) == 2

    save(bob)
    assert issue_count(bob.id) == 1
    assert db_session.get(Issue, first_id) is None


def test_destroy_without_dependent_only_unlinks(db_session, bob, dba, support, linked_team_count):
    """测试没有破坏性依赖时只解除链接"""
    bob.teams.append(dba, support)
    save(bob)

    assert bob.teams.destroy(dba.id) == [dba]
    save(bob)

    assert linked_team_count(bob.id) == 1
    assert db_session.get(Team, dba.id) is not None


# ============== 回调 ==============

def test_link_callbacks_on_append_and_build(bob, dba):
    """测试 append/build 触发 link 回调"""
    events = []
    bob.teams.register("before_link", lambda team: events.append(("before_link", team.name)))
    bob.teams.register("after_link", lambda team: events.append(("after_link", team.name)))

    bob.teams.append(dba)
    bob.teams.build(name="Security")

    assert events == [
        ("before_link", "Database Administration"),
        ("after_link", "Database Administration"),
        ("before_link", "Security"),
        ("after_link", "Security"),
    ]


def test_create_does_not_fire_link_callbacks(bob):
    """测试 create 不触发延迟回调"""
    events = []
    bob.issues.register("before_link", events.append)
    bob.issues.create(subject="Immediate")
    assert events == []


def test_unlink_callbacks_on_remove_and_destroy(bob, dba, support):
    """测试 remove/destroy 触发 unlink 回调"""
    bob.teams.append(dba, support)
    save(bob)
    events = []
    bob.teams.register("after_unlink", lambda team: events.append(team.name))

    bob.teams.remove(dba)
    bob.teams.destroy(support.id)

    assert events == ["Database Administration", "End-User Support"]


# ============== 保存流程 ==============

def test_failed_save_keeps_pending_changes(bob):
    """测试保存失败时回滚并保留待保存变更"""
    bob.teams.build(name=None)

    with pytest.raises(IntegrityError):
        save(bob)

    assert bob.teams.has_pending_changes()


def test_save_requires_session():
    """测试没有会话时保存抛出异常"""
    with pytest.raises(DetachedParentError):
        save(Person(name="Nobody"))


def test_save_new_parent_with_links(db_session, dba, linked_team_count):
    """测试未持久化的父记录也可以延迟链接"""
    carol = Person(name="Carol")
    carol.teams.append(dba)
    assert carol.teams.links() == [dba]

    save(carol, session=db_session)

    assert carol.id is not None
    assert linked_team_count(carol.id) == 1


def test_save_without_commit_flushes(db_session, bob, dba, linked_team_count):
    """测试 commit=False 只刷新到数据库"""
    bob.teams.append(dba)
    save(bob, commit=False)

    assert linked_team_count(bob.id) == 1
    assert not bob.teams.has_pending_changes()
    db_session.rollback()
    assert linked_team_count(bob.id) == 0
