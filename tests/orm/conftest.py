"""
SQLAlchemy 集成测试的 fixtures
"""
import pytest
from sqlalchemy import event, func, select
from sqlalchemy.pool import StaticPool

from deferring.database import create_db_engine, create_session_factory
from models import Base, Household, Issue, Person, Pet, Team, people_teams


@pytest.fixture(scope="function")
def db_engine():
    """创建内存数据库引擎"""
    engine = create_db_engine("sqlite:///:memory:", echo=False, poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine):
    """创建数据库会话"""
    session = create_session_factory(db_engine)()
    yield session
    session.close()


@pytest.fixture
def queries(db_engine):
    """记录发往数据库的 SQL 语句"""
    statements = []

    def _record(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(db_engine, "before_cursor_execute", _record)
    yield statements
    event.remove(db_engine, "before_cursor_execute", _record)


@pytest.fixture
def seeded(db_session):
    """Alice、Bob 与三个团队"""
    db_session.add_all([
        Person(name="Alice"),
        Person(name="Bob"),
        Team(name="Database Administration"),
        Team(name="End-User Support"),
        Team(name="Operations"),
    ])
    db_session.commit()


@pytest.fixture
def bob(db_session, seeded):
    return db_session.query(Person).filter(Person.name == "Bob").one()


@pytest.fixture
def dba(db_session, seeded):
    return db_session.query(Team).filter(Team.name == "Database Administration").one()


@pytest.fixture
def support(db_session, seeded):
    return db_session.query(Team).filter(Team.name == "End-User Support").one()


@pytest.fixture
def operations(db_session, seeded):
    return db_session.query(Team).filter(Team.name == "Operations").one()


@pytest.fixture
def bob_issues(db_session, bob):
    """Bob 名下的两个问题单"""
    issues = [Issue(subject="Printer jam", person_id=bob.id), Issue(subject="VPN down", person_id=bob.id)]
    db_session.add_all(issues)
    db_session.commit()
    return issues


@pytest.fixture
def linked_team_count(db_session):
    """数据库中某人的团队链接数"""

    def _count(person_id):
        stmt = select(func.count()).select_from(people_teams).where(people_teams.c.person_id == person_id)
        return db_session.execute(stmt).scalar()

    return _count


@pytest.fixture
def issue_count(db_session):
    """数据库中某人的问题单数"""

    def _count(person_id):
        stmt = select(func.count()).select_from(Issue).where(Issue.person_id == person_id)
        return db_session.execute(stmt).scalar()

    return _count


@pytest.fixture
def household(db_session):
    home = Household(name="Olga")
    db_session.add(home)
    db_session.commit()
    return home


@pytest.fixture
def rex(db_session):
    """尚未属于任何家庭的宠物"""
    pet = Pet(name="rex")
    db_session.add(pet)
    db_session.commit()
    return pet
