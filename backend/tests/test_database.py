from sqlalchemy import inspect, text
from sqlmodel import Session, create_engine, select

from scheduleme import database, models
from scheduleme.config import settings


def test_old_database_gets_late_columns(tmp_path, monkeypatch):
    engine = create_engine(f"sqlite:///{tmp_path / 'old.db'}")
    with engine.begin() as conn:
        conn.execute(text("CREATE TABLE schools (id VARCHAR PRIMARY KEY, name VARCHAR NOT NULL)"))
        conn.execute(text("INSERT INTO schools (id, name) VALUES ('s1', 'Lincoln High')"))
    monkeypatch.setattr(database, 'engine', engine)

    # running twice must not try to add the columns again
    database.create_db_and_tables()
    database.create_db_and_tables()

    columns = [c['name'] for c in inspect(engine).get_columns('schools')]
    assert columns == ['id', 'name', 'address', 'sort_order']
    with Session(engine) as session:
        school = session.get(models.School, 's1')
        assert (school.name, school.address, school.sort_order) == ('Lincoln High', '', 0)
        admins = session.exec(select(models.AppUser).where(models.AppUser.email == settings.DEFAULT_ADMIN_EMAIL)).all()
        assert len(admins) == 1
