from datetime import datetime

import pytest

from retrybill.catalog import Service, ServicesRepository, Tariff, TariffsRepository
from retrybill.database import Base, RecordNotFound, StorageDb


@pytest.fixture
def db():
    storage = StorageDb("sqlite://").connect()
    Base.metadata.create_all(storage.get_db())
    return storage


def _seed(db):
    with db.session() as session:
        vps = Service(slug="vps", name="VPS", full_name="Virtual server")
        dns = Service(slug="dns", name="DNS")
        session.add_all([vps, dns])
        session.flush()
        session.add_all([
            Tariff(service_id=vps.id, slug="late", created_at=datetime(2024, 3, 1)),
            Tariff(service_id=vps.id, slug="early", created_at=datetime(2024, 1, 1),
                   params={"cpu": {"price": 100}}),
            Tariff(service_id=dns.id, slug="basic", created_at=datetime(2024, 2, 1)),
        ])


def test_get_by_slug_orders_tariffs_by_creation(db):
    _seed(db)
    service = ServicesRepository(db).get_by_slug("vps")
    assert service.full_name == "Virtual server"
    assert [t.slug for t in service.tariffs] == ["early", "late"]


def test_get_by_slug_missing_raises(db):
    _seed(db)
    with pytest.raises(RecordNotFound):
        ServicesRepository(db).get_by_slug("nothing")


def test_get_all_loads_tariffs(db):
    _seed(db)
    services = ServicesRepository(db).get_all()
    by_slug = {s.slug: s for s in services}
    assert set(by_slug) == {"vps", "dns"}
    assert {t.slug for t in by_slug["vps"].tariffs} == {"early", "late"}
    assert [t.slug for t in by_slug["dns"].tariffs] == ["basic"]


def test_get_all_without_tables_is_empty():
    storage = StorageDb("sqlite://").connect()
    assert ServicesRepository(storage).get_all() == []


def test_tariff_params_round_trip(db):
    _seed(db)
    tariff = TariffsRepository(db).get_by_slug("early")
    assert tariff.params == {"cpu": {"price": 100}}


def test_tariff_missing_raises(db):
    with pytest.raises(RecordNotFound):
        TariffsRepository(db).get_by_slug("none")


def test_service_to_dict_hides_id(db):
    _seed(db)
    data = ServicesRepository(db).get_by_slug("vps").to_dict()
    assert "id" not in data
    assert data["slug"] == "vps"
    assert [t["slug"] for t in data["tariffs"]] == ["early", "late"]