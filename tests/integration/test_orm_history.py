"""
Integration tests for history capture over SQLAlchemy sessions.
"""

import pytest
from sqlalchemy import select, text
from sqlalchemy.orm import Session

from autohistory.changes.changeset import ChangeSet
from autohistory.changes.entry import EntityState
from autohistory.kernel.errors import PersistedRowMissingError
from autohistory.kernel.time import coerce_utc
from autohistory.orm import SqlAlchemyEntry, ensure_auto_history, flush_with_history
from tests.support.models import (
    Blog,
    CustomAutoHistory,
    NotTracked,
    NotTracked2,
    Post,
    Product,
    SalesItem,
)

pytestmark = pytest.mark.integration


def _save(session, builder, user_name="AutoHistoryTests"):
    records = flush_with_history(session, builder, user_name=user_name)
    session.commit()
    return records


class TestCreated:
    def test_added_entities_get_one_record_each(self, session, builder, history):
        session.add_all([Product(name=f"Product {i}", price=i) for i in range(1, 4)])
        _save(session, builder)

        rows = history(session)
        assert len(rows) == 3
        assert {row.kind for row in rows} == {EntityState.CREATED}
        assert rows[0].application_name == "autohistory-tests"
        assert rows[0].user_name == "AutoHistoryTests"

    def test_created_record_maps_properties_to_initial_values(self, session, builder, history):
        product = Product(name="Product 1", price=1)
        session.add(product)
        _save(session, builder)

        (row,) = history(session)
        assert row.row_id == str(product.id)
        assert row.table_name == "products"
        assert ChangeSet.deserialize(row.changed) == {
            "id": [str(product.id)],
            "name": ["Product 1"],
            "price": ["1"],
        }

    def test_null_initial_value_is_recorded_as_null(self, session, builder, history):
        blog = Blog(url="http://x", posts=[Post(title="t", content="c")])
        session.add(blog)
        _save(session, builder)

        (post_row,) = history(session, table_name="posts")
        assert post_row.change_set["num_views"] == [None]

    def test_created_timestamp_reads_back_as_clock_time(self, session, builder, history, fake_clock):
        session.add(Product(name="Product 1", price=1))
        _save(session, builder)

        (row,) = history(session)
        # SQLite drops the offset on the way back.
        assert coerce_utc(row.created) == fake_clock.now()

    def test_composite_key(self, session, builder, history):
        session.add(SalesItem(sale_id=1, product_id=1, quantity=1))
        _save(session, builder)

        (row,) = history(session)
        assert row.row_id == "1,1"


class TestUpdated:
    def test_changed_property_after_commit(self, session, builder, history):
        product = Product(name="Product 1", price=1)
        session.add(product)
        _save(session, builder)

        product.price = 2
        _save(session, builder)

        rows = history(session)
        assert len(rows) == 2
        assert rows[1].kind == EntityState.UPDATED
        assert rows[1].change_set == {"price": ["1", "2"]}

    def test_changed_property_with_loaded_original(self, engine, builder, history):
        with Session(engine, expire_on_commit=False) as session:
            product = Product(name="Product 1", price=1)
            session.add(product)
            _save(session, builder)

            product.name = "Renamed"
            product.price = 3
            records = _save(session, builder)

            assert len(records) == 1
            assert records[0].change_set == {"name": ["Product 1", "Renamed"], "price": ["1", "3"]}

    def test_persisted_value_wins_when_original_matches_current(self, session, builder, history):
        product = Product(name="Product 1", price=1)
        session.add(product)
        _save(session, builder)
        product_id = product.id

        # The store moves on behind the ORM's back.
        session.connection().execute(
            text("UPDATE products SET price = 5 WHERE id = :id"),
            {"id": product_id},
        )
        session.expire(product)
        product.price = 2

        entry = SqlAlchemyEntry(session, product)
        price = entry.property("price")
        assert price.is_modified
        assert price.original_value == price.current_value == 2

        _save(session, builder)

        rows = history(session, kind=EntityState.UPDATED)
        assert rows[0].change_set == {"price": ["5", "2"]}

    def test_unchanged_entity_gives_no_record(self, session, builder, history):
        product = Product(name="Product 1", price=1)
        session.add(product)
        _save(session, builder)

        loaded = session.scalars(select(Product)).one()
        loaded.price = 1
        _save(session, builder)

        assert [row.kind for row in history(session)] == [EntityState.CREATED]

    def test_missing_row_fails_loudly(self, session, builder):
        product = Product(name="Product 1", price=1)
        session.add(product)
        _save(session, builder)
        product_id = product.id

        session.connection().execute(text("DELETE FROM products WHERE id = :id"), {"id": product_id})
        session.expire(product)
        product.price = 3

        with pytest.raises(PersistedRowMissingError):
            flush_with_history(session, builder)


class TestExclusion:
    def test_excluded_property_is_never_recorded(self, session, builder, history):
        blog = Blog(
            url="http://blogs.msdn.com/adonet",
            private_url="http://www.secret.com",
            posts=[Post(title="xUnit", content="Post from xUnit test.")],
        )
        session.add(blog)
        ensure_auto_history(session, builder)
        session.commit()

        blog.private_url = "http://new.secret.com"
        ensure_auto_history(session, builder)
        session.commit()

        assert history(session) == []

        blog.private_url = "http://newer.secret.com"
        blog.url = "http://blogs.msdn.com/adonet-news"
        ensure_auto_history(session, builder)
        session.commit()

        (row,) = history(session)
        assert row.change_set == {"url": ["http://blogs.msdn.com/adonet", "http://blogs.msdn.com/adonet-news"]}

    def test_configured_property_exclusion(self, session, builder, history):
        blog = Blog(url="http://a", excluded_property="x")
        session.add(blog)
        _save(session, builder)

        (row,) = history(session)
        assert "excluded_property" not in row.change_set
        assert "private_url" not in row.change_set

    @pytest.mark.parametrize("model", [NotTracked, NotTracked2])
    def test_excluded_types_never_produce_records(self, session, builder, history, model):
        entity = model(title="first")
        session.add(entity)
        _save(session, builder)

        entity.title = "second"
        _save(session, builder)

        session.delete(entity)
        _save(session, builder)

        assert history(session) == []


class TestRemoved:
    def test_removed_entity_records_pre_deletion_values(self, session, builder, history):
        product = Product(name="Product 1", price=7)
        session.add(product)
        _save(session, builder)
        product_id = product.id

        session.delete(product)
        _save(session, builder, user_name="remover")

        (row,) = history(session, kind=EntityState.REMOVED)
        assert row.row_id == str(product_id)
        assert row.user_name == "remover"
        assert row.change_set == {"id": [str(product_id)], "name": ["Product 1"], "price": ["7"]}

    def test_bulk_changes_take_state_from_session_collections(self, session, builder, monkeypatch):
        session.add_all([Product(name=f"Product {i}", price=i) for i in range(200)])
        _save(session, builder)

        def fail(*args, **kwargs):
            raise AssertionError("state must not be derived per instance")

        monkeypatch.setattr("autohistory.orm._entry_state", fail)

        products = session.scalars(select(Product).order_by(Product.id)).all()
        products[0].price = 1000
        for product in products[1:]:
            session.delete(product)

        records = ensure_auto_history(session, builder)

        kinds = [record.kind for record in records]
        assert kinds.count(EntityState.UPDATED) == 1
        assert kinds.count(EntityState.REMOVED) == 199


class TestCustomHistory:
    def test_factory_can_return_a_custom_record(self, session, builder):
        def factory():
            return CustomAutoHistory(
                application_name="custom-app",
                created=builder.options.date_time_factory(),
                custom_field="extra",
            )

        product = Product(name="Product 1", price=1)
        session.add(product)
        flush_with_history(session, builder, factory=factory)
        session.commit()

        (row,) = session.scalars(select(CustomAutoHistory)).all()
        assert row.custom_field == "extra"
        assert row.application_name == "custom-app"
        assert row.kind == EntityState.CREATED
        assert row.change_set["name"] == ["Product 1"]
