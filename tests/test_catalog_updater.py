"""
Tests for applying lookup results to catalog products.
"""
from unittest.mock import Mock

from core.database.models import MediaAsset, Product
from core.database.operations import create_product, get_product
from core.updater.catalog_updater import update_product


class TestUpdateProduct:

    def test_missing_product_returns_false(self, db):
        ingester = Mock()
        assert update_product(db, 999, "Anything", "http://x/a.jpg", ingester) is False
        ingester.ingest.assert_not_called()
        assert db.query(Product).count() == 0

    def test_description_only(self, db):
        product = create_product(db, name="Cable", sku="036000291452")
        assert update_product(db, product.id, "USB-C cable") is True

        db.expire_all()
        stored = get_product(db, product.id)
        assert stored.description == "USB-C cable"
        assert stored.image_id is None

    def test_description_and_image(self, db, ingester):
        product = create_product(db, name="Mouse", sku="012345678905")
        assert update_product(db, product.id, "Wireless Mouse", "http://x/mouse.jpg", ingester)

        db.expire_all()
        stored = get_product(db, product.id)
        asset = db.query(MediaAsset).one()
        assert stored.description == "Wireless Mouse"
        assert stored.image_id == asset.id
        assert asset.parent_id == product.id

    def test_image_failure_keeps_description_and_old_image(self, db):
        product = create_product(db, name="Mouse", sku="012345678905")
        old_asset = MediaAsset(file_path="/old/mouse.webp", title="mouse.webp", parent_id=product.id)
        db.add(old_asset)
        db.commit()
        product.image_id = old_asset.id
        db.commit()

        ingester = Mock()
        ingester.ingest.return_value = None
        assert update_product(db, product.id, "New text", "http://x/broken.jpg", ingester) is True

        db.expire_all()
        stored = get_product(db, product.id)
        assert stored.description == "New text"
        assert stored.image_id == old_asset.id
