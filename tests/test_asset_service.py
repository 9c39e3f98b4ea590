"""Tests for product icons, images and asset reconciliation."""
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from catalog.exceptions import NotFoundError, PersistenceError
from catalog.tasks import asset_tasks


@pytest.fixture
def product(product_service):
    return product_service.create_product("Lamp", "Desk lamp", "40")


def test_generate_asset_name(asset_service):
    name = asset_service.generate_asset_name("icons", "photo.final.PNG")

    assert len(name) == 16 + len(".PNG")
    assert name.endswith(".PNG")
    assert name[:16].isalnum()


def test_generate_asset_name_without_extension(asset_service):
    assert len(asset_service.generate_asset_name("images", "blob")) == 16


def test_generate_asset_name_retries_on_collision(asset_service, storage):
    """Test a name already in storage is never handed out."""
    storage.create_resource("icons", "aaaaaaaaaaaaaaaa.png", b"taken")
    tokens = list("a" * 16 + "b" * 16)

    with patch("catalog.services.asset_service.secrets.choice", side_effect=tokens):
        name = asset_service.generate_asset_name("icons", "icon.png")

    assert name == "bbbbbbbbbbbbbbbb.png"


def test_generated_names_are_unique(asset_service, product):
    names = {asset_service.create_product_image(product, "x.jpg", b"x").image_file for _ in range(20)}

    assert len(names) == 20


def test_create_icon(asset_service, storage, product):
    icon = asset_service.create_product_icon(product, "icon.png", b"icon-bytes")

    assert product.icon.id == icon.id
    assert asset_service.get_icon_by_file_name(icon.icon_file).product_id == product.id
    assert asset_service.get_product_icon(icon.icon_file) == b"icon-bytes"


def test_create_icon_twice_replaces(asset_service, storage, product):
    """Test a product keeps a single icon and the old file is removed."""
    first = asset_service.create_product_icon(product, "a.png", b"first")
    first_file = first.icon_file

    second = asset_service.create_product_icon(product, "b.png", b"second")

    assert second.id == first.id
    assert second.icon_file != first_file
    assert not storage.check_if_asset_exists("icons", first_file)
    assert storage.list_resources("icons") == [second.icon_file]


def test_update_icon_without_icon(asset_service, product):
    with pytest.raises(NotFoundError):
        asset_service.update_product_icon(product, "a.png", b"x")


def test_delete_icon(asset_service, storage, product):
    icon = asset_service.create_product_icon(product, "a.png", b"x")
    icon_file = icon.icon_file

    asset_service.delete_product_icon(product)

    assert asset_service.get_icon_by_file_name(icon_file) is None
    assert not storage.check_if_asset_exists("icons", icon_file)
    with pytest.raises(NotFoundError):
        asset_service.delete_product_icon(product)


def test_images(asset_service, storage, product):
    first = asset_service.create_product_image(product, "1.jpg", b"1")
    second = asset_service.create_product_image(product, "2.jpg", b"2")

    assert product.image_files == [first.image_file, second.image_file]
    assert asset_service.check_if_product_has_image(product, first.id)
    assert not asset_service.check_if_product_has_image(product, 9999)

    asset_service.delete_product_image(first.id)

    assert product.image_files == [second.image_file]
    assert asset_service.get_image_by_id(first.id) is None
    assert storage.list_resources("images") == [second.image_file]


def test_delete_missing_image(asset_service):
    with pytest.raises(NotFoundError):
        asset_service.delete_product_image(9999)


def test_missing_asset_file(asset_service):
    with pytest.raises(NotFoundError):
        asset_service.get_product_image("missing.jpg")


def test_delete_product_assets(asset_service, storage, product):
    asset_service.create_product_icon(product, "a.png", b"x")
    asset_service.create_product_image(product, "1.jpg", b"1")
    asset_service.create_product_image(product, "2.jpg", b"2")

    asset_service.delete_product_assets(product)

    assert product.icon is None
    assert product.images == []
    assert storage.list_resources("icons") == []
    assert storage.list_resources("images") == []


def test_asset_change_invalidates_product_cache(asset_service, product_service, cache, product):
    product_service.get_product_data(product.id)
    assert cache.exists(f"product_{product.id}_currency_")

    asset_service.create_product_image(product, "1.jpg", b"1")

    assert not cache.exists(f"product_{product.id}_currency_")
    assert len(product_service.get_product_data(product.id)["images"]) == 1


def test_reconcile_report(asset_service, storage, product):
    icon = asset_service.create_product_icon(product, "a.png", b"x")
    image = asset_service.create_product_image(product, "1.jpg", b"1")
    storage.delete_resource("icons", icon.icon_file)
    storage.create_resource("images", "orphan.jpg", b"?")

    report = asset_service.reconcile()

    assert report == {
        "icons": {"dangling_rows": [icon.icon_file], "orphan_files": []},
        "images": {"dangling_rows": [], "orphan_files": ["orphan.jpg"]},
        "applied": False,
    }
    # Nothing is touched without apply
    assert storage.check_if_asset_exists("images", "orphan.jpg")
    assert asset_service.get_image_by_file_name(image.image_file) is not None


def test_reconcile_apply(asset_service, storage, product):
    icon = asset_service.create_product_icon(product, "a.png", b"x")
    icon_file = icon.icon_file
    image = asset_service.create_product_image(product, "1.jpg", b"1")
    storage.delete_resource("icons", icon_file)
    storage.create_resource("images", "orphan.jpg", b"?")

    asset_service.reconcile(apply=True)

    assert asset_service.get_icon_by_file_name(icon_file) is None
    assert not storage.check_if_asset_exists("images", "orphan.jpg")
    assert storage.list_resources("images") == [image.image_file]

    report = asset_service.reconcile()
    assert report["icons"] == {"dangling_rows": [], "orphan_files": []}
    assert report["images"] == {"dangling_rows": [], "orphan_files": []}


def test_reconcile_task(db_session, monkeypatch):
    monkeypatch.setattr(asset_tasks, "SessionLocal", sessionmaker(bind=db_session.get_bind()))

    report = asset_tasks.reconcile_assets()

    assert report["applied"] is False
    assert set(report) == {"icons", "images", "applied"}


def test_asset_lists(asset_service, product_service, product):
    other = product_service.create_product("Chair", "", "10")
    icon = asset_service.create_product_icon(product, "a.png", b"x")
    first = asset_service.create_product_image(product, "1.jpg", b"1")
    second = asset_service.create_product_image(other, "2.jpg", b"2")

    assert [row.id for row in asset_service.get_icons_list()] == [icon.id]
    assert [row.id for row in asset_service.get_images_list()] == [first.id, second.id]


def test_image_write_failure_leaves_dangling_row(asset_service, storage, product):
    """Test a failed file write surfaces as PersistenceError after the row is stored."""
    with patch.object(storage, "create_resource", side_effect=OSError("No space left on device")):
        with pytest.raises(PersistenceError):
            asset_service.create_product_image(product, "1.jpg", b"1")

    rows = asset_service.get_images_list()
    assert len(rows) == 1
    assert storage.list_resources("images") == []
    assert asset_service.reconcile()["images"]["dangling_rows"] == [rows[0].image_file]


def test_icon_write_failure_leaves_dangling_row(asset_service, storage, product):
    with patch.object(storage, "create_resource", side_effect=OSError("Read-only file system")):
        with pytest.raises(PersistenceError):
            asset_service.create_product_icon(product, "a.png", b"x")

    assert len(asset_service.get_icons_list()) == 1
    assert storage.list_resources("icons") == []


def test_image_delete_failure_leaves_orphan_file(asset_service, storage, product):
    image = asset_service.create_product_image(product, "1.jpg", b"1")
    image_id, image_file = image.id, image.image_file

    with patch.object(storage, "delete_resource", side_effect=OSError("Permission denied")):
        with pytest.raises(PersistenceError):
            asset_service.delete_product_image(image_id)

    assert asset_service.get_image_by_id(image_id) is None
    assert storage.check_if_asset_exists("images", image_file)
    assert asset_service.reconcile()["images"]["orphan_files"] == [image_file]


def test_icon_commit_failure_writes_no_file(asset_service, db_session, storage, product):
    """Test nothing reaches storage when the row cannot be committed."""
    error = OperationalError("INSERT", {}, Exception("database is locked"))

    with patch.object(db_session, "commit", side_effect=error):
        with pytest.raises(PersistenceError):
            asset_service.create_product_icon(product, "a.png", b"x")

    assert asset_service.get_icons_list() == []
    assert storage.list_resources("icons") == []
