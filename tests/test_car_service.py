import uuid

import pytest

from services.car_service import (
    ImageFile,
    create_car,
    delete_car,
    get_car,
    list_cars,
    update_car,
)
from services.dependencies import LazyImageStorage
from services.errors import AuthorizationError, NotFoundError, ValidationError


def jpg(name):
    return ImageFile(filename=name, content_type="image/jpeg", data=b"\xff\xd8" + name.encode())


OWNER = str(uuid.uuid4())
OTHER = str(uuid.uuid4())


def test_create_requires_title(car_store, storage):
    with pytest.raises(ValidationError):
        create_car(car_store, storage, OWNER, "   ", tags_field="a", image_files=[jpg("f1.jpg")])
    assert car_store.writes == 0
    assert storage.objects == {}
    assert storage.containers_checked == 0


def test_lazy_storage_is_built_only_for_image_work(car_store, storage):
    built = []

    def factory():
        built.append(1)
        return storage

    lazy = LazyImageStorage(factory)
    result = create_car(car_store, lazy, OWNER, "Civic", tags_field="sedan")
    update_car(car_store, lazy, OWNER, result.car["id"], "Civic Si")
    assert built == []

    update_car(car_store, lazy, OWNER, result.car["id"], "Civic Si", image_files=[jpg("f1.jpg")])
    assert built == [1]
    assert len(storage.objects) == 1


def test_create_end_to_end(car_store, storage):
    result = create_car(car_store, storage, OWNER, "Civic", "daily", "sedan, compact",
                        [jpg("f1.jpg"), jpg("f2.jpg")])
    car = result.car
    assert car["title"] == "Civic"
    assert car["tags"] == ["sedan", "compact"]
    assert len(car["images"]) == 2
    assert car["images"][0].endswith("-0.jpg")
    assert car["images"][1].endswith("-1.jpg")
    assert car["cover_image"] == car["images"][0]
    assert car["car_images"] == [{"url": u} for u in car["images"]]
    assert result.uploads.attempted == 2 and result.uploads.failed == 0
    assert all(name.startswith(car["id"] + "/") for name in storage.objects)


def test_create_keeps_submission_order_when_uploads_finish_out_of_turn(car_store, storage):
    storage.upload_delays = {0: 0.2, 1: 0.1}
    car = create_car(car_store, storage, OWNER, "Civic", image_files=[
        jpg("a.jpg"), jpg("b.jpg"), jpg("c.jpg"),
    ]).car
    assert [u.rsplit("-", 1)[1] for u in car["images"]] == ["0.jpg", "1.jpg", "2.jpg"]


def test_create_survives_failed_uploads(car_store, storage):
    storage.fail_uploads = {0}
    result = create_car(car_store, storage, OWNER, "Civic", image_files=[jpg("a.jpg"), jpg("b.png")])
    assert result.uploads.attempted == 2
    assert result.uploads.failed == 1
    assert len(result.car["images"]) == 1
    assert result.car["images"][0].endswith("-1.png")
    assert result.car["cover_image"] == result.car["images"][0]


def test_create_with_all_uploads_failing_still_creates(car_store, storage):
    storage.fail_uploads = {0, 1}
    result = create_car(car_store, storage, OWNER, "Civic", image_files=[jpg("a.jpg"), jpg("b.jpg")])
    assert result.car["images"] == []
    assert result.car["cover_image"] is None
    assert result.uploads.succeeded == 0


def test_create_caps_images_at_ten(car_store, storage):
    files = [jpg(f"f{i}.jpg") for i in range(12)]
    car = create_car(car_store, storage, OWNER, "Civic", image_files=files).car
    assert len(car["images"]) == 10


def test_extension_guessed_from_content_type(car_store, storage):
    f = ImageFile(filename="photo", content_type="image/png", data=b"x")
    car = create_car(car_store, storage, OWNER, "Civic", image_files=[f]).car
    assert car["images"][0].endswith("-0.png")


def test_get_not_found(car_store):
    with pytest.raises(NotFoundError):
        get_car(car_store, OWNER, str(uuid.uuid4()))


def test_get_repairs_legacy_row(car_store):
    cid = car_store.seed(user_id=OWNER, title="Old", tags='["vintage"]', cover_image="X")
    car = get_car(car_store, OWNER, cid)
    assert car["images"] == ["X"]
    assert car["car_images"] == [{"url": "X"}]
    assert car["tags"] == ["vintage"]


@pytest.mark.parametrize("op", ["get", "update", "delete"])
def test_non_owner_is_forbidden(car_store, storage, op):
    cid = create_car(car_store, storage, OWNER, "Civic", image_files=[jpg("a.jpg")]).car["id"]
    writes_before = car_store.writes
    objects_before = dict(storage.objects)
    with pytest.raises(AuthorizationError):
        if op == "get":
            get_car(car_store, OTHER, cid)
        elif op == "update":
            update_car(car_store, storage, OTHER, cid, "Hijacked", image_files=[jpg("x.jpg")])
        else:
            delete_car(car_store, storage, OTHER, cid)
    assert car_store.writes == writes_before
    assert storage.objects == objects_before


def test_list_is_owner_scoped_and_newest_first(car_store, storage):
    first = create_car(car_store, storage, OWNER, "First").car
    second = create_car(car_store, storage, OWNER, "Second").car
    create_car(car_store, storage, OTHER, "Not mine")
    assert [c["id"] for c in list_cars(car_store, OWNER)] == [second["id"], first["id"]]


def test_list_search_matches_title_description_or_tag(car_store, storage):
    create_car(car_store, storage, OWNER, "Blue SEDAN")
    create_car(car_store, storage, OWNER, "Wagon", description="not a sedan really")
    create_car(car_store, storage, OWNER, "Civic", tags_field="sedan, compact")
    create_car(car_store, storage, OWNER, "Truck", tags_field="pickup")
    create_car(car_store, storage, OTHER, "Other sedan")

    titles = {c["title"] for c in list_cars(car_store, OWNER, "sedan")}
    assert titles == {"Blue SEDAN", "Wagon", "Civic"}
    assert len(list_cars(car_store, OWNER, "  ")) == 4


def test_update_replaces_fields_and_reconciles_images(car_store, storage):
    car = create_car(car_store, storage, OWNER, "Civic", "old", "sedan",
                     [jpg("f1.jpg"), jpg("f2.jpg")]).car
    first, second = car["images"]

    result = update_car(car_store, storage, OWNER, car["id"], "Civic Si", "", "coupe",
                        images_to_delete=[first], image_files=[jpg("f3.jpg")])
    updated = result.car
    assert updated["title"] == "Civic Si"
    assert updated["description"] == ""
    assert updated["tags"] == ["coupe"]
    assert updated["images"][0] == second
    assert len(updated["images"]) == 2
    assert updated["images"][1].endswith("-0.jpg")
    assert len(storage.objects) == 2
    assert updated["cover_image"] == second
    assert result.removals.attempted == 1 and result.removals.failed == 0
    assert f"{car['id']}/{first.rsplit('/', 1)[1]}" in storage.deleted


def test_update_ignores_urls_the_car_does_not_hold(car_store, storage):
    car = create_car(car_store, storage, OWNER, "Civic", image_files=[jpg("a.jpg")]).car
    result = update_car(car_store, storage, OWNER, car["id"], "Civic",
                        images_to_delete=["https://elsewhere.test/x.jpg"])
    assert result.car["images"] == car["images"]
    assert result.removals.attempted == 0


def test_update_removing_every_image_clears_cover(car_store, storage):
    car = create_car(car_store, storage, OWNER, "Civic", image_files=[jpg("a.jpg")]).car
    updated = update_car(car_store, storage, OWNER, car["id"], "Civic",
                         images_to_delete=car["images"]).car
    assert updated["images"] == []
    assert updated["cover_image"] is None


def test_update_storage_delete_failure_is_reported_not_raised(car_store, storage):
    car = create_car(car_store, storage, OWNER, "Civic", image_files=[jpg("a.jpg")]).car
    storage.fail_deletes = set(storage.objects)
    result = update_car(car_store, storage, OWNER, car["id"], "Civic",
                        images_to_delete=car["images"])
    assert result.removals.failed == 1
    assert result.car["images"] == []


def test_update_rejects_more_than_ten_images(car_store, storage):
    car = create_car(car_store, storage, OWNER, "Civic",
                     image_files=[jpg(f"{i}.jpg") for i in range(8)]).car
    with pytest.raises(ValidationError):
        update_car(car_store, storage, OWNER, car["id"], "Civic",
                   image_files=[jpg(f"n{i}.jpg") for i in range(3)])
    assert len(storage.objects) == 8


def test_update_requires_title(car_store, storage):
    car = create_car(car_store, storage, OWNER, "Civic").car
    with pytest.raises(ValidationError):
        update_car(car_store, storage, OWNER, car["id"], "")


def test_update_legacy_cover_only_row(car_store, storage):
    cid = car_store.seed(user_id=OWNER, title="Old", tags=None,
                         cover_image=f"{storage.base_url}/legacy/cover.jpg")
    updated = update_car(car_store, storage, OWNER, cid, "Old",
                         image_files=[jpg("new.jpg")]).car
    assert updated["images"][0] == f"{storage.base_url}/legacy/cover.jpg"
    assert len(updated["images"]) == 2


def test_delete_removes_row_and_blobs(car_store, storage):
    car = create_car(car_store, storage, OWNER, "Civic",
                     image_files=[jpg("a.jpg"), jpg("b.jpg")]).car
    result = delete_car(car_store, storage, OWNER, car["id"])
    assert result.success
    assert result.removals.attempted == 2 and result.removals.failed == 0
    assert storage.objects == {}
    with pytest.raises(NotFoundError):
        get_car(car_store, OWNER, car["id"])


def test_delete_proceeds_when_blob_cleanup_fails(car_store, storage):
    car = create_car(car_store, storage, OWNER, "Civic", image_files=[jpg("a.jpg")]).car
    storage.fail_deletes = set(storage.objects)
    result = delete_car(car_store, storage, OWNER, car["id"])
    assert result.success
    assert result.removals.failed == 1
    assert car_store.fetch(car["id"]) is None
