"""Tests for deleting designs and the retention purge."""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from errors import NotFoundError
from fakes import BLOB_ROOT, FakeBlobStorage
from lifecycle import blob_refs, delete_design, purge_old_designs, release_blob


def days_ago(days):
    return datetime.now(timezone.utc) - timedelta(days=days)


class TestBlobRefs:

    def test_own_render_and_final_image(self, repo, storage):
        design = repo.seed(image_ref=f"{BLOB_ROOT}designs/a.png", final_image_ref=f"{BLOB_ROOT}final/a.png")
        assert blob_refs(design, storage) == [f"{BLOB_ROOT}designs/a.png", f"{BLOB_ROOT}final/a.png"]

    def test_uploaded_reference_is_included(self, repo, storage):
        design = repo.seed(reference_image_ref=f"{BLOB_ROOT}references/u/r.png")
        assert blob_refs(design, storage) == [f"{BLOB_ROOT}references/u/r.png"]

    def test_reused_parent_render_is_excluded(self, repo, storage):
        design = repo.seed(
            image_ref=f"{BLOB_ROOT}designs/b.png",
            reference_image_ref=f"{BLOB_ROOT}designs/a.png",
        )
        assert blob_refs(design, storage) == [f"{BLOB_ROOT}designs/b.png"]

    def test_external_urls_are_excluded(self, repo, storage):
        design = repo.seed(
            image_ref="https://cdn.example.com/designs/a.png",
            reference_image_ref="https://cdn.example.com/references/r.png",
        )
        assert blob_refs(design, storage) == []


class TestReleaseBlob:

    async def test_releases_owned_blob(self, storage):
        assert await release_blob(storage, f"{BLOB_ROOT}final/a.png", uuid.uuid4()) is True
        assert storage.released == [f"{BLOB_ROOT}final/a.png"]

    async def test_leaves_foreign_and_missing_refs_alone(self, storage):
        assert await release_blob(storage, "https://cdn.example.com/final/a.png", uuid.uuid4()) is False
        assert await release_blob(storage, None, uuid.uuid4()) is False
        assert storage.released == []

    async def test_failure_is_swallowed(self):
        ref = f"{BLOB_ROOT}final/a.png"
        storage = FakeBlobStorage(fail_on={ref})
        assert await release_blob(storage, ref, uuid.uuid4()) is False


class TestDeleteDesign:

    async def test_owner_deletes(self, repo, storage, owner):
        design = await repo.create(owner_id=owner.id, image_ref=f"{BLOB_ROOT}designs/a.png")
        deleted = await delete_design(repo, storage, design.id, owner)

        assert deleted == design
        assert storage.released == [design.image_ref]
        with pytest.raises(NotFoundError):
            await repo.get(design.id)

    async def test_admin_deletes_any_design(self, repo, storage, owner, admin):
        design = await repo.create(owner_id=owner.id)
        await delete_design(repo, storage, design.id, admin)
        assert repo.rows == {}

    async def test_stranger_cannot_delete(self, repo, storage, owner, stranger):
        design = await repo.create(owner_id=owner.id, image_ref=f"{BLOB_ROOT}designs/a.png", is_shared=True)
        with pytest.raises(NotFoundError):
            await delete_design(repo, storage, design.id, stranger)
        assert await repo.get(design.id) == design
        assert storage.released == []

    async def test_missing_design(self, repo, storage, owner):
        with pytest.raises(NotFoundError):
            await delete_design(repo, storage, uuid.uuid4(), owner)

    async def test_failed_blob_release_does_not_block_delete(self, repo, owner):
        image_ref = f"{BLOB_ROOT}designs/a.png"
        storage = FakeBlobStorage(fail_on={image_ref})
        design = await repo.create(
            owner_id=owner.id,
            image_ref=image_ref,
            final_image_ref=f"{BLOB_ROOT}final/a.png",
        )

        await delete_design(repo, storage, design.id, owner)

        assert storage.released == [f"{BLOB_ROOT}final/a.png"]
        assert repo.rows == {}

    async def test_children_survive_parent_delete(self, repo, storage, owner):
        parent = await repo.create(owner_id=owner.id, image_ref=f"{BLOB_ROOT}designs/a.png")
        child = await repo.create(
            owner_id=owner.id,
            image_ref=f"{BLOB_ROOT}designs/b.png",
            reference_image_ref=parent.image_ref,
            parent_id=parent.id,
        )

        await delete_design(repo, storage, parent.id, owner)

        assert await repo.get(child.id) == child


class TestPurge:

    @pytest.fixture
    def aged(self, repo):
        return {
            "old": repo.seed(image_ref=f"{BLOB_ROOT}designs/old.png", created_at=days_ago(45)),
            "old_starred": repo.seed(is_starred=True, created_at=days_ago(45)),
            "recent": repo.seed(created_at=days_ago(3)),
        }

    async def test_dry_run_touches_nothing(self, repo, storage, aged):
        result = await purge_old_designs(repo, storage, dry_run=True)

        assert result["dry_run"] is True
        assert result["count"] == 1
        assert result["design_ids"] == [aged["old"].id]
        assert len(repo.rows) == 3
        assert storage.released == []

    async def test_purge_removes_unstarred_old_designs(self, repo, storage, aged):
        result = await purge_old_designs(repo, storage, dry_run=False)

        assert result["count"] == 1
        assert set(repo.rows) == {aged["old_starred"].id, aged["recent"].id}
        assert storage.released == [f"{BLOB_ROOT}designs/old.png"]

    async def test_custom_threshold(self, repo, storage, aged):
        result = await purge_old_designs(repo, storage, older_than_days=1, dry_run=False)
        assert set(result["design_ids"]) == {aged["old"].id, aged["recent"].id}
        assert set(repo.rows) == {aged["old_starred"].id}

    async def test_cutoff_is_reported(self, repo, storage):
        before = days_ago(30)
        result = await purge_old_designs(repo, storage)
        assert result["cutoff"] >= before
        assert result["count"] == 0
