"""Unit tests for the in-memory job and result repositories."""
from datetime import datetime, timedelta, timezone

import pytest

from sourcing_matcher.errors import RepositoryError
from sourcing_matcher.models.jobs import JobProgress, JobStatus, MatcherJob, MatchResult, ResultStatus
from sourcing_matcher.repositories import (
    InMemoryJobRepository,
    InMemoryResultRepository,
    get_job_with_results,
)


class TestInMemoryJobRepository:
    """Tests for InMemoryJobRepository."""

    @pytest.mark.asyncio
    async def test_update_fields_patches_and_touches(self):
        """Test a patch changes only the named fields and bumps updated_at."""
        repo = InMemoryJobRepository()
        job = await repo.create(MatcherJob(sheet_data=[{"name": "Lamp"}], providers=["catalog"]))

        updated = await repo.update_fields(
            job.id,
            status=JobStatus.PROCESSING,
            progress=JobProgress(processed=0, total=1),
        )

        assert updated.status == JobStatus.PROCESSING
        assert updated.progress.total == 1
        assert updated.sheet_data == [{"name": "Lamp"}]
        assert updated.updated_at >= job.updated_at

    @pytest.mark.asyncio
    async def test_unknown_field_rejected(self):
        """Test patches naming unknown fields raise RepositoryError."""
        repo = InMemoryJobRepository()
        job = await repo.create(MatcherJob())

        with pytest.raises(RepositoryError, match="colour"):
            await repo.update_fields(job.id, colour="red")

    @pytest.mark.asyncio
    async def test_missing_job(self):
        """Test updating an unknown job raises and get returns None."""
        repo = InMemoryJobRepository()

        assert await repo.get("nope") is None
        with pytest.raises(RepositoryError):
            await repo.update_fields("nope", status=JobStatus.FAILED)

    @pytest.mark.asyncio
    async def test_returned_copies_are_isolated(self):
        """Test callers cannot mutate stored state through returned models."""
        repo = InMemoryJobRepository()
        job = await repo.create(MatcherJob(sheet_data=[{"name": "Lamp"}]))

        fetched = await repo.get(job.id)
        fetched.sheet_data.append({"name": "Mug"})

        assert (await repo.get(job.id)).sheet_data == [{"name": "Lamp"}]

    @pytest.mark.asyncio
    async def test_delete(self):
        """Test delete removes the job and reports whether it existed."""
        repo = InMemoryJobRepository()
        job = await repo.create(MatcherJob())

        assert await repo.delete(job.id) is True
        assert await repo.get(job.id) is None
        assert await repo.delete(job.id) is False

    @pytest.mark.asyncio
    async def test_list_newest_first(self):
        """Test the job history is ordered by creation time, newest first."""
        repo = InMemoryJobRepository()
        start = datetime(2026, 10, 1, tzinfo=timezone.utc)
        for day, name in enumerate(["first", "second", "third"]):
            await repo.create(MatcherJob(name=name, created_at=start + timedelta(days=day)))

        assert [job.name for job in await repo.list()] == ["third", "second", "first"]


class TestInMemoryResultRepository:
    """Tests for InMemoryResultRepository and get_job_with_results."""

    @pytest.mark.asyncio
    async def test_list_by_job_in_creation_order(self):
        """Test results come back per job in creation order."""
        repo = InMemoryResultRepository()
        for index in range(3):
            await repo.create(MatchResult(job_id="job-a", row_index=index))
        await repo.create(MatchResult(job_id="job-b"))

        results = await repo.list_by_job("job-a")

        assert [r.row_index for r in results] == [0, 1, 2]

    @pytest.mark.asyncio
    async def test_update_status(self):
        """Test result patches are applied."""
        repo = InMemoryResultRepository()
        result = await repo.create(MatchResult(job_id="job-a", status=ResultStatus.SEARCHING))

        updated = await repo.update_fields(result.id, status=ResultStatus.NOT_FOUND, matches=[])

        assert updated.status == ResultStatus.NOT_FOUND
        assert (await repo.get(result.id)).status == ResultStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_delete_by_job(self):
        """Test only the named job's results are removed."""
        repo = InMemoryResultRepository()
        for index in range(2):
            await repo.create(MatchResult(job_id="job-a", row_index=index))
        kept = await repo.create(MatchResult(job_id="job-b"))

        assert await repo.delete_by_job("job-a") == 2
        assert await repo.list_by_job("job-a") == []
        assert [r.id for r in await repo.list_by_job("job-b")] == [kept.id]
        assert await repo.delete_by_job("job-a") == 0

    @pytest.mark.asyncio
    async def test_job_with_results(self):
        """Test the job view bundles the job and its results."""
        job_repo = InMemoryJobRepository()
        result_repo = InMemoryResultRepository()
        job = await job_repo.create(MatcherJob())
        await result_repo.create(MatchResult(job_id=job.id))

        view = await get_job_with_results(job_repo, result_repo, job.id)

        assert view.job.id == job.id
        assert len(view.results) == 1
        assert await get_job_with_results(job_repo, result_repo, "missing") is None
