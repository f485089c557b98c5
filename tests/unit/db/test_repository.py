"""Tests for Repository: passages, vector search, crawl jobs, cache rows."""

from __future__ import annotations

import pytest

from lawcrawl.db.models import CrawlJob, JobStatus, Passage
from lawcrawl.db.repository import Repository
from lawcrawl.errors import StorageError

APPLE = [1.0, 0.0, 0.0, 0.0]
CAR = [0.0, 1.0, 0.0, 0.0]
TAX = [0.0, 0.0, 1.0, 0.0]


def _passage(
    url: str = "https://a.gov/1",
    chunk_number: int = 1,
    text: str = "Some statute text.",
    jurisdiction: str = "NY",
    embedding: list[float] | None = None,
) -> Passage:
    return Passage(
        document_id="doc-1",
        chunk_number=chunk_number,
        number_of_chunks=2,
        text=text,
        url=url,
        jurisdiction=jurisdiction,
        embedding=embedding or APPLE,
        token_length=len(text),
        document_name=url,
    )


# ------------------------------------------------------------------
# Passages
# ------------------------------------------------------------------


def test_add_passage_round_trip(repo: Repository) -> None:
    rowid = repo.add_passage(_passage())
    stored = repo.get_passage_by_rowid(rowid)
    assert stored is not None
    assert stored.rowid == rowid
    assert stored.text == "Some statute text."
    assert stored.jurisdiction == "NY"
    assert stored.number_of_chunks == 2
    assert stored.ingested_at is not None
    assert repo.count_embeddings() == 1


def test_get_passage_by_rowid_missing(repo: Repository) -> None:
    assert repo.get_passage_by_rowid(999) is None


def test_passage_metadata_row_written(repo: Repository, tmp_db) -> None:
    repo.add_passage(_passage())
    raw = tmp_db.execute("SELECT metadata FROM passages").fetchone()[0]
    assert '"state": "NY"' in raw
    assert '"url": "https://a.gov/1"' in raw


def test_insert_passages_counts(repo: Repository) -> None:
    inserted = repo.insert_passages([_passage(chunk_number=1), _passage(chunk_number=2)])
    assert inserted == 2
    assert repo.count_passages() == 2
    assert repo.count_embeddings() == 2


def test_replace_passages_swaps_rows_for_url(repo: Repository) -> None:
    repo.insert_passages([_passage(chunk_number=1), _passage(chunk_number=2)])
    repo.add_passage(_passage(url="https://a.gov/other"))

    deleted, inserted = repo.replace_passages(
        ["https://a.gov/1"], [_passage(text="New text.", embedding=CAR)]
    )

    assert (deleted, inserted) == (2, 1)
    current = repo.list_passages_by_url("https://a.gov/1")
    assert [p.text for p in current] == ["New text."]
    assert len(repo.list_passages_by_url("https://a.gov/other")) == 1
    assert repo.count_embeddings() == repo.count_passages() == 2


def test_replace_passages_same_content_is_idempotent(repo: Repository) -> None:
    batch = [_passage(chunk_number=1), _passage(chunk_number=2)]
    repo.replace_passages(["https://a.gov/1"], batch)
    first = repo.count_passages()
    repo.replace_passages(["https://a.gov/1"], [_passage(chunk_number=1), _passage(chunk_number=2)])
    assert repo.count_passages() == first == 2


def test_replace_passages_rolls_back_on_failure(repo: Repository) -> None:
    repo.add_passage(_passage(text="Original."))
    bad = _passage(text="Wrong width.", embedding=[1.0, 0.0])

    with pytest.raises(StorageError):
        repo.replace_passages(["https://a.gov/1"], [bad])

    assert [p.text for p in repo.list_passages_by_url("https://a.gov/1")] == ["Original."]
    assert repo.count_embeddings() == 1


def test_delete_passages_by_urls(repo: Repository) -> None:
    repo.add_passage(_passage(url="https://a.gov/1"))
    repo.add_passage(_passage(url="https://a.gov/2"))
    repo.add_passage(_passage(url="https://a.gov/3"))

    deleted = repo.delete_passages_by_urls(["https://a.gov/1", "https://a.gov/2"])

    assert deleted == 2
    assert repo.count_passages() == 1
    assert repo.count_embeddings() == 1


def test_delete_passages_by_urls_nothing_to_delete(repo: Repository) -> None:
    assert repo.delete_passages_by_urls([]) == 0
    assert repo.delete_passages_by_urls(["https://nowhere.gov"]) == 0


def test_list_passages_by_url_in_chunk_order(repo: Repository) -> None:
    repo.insert_passages(
        [_passage(chunk_number=3), _passage(chunk_number=1), _passage(chunk_number=2)]
    )
    assert [p.chunk_number for p in repo.list_passages_by_url("https://a.gov/1")] == [1, 2, 3]


def test_count_passages_by_jurisdiction(repo: Repository) -> None:
    repo.add_passage(_passage(jurisdiction="NY"))
    repo.add_passage(_passage(url="https://b.gov", jurisdiction="CA"))
    assert repo.count_passages("NY") == 1
    assert repo.count_passages("CA") == 1
    assert repo.count_passages("TX") == 0


# ------------------------------------------------------------------
# Similarity search
# ------------------------------------------------------------------


def test_similarity_search_best_first(repo: Repository) -> None:
    repo.add_passage(_passage(url="https://a.gov/apple", text="apple", embedding=APPLE))
    repo.add_passage(_passage(url="https://a.gov/car", text="car", embedding=CAR))

    results = repo.similarity_search(APPLE, 2, "NY")

    assert [p.text for p, _ in results] == ["apple", "car"]
    assert results[0][1] == pytest.approx(1.0, abs=1e-5)
    assert results[1][1] == pytest.approx(0.0, abs=1e-5)


def test_similarity_search_never_crosses_jurisdiction(repo: Repository) -> None:
    repo.add_passage(_passage(url="https://ny.gov", text="ny", jurisdiction="NY", embedding=TAX))
    repo.add_passage(_passage(url="https://ca.gov", text="ca", jurisdiction="CA", embedding=TAX))

    results = repo.similarity_search(TAX, 8, "CA")

    assert [p.jurisdiction for p, _ in results] == ["CA"]


def test_similarity_search_unknown_jurisdiction_empty(repo: Repository) -> None:
    repo.add_passage(_passage())
    assert repo.similarity_search(APPLE, 8, "ZZ") == []


def test_similarity_search_k_zero(repo: Repository) -> None:
    repo.add_passage(_passage())
    assert repo.similarity_search(APPLE, 0, "NY") == []


def test_similarity_search_respects_k(repo: Repository) -> None:
    for i in range(5):
        repo.add_passage(_passage(url=f"https://a.gov/{i}", embedding=APPLE))
    assert len(repo.similarity_search(APPLE, 3, "NY")) == 3


# ------------------------------------------------------------------
# Crawl jobs
# ------------------------------------------------------------------


def test_add_and_get_job(repo: Repository) -> None:
    stored = repo.add_job(CrawlJob(id="job-1", jurisdiction="NY", urls=["https://a.gov"]))
    assert stored.status is JobStatus.PENDING
    assert stored.urls == ["https://a.gov"]
    assert stored.created_at is not None
    assert repo.get_job("job-1") == stored


def test_get_job_missing(repo: Repository) -> None:
    assert repo.get_job("nope") is None


def test_list_jobs_newest_first_and_filtered(repo: Repository) -> None:
    repo.add_job(CrawlJob(id="a", jurisdiction="NY"))
    repo.add_job(CrawlJob(id="b", jurisdiction="CA"))
    repo.add_job(CrawlJob(id="c", jurisdiction="NY"))

    assert [j.id for j in repo.list_jobs()] == ["c", "b", "a"]
    assert [j.id for j in repo.list_jobs(jurisdiction="NY")] == ["c", "a"]
    assert [j.id for j in repo.list_jobs(limit=1, offset=1)] == ["b"]


def test_list_jobs_by_status(repo: Repository) -> None:
    job = repo.add_job(CrawlJob(id="a", jurisdiction="NY"))
    repo.add_job(CrawlJob(id="b", jurisdiction="NY"))
    job.status = JobStatus.FAILED
    repo.update_job(job)

    assert [j.id for j in repo.list_jobs(status=JobStatus.FAILED)] == ["a"]


def test_update_job_writes_mutable_fields(repo: Repository) -> None:
    job = repo.add_job(CrawlJob(id="a", jurisdiction="NY"))
    job.status = JobStatus.COMPLETED
    job.web_urls_found = 7
    job.pdf_urls_found = 2
    job.completed_at = "2026-01-01T00:00:00+00:00"
    job.duration_seconds = 3.5

    updated = repo.update_job(job)

    assert updated.status is JobStatus.COMPLETED
    assert (updated.web_urls_found, updated.pdf_urls_found) == (7, 2)
    assert updated.duration_seconds == 3.5


def test_update_job_unknown_id_raises_storage_error(repo: Repository) -> None:
    with pytest.raises(StorageError, match="no crawl job with id 'ghost'"):
        repo.update_job(CrawlJob(id="ghost", jurisdiction="NY"))


def test_update_job_progress(repo: Repository) -> None:
    repo.add_job(CrawlJob(id="a", jurisdiction="NY"))
    repo.update_job_progress("a", 10, 3)
    job = repo.get_job("a")
    assert (job.web_urls_found, job.pdf_urls_found) == (10, 3)
    assert job.status is JobStatus.PENDING


# ------------------------------------------------------------------
# Cache rows
# ------------------------------------------------------------------


def test_cache_value_round_trip(repo: Repository) -> None:
    repo.set_cache_value("k", '{"content": "x"}', expires_at=200.0)
    assert repo.get_cache_value("k", now=100.0) == '{"content": "x"}'


def test_cache_value_expired(repo: Repository) -> None:
    repo.set_cache_value("k", "v", expires_at=100.0)
    assert repo.get_cache_value("k", now=100.0) is None


def test_cache_value_upsert(repo: Repository) -> None:
    repo.set_cache_value("k", "old", expires_at=200.0)
    repo.set_cache_value("k", "new", expires_at=300.0)
    assert repo.get_cache_value("k", now=250.0) == "new"


def test_delete_expired_cache(repo: Repository) -> None:
    repo.set_cache_value("old", "v", expires_at=50.0)
    repo.set_cache_value("fresh", "v", expires_at=500.0)
    assert repo.delete_expired_cache(now=100.0) == 1
    assert repo.get_cache_value("fresh", now=100.0) == "v"
