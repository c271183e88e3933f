"""End-to-end tests for the knowledge base operations."""

import json
import shutil
import threading
import time

import pytest

from conftest import FailingEmbedder, KeywordEmbedder, SlowEmbedder
from kindex.errors import CorruptIndex, DuplicateContent, InvalidCategory, InvalidConfig, NotFound, StorageError
from kindex.store.content import fingerprint_file


def test_add_1200_char_document(kb, write_file):
    text = "".join(chr(ord("a") + i % 26) for i in range(1200))
    summary = kb.add(write_file("doc.txt", text), title="Doc", category="notes", tags=["x"],
                     description="a test", post_types=["linkedin"])

    item = kb.get(summary["id"])
    assert item.processing.status == "completed"
    assert item.processing.chunked
    assert item.processing.chunk_count == 3
    assert not item.processing.embedded
    assert item.source.type == "text"
    assert item.source.path == "sources/text/doc.txt"
    assert item.source.original_name == "doc.txt"
    assert item.source.size_bytes == 1200
    assert item.post_types == ["linkedin"]

    chunks = kb.get_chunks(summary["id"])
    assert [(c.start_offset, c.end_offset) for c in chunks] == [(0, 500), (450, 950), (900, 1200)]
    assert chunks[0].id == f"{summary['id']}_chunk_0"


def test_add_duplicate_content(kb, write_file):
    first = kb.add(write_file("one.txt", "same content"), title="One", category="notes")
    with pytest.raises(DuplicateContent) as exc:
        kb.add(write_file("two.md", "same content"), title="Two", category="report")
    assert exc.value.existing_id == first["id"]
    assert len(kb.index_store.load()) == 1
    # The rejected file was never copied into the store
    assert [p.name for p in kb.content_store.iter_files()] == ["one.txt"]


def test_add_missing_file(kb, tmp_path):
    with pytest.raises(NotFound):
        kb.add(tmp_path / "missing.txt", title="X", category="notes")


def test_add_invalid_category(kb, write_file):
    with pytest.raises(InvalidCategory):
        kb.add(write_file("a.txt", "a"), title="A", category="gossip")


def test_add_copy_failure_leaves_index_untouched(kb, write_file, monkeypatch):
    def broken_copy(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("kindex.store.content.shutil.copy2", broken_copy)
    with pytest.raises(StorageError):
        kb.add(write_file("a.txt", "a"), title="A", category="notes")
    assert len(kb.index_store.load()) == 0
    assert list(kb.content_store.iter_files()) == []


def test_add_invalid_chunking_rolls_back(make_kb, write_file):
    kb = make_kb(chunking={"max_chunk_size": 50, "overlap": 50})
    with pytest.raises(InvalidConfig):
        kb.add(write_file("a.txt", "a" * 200), title="A", category="notes")
    assert len(kb.index_store.load()) == 0
    assert list(kb.content_store.iter_files()) == []


def test_same_name_different_content(kb, write_file):
    a = kb.add(write_file("a.txt", "first"), title="A", category="notes")
    b = kb.add(write_file("a.txt", "second"), title="B", category="notes")
    assert kb.get(a["id"]).source.path == "sources/text/a.txt"
    assert kb.get(b["id"]).source.path == "sources/text/a_1.txt"


def test_add_without_extractor_stays_pending(kb, tmp_path):
    pdf = tmp_path / "report.pdf"
    pdf.write_bytes(b"%PDF-1.4 binary")
    summary = kb.add(pdf, title="Report", category="report")
    item = kb.get(summary["id"])
    assert item.processing.status == "pending"
    assert not item.processing.chunked
    assert item.source.path == "sources/pdf/report.pdf"


def test_add_with_supplied_text(kb, tmp_path):
    pdf = tmp_path / "report.pdf"
    pdf.write_bytes(b"%PDF-1.4 binary")
    summary = kb.add(pdf, title="Report", category="report", text="x" * 600)
    assert summary["status"] == "completed"
    assert summary["chunkCount"] == 2


def test_add_empty_text_file(kb, write_file):
    summary = kb.add(write_file("empty.txt", ""), title="Empty", category="notes")
    assert summary["status"] == "completed"
    assert summary["chunkCount"] == 0
    assert kb.get_chunks(summary["id"]) == []


def test_add_with_embedder(make_kb, write_file):
    kb = make_kb(embedder=KeywordEmbedder())
    summary = kb.add(write_file("py.txt", "python python finance"), title="Py", category="notes")
    item = kb.get(summary["id"])
    assert item.processing.embedded
    assert item.embedding == [2.0, 1.0, 0.0]


def test_add_survives_embedding_failure(make_kb, write_file):
    kb = make_kb(embedder=FailingEmbedder())
    summary = kb.add(write_file("a.txt", "python"), title="A", category="notes")
    item = kb.get(summary["id"])
    assert item.processing.status == "completed"
    assert not item.processing.embedded
    assert item.embedding is None


def test_add_survives_embedding_timeout(make_kb, write_file):
    kb = make_kb(embedder=SlowEmbedder(), embedding={"timeout": 0.05})
    summary = kb.add(write_file("a.txt", "python"), title="A", category="notes")
    assert not kb.get(summary["id"]).processing.embedded


def test_embed_pending(make_kb, write_file):
    make_kb(embedder=FailingEmbedder()).add(write_file("a.txt", "health notes"), title="A", category="notes")
    kb = make_kb(embedder=KeywordEmbedder())
    assert kb.embed_pending() == 1
    assert kb.embed_pending() == 0
    assert kb.stats()["embeddedItems"] == 1


def test_embed_pending_requires_provider(kb):
    with pytest.raises(InvalidConfig):
        kb.embed_pending()


def test_search_end_to_end(kb, write_file):
    a = kb.add(write_file("a.txt", "aaa"), title="Python tips", category="notes")
    b = kb.add(write_file("b.txt", "bbb"), title="Other", category="notes", tags=["python"])
    kb.add(write_file("c.txt", "ccc"), title="Unrelated", category="report")

    results = kb.search("python")
    assert [r["id"] for r in results] == [a["id"], b["id"]]
    assert [r["score"] for r in results] == [2, 1]
    assert kb.search("nothing matches") == []


def test_semantic_search_end_to_end(make_kb, write_file):
    kb = make_kb(embedder=KeywordEmbedder())
    fin = kb.add(write_file("f.txt", "finance finance"), title="Budget", category="notes")
    kb.add(write_file("h.txt", "health"), title="Running", category="notes")
    results = kb.search("finance")
    assert [r["id"] for r in results] == [fin["id"]]
    assert results[0]["score"] == pytest.approx(1.0)


def test_list_and_get(kb, write_file):
    a = kb.add(write_file("a.txt", "a"), title="A", category="notes")
    b = kb.add(write_file("b.txt", "b"), title="B", category="report")
    assert {s["id"] for s in kb.list_items()} == {a["id"], b["id"]}
    assert [s["id"] for s in kb.list_items(category="report")] == [b["id"]]
    assert kb.get(a["id"]).title == "A"
    with pytest.raises(NotFound):
        kb.get("nope")


def test_delete(kb, write_file):
    a = kb.add(write_file("a.txt", "a"), title="A", category="notes")
    result = kb.delete(a["id"])
    assert result["deleted"] == a["id"]
    assert len(kb.index_store.load()) == 0
    assert not kb.chunk_store.path_for(a["id"]).exists()
    # Stored copy is kept by default
    assert kb.content_store.exists("sources/text/a.txt")
    with pytest.raises(NotFound):
        kb.delete(a["id"])


def test_delete_with_file(kb, write_file):
    a = kb.add(write_file("a.txt", "a"), title="A", category="notes")
    kb.delete(a["id"], remove_file=True)
    assert not kb.content_store.exists("sources/text/a.txt")
    assert kb.sync()["newFiles"] == 0


def test_record_usage_and_stats(kb, write_file):
    a = kb.add(write_file("a.txt", "x" * 1200), title="A", category="notes")
    kb.add(write_file("b.txt", "b"), title="B", category="report")

    kb.record_usage(a["id"])
    item = kb.record_usage(a["id"], generated_post=True)
    assert item.usage.times_referenced == 2
    assert item.usage.generated_posts_count == 1
    assert item.updated_at >= item.created_at

    stats = kb.stats()
    assert stats["totalItems"] == 2
    assert stats["totalChunks"] == 4
    assert stats["perCategoryCounts"]["notes"] == 1
    assert stats["perCategoryCounts"]["report"] == 1
    assert stats["perCategoryCounts"]["article"] == 0
    assert stats["totalReferences"] == 2
    assert stats["totalGeneratedPosts"] == 1
    assert stats["config"]["chunking"]["maxChunkSize"] == 500

    with pytest.raises(NotFound):
        kb.record_usage("nope")


def test_corrupt_index_aborts_operations(kb, write_file):
    kb.initialize()
    kb.index_store.path.write_text("{broken")
    with pytest.raises(CorruptIndex):
        kb.search("x")
    with pytest.raises(CorruptIndex):
        kb.add(write_file("a.txt", "a"), title="A", category="notes")
    assert kb.index_store.path.read_text() == "{broken"


def test_paths_are_relocatable(kb, write_file, tmp_path):
    from kindex.service import KnowledgeBase

    a = kb.add(write_file("a.txt", "relocate me"), title="A", category="notes")
    moved = tmp_path / "moved"
    kb.root.rename(moved)

    relocated = KnowledgeBase(moved)
    assert relocated.sync()["orphaned"] == 0
    assert relocated.get_chunks(a["id"])[0].content == "relocate me"
    data = json.loads((moved / "index.json").read_text())
    assert not data["items"][0]["source"]["path"].startswith("/")


def _add_concurrently(kb, paths, monkeypatch):
    """Add every path from its own thread while each copy is slowed down."""
    real_copy = shutil.copy2

    def slow_copy(src, dst, **kwargs):
        time.sleep(0.2)
        return real_copy(src, dst, **kwargs)

    monkeypatch.setattr("kindex.store.content.shutil.copy2", slow_copy)
    barrier = threading.Barrier(len(paths))
    outcomes = []

    def worker(path, title):
        barrier.wait()
        try:
            outcomes.append(kb.add(path, title=title, category="notes"))
        except DuplicateContent as e:
            outcomes.append(e)

    threads = [threading.Thread(target=worker, args=(p, f"T{i}")) for i, p in enumerate(paths)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    return outcomes


def _same_name_files(tmp_path, first, second):
    paths = []
    for folder, content in (("one", first), ("two", second)):
        path = tmp_path / folder / "a.txt"
        path.parent.mkdir(parents=True)
        path.write_text(content)
        paths.append(str(path))
    return paths


def test_concurrent_add_same_content_keeps_winner_file(kb, tmp_path, monkeypatch):
    kb.initialize()
    paths = _same_name_files(tmp_path, "shared bytes", "shared bytes")

    outcomes = _add_concurrently(kb, paths, monkeypatch)

    assert sum(isinstance(o, DuplicateContent) for o in outcomes) == 1
    items = kb.index_store.load().items
    assert len(items) == 1
    assert kb.content_store.exists(items[0].source.path)
    assert kb.get_chunks(items[0].id)[0].content == "shared bytes"
    report = kb.sync()
    assert report["orphaned"] == 0
    assert report["untracked"] == []


def test_concurrent_add_same_name_keeps_both_copies(kb, tmp_path, monkeypatch):
    kb.initialize()
    paths = _same_name_files(tmp_path, "first body", "second body")

    outcomes = _add_concurrently(kb, paths, monkeypatch)

    assert not any(isinstance(o, DuplicateContent) for o in outcomes)
    items = kb.index_store.load().items
    assert len(items) == 2
    stored = {item.source.path for item in items}
    assert stored == {"sources/text/a.txt", "sources/text/a_1.txt"}
    for item in items:
        assert fingerprint_file(kb.content_store.resolve(item.source.path)) == item.source.content_hash
    assert sorted(kb.get_chunks(i.id)[0].content for i in items) == ["first body", "second body"]
    report = kb.sync()
    assert report["orphaned"] == 0
    assert report["newFiles"] == 0
