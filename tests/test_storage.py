import asyncio
import io
from dataclasses import replace

import pytest
from starlette.datastructures import Headers, UploadFile

from app.storage import UploadError, UploadErrorKind, UploadIngestor

BASE_URL = "https://portal.example.org"


def _upload(data: bytes, name: str = "guide.pdf", mime: str = "application/pdf") -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=name, headers=Headers({"content-type": mime}))


def _pdf(size: int) -> bytes:
    head = b"%PDF-1.7\n"
    return head + b"x" * (size - len(head))


def _ingest(ingestor: UploadIngestor, data: bytes, name="guide.pdf", mime="application/pdf", hint=None):
    f = _upload(data, name, mime)
    return asyncio.run(ingestor.ingest(f, f.content_type, f.filename, hint, BASE_URL))


def _files(root):
    return [p for p in root.rglob("*") if p.is_file()] if root.exists() else []


@pytest.fixture()
def ingestor(settings) -> UploadIngestor:
    return UploadIngestor(replace(settings, max_upload_bytes=3 * 1024 * 1024 + 10))


def test_ingest_streams_multi_chunk_file(ingestor, settings):
    data = _pdf(3 * 1024 * 1024)
    stored = _ingest(ingestor, data, hint="election-integrity")
    assert stored.size_bytes == len(data)
    assert stored.partition == "election-integrity"
    assert stored.storage_path.parent == settings.upload_root / "election-integrity"
    assert stored.storage_path.read_bytes() == data
    assert stored.public_url == f"{BASE_URL}/uploads/election-integrity/{stored.generated_name}"


def test_ingest_over_limit_across_chunks_cleans_up(ingestor, settings):
    with pytest.raises(UploadError) as e:
        _ingest(ingestor, _pdf(3 * 1024 * 1024 + 11))
    assert e.value.kind is UploadErrorKind.TOO_LARGE
    assert e.value.status_code == 413
    assert _files(settings.upload_root) == []


def test_mime_parameters_and_case_are_ignored(ingestor):
    stored = _ingest(ingestor, _pdf(100), mime="Application/PDF; charset=binary")
    assert stored.mime_type == "application/pdf"


@pytest.mark.parametrize("mime", ["text/plain", "application/x-pdf", "", "application/pdf+zip"])
def test_unsupported_type_writes_nothing(ingestor, settings, mime):
    with pytest.raises(UploadError) as e:
        _ingest(ingestor, _pdf(100), mime=mime)
    assert e.value.kind is UploadErrorKind.UNSUPPORTED_TYPE
    assert _files(settings.upload_root) == []


def test_empty_file(ingestor, settings):
    with pytest.raises(UploadError) as e:
        _ingest(ingestor, b"")
    assert e.value.kind is UploadErrorKind.EMPTY_FILE
    assert _files(settings.upload_root) == []


@pytest.mark.parametrize("hint", ["..", "../..", "a/b", "/etc", "..\\win", "x\x00"])
def test_traversal_hint_is_rejected(ingestor, settings, hint):
    with pytest.raises(UploadError) as e:
        _ingest(ingestor, _pdf(100), hint=hint)
    assert e.value.kind is UploadErrorKind.INVALID_PARTITION
    assert _files(settings.upload_root.parent) == []


def test_generated_name_shape(settings):
    ingestor = UploadIngestor(settings, clock=lambda: 1_700_000_000.5)
    stored = _ingest(ingestor, _pdf(50), name="../Party Profile: UML.PDF")
    prefix, rand, rest = stored.generated_name.split("-", 2)
    assert prefix == "1700000000500"
    assert len(rand) == 8
    assert rest == "PartyProfileUML.pdf"
    assert stored.original_name == "../Party Profile: UML.PDF"


def test_identical_names_do_not_collide(settings):
    ingestor = UploadIngestor(settings, clock=lambda: 1_700_000_000.0)
    first = _ingest(ingestor, _pdf(50))
    second = _ingest(ingestor, _pdf(60))
    assert first.generated_name != second.generated_name
    assert first.storage_path.stat().st_size == 50
    assert second.storage_path.stat().st_size == 60


def test_concurrent_identical_names_into_new_partition(settings):
    ingestor = UploadIngestor(settings, clock=lambda: 1_700_000_000.0)
    partition = settings.upload_root / "press-releases"
    assert not partition.exists()

    async def both():
        a, b = _upload(_pdf(70), "release.pdf"), _upload(_pdf(80), "release.pdf")
        return await asyncio.gather(
            ingestor.ingest(a, a.content_type, a.filename, "press-releases", BASE_URL),
            ingestor.ingest(b, b.content_type, b.filename, "press-releases", BASE_URL),
        )

    first, second = asyncio.run(both())
    assert first.generated_name != second.generated_name
    assert first.generated_name.startswith("1700000000000-")
    assert second.generated_name.startswith("1700000000000-")
    assert first.storage_path.read_bytes() == _pdf(70)
    assert second.storage_path.read_bytes() == _pdf(80)
    assert sorted(p.name for p in partition.iterdir()) == sorted(
        [first.generated_name, second.generated_name]
    )


def test_delete_then_delete_again(ingestor):
    stored = _ingest(ingestor, _pdf(50))
    assert ingestor.delete(stored.public_url) is True
    assert not stored.storage_path.exists()
    assert ingestor.delete(stored.public_url) is False


def test_delete_ignores_host_and_query(ingestor):
    stored = _ingest(ingestor, _pdf(50))
    url = stored.public_url.replace(BASE_URL, "http://localhost:5000") + "?v=1"
    assert ingestor.delete(url) is True


@pytest.mark.parametrize(
    "url",
    [
        "http://h/uploads/../portal.sqlite3",
        "http://h/uploads/general/../../portal.sqlite3",
        "http://h/uploads/general/%2e%2e%2fx.pdf",
        "http://h/other/general/1700000000000-0a1b2c3d-x.pdf",
        "http://h/uploads/general",
        "not a url",
    ],
)
def test_delete_rejects_foreign_references(ingestor, url):
    with pytest.raises(UploadError) as e:
        ingestor.delete(url)
    assert e.value.kind is UploadErrorKind.INVALID_REFERENCE


def test_resolve(ingestor):
    stored = _ingest(ingestor, _pdf(50))
    assert ingestor.resolve("general", stored.generated_name) == stored.storage_path
    assert ingestor.resolve("general", "1700000000000-0a1b2c3d-missing.pdf") is None
    assert ingestor.resolve("..", stored.generated_name) is None


def test_concurrent_deletes_resolve_to_one_removal(ingestor):
    from concurrent.futures import ThreadPoolExecutor

    stored = _ingest(ingestor, _pdf(50))
    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(ingestor.delete, [stored.public_url] * 4))
    assert sorted(results) == [False, False, False, True]


def test_status_codes_and_clean_import():
    import importlib.util
    import warnings

    from app import storage

    spec = importlib.util.spec_from_file_location("storage_fresh", storage.__file__)
    module = importlib.util.module_from_spec(spec)
    with warnings.catch_warnings():
        warnings.simplefilter("error", DeprecationWarning)
        spec.loader.exec_module(module)

    kinds = module.UploadErrorKind
    assert module.UploadError(kinds.TOO_LARGE, "x").status_code == 413
    assert module.UploadError(kinds.UNSUPPORTED_TYPE, "x").status_code == 415
    assert module.UploadError(kinds.NO_FILE, "x").status_code == 400
