import io
import json
import pytest

from conftest import make_records
from dogfetch.core.output import InitializationError
from dogfetch.outputs.json_document import JsonDocumentOutput


class TestJsonDocumentOutput:
    """Test suite for the buffered JSON document sink."""

    async def test_document_shape(self):
        stream = io.StringIO()
        records = make_records(5)

        async with JsonDocumentOutput(stream=stream) as output:
            await output.write_page(records[:2])
            await output.write_page(records[2:])
            # Nothing is written until finalize
            assert stream.getvalue() == ""
            await output.finalize()

        document = json.loads(stream.getvalue())
        assert document["logs"] == records
        assert document["meta"] == {"total_fetched": 5, "pages": 2}
        assert stream.getvalue().endswith("}\n")

    async def test_writes_file(self, tmp_path):
        path = tmp_path / "results.json"

        async with JsonDocumentOutput(path=str(path)) as output:
            await output.write_page(make_records(1))
            await output.finalize()

        document = json.loads(path.read_text(encoding="utf-8"))
        assert document["meta"]["total_fetched"] == 1
        assert output.get_metrics()['records_written'] == 1

    async def test_empty_document(self):
        stream = io.StringIO()
        async with JsonDocumentOutput(stream=stream) as output:
            await output.finalize()

        assert json.loads(stream.getvalue()) == {"logs": [], "meta": {"total_fetched": 0, "pages": 0}}

    async def test_finalize_once(self):
        stream = io.StringIO()
        async with JsonDocumentOutput(stream=stream) as output:
            await output.write_page(make_records(1))
            await output.finalize()
            await output.finalize()

        assert stream.getvalue().count('"logs"') == 1

    async def test_no_finalize_writes_nothing(self, tmp_path):
        path = tmp_path / "results.json"
        async with JsonDocumentOutput(path=str(path)) as output:
            await output.write_page(make_records(2))
        assert not path.exists()

    async def test_missing_directory(self, tmp_path):
        output = JsonDocumentOutput(path=str(tmp_path / "missing" / "results.json"))
        with pytest.raises(InitializationError, match="does not exist"):
            await output.initialize()

    async def test_path_is_directory(self, tmp_path):
        output = JsonDocumentOutput(path=str(tmp_path))
        with pytest.raises(InitializationError, match="is a directory"):
            await output.initialize()
